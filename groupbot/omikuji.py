"""Senso-ji fortune slips: a daily draw per user and the slip texts from SQLite."""

from __future__ import annotations

import hashlib
import random
import sqlite3
import threading
from datetime import date
from pathlib import Path

BED = "https://gitcode.net/u011570312/senso-ji-omikuji/-/raw/main/{number}_{page}.jpg"
KUJI_COUNT = 100


class KujiStore:
    """The table of slip interpretations, keyed by slip number."""

    def __init__(self, path: str | Path) -> None:
        self._db = sqlite3.connect(str(path), check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock:
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS kuji (id INTEGER PRIMARY KEY, text TEXT)"
            )
            self._db.commit()

    def __enter__(self) -> KujiStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def text(self, number: int) -> str:
        """Interpretation of slip ``number``; LookupError when it is missing."""
        with self._lock:
            row = self._db.execute(
                "SELECT text FROM kuji WHERE id = ?", (number,)
            ).fetchone()
        if row is None:
            raise LookupError(f"no kuji numbered {number}")
        return row[0]

    def count(self) -> int:
        """Number of stored slips."""
        with self._lock:
            return self._db.execute("SELECT COUNT(*) FROM kuji").fetchone()[0]

    def close(self) -> None:
        """Close the database."""
        with self._lock:
            self._db.close()


def draw_number(user_id: int, today: date | None = None) -> int:
    """The slip number (1-100) a user draws; the same all day long."""
    today = today or date.today()
    digest = hashlib.md5(f"{user_id}{today.isoformat()}".encode()).digest()
    seed = int.from_bytes(digest[:8], "little")
    return random.Random(seed).randrange(KUJI_COUNT) + 1


def image_urls(number: int) -> tuple[str, str]:
    """Front and back images of slip ``number``."""
    if not 1 <= number <= KUJI_COUNT:
        raise ValueError(f"kuji number out of range: {number}")
    return BED.format(number=number, page=0), BED.format(number=number, page=1)