"""A library of local pictures grouped by folder, indexed in SQLite."""

from __future__ import annotations

import io
import os
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".gif", ".webp")
_HASH_WIDTH = 8
_HASH_HEIGHT = 8


@dataclass(frozen=True)
class SetuImage:
    """One indexed picture: its difference hash, file name and path relative to the root."""

    img_id: int
    name: str
    path: str


def difference_hash(image: Image.Image) -> int:
    """64-bit difference hash of an image, as a signed integer."""
    small = image.convert("L").resize(
        (_HASH_WIDTH + 1, _HASH_HEIGHT), Image.Resampling.BILINEAR
    )
    pixels = list(small.getdata())
    value = 0
    for y in range(_HASH_HEIGHT):
        row = pixels[y * (_HASH_WIDTH + 1) : (y + 1) * (_HASH_WIDTH + 1)]
        for left, right in zip(row, row[1:]):
            value = (value << 1) | (1 if left < right else 0)
    return value - (1 << 64) if value >= 1 << 63 else value


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SetuLibrary:
    """Picture classes (one table per folder) kept in a database file."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._db: sqlite3.Connection | None = None

    def __enter__(self) -> SetuLibrary:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _conn(self) -> sqlite3.Connection:
        if self._db is None:
            self._db = sqlite3.connect(str(self.db_path), check_same_thread=False)
        return self._db

    def _create(self, name: str) -> None:
        self._conn().execute(
            f"CREATE TABLE IF NOT EXISTS {_quote(name)} "
            "(imgid INTEGER PRIMARY KEY, name TEXT, path TEXT)"
        )

    def classes(self) -> list[str]:
        """Names of all indexed classes; empty when nothing was scanned yet."""
        with self._lock:
            if self._db is None and not self.db_path.exists():
                return []
            rows = self._conn().execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY rowid"
            ).fetchall()
        return [row[0] for row in rows]

    def scan_all(self, root: str | Path) -> None:
        """Rebuild the whole index from every folder under ``root``."""
        root = Path(root)
        with self._lock:
            self.close()
            if self.db_path.exists():
                self.db_path.unlink()
        for directory, subdirs, _ in os.walk(root):
            subdirs.sort()
            current = Path(directory)
            if current == root:
                continue
            relpath = current.relative_to(root).as_posix()
            with self._lock:
                self._create(current.name)
                self._conn().commit()
            self._scan(root, relpath, current.name)

    def scan_class(self, root: str | Path, name: str) -> None:
        """Rebuild one class from the folder ``root/name``."""
        self._scan(Path(root), name, name)

    def _scan(self, root: Path, relpath: str, name: str) -> None:
        folder = root / relpath
        entries = sorted(folder.iterdir(), key=lambda entry: entry.name)
        with self._lock:
            db = self._conn()
            db.execute(f"DROP TABLE IF EXISTS {_quote(name)}")
            self._create(name)
            db.commit()
        for entry in entries:
            if entry.is_dir() or not entry.name.lower().endswith(IMAGE_SUFFIXES):
                continue
            data = entry.read_bytes()
            with Image.open(io.BytesIO(data)) as image:
                img_id = difference_hash(image)
            with self._lock:
                db = self._conn()
                db.execute(
                    f"REPLACE INTO {_quote(name)} (imgid, name, path) VALUES (?, ?, ?)",
                    (img_id, entry.name, f"{relpath}/{entry.name}"),
                )
                db.commit()

    def pick(self, name: str) -> SetuImage:
        """A random picture of a class; LookupError when the class is empty."""
        with self._lock:
            row = self._conn().execute(
                f"SELECT imgid, name, path FROM {_quote(name)} ORDER BY RANDOM() LIMIT 1"
            ).fetchone()
        if row is None:
            raise LookupError(f"no pictures in {name}")
        return SetuImage(*row)

    def count(self, name: str) -> int:
        """Number of pictures in a class."""
        with self._lock:
            return self._conn().execute(f"SELECT COUNT(*) FROM {_quote(name)}").fetchone()[0]

    def summary(self) -> str:
        """Listing of every class with its picture count."""
        lines = ["所有本地setu分类"]
        for index, name in enumerate(self.classes()):
            try:
                lines.append(f"{index:02d}. {name}({self.count(name)})")
            except sqlite3.Error:
                lines.append(f"{index:02d}. {name}(error)")
        return "\n".join(lines)

    def close(self) -> None:
        """Close the database; it is reopened on next use."""
        with self._lock:
            if self._db is not None:
                self._db.close()
                self._db = None