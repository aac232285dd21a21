"""Collecting pictures from the jandan.net picture board into a local database."""

from __future__ import annotations

import re
import sqlite3
import threading
from pathlib import Path
from typing import Callable

import lxml.html

API = "http://jandan.net/pic"

_PAGE_XPATH = "//*[@id='comments']/div[2]/div/span[@class='current-comment-page']/text()"
_PICTURE_XPATH = "//*[@class='view_img_link']"
_PREVIOUS_XPATH = (
    "//*[@id='comments']/div[@class='comments']/div[@class='cp-pagenavi']"
    "/a[@class='previous-comment-page']"
)
_NUMBER = re.compile(r"\d+")
_CRC64_ISO_POLY = 0xD800000000000000
_MASK64 = 0xFFFFFFFFFFFFFFFF


def _make_table() -> list[int]:
    table = []
    for i in range(256):
        crc = i
        for _ in range(8):
            crc = (crc >> 1) ^ _CRC64_ISO_POLY if crc & 1 else crc >> 1
        table.append(crc)
    return table


_TABLE = _make_table()


def picture_id(url: str) -> int:
    """CRC-64 (ISO polynomial) of the URL, an unsigned 64-bit value."""
    crc = _MASK64
    for byte in url.encode("utf-8"):
        crc = _TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ _MASK64


def _signed(value: int) -> int:
    return value - (1 << 64) if value >= 1 << 63 else value


class PictureStore:
    """SQLite table of picture URLs keyed by their checksum."""

    def __init__(self, path: str | Path) -> None:
        self._db = sqlite3.connect(str(path), check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock:
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS picture (id INTEGER PRIMARY KEY, url TEXT)"
            )
            self._db.commit()

    def __enter__(self) -> PictureStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def contains(self, picture_id: int) -> bool:
        """Whether a picture with this id is stored."""
        with self._lock:
            row = self._db.execute(
                "SELECT 1 FROM picture WHERE id = ?", (_signed(picture_id),)
            ).fetchone()
        return row is not None

    def insert(self, url: str) -> int:
        """Store a URL and return its id."""
        key = picture_id(url)
        with self._lock:
            self._db.execute(
                "REPLACE INTO picture (id, url) VALUES (?, ?)", (_signed(key), url)
            )
            self._db.commit()
        return key

    def random_url(self) -> str:
        """A random stored URL; LookupError when the store is empty."""
        with self._lock:
            row = self._db.execute(
                "SELECT url FROM picture ORDER BY RANDOM() LIMIT 1"
            ).fetchone()
        if row is None:
            raise LookupError("no pictures stored")
        return row[0]

    def count(self) -> int:
        """Number of stored pictures."""
        with self._lock:
            return self._db.execute("SELECT COUNT(*) FROM picture").fetchone()[0]

    def close(self) -> None:
        """Close the database."""
        with self._lock:
            self._db.close()


def _parse(html: str):
    return lxml.html.fromstring(html)


def parse_page_total(html: str) -> int:
    """Number of the current (newest) page shown on the board's front page."""
    texts = _parse(html).xpath(_PAGE_XPATH)
    if not texts:
        raise ValueError("page number not found")
    match = _NUMBER.search(str(texts[0]))
    if match is None:
        raise ValueError(f"no page number in {texts[0]!r}")
    return int(match.group())


def extract_pictures(html: str) -> list[str]:
    """Full-size picture URLs on a page."""
    urls = []
    for link in _parse(html).xpath(_PICTURE_XPATH):
        values = list(link.attrib.values())
        if values:
            urls.append("https:" + values[0])
    return urls


def next_page_url(html: str) -> str:
    """URL of the previous (older) page."""
    links = _parse(html).xpath(_PREVIOUS_XPATH)
    if not links:
        raise ValueError("previous page link not found")
    values = list(links[0].attrib.values())
    if len(values) < 2:
        raise ValueError("previous page link has no target")
    return "https:" + values[1]


def update(store: PictureStore, fetch: Callable[[str], str], start_url: str = API) -> int:
    """Walk pages from newest to oldest, storing new pictures.

    Stops at the first picture already stored; returns how many were added.
    """
    url = start_url
    total = parse_page_total(fetch(url))
    added = 0
    for page in range(total):
        html = fetch(url)
        for picture in extract_pictures(html):
            if store.contains(picture_id(picture)):
                return added
            store.insert(picture)
            added += 1
        if page != total - 1:
            url = next_page_url(html)
    return added