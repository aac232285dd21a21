"""Random pictures from the lolicon API or a custom image endpoint, buffered in a queue."""

from __future__ import annotations

import base64
import json
import queue
from typing import Callable

import requests

API = "https://api.lolicon.app/setu/v2"
CAPACITY = 10
REFILL_BATCH = 2
WAIT_SECONDS = 60.0


def normalize_url(url: str) -> str:
    """Point pixiv.cat image URLs at the pixiv.re mirror."""
    return url.replace("i.pixiv.cat", "i.pixiv.re")


def image_name(url: str) -> str:
    """File name of an image URL without its four-character extension."""
    return url[url.rfind("/") + 1 : len(url) - 4]


def parse_lolicon(data: bytes | str) -> str:
    """Original image URL from an API response; RuntimeError carries the API's error."""
    parsed = json.loads(data)
    error = parsed.get("error") if isinstance(parsed, dict) else None
    if error:
        raise RuntimeError(str(error))
    try:
        url = parsed["data"][0]["urls"]["original"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ValueError("no image in response") from exc
    return normalize_url(str(url))


def _get(url: str) -> bytes:
    response = requests.get(url, timeout=30)
    response.raise_for_status()
    return response.content


def fetch_lolicon() -> str:
    """URL of a random picture from the lolicon API."""
    return parse_lolicon(_get(API))


def fetch_custom(url: str) -> str:
    """A picture from a custom endpoint as a base64:// URI."""
    return "base64://" + base64.b64encode(_get(url)).decode("ascii")


def validate_api_url(url: str) -> str:
    """The trimmed custom endpoint; ValueError unless it starts with "http"."""
    url = url.strip()
    if not url.startswith("http"):
        raise ValueError("url非法!")
    return url


class ImageQueue:
    """A bounded buffer of pictures, topped up a couple at a time."""

    def __init__(self, fetch: Callable[[], str], capacity: int = CAPACITY) -> None:
        self._fetch = fetch
        self.capacity = capacity
        self._queue: queue.Queue[str] = queue.Queue(maxsize=capacity)

    def __len__(self) -> int:
        return self._queue.qsize()

    def refill(self) -> list[Exception]:
        """Fetch up to two pictures into free slots; returns the errors that occurred."""
        errors: list[Exception] = []
        for _ in range(min(self.capacity - self._queue.qsize(), REFILL_BATCH)):
            try:
                item = self._fetch()
            except Exception as exc:
                errors.append(exc)
                continue
            try:
                self._queue.put_nowait(item)
            except queue.Full:
                break
        return errors

    def get(self, timeout: float = WAIT_SECONDS) -> str:
        """Next picture; TimeoutError when none arrives in time."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("等待填充，请稍后再试......") from None