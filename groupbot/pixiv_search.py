"""Keyword search of illustrations on a public pixiv mirror."""

from __future__ import annotations

import json
import re
from urllib.parse import quote_plus

import requests

SEARCH_URL = "https://api.pixivel.moe/v2/pixiv/illust/search/{keyword}"
REFERER = "https://pixivel.moe/"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/94.0.4606.61 Safari/537.36"
)

_HREF = re.compile(r'<a href=".*">')


def clean_description(text: str) -> str:
    """Plain text of an illustration description: line breaks kept, links removed."""
    text = text.replace("<br />", "\n").replace("</a>", "")
    return _HREF.sub("", text)


def format_tags(tags: list[dict]) -> str:
    """Tags as lines of "#name (translation)"; the translation is left out when empty."""
    lines = []
    for tag in tags:
        line = "\n#" + str(tag.get("name") or "")
        translation = tag.get("translation") or ""
        if translation:
            line += f" ({translation})"
        lines.append(line)
    return "".join(lines)


def parse_search_result(data: bytes | str) -> list[dict]:
    """Illustrations in a search response; RuntimeError carries the service's error message."""
    parsed = json.loads(data)
    if not isinstance(parsed, dict):
        raise ValueError("unexpected search response")
    if parsed.get("error"):
        raise RuntimeError(str(parsed.get("message") or ""))
    payload = parsed.get("data") or {}
    illusts = payload.get("illusts") if isinstance(payload, dict) else None
    return illusts if isinstance(illusts, list) else []


def search(keyword: str) -> list[dict]:
    """Search illustrations by keyword (first page)."""
    response = requests.get(
        SEARCH_URL.format(keyword=quote_plus(keyword)),
        params={"page": "0"},
        headers={"Referer": REFERER, "User-Agent": USER_AGENT},
        timeout=30,
    )
    response.raise_for_status()
    return parse_search_result(response.content)


def format_illust(illust: dict, user_name: str, user_id: int) -> str:
    """Caption of an illustration with its size, titles, author, rating, description and tags."""
    return (
        f"{illust.get('width', 0)}x{illust.get('height', 0)}\n"
        f"标题: {illust.get('title', '')}\n"
        f"副标题: {illust.get('altTitle', '')}\n"
        f"ID: {illust.get('id', 0)}\n"
        f"画师: {user_name} ({user_id})\n"
        f"分级:{illust.get('sanity', 0)}\n"
        + clean_description(str(illust.get("description") or ""))
        + format_tags(illust.get("tags") or [])
    )