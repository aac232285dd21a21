"""Hearthstone card search and deck images."""

from __future__ import annotations

import json

import requests

SITE = "https://hs.fbigame.com"
AJAX = "https://hs.fbigame.com/ajax.php?"
PARAMS = (
    "mod=get_cards_list&"
    "mode=-1&"
    "extend=-1&"
    "mutil_extend=&"
    "hero=-1&"
    "rarity=-1&"
    "cost=-1&"
    "mutil_cost=&"
    "techlevel=-1&"
    "type=-1&"
    "collectible=-1&"
    "isbacon=-1&"
    "page=1&"
    "search_type=1&"
    "deckmode=normal"
)
CARD_IMAGE_URL = "https://res.fbigame.com/hs/v13/{card_id}.png?auth_key={auth_key}"
USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 6.0; Nexus 5 Build/MRA58N) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/86.0.4240.198 Mobile Safari/537.36"
)
_HASH_MARK = 'var hash = "'


def _get(url: str) -> bytes:
    response = requests.get(
        url, headers={"Referer": SITE, "User-Agent": USER_AGENT}, timeout=30
    )
    response.raise_for_status()
    return response.content


def extract_hash(page: str) -> str:
    """The request hash embedded in the site's front page."""
    _, found, rest = page.partition(_HASH_MARK)
    if not found:
        raise ValueError("hash not found in page")
    return rest.split('"', 1)[0]


def search_url(page_hash: str, query: str) -> str:
    """Card list search URL."""
    return AJAX + PARAMS + "&hash=" + page_hash + "&search=" + query


def deck_url(page_hash: str, code: str) -> str:
    """Deck image URL for a deck code."""
    return (
        AJAX
        + PARAMS
        + "mod=general_deck_image&deck_code="
        + code
        + "&deck_text=&hash="
        + page_hash
        + "&search="
        + code
    )


def _page_hash() -> str:
    return extract_hash(_get(SITE).decode("utf-8", errors="replace"))


def search_cards(query: str) -> list[dict]:
    """Cards matching a search; each has at least CardID and auth_key."""
    data = json.loads(_get(search_url(_page_hash(), query)))
    cards = data.get("list") if isinstance(data, dict) else None
    return cards if isinstance(cards, list) else []


def deck_image(code: str) -> str:
    """Deck image as a base64:// URI."""
    data = json.loads(_get(deck_url(_page_hash(), code)))
    image = data.get("img", "") if isinstance(data, dict) else ""
    return "base64://" + (image if isinstance(image, str) else str(image))