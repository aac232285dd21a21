"""Small text web services: abbreviation guesses and the "绝绝子" phrase generator."""

from __future__ import annotations

import json

import requests

GUESS_URL = "https://lab.magiconch.com/api/nbnhhsh/guess"
JUEJUEZI_URL = "https://www.offjuan.com/api/juejuezi/text"
JUEJUEZI_REFERER = "https://juejuezi.offjuan.com/"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36"
)
KEYWORD = "绝绝子"


def parse_guess_response(data: bytes | str) -> list[str]:
    """Meanings from a guess response: the translations, else the candidates being entered."""
    parsed = json.loads(data)
    if not isinstance(parsed, list) or not parsed or not isinstance(parsed[0], dict):
        return []
    first = parsed[0]
    values = first.get("trans") if "trans" in first else first.get("inputting")
    if not isinstance(values, list):
        return []
    return [str(value) for value in values]


def guess_abbreviation(text: str) -> list[str]:
    """Possible meanings of a pinyin-initial abbreviation."""
    response = requests.post(GUESS_URL, data={"text": text}, timeout=30)
    return parse_guess_response(response.content)


def juejuezi_payload(verb: str, noun: str) -> str:
    """Request body for the phrase generator."""
    return f'{{"verb":"{verb}","noun":"{noun}"}}'


def juejuezi(verb: str, noun: str) -> str:
    """Generated phrase for a verb and a noun."""
    response = requests.post(
        JUEJUEZI_URL,
        data=juejuezi_payload(verb, noun).encode("utf-8"),
        headers={"Referer": JUEJUEZI_REFERER, "User-Agent": USER_AGENT},
        timeout=30,
    )
    text = json.loads(response.content).get("text", "")
    return text if isinstance(text, str) else str(text)


def split_input(text: str) -> tuple[str, str]:
    """Verb and noun from a message with the keyword removed.

    The first character is taken as the verb and the rest as the noun. Raises
    ValueError when fewer than two characters remain.
    """
    rest = text.replace(KEYWORD, "")
    if len(rest) < 2:
        raise ValueError("不要只输入绝绝子")
    return rest[0], rest[1:]