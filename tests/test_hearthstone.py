import re

import pytest
import requests
import responses

from groupbot.hearthstone import (
    AJAX,
    PARAMS,
    deck_image,
    deck_url,
    extract_hash,
    search_cards,
    search_url,
)

FRONT_PAGE = '<script>var hash = "abc123"; var other = "x";</script>'
AJAX_PATTERN = re.compile(r"https://hs\.fbigame\.com/ajax\.php.*")


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def test_extract_hash():
    assert extract_hash(FRONT_PAGE) == "abc123"


def test_extract_hash_missing():
    with pytest.raises(ValueError):
        extract_hash("<html></html>")


def test_search_url_layout():
    url = search_url("h1", "fire")
    assert url.startswith(AJAX + PARAMS)
    assert url.endswith("&hash=h1&search=fire")


def test_deck_url_layout():
    url = deck_url("h1", "AAECode")
    assert url.startswith(AJAX + PARAMS + "mod=general_deck_image&deck_code=AAECode")
    assert url.endswith("&deck_text=&hash=h1&search=AAECode")


def test_search_cards(mocked):
    mocked.add(responses.GET, "https://hs.fbigame.com/", body=FRONT_PAGE)
    cards = [{"CardID": "EX1_001", "auth_key": "k1"}]
    mocked.add(responses.GET, AJAX_PATTERN, json={"list": cards})
    assert search_cards("fire") == cards
    second = mocked.calls[1].request.url
    assert "hash=abc123" in second
    assert "search=fire" in second


def test_search_cards_empty(mocked):
    mocked.add(responses.GET, "https://hs.fbigame.com/", body=FRONT_PAGE)
    mocked.add(responses.GET, AJAX_PATTERN, json={"list": []})
    assert search_cards("nothing") == []


def test_deck_image(mocked):
    mocked.add(responses.GET, "https://hs.fbigame.com/", body=FRONT_PAGE)
    mocked.add(responses.GET, AJAX_PATTERN, json={"img": "aGVsbG8="})
    assert deck_image("AAECode") == "base64://aGVsbG8="
    assert "deck_code=AAECode" in mocked.calls[1].request.url


def test_front_page_failure(mocked):
    mocked.add(responses.GET, "https://hs.fbigame.com/", status=503)
    with pytest.raises(requests.HTTPError):
        search_cards("fire")