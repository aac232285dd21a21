"""GitHub repository search."""

from __future__ import annotations

from urllib.parse import urlencode

import requests

SEARCH_API = "https://api.github.com/search/repositories"
PREVIEW_BASE = "https://opengraph.githubassets.com/0/"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/88.0.4324.182 Safari/537.36"
)


def not_null(text: str, default: str) -> str:
    """``text``, or ``default`` when it is empty."""
    return text or default


def build_search_url(query: str) -> str:
    """Repository search URL for a query."""
    return SEARCH_API + "?" + urlencode({"q": query})


def net_get(url: str, headers: dict | None = None) -> bytes:
    """GET a URL; any status other than 200 raises RuntimeError("code N")."""
    response = requests.get(url, headers=headers, timeout=30)
    if response.status_code != 200:
        raise RuntimeError(f"code {response.status_code}")
    return response.content


def search_repository(query: str) -> dict:
    """The best matching repository; LookupError when nothing matches."""
    data = requests.models.complexjson.loads(
        net_get(build_search_url(query), {"User-Agent": USER_AGENT})
    )
    if int(data.get("total_count") or 0) == 0 or not data.get("items"):
        raise LookupError("没有找到这样的仓库")
    return data["items"][0]


def _text(value) -> str:
    return value if isinstance(value, str) else ""


def _int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def format_repository(repo: dict) -> str:
    """Text summary of a repository."""
    license_info = repo.get("license") or {}
    license_key = _text(license_info.get("key")).upper()
    return (
        f"{_text(repo.get('full_name'))}\n"
        f"Description: {_text(repo.get('description'))}\n"
        f"Star/Fork/Issue: {_int(repo.get('watchers'))}/{_int(repo.get('forks'))}"
        f"/{_int(repo.get('open_issues'))}\n"
        f"Language: {not_null(_text(repo.get('language')), 'None')}\n"
        f"License: {not_null(license_key, 'None')}\n"
        f"Last pushed: {_text(repo.get('pushed_at'))}\n"
        f"Jump: {_text(repo.get('html_url'))}\n"
    )


def preview_image_url(full_name: str) -> str:
    """Social preview image of a repository."""
    return PREVIEW_BASE + full_name