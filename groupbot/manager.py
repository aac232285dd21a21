"""Group management helpers: ban lengths, greetings, join checks and persistent settings."""

from __future__ import annotations

import hashlib
import random
import re
import sqlite3
import threading
import time
from pathlib import Path
from typing import Callable

import requests

MAX_BAN_MINUTES = 43199  # a group ban may last just under one month
GIST_RAW = "https://gist.githubusercontent.com/{user}/{hash}/raw/{file}"
AVATAR_URL = "http://q4.qlogo.cn/g?b=qq&nk={uid}&s=640"
GIST_WINDOW_SECONDS = 600
LUCKY_POOL = 10

_ANSWER_MARK = "答案："
_INT = re.compile(r"[+-]?[0-9]+")
_ENABLE_WORDS = ("开启", "打开", "启用")
_DISABLE_WORDS = ("关闭", "关掉", "禁用")
_VERIFY_BIT = 0x1
_GIST_BIT = 0x10
_VERIFY_OFF_MASK = 0x7FFFFFFF_FFFFFFFE
_GIST_OFF_MASK = 0x7FFFFFFF_FFFFFFFD

_BASIC_UNITS = {"分钟": 1, "小时": 60, "天": 60 * 24}
_EXTENDED_UNITS = {
    **{name: 1 for name in ("分钟", "min", "mins", "m")},
    **{name: 60 for name in ("小时", "hour", "hours", "h")},
    **{name: 60 * 24 for name in ("天", "day", "days", "d")},
}

Fetch = Callable[[str], bytes]


class ManagerStore:
    """SQLite storage of welcome and farewell messages and gist-verified members."""

    def __init__(self, path: str | Path) -> None:
        self._db = sqlite3.connect(str(path), check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock:
            self._db.executescript(
                "CREATE TABLE IF NOT EXISTS welcome (gid INTEGER PRIMARY KEY, msg TEXT);"
                "CREATE TABLE IF NOT EXISTS farewell (gid INTEGER PRIMARY KEY, msg TEXT);"
                "CREATE TABLE IF NOT EXISTS member (qq INTEGER PRIMARY KEY, ghun TEXT);"
            )
            self._db.commit()

    def __enter__(self) -> ManagerStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _set_message(self, table: str, group_id: int, message: str) -> None:
        with self._lock:
            self._db.execute(
                f"REPLACE INTO {table} (gid, msg) VALUES (?, ?)", (group_id, message)
            )
            self._db.commit()

    def _message(self, table: str, group_id: int) -> str | None:
        with self._lock:
            row = self._db.execute(
                f"SELECT msg FROM {table} WHERE gid = ?", (group_id,)
            ).fetchone()
        return None if row is None else row[0]

    def set_welcome(self, group_id: int, message: str) -> None:
        """Store the welcome template of a group, replacing any earlier one."""
        self._set_message("welcome", group_id, message)

    def welcome(self, group_id: int) -> str | None:
        """The welcome template of a group, or None when none is set."""
        return self._message("welcome", group_id)

    def set_farewell(self, group_id: int, message: str) -> None:
        """Store the farewell template of a group, replacing any earlier one."""
        self._set_message("farewell", group_id, message)

    def farewell(self, group_id: int) -> str | None:
        """The farewell template of a group, or None when none is set."""
        return self._message("farewell", group_id)

    def has_member(self, username: str) -> bool:
        """Whether a GitHub user has already joined through gist verification."""
        with self._lock:
            row = self._db.execute(
                "SELECT 1 FROM member WHERE ghun = ?", (username,)
            ).fetchone()
        return row is not None

    def add_member(self, qq: int, username: str) -> None:
        """Record that a QQ account joined as the given GitHub user."""
        with self._lock:
            self._db.execute("REPLACE INTO member (qq, ghun) VALUES (?, ?)", (qq, username))
            self._db.commit()

    def close(self) -> None:
        """Close the database."""
        with self._lock:
            self._db.close()


def ban_minutes(amount: int, unit: str, extended: bool = False) -> int:
    """Ban length in minutes for ``amount`` of ``unit``, capped just under a month.

    The plain command knows 分钟, 小时 and 天; the self-ban command (``extended``)
    also takes English units. Unknown units count as minutes.
    """
    units = _EXTENDED_UNITS if extended else _BASIC_UNITS
    minutes = amount * units.get(unit, 1)
    return MAX_BAN_MINUTES if minutes >= MAX_BAN_MINUTES + 1 else minutes


def welcome_to_cq(
    template: str, user_id: int, nickname: str, group_id: int, group_name: str
) -> str:
    """Fill the placeholders of a welcome or farewell template with CQ codes and values."""
    uid = str(user_id)
    replacements = (
        ("{at}", f"[CQ:at,qq={uid}]"),
        ("{nickname}", nickname),
        ("{avatar}", "[CQ:image,file=" + AVATAR_URL.format(uid=uid) + "]"),
        ("{uid}", uid),
        ("{gid}", str(group_id)),
        ("{groupname}", group_name),
    )
    text = template
    for placeholder, value in replacements:
        text = text.replace(placeholder, value)
    return text


def unescape_cq(text: str) -> str:
    """Turn escaped CQ code characters back into their literal form."""
    return (
        text.replace("&#44;", ",")
        .replace("&#91;", "[")
        .replace("&#93;", "]")
        .replace("&amp;", "&")
    )


def parse_gist_answer(comment: str) -> tuple[str, str]:
    """Split a join request answer "username/gisthash" into its two parts.

    Raises ValueError when there is no user name before the slash.
    """
    index = comment.find(_ANSWER_MARK)
    answer = comment[index + len(_ANSWER_MARK) :] if index >= 0 else comment
    slash = answer.find("/")
    if slash <= 0:
        raise ValueError("格式错误!")
    return answer[:slash], answer[slash + 1 :]


def gist_url(username: str, gist_hash: str, group_id: int) -> str:
    """Raw URL of the gist file named after the md5 of the group number."""
    file_name = hashlib.md5(str(group_id).encode("ascii")).hexdigest()
    return GIST_RAW.format(user=username, hash=gist_hash, file=file_name)


def _http_get(url: str) -> bytes:
    response = requests.get(url, timeout=30)
    response.raise_for_status()
    return response.content


def check_new_user(
    store: ManagerStore,
    qq: int,
    group_id: int,
    username: str,
    gist_hash: str,
    fetch: Fetch | None = None,
    now: float | None = None,
) -> tuple[bool, str]:
    """Verify a join request against a gist holding a recent unix timestamp.

    Returns (accepted, reason); an accepted user is recorded in ``store``.
    """
    if store.has_member(username):
        return False, "该github用户已入群"
    fetch = fetch or _http_get
    now = time.time() if now is None else now
    try:
        data = fetch(gist_url(username, gist_hash, group_id))
    except Exception as exc:  # any failure to reach the gist rejects the request
        return False, f"无法连接到gist: {exc}"
    text = data.decode("utf-8", errors="replace")
    if not _INT.fullmatch(text):
        return False, "时间戳格式错误: " + text
    if abs(int(now) - int(text)) < GIST_WINDOW_SECONDS:
        store.add_member(qq, username)
        return True, ""
    return False, "时间戳超时"


def pick_lucky_member(members: list[dict], rng: random.Random | None = None) -> dict:
    """Pick a random member among the ten who spoke most recently."""
    if not members:
        raise ValueError("no members to pick from")
    ordered = sorted(members, key=lambda member: int(member.get("last_sent_time", 0)))
    pool = ordered[-LUCKY_POOL:]
    return (rng or random).choice(pool)


def _switch(data: int, option: str, bit: int, off_mask: int) -> int | None:
    if option in _ENABLE_WORDS:
        return data | bit
    if option in _DISABLE_WORDS:
        return data & off_mask
    return None


def set_verification(data: int, option: str) -> int | None:
    """New group flags after turning the join quiz on or off; None for an unknown option."""
    return _switch(data, option, _VERIFY_BIT, _VERIFY_OFF_MASK)


def set_gist_approval(data: int, option: str) -> int | None:
    """New group flags after turning gist join approval on or off; None for an unknown option."""
    return _switch(data, option, _GIST_BIT, _GIST_OFF_MASK)


def make_quiz(rng: random.Random | None = None) -> tuple[int, int, int]:
    """Two random addends below 100 and their sum."""
    source = rng or random
    a = source.randrange(100)
    b = source.randrange(100)
    return a, b, a + b


def check_quiz_answer(text: str, expected: int) -> bool | None:
    """Whether a reply answers the quiz; None when the reply is not a number."""
    cleaned = text.replace(" ", "")
    if not _INT.fullmatch(cleaned):
        return None
    return int(cleaned) == expected