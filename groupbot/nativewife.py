"""Per-group collections of "wife" pictures stored as files."""

from __future__ import annotations

import hashlib
import random
from datetime import date
from pathlib import Path

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_ALLOW_WORDS = ("设置", "授予", "让")
_DENY_WORDS = ("取消", "撤销", "不让")


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rest = divmod(value, 36)
        digits.append(_DIGITS[rest])
    return sign + "".join(reversed(digits))


def group_folder(base: str | Path, group_id: int) -> Path:
    """Folder of a group: the group number in base 36 under ``base``."""
    return Path(base) / _base36(group_id)


def extract_name(text: str, prefix: str) -> str:
    """Name following the last ``prefix`` in a message, without spaces or slashes."""
    compact = text.replace(" ", "")
    index = compact.rfind(prefix)
    if index < 0:
        return ""
    name = compact[index + len(prefix) :]
    return name.replace("/", "").replace("\\", "")


def list_wives(base: str | Path, group_id: int) -> list[str]:
    """Sorted names in a group's folder; empty when the folder does not exist."""
    folder = group_folder(base, group_id)
    if not folder.is_dir():
        return []
    return sorted(entry.name for entry in folder.iterdir())


def pick_wife(names: list[str], nickname: str, today: date | None = None) -> str:
    """Today's pick for a user: fixed for one name and one day."""
    if not names:
        raise LookupError("一个wife也没有哦~")
    if len(names) == 1:
        return names[0]
    today = today or date.today()
    digest = hashlib.md5(f"{nickname}{today.year}{today.month}{today.day}".encode()).digest()
    seed = int.from_bytes(digest[:8], "little", signed=True)
    return names[random.Random(seed).randrange(len(names))]


def add_wife(base: str | Path, group_id: int, name: str, data: bytes) -> Path:
    """Save a picture under ``name`` in the group's folder and return its path."""
    if not name:
        raise ValueError("没有找到wife的名字！")
    folder = group_folder(base, group_id)
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / name
    path.write_bytes(data)
    return path


def remove_wife(base: str | Path, group_id: int, name: str) -> None:
    """Delete a picture from the group's folder."""
    if not name:
        raise ValueError("没有找到wife的名字！")
    (group_folder(base, group_id) / name).unlink()


def can_add_wife(flags: int | None, group_id: int, is_admin: bool) -> bool:
    """Whether a user may add: in a group, when everyone may or the user is an admin."""
    if group_id <= 0 or flags is None:
        return False
    return flags & 1 == 1 or is_admin


def everyone_can_add_flag(option: str) -> int | None:
    """Group flag for a "let everyone add" command; None for an unknown word."""
    if option in _ALLOW_WORDS:
        return 1
    if option in _DENY_WORDS:
        return 0
    return None