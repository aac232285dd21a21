"""Reminder timers: packed schedule fields, parsing of Chinese date phrases."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

_ENABLE_BIT = 0x800000
_ALL_BITS = 0xFFFFFF

# field name -> (shift, width mask); an all-ones value means "every" (-1)
_FIELDS = {
    "month": (19, 0xF),
    "day": (14, 0x1F),
    "week": (11, 0x7),
    "hour": (6, 0x1F),
    "minute": (0, 0x3F),
}

_CHINESE_DIGITS = "零一二三四五六七八九十"
_EVERY = "每"
_ASCII_INT = re.compile(r"[+-]?[0-9]+")


@dataclass
class Timer:
    """A group reminder, either a date pattern packed into one integer or a cron spec."""

    id: int = 0
    packed: int = 0
    self_id: int = 0
    group_id: int = 0
    alert: str = ""
    cron: str = ""
    url: str = ""

    def _field(self, name: str) -> int:
        shift, mask = _FIELDS[name]
        value = (self.packed >> shift) & mask
        return -1 if value == mask else value

    def enabled(self) -> bool:
        """Whether the timer is active."""
        return self.packed & _ENABLE_BIT != 0

    def month(self) -> int:
        """Month 1-12, 0 when unset, -1 for every month."""
        return self._field("month")

    def day(self) -> int:
        """Day of month, 0 when unset, -1 for every day."""
        return self._field("day")

    def week(self) -> int:
        """Weekday with Sunday as 0, -1 for every week."""
        return self._field("week")

    def hour(self) -> int:
        """Hour 0-23, -1 for every hour."""
        return self._field("hour")

    def minute(self) -> int:
        """Minute 0-59, -1 for every minute."""
        return self._field("minute")

    def update(
        self,
        *,
        enabled: bool | None = None,
        month: int | None = None,
        day: int | None = None,
        week: int | None = None,
        hour: int | None = None,
        minute: int | None = None,
    ) -> None:
        """Change any of the packed schedule fields; -1 stands for "every"."""
        if enabled is not None:
            if enabled:
                self.packed |= _ENABLE_BIT
            else:
                self.packed &= _ALL_BITS & ~_ENABLE_BIT
        for name, value in (
            ("month", month),
            ("day", day),
            ("week", week),
            ("hour", hour),
            ("minute", minute),
        ):
            if value is None:
                continue
            shift, mask = _FIELDS[name]
            field_bits = mask << shift
            self.packed = ((value << shift) & field_bits) | (
                self.packed & _ALL_BITS & ~field_bits
            )

    def info(self) -> str:
        """Canonical text describing the schedule and its group."""
        if self.cron:
            return f"[{self.group_id}]{self.cron}"
        return (
            f"[{self.group_id}]{self.month()}月{self.day()}日{self.week()}周"
            f"{self.hour()}:{self.minute()}"
        )

    def timer_id(self) -> int:
        """Stable 32-bit identifier derived from :meth:`info`."""
        digest = hashlib.md5(self.info().encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "little")

    def segments(self) -> list[dict]:
        """Message segments sent when the timer fires: @all, the alert and an optional image."""
        parts = [
            {"type": "at", "data": {"qq": "all"}},
            {"type": "text", "data": {"text": self.alert}},
        ]
        if self.url:
            parts.append({"type": "image", "data": {"file": self.url, "cache": "0"}})
        return parts


def get_filled_cron_timer(cron: str, alert: str, url: str, bot_id: int, group_id: int) -> Timer:
    """Build a cron-driven timer."""
    return Timer(self_id=bot_id, group_id=group_id, alert=alert, cron=cron, url=url)


def _drop_middle_ten(text: str) -> str:
    return text[0] + text[2]


def get_filled_timer(date_strs, bot_id: int, group_id: int, match_date_only: bool) -> Timer:
    """Build a timer from the captured groups of a "在X月X日的X点X分时..." command.

    On an illegal value the returned timer carries the reason in ``alert`` and
    stays disabled.
    """
    month_str, day_week_str, hour_str, minute_str = date_strs[1:5]
    timer = Timer()

    month = chinese_num_to_int(month_str)
    if (month != -1 and month <= 0) or month > 12:
        timer.alert = "月份非法！"
        return timer
    timer.update(month=month)

    if len(day_week_str) == 4:  # e.g. 二十五日
        day = chinese_num_to_int(_drop_middle_ten(day_week_str))
        if (day != -1 and day <= 0) or day > 31:
            timer.alert = "日期非法1！"
            return timer
        timer.update(day=day)
    elif day_week_str.endswith("日"):
        day = chinese_num_to_int(day_week_str[:-1])
        if (day != -1 and day <= 0) or day > 31:
            timer.alert = "日期非法2！"
            return timer
        timer.update(day=day)
    elif day_week_str.startswith(_EVERY):
        timer.update(week=-1)
    else:
        week = chinese_num_to_int(day_week_str[1:])
        if week == 7:  # Sunday
            week = 0
        if week < 0 or week > 6:
            timer.alert = "星期非法！"
            return timer
        timer.update(week=week)

    if len(hour_str) == 3:
        hour_str = _drop_middle_ten(hour_str)
    hour = chinese_num_to_int(hour_str)
    if hour < -1 or hour > 23:
        timer.alert = "小时非法！"
        return timer
    timer.update(hour=hour)

    if len(minute_str) == 3:
        minute_str = _drop_middle_ten(minute_str)
    minute = chinese_num_to_int(minute_str)
    if minute < -1 or minute > 59:
        timer.alert = "分钟非法！"
        return timer
    timer.update(minute=minute)

    if not match_date_only:
        url_str = date_strs[5]
        if url_str:
            timer.url = url_str[1:]  # drop the leading 用
            if not timer.url.startswith("http"):
                timer.url = "illegal"
                return timer
        timer.alert = date_strs[6]
        timer.update(enabled=True)

    timer.self_id = bot_id
    timer.group_id = group_id
    return timer


def chinese_num_to_int(text: str) -> int:
    """Convert a number of at most two Chinese or ASCII digits.

    "每" alone means -1 and "每二" -2, and so on.
    """
    if not text:
        raise ValueError("empty number")
    first = text[0]
    if first.isdecimal():
        return int(text) if _ASCII_INT.fullmatch(text) else 0
    if first == _EVERY:
        return -chinese_char_to_int(text[1]) if len(text) == 2 else -1
    if len(text) == 1:
        return chinese_char_to_int(first)
    ten = chinese_char_to_int(first)
    if ten != 10:
        ten *= 10
    unit = chinese_char_to_int(text[1])
    if unit == 10:
        unit = 0
    return ten + unit


def chinese_char_to_int(char: str) -> int:
    """Map one Chinese numeral to 0-10; 日 and 天 (Sunday) map to 7, unknown to 0."""
    if char in ("日", "天"):
        return 7
    index = _CHINESE_DIGITS.find(char)
    return index if index >= 0 else 0