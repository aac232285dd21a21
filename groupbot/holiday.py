"""Slacker reminders: countdowns to holidays and the weekend, and the daily calendar image."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

import requests

MOYU_CALENDAR_URL = "https://api.vvhan.com/api/moyu"
HOLIDAY_NAMES = ("元旦", "春节", "清明节", "劳动节", "端午节", "中秋节", "国庆节")
REGISTRY_KEY_PREFIX = "holiday/"

_GREETING = (
    "上午好，摸鱼人！\n工作再累，一定不要忘记摸鱼哦！有事没事起身去茶水间，去厕所，"
    "去廊道走走别老在工位上坐着，钱是老板的,但命是自己的。\n"
)
_CLOSING = "上班是帮老板赚钱，摸鱼是赚老板的钱！最后，祝愿天下所有摸鱼人，都能愉快的渡过每一天…"
_VALUE = re.compile(r"([+-]?\d+)_([+-]?\d+)_([+-]?\d+)_([+-]?\d+)")


@dataclass(frozen=True)
class Holiday:
    """A holiday starting at ``date`` and lasting ``duration``."""

    name: str
    date: datetime
    duration: timedelta = timedelta(0)

    def describe(self, now: datetime | None = None) -> str:
        """Countdown, "enjoy it" or "already over" text relative to ``now``."""
        if now is None:
            now = datetime.now()
        remaining = self.date - now
        if remaining >= timedelta(0):
            days = remaining.total_seconds() / 86400
            return f"距离{self.name}还有: {days:.2f}天！"
        if remaining + self.duration >= timedelta(0):
            return f"好好享受 {self.name} 假期吧!"
        return f"今年 {self.name} 假期已过"

    def __str__(self) -> str:
        return self.describe()


def parse_holiday(name: str, value: str) -> Holiday:
    """Build a holiday from a stored "days_year_month_day" value."""
    match = _VALUE.fullmatch(value.strip())
    if match is None:
        raise ValueError(f"invalid holiday value: {value!r}")
    days, year, month, day = (int(part) for part in match.groups())
    return Holiday(name, datetime(year, month, day), timedelta(days=days))


def format_holiday(days: int, year: int, month: int, day: int) -> str:
    """The stored form of a holiday: "days_year_month_day"."""
    return f"{days}_{year}_{month}_{day}"


def weekend_message(today: datetime | None = None) -> str:
    """Weekend countdown for the given day."""
    if today is None:
        today = datetime.now()
    weekday = (today.weekday() + 1) % 7  # Sunday is 0
    if weekday in (0, 6):
        return "好好享受周末吧！"
    return f"距离周末还有:{5 - weekday}天！"


def moyu_message(today: datetime | None, holidays: Iterable[Holiday]) -> str:
    """The full daily slacker reminder text."""
    if today is None:
        today = datetime.now()
    parts = [today.strftime("%Y-%m-%d"), _GREETING, weekend_message(today)]
    for holiday in holidays:
        parts.append("\n")
        parts.append(holiday.describe(today))
    parts.append("\n")
    parts.append(_CLOSING)
    return "".join(parts)


def fetch_calendar(url: str = MOYU_CALENDAR_URL) -> bytes:
    """Download the slacker calendar image."""
    response = requests.get(url, timeout=30)
    response.raise_for_status()
    return response.content