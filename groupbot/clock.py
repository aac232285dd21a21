"""Scheduler that keeps group reminder timers, persisted in SQLite."""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

from groupbot.timerspec import Timer
from groupbot.wake import next_wake_time, should_fire

log = logging.getLogger(__name__)

Sender = Callable[[int, int, list], None]
"""Called as ``sender(self_id, group_id, segments)`` when a timer fires."""

_MONTH_NAMES = {
    name: number
    for number, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}
_DOW_NAMES = {
    name: number
    for number, name in enumerate(["sun", "mon", "tue", "wed", "thu", "fri", "sat"])
}
_DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}
_EVERY = re.compile(r"@every\s+(\S+)")
_DURATION = re.compile(r"(?:\d+(?:\.\d+)?(?:ms|h|m|s))+")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}
_SEARCH_SPAN = timedelta(days=366 * 5)


def _parse_duration(text: str) -> timedelta:
    if not _DURATION.fullmatch(text):
        raise ValueError(f"invalid duration: {text}")
    seconds = sum(
        float(amount) * _UNIT_SECONDS[unit] for amount, unit in _DURATION_PART.findall(text)
    )
    return timedelta(seconds=max(int(seconds), 1))


def _field_value(text: str, low: int, high: int, names: dict[str, int]) -> int:
    lowered = text.lower()
    if lowered in names:
        return names[lowered]
    if not text.isdigit():
        raise ValueError(f"invalid cron value: {text!r}")
    value = int(text)
    if not low <= value <= high:
        raise ValueError(f"cron value {value} out of range [{low}, {high}]")
    return value


def _parse_field(text: str, low: int, high: int, names: dict[str, int]) -> frozenset[int]:
    values: set[int] = set()
    for part in text.split(","):
        range_part, has_step, step_text = part.partition("/")
        step = 1
        if has_step:
            if not step_text.isdigit() or int(step_text) == 0:
                raise ValueError(f"invalid cron step: {part!r}")
            step = int(step_text)
        if range_part in ("*", "?"):
            start, end = low, high
        else:
            first, has_range, last = range_part.partition("-")
            start = _field_value(first, low, high, names)
            if has_range:
                end = _field_value(last, low, high, names)
            else:
                end = high if has_step else start
        if start > end:
            raise ValueError(f"invalid cron range: {part!r}")
        values.update(range(start, end + 1, step))
    return frozenset(values)


class CronSchedule:
    """A standard five-field cron expression, a descriptor such as ``@daily`` or ``@every 1h``."""

    def __init__(self, spec: str) -> None:
        self.spec = spec
        self.interval: timedelta | None = None
        text = spec.strip()
        every = _EVERY.fullmatch(text)
        if every:
            self.interval = _parse_duration(every.group(1))
            return
        lowered = text.lower()
        if lowered in _DESCRIPTORS:
            text = _DESCRIPTORS[lowered]
        elif text.startswith("@"):
            raise ValueError(f"unrecognized descriptor: {spec}")
        fields = text.split()
        if len(fields) != 5:
            raise ValueError(f"expected exactly 5 fields, found {len(fields)}: {spec}")
        self.minutes = _parse_field(fields[0], 0, 59, {})
        self.hours = _parse_field(fields[1], 0, 23, {})
        self.days = _parse_field(fields[2], 1, 31, {})
        self.months = _parse_field(fields[3], 1, 12, _MONTH_NAMES)
        self.weekdays = frozenset(d % 7 for d in _parse_field(fields[4], 0, 7, _DOW_NAMES))
        self._dom_any = fields[2][0] in "*?"
        self._dow_any = fields[4][0] in "*?"

    def _day_matches(self, moment: datetime) -> bool:
        dom = moment.day in self.days
        dow = (moment.weekday() + 1) % 7 in self.weekdays
        if self._dom_any or self._dow_any:
            return dom and dow
        return dom or dow

    def next_after(self, moment: datetime) -> datetime:
        """First activation strictly after ``moment``."""
        if self.interval is not None:
            return moment.replace(microsecond=0) + self.interval
        current = moment.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = current + _SEARCH_SPAN
        while current <= limit:
            if current.month not in self.months:
                current = (
                    current.replace(day=1, hour=0, minute=0) + timedelta(days=32)
                ).replace(day=1)
            elif not self._day_matches(current):
                current = current.replace(hour=0, minute=0) + timedelta(days=1)
            elif current.hour not in self.hours:
                current = current.replace(minute=0) + timedelta(hours=1)
            elif current.minute not in self.minutes:
                current += timedelta(minutes=1)
            else:
                return current
        raise ValueError(f"schedule never fires: {self.spec}")


class Clock:
    """Keeps reminder timers in memory and in a database, and fires them on schedule."""

    def __init__(self, db_path: str | Path, sender: Sender) -> None:
        self._sender = sender
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db_lock = threading.Lock()
        self._timers: dict[int, Timer] = {}
        self._timers_lock = threading.Lock()
        self._cron_entries: dict[int, tuple[CronSchedule, Timer, datetime]] = {}
        self._cond = threading.Condition()
        self._closed = False
        self._threads: list[threading.Thread] = []
        self._cron_thread = threading.Thread(target=self._run_cron, daemon=True)
        self.load_timers()
        self._cron_thread.start()

    def __enter__(self) -> Clock:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _send(self, timer: Timer) -> None:
        try:
            self._sender(timer.self_id, timer.group_id, timer.segments())
        except Exception:
            log.exception("sending timer %08x failed", timer.id)

    def _disable(self, timer: Timer) -> None:
        with self._cond:
            timer.update(enabled=False)
            self._cond.notify_all()

    def _run_cron(self) -> None:
        while True:
            with self._cond:
                if self._closed:
                    return
                now = datetime.now()
                due = []
                for key, (schedule, timer, when) in list(self._cron_entries.items()):
                    if when <= now:
                        due.append(timer)
                        self._cron_entries[key] = (schedule, timer, schedule.next_after(now))
                if not due:
                    upcoming = min(
                        (when for _, _, when in self._cron_entries.values()), default=None
                    )
                    timeout = (
                        None if upcoming is None else max((upcoming - now).total_seconds(), 0.0)
                    )
                    self._cond.wait(timeout)
                    continue
            for timer in due:
                self._send(timer)

    def _run_date_timer(self, timer: Timer) -> None:
        while True:
            wake = next_wake_time(timer)
            log.info("timer %08x sleeps until %s", timer.id, wake)
            with self._cond:
                self._cond.wait_for(
                    lambda: self._closed or not timer.enabled(),
                    timeout=max((wake - datetime.now()).total_seconds(), 0.0),
                )
                if self._closed or not timer.enabled():
                    return
            if should_fire(timer):
                self._send(timer)

    def register_timer(self, timer: Timer, save: bool = True) -> bool:
        """Schedule a timer; with ``save`` its id is derived and it is stored in the database.

        Returns whether the timer is now active. An invalid cron spec leaves the
        reason in ``timer.alert``.
        """
        if save:
            key = timer.timer_id()
            timer.id = key
        else:
            key = timer.id
        existing = self.get_timer(key)
        if existing is not None and existing is not timer:
            self._disable(existing)
        log.info("registering timer %d", key)
        if timer.cron:
            try:
                schedule = CronSchedule(timer.cron)
            except ValueError as exc:
                timer.alert = str(exc)
                return False
            with self._cond:
                self._cron_entries[key] = (schedule, timer, schedule.next_after(datetime.now()))
                self._cond.notify_all()
            if save:
                self.add_timer_into_db(timer)
            self.add_timer_into_map(timer)
            return True
        if save:
            self.add_timer_into_db(timer)
        self.add_timer_into_map(timer)
        if not timer.enabled():
            return False
        thread = threading.Thread(target=self._run_date_timer, args=(timer,), daemon=True)
        self._threads.append(thread)
        thread.start()
        return True

    def cancel_timer(self, key: int) -> bool:
        """Stop and forget a timer; False when there is no such timer."""
        timer = self.get_timer(key)
        if timer is None:
            return False
        if timer.cron:
            with self._cond:
                self._cron_entries.pop(key, None)
                self._cond.notify_all()
        else:
            self._disable(timer)
        with self._timers_lock:
            self._timers.pop(key, None)
        with self._db_lock:
            self._db.execute("DELETE FROM timer WHERE id = ?", (key,))
            self._db.commit()
        return True

    def list_timers(self, group_id: int) -> list[str]:
        """Human-readable schedules of the timers of one group."""
        with self._timers_lock:
            timers = list(self._timers.values())
        lines = []
        for timer in timers:
            if timer.group_id != group_id:
                continue
            info = timer.info()
            text = info[info.index("]") + 1 :] + "\n"
            text = text.replace("-1", "每")
            text = text.replace("月0日0周", "月周天")
            text = text.replace("月0日", "月")
            text = text.replace("日0周", "日")
            lines.append(text)
        return lines

    def get_timer(self, key: int) -> Timer | None:
        """The registered timer with this id, if any."""
        with self._timers_lock:
            return self._timers.get(key)

    def add_timer_into_db(self, timer: Timer) -> None:
        """Store or replace a timer in the database."""
        with self._db_lock:
            self._db.execute(
                "INSERT OR REPLACE INTO timer (id, emdwhm, sid, gid, alert, cron, url) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    timer.id,
                    timer.packed,
                    timer.self_id,
                    timer.group_id,
                    timer.alert,
                    timer.cron,
                    timer.url,
                ),
            )
            self._db.commit()

    def add_timer_into_map(self, timer: Timer) -> None:
        """Keep a timer in the in-memory table."""
        with self._timers_lock:
            self._timers[timer.id] = timer

    def load_timers(self) -> None:
        """Create the table if needed and register every stored timer."""
        with self._db_lock:
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS timer ("
                "id INTEGER PRIMARY KEY, emdwhm INTEGER, sid INTEGER, gid INTEGER, "
                "alert TEXT, cron TEXT, url TEXT)"
            )
            self._db.commit()
            rows = self._db.execute(
                "SELECT id, emdwhm, sid, gid, alert, cron, url FROM timer"
            ).fetchall()
        for row in rows:
            timer = Timer(
                id=row[0],
                packed=row[1],
                self_id=row[2],
                group_id=row[3],
                alert=row[4] or "",
                cron=row[5] or "",
                url=row[6] or "",
            )
            self.register_timer(timer, save=False)

    def close(self) -> None:
        """Stop all scheduling threads and close the database."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()
        self._cron_thread.join(timeout=2)
        for thread in self._threads:
            thread.join(timeout=2)
        with self._db_lock:
            self._db.close()