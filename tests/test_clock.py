import threading
from datetime import datetime

import pytest

from groupbot.clock import Clock, CronSchedule
from groupbot.timerspec import get_filled_cron_timer, get_filled_timer


def _ignore(self_id, group_id, segments):
    pass


@pytest.fixture
def clock(tmp_path):
    c = Clock(tmp_path / "timers.db", _ignore)
    yield c
    c.close()


def test_timer_saved_to_db_is_listed_after_reload(tmp_path):
    path = tmp_path / "test.db"
    with Clock(path, _ignore) as first:
        first.add_timer_into_db(
            get_filled_timer(["", "12", "-1", "12", "0", "", "test"], 0, 0, False)
        )
        assert first.list_timers(0) == []
    with Clock(path, _ignore) as second:
        assert second.list_timers(0) == ["12月1周12:0\n"]


@pytest.mark.parametrize(
    "spec, start, expected",
    [
        ("30 8 * * *", datetime(2022, 6, 1, 9, 0), datetime(2022, 6, 2, 8, 30)),
        ("0 10 * * 1-5", datetime(2022, 6, 3, 11, 0), datetime(2022, 6, 6, 10, 0)),
        ("*/15 * * * *", datetime(2022, 6, 1, 10, 7, 30), datetime(2022, 6, 1, 10, 15)),
        ("@daily", datetime(2022, 6, 1, 10, 0), datetime(2022, 6, 2, 0, 0)),
        ("0 0 1 1 *", datetime(2022, 6, 1, 0, 0), datetime(2023, 1, 1, 0, 0)),
        ("0 0 13 * 5", datetime(2022, 6, 1, 0, 0), datetime(2022, 6, 3, 0, 0)),
        ("0 9 * jan-mar mon", datetime(2022, 6, 1), datetime(2023, 1, 2, 9, 0)),
    ],
)
def test_cron_next_after(spec, start, expected):
    assert CronSchedule(spec).next_after(start) == expected


def test_cron_every_interval():
    schedule = CronSchedule("@every 1h30m")
    assert schedule.next_after(datetime(2022, 1, 1, 0, 0, 0, 500)) == datetime(2022, 1, 1, 1, 30)


@pytest.mark.parametrize("spec", ["61 * * * *", "* * *", "@sometimes", "0 0 30 2 *", "a b c d e"])
def test_invalid_cron_raises(spec):
    with pytest.raises(ValueError):
        CronSchedule(spec).next_after(datetime(2022, 1, 1))


def test_register_cron_timer_is_listed(clock):
    timer = get_filled_cron_timer("0 10 * * *", "早", "", 0, 5)
    assert clock.register_timer(timer, True) is True
    assert timer.id == timer.timer_id()
    assert clock.get_timer(timer.id) is timer
    assert clock.list_timers(5) == ["0 10 * * *\n"]
    assert clock.list_timers(6) == []


def test_register_invalid_cron_reports_reason(clock):
    timer = get_filled_cron_timer("not a cron", "x", "", 0, 5)
    assert clock.register_timer(timer, True) is False
    assert "fields" in timer.alert
    assert clock.get_timer(timer.timer_id()) is None


def test_cancel_timer(clock):
    timer = get_filled_cron_timer("0 10 * * *", "x", "", 0, 5)
    clock.register_timer(timer, True)
    assert clock.cancel_timer(timer.id) is True
    assert clock.cancel_timer(timer.id) is False
    assert clock.list_timers(5) == []


def test_cron_timer_persists(tmp_path):
    path = tmp_path / "timers.db"
    with Clock(path, _ignore) as first:
        timer = get_filled_cron_timer("0 10 * * *", "x", "", 0, 5)
        first.register_timer(timer, True)
        key = timer.id
    with Clock(path, _ignore) as second:
        loaded = second.get_timer(key)
        assert loaded.cron == "0 10 * * *"
        assert loaded.alert == "x"


def test_cancel_removes_from_database(tmp_path):
    path = tmp_path / "timers.db"
    with Clock(path, _ignore) as first:
        timer = get_filled_cron_timer("0 10 * * *", "x", "", 0, 5)
        first.register_timer(timer, True)
        first.cancel_timer(timer.id)
    with Clock(path, _ignore) as second:
        assert second.list_timers(5) == []


def test_date_timer_register_and_cancel(clock):
    timer = get_filled_timer(["", "12", "25日", "8", "30", "", "圣诞"], 0, 9, False)
    assert clock.register_timer(timer, True) is True
    assert clock.list_timers(9) == ["12月25日8:30\n"]
    assert clock.cancel_timer(timer.id) is True
    assert timer.enabled() is False


def test_every_month_every_week_listing(clock):
    timer = get_filled_timer(["", "每", "每周", "8", "30", "", "x"], 0, 1, False)
    clock.register_timer(timer, True)
    assert clock.list_timers(1) == ["每月每周8:30\n"]


def test_reregistering_disables_previous(clock):
    parts = ["", "12", "25日", "8", "30", "", "x"]
    first = get_filled_timer(parts, 0, 9, False)
    second = get_filled_timer(parts, 0, 9, False)
    clock.register_timer(first, True)
    clock.register_timer(second, True)
    assert first.enabled() is False
    assert second.enabled() is True
    assert clock.get_timer(first.id) is second


def test_cron_timer_fires(tmp_path):
    received = []
    fired = threading.Event()

    def sender(self_id, group_id, segments):
        received.append((self_id, group_id, segments))
        fired.set()

    with Clock(tmp_path / "timers.db", sender) as clock:
        timer = get_filled_cron_timer("@every 1s", "hello", "http://example.com/a.png", 3, 7)
        assert clock.register_timer(timer, True)
        assert fired.wait(5)
    self_id, group_id, segments = received[0]
    assert (self_id, group_id) == (3, 7)
    assert segments[0] == {"type": "at", "data": {"qq": "all"}}
    assert segments[1]["data"]["text"] == "hello"
    assert segments[2]["data"]["cache"] == "0"