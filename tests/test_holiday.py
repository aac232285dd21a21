from datetime import datetime, timedelta

import pytest
import requests
import responses

from groupbot.holiday import (
    MOYU_CALENDAR_URL,
    Holiday,
    fetch_calendar,
    format_holiday,
    moyu_message,
    parse_holiday,
    weekend_message,
)

SOURCE_HOLIDAYS = [
    ("元旦", 1, 2023, 1, 1),
    ("春节", 7, 2023, 1, 21),
    ("清明节", 1, 2022, 4, 3),
    ("劳动节", 1, 2022, 4, 30),
    ("端午节", 1, 2022, 6, 3),
    ("中秋节", 1, 2022, 9, 10),
    ("国庆节", 7, 2022, 10, 1),
]


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.mark.parametrize("name,days,year,month,day", SOURCE_HOLIDAYS)
def test_format_and_parse_round_trip(name, days, year, month, day):
    value = format_holiday(days, year, month, day)
    assert value == f"{days}_{year}_{month}_{day}"
    holiday = parse_holiday(name, value)
    assert isinstance(holiday, Holiday)
    assert holiday.name == name
    assert holiday.date == datetime(year, month, day)
    assert holiday.duration == timedelta(days=days)


def test_parse_rejects_garbage():
    with pytest.raises(ValueError):
        parse_holiday("元旦", "not a date")


def test_describe_countdown():
    holiday = parse_holiday("元旦", "1_2023_1_1")
    assert holiday.describe(datetime(2022, 12, 31)) == "距离元旦还有: 1.00天！"


def test_describe_during_holiday():
    holiday = parse_holiday("春节", "7_2023_1_21")
    assert holiday.describe(datetime(2023, 1, 23, 12)) == "好好享受 春节 假期吧!"


def test_describe_last_moment_of_holiday():
    holiday = parse_holiday("元旦", "1_2023_1_1")
    assert holiday.describe(datetime(2023, 1, 2)) == "好好享受 元旦 假期吧!"


def test_describe_after_holiday():
    holiday = parse_holiday("国庆节", "7_2022_10_1")
    assert holiday.describe(datetime(2022, 10, 9)) == "今年 国庆节 假期已过"


def test_weekend_message():
    assert weekend_message(datetime(2022, 6, 11)) == "好好享受周末吧！"  # Saturday
    assert weekend_message(datetime(2022, 6, 12)) == "好好享受周末吧！"  # Sunday
    assert weekend_message(datetime(2022, 6, 13)) == "距离周末还有:4天！"  # Monday
    assert weekend_message(datetime(2022, 6, 17)) == "距离周末还有:0天！"  # Friday


def test_moyu_message_layout():
    today = datetime(2022, 6, 13, 10)
    holidays = [parse_holiday(*h[:1], format_holiday(*h[1:])) for h in SOURCE_HOLIDAYS]
    text = moyu_message(today, holidays)
    assert text.startswith("2022-06-13上午好，摸鱼人！")
    assert weekend_message(today) in text
    for holiday in holidays:
        assert "\n" + holiday.describe(today) + "\n" in text
    assert text.endswith("都能愉快的渡过每一天…")


def test_fetch_calendar(mocked):
    mocked.add(responses.GET, MOYU_CALENDAR_URL, body=b"\x89PNG data")
    assert fetch_calendar() == b"\x89PNG data"


def test_fetch_calendar_error(mocked):
    mocked.add(responses.GET, MOYU_CALENDAR_URL, status=500)
    with pytest.raises(requests.HTTPError):
        fetch_calendar()