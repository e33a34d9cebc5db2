import time
from datetime import date, datetime, timedelta, timezone

import pytest

from superbecks.errors import ValidationError
from superbecks.timerange import (
    business_day_range_to_utc,
    business_today,
    parse_ymd,
    start_of_month,
    start_of_week,
    to_utc_iso,
)


def test_single_day_maps_to_previous_utc_evening():
    utc_range = business_day_range_to_utc(date(2024, 5, 1), date(2024, 5, 1))
    assert utc_range.start_iso == "2024-04-30T16:00:00.000Z"
    assert utc_range.end_iso == "2024-05-01T16:00:00.000Z"


def test_range_end_is_exclusive_midnight_after_last_day():
    utc_range = business_day_range_to_utc(date(2024, 5, 1), date(2024, 5, 7))
    assert utc_range.end_utc - utc_range.start_utc == timedelta(days=7)
    assert utc_range.end_iso == "2024-05-07T16:00:00.000Z"


def test_month_and_year_rollover():
    utc_range = business_day_range_to_utc(date(2023, 12, 31), date(2023, 12, 31))
    assert utc_range.start_iso == "2023-12-30T16:00:00.000Z"
    assert utc_range.end_iso == "2023-12-31T16:00:00.000Z"

    leap = business_day_range_to_utc(date(2024, 2, 29), date(2024, 2, 29))
    assert leap.end_iso == "2024-02-29T16:00:00.000Z"


def test_end_before_start_is_rejected():
    with pytest.raises(ValidationError):
        business_day_range_to_utc(date(2024, 5, 2), date(2024, 5, 1))


def test_business_today_crosses_midnight_before_utc():
    late_utc = datetime(2024, 5, 1, 17, 30, tzinfo=timezone.utc)
    assert business_today(late_utc) == date(2024, 5, 2)
    assert business_today(datetime(2024, 5, 1, 15, 59, tzinfo=timezone.utc)) == date(2024, 5, 1)


def test_business_today_requires_aware_datetime():
    with pytest.raises(ValueError):
        business_today(datetime(2024, 5, 1, 12, 0))


def test_week_and_month_starts():
    wednesday = date(2024, 5, 8)
    assert start_of_week(wednesday) == date(2024, 5, 6)
    assert start_of_week(date(2024, 5, 6)) == date(2024, 5, 6)
    assert start_of_month(wednesday) == date(2024, 5, 1)


def test_to_utc_iso_keeps_milliseconds():
    moment = datetime(2024, 5, 1, 8, 30, 15, 123456, tzinfo=timezone(timedelta(hours=8)))
    assert to_utc_iso(moment) == "2024-05-01T00:30:15.123Z"


@pytest.mark.parametrize("text", ["2024-13-01", "yesterday", "", "2024/05/01"])
def test_parse_ymd_rejects_malformed(text):
    with pytest.raises(ValidationError):
        parse_ymd(text)


def test_parse_ymd_strips_whitespace():
    assert parse_ymd(" 2024-05-01 ") == date(2024, 5, 1)


@pytest.fixture
def host_timezone(monkeypatch):
    def switch(name):
        monkeypatch.setenv("TZ", name)
        time.tzset()

    yield switch
    monkeypatch.undo()
    time.tzset()


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="host timezone can only be switched on Unix")
def test_range_is_identical_across_host_timezones(host_timezone):
    bounds = set()
    for name in ["UTC", "America/Los_Angeles", "Asia/Tokyo", "Asia/Manila", "Pacific/Kiritimati"]:
        host_timezone(name)
        utc_range = business_day_range_to_utc(date(2024, 12, 31), date(2024, 12, 31))
        bounds.add((utc_range.start_iso, utc_range.end_iso))
    assert bounds == {("2024-12-30T16:00:00.000Z", "2024-12-31T16:00:00.000Z")}
