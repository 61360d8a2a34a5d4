from datetime import date, datetime, timedelta, timezone
from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from core.errors import ValidationError
from utils.datetime_utils import (
    coerce_date,
    coerce_datetime,
    coerce_time,
    isoformat,
    minutes_between,
    parse_rfc3339,
    shift_days,
)


def test_parse_rfc3339_variants():
    assert parse_rfc3339("2026-03-10T08:00:00Z") == datetime(2026, 3, 10, 8, tzinfo=timezone.utc)
    assert parse_rfc3339("2026-03-10T10:00:00+02:00") == datetime(2026, 3, 10, 8, tzinfo=timezone.utc)
    fractional = parse_rfc3339("2026-03-10T08:00:00.5Z")
    assert fractional.microsecond == 500000
    assert fractional.tzinfo == timezone.utc
    assert parse_rfc3339("") is None
    assert parse_rfc3339("not a date") is None


def test_coerce_date_accepts_strings_dates_and_datetimes():
    assert coerce_date("2026-03-10") == date(2026, 3, 10)
    assert coerce_date(datetime(2026, 3, 10, 23, 59)) == date(2026, 3, 10)
    assert coerce_date(None) is None
    with pytest.raises(ValidationError):
        coerce_date(20260310)


def test_coerce_datetime_and_time():
    assert coerce_datetime("2026-03-10T08:00:00Z").tzinfo == timezone.utc
    assert coerce_datetime(datetime(2026, 3, 10)).tzinfo == timezone.utc
    with pytest.raises(ValidationError):
        coerce_datetime("yesterday")
    assert coerce_time("09:05") == "09:05"
    with pytest.raises(ValidationError):
        coerce_time("9:5")


def test_minutes_between_and_shift():
    start = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
    assert minutes_between(start, start + timedelta(minutes=45, seconds=59)) == 45
    assert minutes_between(start, start - timedelta(minutes=1)) is None
    assert minutes_between(None, start) is None
    assert shift_days(date(2026, 2, 27), 2) == date(2026, 3, 1)


def test_isoformat_for_transport():
    assert isoformat(date(2026, 3, 10)) == "2026-03-10"
    assert isoformat(datetime(2026, 3, 10, 8, tzinfo=timezone.utc)) == "2026-03-10T08:00:00Z"
    assert isoformat(None) is None
