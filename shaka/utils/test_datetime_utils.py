# shaka/utils/test_datetime_utils.py

import pytest
from datetime import datetime, date, timezone, timedelta
from shaka.utils.datetime_utils import DateTimeUtils


@pytest.mark.parametrize("value, expected", [
    ("2025-03-01T12:00:00Z", datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)),
    ("2025-03-01T21:00:00+09:00", datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)),
    ("2025-03-01T12:00:00", datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)),
])
def test_parse_iso_normalizes_to_utc(value, expected):
    assert DateTimeUtils.parse_iso_datetime(value) == expected


@pytest.mark.parametrize("value", ["", "yesterday"])
def test_parse_iso_rejects_garbage(value):
    with pytest.raises(ValueError):
        DateTimeUtils.parse_iso_datetime(value)


def test_iso_string_has_z_suffix():
    assert DateTimeUtils.to_iso_string(datetime(2025, 3, 1, 12, 0)) == "2025-03-01T12:00:00Z"


def test_for_firestore_converts_nested_values():
    converted = DateTimeUtils.for_firestore({
        'joinedAt': date(2024, 1, 1),
        'events': [{'at': datetime(2024, 1, 1, 9, 30)}],
    })
    assert converted['joinedAt'] == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert converted['events'][0]['at'].tzinfo == timezone.utc


def test_remaining_time_for_live_activity():
    start = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    expires_at = DateTimeUtils.add_seconds(start, 900)

    assert DateTimeUtils.remaining_seconds(expires_at, start) == 900
    assert DateTimeUtils.remaining_seconds(expires_at, expires_at + timedelta(seconds=5)) == 0
    assert [DateTimeUtils.ceil_minutes(s) for s in (900, 61, 1, 0)] == [15, 2, 1, 0]


def test_partial_seconds_round_up_to_next_minute():
    start = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    expires_at = start + timedelta(seconds=60, milliseconds=500)

    assert DateTimeUtils.remaining_seconds(expires_at, start) == 61
    assert DateTimeUtils.ceil_minutes(DateTimeUtils.remaining_seconds(expires_at, start)) == 2


def test_package_exports_datetime_utils():
    from shaka import utils
    assert utils.DateTimeUtils is DateTimeUtils
    assert utils.__all__ == ['DateTimeUtils']
