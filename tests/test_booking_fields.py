from datetime import date, datetime, timezone

from eventlane.utils.booking_fields import (
    build_event_timestamps,
    normalize_date,
    normalize_time,
    sanitize_patch,
)


def test_normalize_time_pads_seconds():
    assert normalize_time("09:30") == "09:30:00"
    assert normalize_time("21:05:15") == "21:05:15"
    assert normalize_time("  ") is None
    assert normalize_time("9:30pm") is None


def test_normalize_date_accepts_strings_and_datetimes():
    assert normalize_date("2026-05-01") == date(2026, 5, 1)
    assert normalize_date("2026-05-01T10:00:00Z") == date(2026, 5, 1)
    assert normalize_date(datetime(2026, 5, 1, 23, 0)) == date(2026, 5, 1)
    assert normalize_date("not a date") is None


def test_event_timestamps_same_day():
    start_at, end_at = build_event_timestamps("2026-05-01", "14:00", "18:00")
    assert start_at == datetime(2026, 5, 1, 14, 0, tzinfo=timezone.utc)
    assert end_at == datetime(2026, 5, 1, 18, 0, tzinfo=timezone.utc)


def test_event_timestamps_roll_end_to_next_day():
    start_at, end_at = build_event_timestamps("2026-05-01", "20:00", "02:00")
    assert start_at == datetime(2026, 5, 1, 20, 0, tzinfo=timezone.utc)
    assert end_at == datetime(2026, 5, 2, 2, 0, tzinfo=timezone.utc)


def test_event_timestamps_need_every_part():
    assert build_event_timestamps(None, "10:00", "12:00") == (None, None)
    assert build_event_timestamps("2026-05-01", "", "12:00") == (None, None)


def test_sanitize_patch_drops_unknown_columns_and_coerces():
    clean = sanitize_patch({
        "guest_count": "120",
        "needs_owner_approval": "yes",
        "event_date": "2026-06-01",
        "start_time": "10:00",
        "status": "cancelled",
        "venue_rate": 1,
        "user_id": "someone-else",
    })

    assert clean == {
        "guest_count": 120,
        "needs_owner_approval": True,
        "event_date": date(2026, 6, 1),
        "start_time": "10:00:00",
        "status": "cancelled",
    }


def test_sanitize_patch_keeps_explicit_none_and_drops_garbage():
    clean = sanitize_patch({
        "pending_changes": None,
        "guest_count": "12.5",
        "needs_owner_approval": "maybe",
        "event_start_at": "2026-06-01T10:00:00Z",
    })

    assert clean == {
        "pending_changes": None,
        "event_start_at": datetime(2026, 6, 1, 10, 0, tzinfo=timezone.utc),
    }


def test_sanitize_patch_json_columns():
    assert sanitize_patch({"pending_changes": ""}) == {"pending_changes": None}
    assert sanitize_patch({"pending_changes": {"guest_count": 80}}) == {"pending_changes": {"guest_count": 80}}
    assert sanitize_patch({"pending_changes": "[1, 2]"}) == {}
