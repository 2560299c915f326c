from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from eventlane.schemas.booking_schema import BookingStatus
from eventlane.services.booking_status import effective_status, sort_closest

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def test_pending_with_past_date_is_expired():
    yesterday = TODAY - timedelta(days=1)
    assert effective_status("pending", yesterday, NOW - timedelta(hours=1), NOW) == BookingStatus.expired


def test_pending_older_than_sla_is_expired_even_with_future_date():
    created = NOW - timedelta(hours=73)
    assert effective_status("pending", TODAY + timedelta(days=30), created, NOW) == BookingStatus.expired


def test_pending_exactly_at_sla_boundary_is_expired():
    created = NOW - timedelta(hours=72)
    assert effective_status("pending", TODAY + timedelta(days=30), created, NOW) == BookingStatus.expired


def test_pending_for_today_created_an_hour_ago_stays_pending():
    created = NOW - timedelta(hours=1)
    assert effective_status("pending", TODAY, created, NOW) == BookingStatus.pending


def test_pending_three_days_past_is_expired_regardless_of_sla():
    created = NOW - timedelta(minutes=5)
    assert effective_status("pending", TODAY - timedelta(days=3), created, NOW) == BookingStatus.expired


def test_confirmed_future_stays_confirmed_and_past_reads_completed():
    created = NOW - timedelta(days=20)
    assert effective_status("confirmed", TODAY + timedelta(days=1), created, NOW) == BookingStatus.confirmed
    assert effective_status("confirmed", TODAY, created, NOW) == BookingStatus.confirmed
    assert effective_status("confirmed", TODAY - timedelta(days=1), created, NOW) == BookingStatus.completed


def test_terminal_statuses_pass_through():
    for stored in ("cancelled", "completed", "expired"):
        assert effective_status(stored, TODAY - timedelta(days=5), NOW, NOW) == BookingStatus(stored)


def test_stored_status_is_case_insensitive():
    assert effective_status("Confirmed", TODAY + timedelta(days=2), NOW, NOW) == BookingStatus.confirmed


def test_pending_without_date_depends_only_on_sla():
    assert effective_status("pending", None, NOW - timedelta(hours=2), NOW) == BookingStatus.pending
    assert effective_status("pending", None, NOW - timedelta(hours=100), NOW) == BookingStatus.expired


def test_naive_created_at_is_read_as_utc():
    created = (NOW - timedelta(hours=10)).replace(tzinfo=None)
    assert effective_status("pending", TODAY + timedelta(days=3), created, NOW) == BookingStatus.pending


def test_sort_closest_puts_upcoming_before_past_and_undated_last():
    bookings = [
        SimpleNamespace(name="past-far", event_date=TODAY - timedelta(days=9)),
        SimpleNamespace(name="undated", event_date=None),
        SimpleNamespace(name="soon", event_date=TODAY + timedelta(days=1)),
        SimpleNamespace(name="past-near", event_date=TODAY - timedelta(days=1)),
        SimpleNamespace(name="later", event_date=TODAY + timedelta(days=7)),
    ]

    ordered = [b.name for b in sort_closest(bookings, NOW)]

    assert ordered == ["soon", "later", "past-near", "past-far", "undated"]
