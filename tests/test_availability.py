from sqlalchemy.exc import OperationalError

from eventlane import config
from eventlane.schemas.booking_schema import AvailabilityResponse
from eventlane.services import availability
from eventlane.services.availability import check_venue_availability
from helpers import in_days


def test_missing_parameters_are_not_a_conflict(db, venue):
    result = check_venue_availability(db, venue.id, None, "10:00", "12:00")
    assert result.ok and result.reason == "missing_params"


def test_past_date_is_refused_first(db, venue):
    result = check_venue_availability(db, venue.id, in_days(-1), "10:00", "12:00")
    assert not result.ok
    assert result.reason == "past_date"
    assert availability.conflict_message(result) == "The event date cannot be in the past."


def test_guest_gets_coarse_same_day_refusal(db, venue, make_booking, make_user):
    make_booking(make_user(), venue, event_date=in_days(5), status="confirmed", start_time="08:00:00", end_time="10:00:00")

    result = check_venue_availability(db, venue.id, in_days(5), "18:00", "20:00", can_see_others=False)

    assert not result.ok
    assert result.reason == "same_day_confirmed_exists"
    assert availability.conflict_message(result) == "This venue already has a confirmed booking that day."


def test_owner_skips_coarse_check_and_only_real_overlap_counts(db, venue, make_booking, make_user):
    make_booking(make_user(), venue, event_date=in_days(5), status="confirmed", start_time="08:00:00", end_time="10:00:00")

    free = check_venue_availability(db, venue.id, in_days(5), "18:00", "20:00", can_see_others=True)
    clash = check_venue_availability(db, venue.id, in_days(5), "09:00", "11:00", can_see_others=True)

    assert free.ok and free.reason is None
    assert not clash.ok
    assert clash.reason == "time_overlap"


def test_booking_being_edited_does_not_conflict_with_itself(db, venue, make_booking, guest):
    booking = make_booking(guest, venue, event_date=in_days(5), status="confirmed")

    result = check_venue_availability(
        db, venue.id, in_days(5), "15:00", "17:00", exclude_booking_id=booking.id, can_see_others=False
    )

    assert result.ok


def test_pending_bookings_do_not_block(db, venue, make_booking, make_user):
    make_booking(make_user(), venue, event_date=in_days(5), status="pending")
    assert check_venue_availability(db, venue.id, in_days(5), "14:00", "18:00").ok


def test_overnight_range_overlaps_next_morning_booking(db, venue, make_booking, make_user):
    make_booking(make_user(), venue, event_date=in_days(5), status="confirmed", start_time="20:00:00", end_time="02:00:00")

    result = check_venue_availability(db, venue.id, in_days(5), "23:00", "23:30", can_see_others=True)

    assert result.reason == "time_overlap"


def test_unavailable_overlap_procedure_fails_open_by_default(db, venue, monkeypatch):
    monkeypatch.setattr(config, "ENABLED_PROCEDURES", set())

    result = check_venue_availability(db, venue.id, in_days(5), "10:00", "12:00", can_see_others=True)

    assert result.ok
    assert result.reason == "rpc_failed"


def test_unavailable_overlap_procedure_can_fail_closed(db, venue, monkeypatch):
    monkeypatch.setattr(config, "ENABLED_PROCEDURES", set())
    monkeypatch.setattr(config, "AVAILABILITY_FAIL_OPEN", False)

    result = check_venue_availability(db, venue.id, in_days(5), "10:00", "12:00", can_see_others=True)

    assert not result.ok
    assert result.reason == "overlap_check_unavailable"


def test_coarse_check_failure_only_warns(db, venue, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("permission denied"))

    monkeypatch.setattr(availability, "count_confirmed_on_day", broken)

    result = check_venue_availability(db, venue.id, in_days(5), "10:00", "12:00", can_see_others=False)

    assert result.ok
    assert result.reason == "coarse_check_unavailable"
    assert result.warning == availability.COARSE_CHECK_WARNING


def test_availability_endpoint_reports_for_caller(client, auth, db, venue, owner, guest, make_booking, make_user):
    make_booking(make_user(), venue, event_date=in_days(6), status="confirmed", start_time="08:00:00", end_time="10:00:00")
    params = {"event_date": in_days(6).isoformat(), "start_time": "12:00", "end_time": "14:00"}

    as_guest = client.get(f"/api/venues/{venue.id}/availability", params=params, headers=auth(guest))
    as_owner = client.get(f"/api/venues/{venue.id}/availability", params=params, headers=auth(owner))

    assert as_guest.status_code == 200
    assert as_guest.json() == {"ok": False, "reason": "same_day_confirmed_exists", "warning": None}
    assert as_owner.json()["ok"] is True


def test_overnight_booking_from_previous_day_is_checked(db, venue, make_booking, make_user):
    make_booking(make_user(), venue, event_date=in_days(5), status="confirmed", start_time="20:00:00", end_time="02:00:00")

    clash = check_venue_availability(db, venue.id, in_days(6), "01:00", "03:00", can_see_others=True)
    after = check_venue_availability(db, venue.id, in_days(6), "02:00", "04:00", can_see_others=True)

    assert clash.reason == "time_overlap"
    assert after.ok


def test_result_is_the_response_model(db, venue):
    result = check_venue_availability(db, venue.id, in_days(5), "10:00", "12:00", can_see_others=True)

    assert isinstance(result, AvailabilityResponse)
    assert result.model_dump() == {"ok": True, "reason": None, "warning": None}
