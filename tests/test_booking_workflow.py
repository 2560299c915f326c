from datetime import datetime, timedelta, timezone

from eventlane import config
from eventlane.models.booking_change_request_model import BookingChangeRequest
from eventlane.models.booking_model import Booking
from eventlane.utils.booking_fields import as_utc, build_event_timestamps
from helpers import in_days


def book(client, auth, guest, venue, **overrides):
    payload = {
        "venue_id": venue.id,
        "event_name": "Reyes Debut",
        "event_type": "Debut",
        "event_date": in_days(14).isoformat(),
        "start_time": "14:00",
        "end_time": "18:00",
        "guest_count": 80,
    }
    payload.update(overrides)
    return client.post("/api/bookings", json=payload, headers=auth(guest))


def reload(db, booking):
    db.expire_all()
    return db.get(Booking, booking.id)


def activity_types(client, auth, user, booking):
    res = client.get(f"/api/bookings/{booking.id}/activity", headers=auth(user))
    assert res.status_code == 200
    return [entry["type"] for entry in res.json() if not entry["derived"]]


# Creation

def test_create_booking_prices_and_normalises_times(client, auth, guest, venue):
    res = book(client, auth, guest, venue)

    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "pending"
    assert body["effective_status"] == "pending"
    assert body["start_time"] == "14:00:00"
    assert body["end_time"] == "18:00:00"
    assert body["venue_rate"] == 50000
    assert body["reservation_fee"] == 5000
    assert body["currency"] == "PHP"
    assert body["is_owner_view"] is False
    assert body["can_edit"] is True


def test_split_rate_venue_charges_weekend_rate_on_saturday(client, auth, guest, owner, make_venue):
    venue = make_venue(owner, rate_mode="split", rate=30000, rate_weekday=30000, rate_weekend=45000)
    saturday = in_days(7)
    while saturday.weekday() != 5:
        saturday += timedelta(days=1)

    res = book(client, auth, guest, venue, event_date=saturday.isoformat())

    assert res.status_code == 201
    assert res.json()["venue_rate"] == 45000
    assert res.json()["reservation_fee"] == 4500


def test_overlapping_hours_are_already_booked(client, auth, guest, venue, make_user):
    assert book(client, auth, guest, venue).status_code == 201

    clash = book(client, auth, make_user(), venue, start_time="16:00", end_time="20:00")
    back_to_back = book(client, auth, make_user(), venue, start_time="18:00", end_time="20:00")

    assert clash.status_code == 409
    assert clash.json()["detail"] == "Those hours are already booked for this date."
    assert back_to_back.status_code == 201


def test_overnight_booking_blocks_the_next_morning(client, auth, guest, venue, make_user, db):
    night = book(client, auth, guest, venue, start_time="20:00", end_time="02:00")
    assert night.status_code == 201
    stored = db.get(Booking, night.json()["id"])
    start_at, end_at = build_event_timestamps(in_days(14), "20:00:00", "02:00:00")
    assert as_utc(stored.event_end_at) == end_at
    assert end_at - start_at == timedelta(hours=6)

    next_morning = book(client, auth, make_user(), venue, event_date=in_days(15).isoformat(), start_time="01:00", end_time="03:00")
    later = book(client, auth, make_user(), venue, event_date=in_days(15).isoformat(), start_time="02:00", end_time="05:00")

    assert next_morning.status_code == 409
    assert later.status_code == 201


def test_creation_validates_before_writing(client, auth, guest, venue, db):
    too_many = book(client, auth, guest, venue, guest_count=101)
    past = book(client, auth, guest, venue, event_date=in_days(-2).isoformat())
    zero_length = book(client, auth, guest, venue, start_time="18:00", end_time="18:00")

    assert too_many.status_code == 400
    assert too_many.json()["detail"] == "This venue allows up to 100 guests."
    assert past.status_code == 400
    assert zero_length.status_code == 400
    assert zero_length.json()["detail"] == "Start and end time cannot be the same."
    assert db.query(Booking).count() == 0


# Status actions

def test_owner_confirms_pending_booking(client, auth, owner, guest, venue, make_booking):
    booking = make_booking(guest, venue)

    res = client.post(f"/api/bookings/{booking.id}/confirm", headers=auth(owner))

    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "confirmed"
    assert body["confirmed_at"] is not None
    assert body["is_owner_view"] is True
    assert "status_change" in activity_types(client, auth, owner, booking)


def test_confirm_sets_times_when_booking_has_none(client, auth, owner, guest, venue, make_booking):
    booking = make_booking(guest, venue, start_time=None, end_time=None)

    missing = client.post(f"/api/bookings/{booking.id}/confirm", headers=auth(owner))
    res = client.post(
        f"/api/bookings/{booking.id}/confirm", json={"start_time": "10:00", "end_time": "12:00"}, headers=auth(owner)
    )

    assert missing.status_code == 400
    assert res.status_code == 200
    assert res.json()["start_time"] == "10:00:00"
    assert res.json()["event_start_at"] is not None


def test_guest_cannot_confirm(client, auth, guest, venue, make_booking):
    booking = make_booking(guest, venue)
    res = client.post(f"/api/bookings/{booking.id}/confirm", headers=auth(guest))
    assert res.status_code == 403


def test_confirm_refused_when_hours_overlap_a_confirmed_booking(client, auth, owner, guest, venue, make_booking, make_user, db):
    make_booking(make_user(), venue, status="confirmed", start_time="15:00:00", end_time="19:00:00")
    booking = make_booking(guest, venue)

    res = client.post(f"/api/bookings/{booking.id}/confirm", headers=auth(owner))

    assert res.status_code == 409
    assert res.json()["detail"] == "The proposed date and time conflict with an existing booking."
    assert reload(db, booking).status == "pending"


def test_guest_cancels_pending_but_not_confirmed(client, auth, guest, venue, make_booking):
    pending = make_booking(guest, venue)
    confirmed = make_booking(guest, venue, status="confirmed", event_date=in_days(20))

    ok = client.post(f"/api/bookings/{pending.id}/cancel", headers=auth(guest))
    refused = client.post(f"/api/bookings/{confirmed.id}/cancel", headers=auth(guest))

    assert ok.status_code == 200
    assert ok.json()["status"] == "cancelled"
    assert ok.json()["cancelled_at"] is not None
    assert refused.status_code == 409


def test_owner_cancels_confirmed_booking(client, auth, owner, guest, venue, make_booking):
    booking = make_booking(guest, venue, status="confirmed")
    res = client.post(f"/api/bookings/{booking.id}/cancel", headers=auth(owner))
    assert res.status_code == 200
    assert res.json()["effective_status"] == "cancelled"


def test_complete_requires_confirmed(client, auth, owner, guest, venue, make_booking):
    pending = make_booking(guest, venue)
    confirmed = make_booking(guest, venue, status="confirmed", event_date=in_days(20))

    refused = client.post(f"/api/bookings/{pending.id}/complete", headers=auth(owner))
    done = client.post(f"/api/bookings/{confirmed.id}/complete", headers=auth(owner))

    assert refused.status_code == 409
    assert done.status_code == 200
    assert done.json()["status"] == "completed"


def test_actions_on_expired_booking_are_refused(client, auth, owner, guest, venue, make_booking, db):
    stale = make_booking(guest, venue, created_at=datetime.now(timezone.utc) - timedelta(hours=80))

    res = client.post(f"/api/bookings/{stale.id}/confirm", headers=auth(owner))

    assert res.status_code == 409
    assert res.json()["detail"] == "This booking is already expired."
    assert reload(db, stale).status == "pending"


# Field edits

def test_guest_edits_pending_booking_directly_and_clears_stale_flags(client, auth, guest, venue, make_booking):
    booking = make_booking(guest, venue, pending_changes={"guest_count": 70}, needs_owner_approval=True)

    res = client.patch(f"/api/bookings/{booking.id}", json={"guest_count": 60}, headers=auth(guest))

    assert res.status_code == 200
    body = res.json()
    assert body["applied"] is True
    assert body["booking"]["guest_count"] == 60
    assert body["booking"]["needs_owner_approval"] is False
    assert body["booking"]["pending_changes"] is None
    assert "edit" in activity_types(client, auth, guest, booking)


def test_time_range_edit_round_trips_normalised(client, auth, guest, venue, make_booking):
    booking = make_booking(guest, venue)

    res = client.put(
        f"/api/bookings/{booking.id}/time", json={"start_time": "15:30", "end_time": "19:45"}, headers=auth(guest)
    )
    fetched = client.get(f"/api/bookings/{booking.id}", headers=auth(guest)).json()

    assert res.status_code == 200
    assert fetched["start_time"] == "15:30:00"
    assert fetched["end_time"] == "19:45:00"
    assert fetched["event_end_at"] is not None


def test_same_value_edit_is_a_no_op(client, auth, guest, venue, make_booking, db):
    booking = make_booking(guest, venue)
    before = reload(db, booking).updated_at

    res = client.patch(f"/api/bookings/{booking.id}", json={"event_name": "Santos Wedding"}, headers=auth(guest))

    assert res.status_code == 200
    assert res.json()["message"] == "No changes."
    assert reload(db, booking).updated_at == before


def test_owner_edits_confirmed_booking_directly(client, auth, owner, guest, venue, make_booking):
    booking = make_booking(guest, venue, status="confirmed")

    res = client.patch(f"/api/bookings/{booking.id}", json={"event_name": "Santos-Reyes Wedding"}, headers=auth(owner))

    assert res.status_code == 200
    assert res.json()["applied"] is True
    assert res.json()["booking"]["event_name"] == "Santos-Reyes Wedding"


def test_guest_edit_on_confirmed_booking_becomes_change_request(client, auth, guest, venue, make_booking, db):
    booking = make_booking(guest, venue, status="confirmed")

    res = client.patch(f"/api/bookings/{booking.id}", json={"guest_count": 90}, headers=auth(guest))

    assert res.status_code == 200
    body = res.json()
    assert body["applied"] is False
    assert body["recorded_via"] == "direct"
    assert body["message"] == "Your update is pending venue owner approval."
    stored = reload(db, booking)
    assert stored.guest_count == 50
    assert stored.pending_changes == {"guest_count": 90}
    assert stored.needs_owner_approval is True
    assert "pending_change_requested" in activity_types(client, auth, guest, booking)


def test_proposals_merge_with_earlier_ones(client, auth, guest, venue, make_booking, db):
    booking = make_booking(guest, venue, status="confirmed")

    client.patch(f"/api/bookings/{booking.id}", json={"guest_count": 90}, headers=auth(guest))
    client.patch(f"/api/bookings/{booking.id}", json={"event_name": "Renamed"}, headers=auth(guest))

    assert reload(db, booking).pending_changes == {"guest_count": 90, "event_name": "Renamed"}


def test_date_proposal_carries_derived_timestamps(client, auth, guest, venue, make_booking, db):
    booking = make_booking(guest, venue, status="confirmed")
    new_date = in_days(12)

    res = client.patch(f"/api/bookings/{booking.id}", json={"event_date": new_date.isoformat()}, headers=auth(guest))

    assert res.status_code == 200
    proposal = reload(db, booking).pending_changes
    assert proposal["event_date"] == new_date.isoformat()
    assert proposal["event_start_at"].startswith(f"{new_date.isoformat()}T14:00:00")
    assert proposal["event_end_at"].startswith(f"{new_date.isoformat()}T18:00:00")


def test_blocked_proposal_goes_through_change_request_procedure(client, auth, guest, venue, make_booking, db, monkeypatch):
    monkeypatch.setattr(config, "GUEST_MAY_FLAG_CHANGES", False)
    booking = make_booking(guest, venue, status="confirmed")

    res = client.patch(f"/api/bookings/{booking.id}", json={"guest_count": 75}, headers=auth(guest))

    assert res.status_code == 200
    assert res.json()["recorded_via"] == "procedure"
    request = db.query(BookingChangeRequest).filter(BookingChangeRequest.booking_id == booking.id).one()
    assert request.proposed_changes == {"guest_count": 75}
    assert request.status == "pending"
    assert reload(db, booking).needs_owner_approval is True


def test_proposal_recorded_only_in_activity_when_procedure_is_missing(client, auth, guest, venue, make_booking, db, monkeypatch):
    monkeypatch.setattr(config, "GUEST_MAY_FLAG_CHANGES", False)
    monkeypatch.setattr(config, "ENABLED_PROCEDURES", {"check_booking_overlap"})
    booking = make_booking(guest, venue, status="confirmed")

    res = client.patch(f"/api/bookings/{booking.id}", json={"guest_count": 75}, headers=auth(guest))

    assert res.status_code == 200
    body = res.json()
    assert body["recorded_via"] == "activity_only"
    assert body["booking"]["pending_changes"] == {"guest_count": 75}
    assert body["booking"]["needs_owner_approval"] is True
    assert reload(db, booking).pending_changes is None
    assert "pending_change_requested" in activity_types(client, auth, guest, booking)


def test_over_capacity_proposal_is_rejected_before_any_write(client, auth, guest, venue, make_booking, db):
    booking = make_booking(guest, venue, status="confirmed")

    res = client.patch(f"/api/bookings/{booking.id}", json={"guest_count": 500}, headers=auth(guest))

    assert res.status_code == 400
    assert res.json()["detail"] == "This venue allows up to 100 guests."
    stored = reload(db, booking)
    assert stored.pending_changes is None
    assert stored.needs_owner_approval is False


def test_edits_on_cancelled_booking_are_refused(client, auth, guest, venue, make_booking):
    booking = make_booking(guest, venue, status="cancelled")
    res = client.patch(f"/api/bookings/{booking.id}", json={"guest_count": 20}, headers=auth(guest))
    assert res.status_code == 409


def test_stranger_cannot_see_or_edit_booking(client, auth, guest, venue, make_booking, make_user):
    booking = make_booking(guest, venue)
    stranger = make_user()

    assert client.get(f"/api/bookings/{booking.id}", headers=auth(stranger)).status_code == 403
    assert client.patch(f"/api/bookings/{booking.id}", json={"guest_count": 20}, headers=auth(stranger)).status_code == 403


# Approval

def test_approve_applies_exactly_the_proposed_fields(client, auth, owner, guest, venue, make_booking, db):
    booking = make_booking(
        guest, venue, status="confirmed",
        pending_changes={"guest_count": 90, "event_name": "Santos-Reyes Wedding"},
        needs_owner_approval=True,
    )
    untouched = {k: getattr(booking, k) for k in ("event_type", "event_date", "start_time", "end_time", "status")}

    res = client.post(f"/api/bookings/{booking.id}/changes/approve", headers=auth(owner))

    assert res.status_code == 200
    stored = reload(db, booking)
    assert stored.guest_count == 90
    assert stored.event_name == "Santos-Reyes Wedding"
    assert {k: getattr(stored, k) for k in untouched} == untouched
    assert stored.pending_changes is None
    assert stored.needs_owner_approval is False

    log = client.get(f"/api/bookings/{booking.id}/activity", headers=auth(owner)).json()
    approved = next(entry for entry in log if entry["type"] == "pending_change_approved")
    assert approved["details"]["before"]["guest_count"] == 50
    assert approved["details"]["after"]["guest_count"] == 90


def test_merged_date_and_time_proposals_approve_with_matching_timestamps(client, auth, owner, guest, venue, make_booking, db):
    booking = make_booking(guest, venue, status="confirmed")
    new_date = in_days(12)

    client.patch(f"/api/bookings/{booking.id}", json={"event_date": new_date.isoformat()}, headers=auth(guest))
    res = client.put(
        f"/api/bookings/{booking.id}/time", json={"start_time": "09:00", "end_time": "11:00"}, headers=auth(guest)
    )
    assert res.status_code == 200
    proposal = reload(db, booking).pending_changes
    assert proposal["event_start_at"].startswith(f"{new_date.isoformat()}T09:00:00")
    assert proposal["event_end_at"].startswith(f"{new_date.isoformat()}T11:00:00")

    approved = client.post(f"/api/bookings/{booking.id}/changes/approve", headers=auth(owner))

    assert approved.status_code == 200
    stored = reload(db, booking)
    assert (stored.event_date, stored.start_time, stored.end_time) == (new_date, "09:00:00", "11:00:00")
    expected = build_event_timestamps(new_date, "09:00:00", "11:00:00")
    assert (as_utc(stored.event_start_at), as_utc(stored.event_end_at)) == expected


def test_time_proposal_is_checked_on_the_proposed_date(client, auth, guest, venue, make_booking, make_user, db):
    make_booking(make_user(), venue, status="confirmed", event_date=in_days(12), start_time="08:00:00", end_time="12:00:00")
    booking = make_booking(
        guest, venue, status="confirmed", event_date=in_days(11),
        pending_changes={"event_date": in_days(12).isoformat()}, needs_owner_approval=True,
    )

    res = client.put(
        f"/api/bookings/{booking.id}/time", json={"start_time": "09:00", "end_time": "11:00"}, headers=auth(guest)
    )

    assert res.status_code == 409
    assert reload(db, booking).pending_changes == {"event_date": in_days(12).isoformat()}


def test_approving_time_only_proposal_rederives_start(client, auth, owner, guest, venue, make_booking, db):
    booking = make_booking(
        guest, venue, status="confirmed",
        pending_changes={"start_time": "10:00:00", "end_time": "13:00:00"}, needs_owner_approval=True,
    )

    res = client.post(f"/api/bookings/{booking.id}/changes/approve", headers=auth(owner))

    assert res.status_code == 200
    stored = reload(db, booking)
    start_at, end_at = build_event_timestamps(stored.event_date, "10:00:00", "13:00:00")
    assert as_utc(stored.event_start_at) == start_at
    assert as_utc(stored.event_end_at) == end_at


def test_stale_timestamps_in_proposal_are_not_written(client, auth, owner, guest, venue, make_booking, db):
    booking = make_booking(
        guest, venue, status="confirmed",
        pending_changes={
            "event_date": in_days(12).isoformat(),
            "event_start_at": f"{in_days(10).isoformat()}T14:00:00+00:00",
            "event_end_at": f"{in_days(10).isoformat()}T18:00:00+00:00",
        },
        needs_owner_approval=True,
    )

    client.post(f"/api/bookings/{booking.id}/changes/approve", headers=auth(owner))

    stored = reload(db, booking)
    assert as_utc(stored.event_start_at) == build_event_timestamps(in_days(12), "14:00:00", "18:00:00")[0]


def test_approve_with_empty_proposal_only_clears_flags(client, auth, owner, guest, venue, make_booking, db):
    booking = make_booking(guest, venue, status="confirmed", pending_changes={}, needs_owner_approval=True)

    res = client.post(f"/api/bookings/{booking.id}/changes/approve", headers=auth(owner))

    assert res.status_code == 200
    stored = reload(db, booking)
    assert stored.needs_owner_approval is False
    assert stored.pending_changes is None
    assert stored.guest_count == 50


def test_approve_refuses_schedule_that_conflicts(client, auth, owner, guest, venue, make_booking, make_user, db):
    make_booking(make_user(), venue, status="confirmed", event_date=in_days(8))
    proposal = {"event_date": in_days(8).isoformat()}
    booking = make_booking(
        guest, venue, status="confirmed", event_date=in_days(9),
        pending_changes=proposal, needs_owner_approval=True,
    )

    res = client.post(f"/api/bookings/{booking.id}/changes/approve", headers=auth(owner))

    assert res.status_code == 409
    assert res.json()["detail"] == "The proposed date and time conflict with an existing booking."
    stored = reload(db, booking)
    assert stored.event_date == in_days(9)
    assert stored.pending_changes == proposal
    assert stored.needs_owner_approval is True


def test_reject_discards_the_proposal(client, auth, owner, guest, venue, make_booking, db):
    booking = make_booking(
        guest, venue, status="confirmed", pending_changes={"guest_count": 90}, needs_owner_approval=True
    )

    res = client.post(f"/api/bookings/{booking.id}/changes/reject", headers=auth(owner))

    assert res.status_code == 200
    stored = reload(db, booking)
    assert stored.guest_count == 50
    assert stored.pending_changes is None
    assert stored.needs_owner_approval is False
    assert "pending_change_rejected" in activity_types(client, auth, owner, booking)


def test_guest_cannot_approve_own_proposal(client, auth, guest, venue, make_booking):
    booking = make_booking(
        guest, venue, status="confirmed", pending_changes={"guest_count": 90}, needs_owner_approval=True
    )
    res = client.post(f"/api/bookings/{booking.id}/changes/approve", headers=auth(guest))
    assert res.status_code == 403
