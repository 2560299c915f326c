from datetime import datetime, timedelta, timezone

from eventlane.services.booking_crud import booking_crud
from helpers import in_days

STALE = timedelta(hours=80)


def ids(res):
    assert res.status_code == 200
    return [row["id"] for row in res.json()]


def test_lists_merge_authored_and_owned_bookings_once(client, auth, owner, guest, venue, make_booking):
    theirs = make_booking(guest, venue)
    mine = make_booking(owner, venue, event_date=in_days(11))

    listed = ids(client.get("/api/bookings", headers=auth(owner)))

    assert sorted(listed) == sorted([theirs.id, mine.id])
    assert ids(client.get("/api/bookings", headers=auth(guest))) == [theirs.id]


def test_viewer_flags(client, auth, owner, guest, venue, make_booking):
    make_booking(guest, venue, status="confirmed", pending_changes={"guest_count": 70}, needs_owner_approval=True)

    as_owner = client.get("/api/bookings", headers=auth(owner)).json()[0]
    as_guest = client.get("/api/bookings", headers=auth(guest)).json()[0]

    assert as_owner["is_owner_view"] is True
    assert as_owner["has_pending_changes"] is True
    assert as_owner["can_edit"] is True
    assert as_guest["is_owner_view"] is False
    assert as_guest["can_edit"] is True


def test_guest_cannot_edit_confirmed_booking_without_open_proposal(client, auth, guest, venue, make_booking):
    make_booking(guest, venue, status="confirmed")
    row = client.get("/api/bookings", headers=auth(guest)).json()[0]
    assert row["can_edit"] is False


def test_tab_filters_on_effective_status(client, auth, owner, guest, venue, make_booking):
    fresh = make_booking(guest, venue)
    stale = make_booking(guest, venue, event_date=in_days(12), created_at=datetime.now(timezone.utc) - STALE)

    pending = ids(client.get("/api/bookings", params={"tab": "pending"}, headers=auth(owner)))
    expired = ids(client.get("/api/bookings", params={"tab": "expired"}, headers=auth(owner)))

    assert pending == [fresh.id]
    assert expired == [stale.id]


def test_event_type_filter_ignores_case(client, auth, guest, venue, make_booking):
    wedding = make_booking(guest, venue)
    make_booking(guest, venue, event_type="Birthday", event_date=in_days(12))

    assert ids(client.get("/api/bookings", params={"event_type": "wedding"}, headers=auth(guest))) == [wedding.id]


def test_only_pending_changes_shows_proposals_awaiting_me(client, auth, owner, guest, venue, make_booking):
    flagged = make_booking(guest, venue, status="confirmed", pending_changes={"guest_count": 70}, needs_owner_approval=True)
    make_booking(guest, venue, event_date=in_days(12))

    params = {"only_pending_changes": "true"}
    assert ids(client.get("/api/bookings", params=params, headers=auth(owner))) == [flagged.id]
    assert ids(client.get("/api/bookings", params=params, headers=auth(guest))) == []


def test_closest_sort_puts_upcoming_first_and_past_last(client, auth, guest, venue, make_booking):
    later = make_booking(guest, venue, event_date=in_days(20))
    past = make_booking(guest, venue, event_date=in_days(-3), status="confirmed")
    soon = make_booking(guest, venue, event_date=in_days(3))

    listed = ids(client.get("/api/bookings", params={"sort": "closest"}, headers=auth(guest)))

    assert listed == [soon.id, later.id, past.id]


def test_summary_counts_and_attention(client, auth, owner, guest, venue, make_booking):
    make_booking(guest, venue)
    make_booking(guest, venue, status="confirmed", event_date=in_days(12),
                 pending_changes={"event_name": "Renamed"}, needs_owner_approval=True)
    make_booking(guest, venue, status="cancelled", event_date=in_days(13))

    owner_view = client.get("/api/bookings/summary", headers=auth(owner)).json()
    guest_view = client.get("/api/bookings/summary", headers=auth(guest)).json()

    assert owner_view["counts"] == {"pending": 1, "confirmed": 1, "completed": 0, "cancelled": 1, "expired": 0}
    assert owner_view["attention"]["confirmed"] == 1
    assert guest_view["attention"]["confirmed"] == 0


def test_summary_counts_unread_updates_as_attention(db, guest, venue, make_booking):
    booking = make_booking(guest, venue)

    result = booking_crud.summary(db, guest, unread_by_booking={booking.id: 2})

    assert result.attention["pending"] == 1


def test_calendar_groups_open_bookings_by_day(client, auth, guest, venue, make_booking):
    day = in_days(10)
    evening = make_booking(guest, venue, event_date=day, start_time="19:00:00", end_time="22:00:00")
    morning = make_booking(guest, venue, event_date=day, start_time="09:00:00", end_time="12:00:00")
    make_booking(guest, venue, event_date=in_days(11), status="cancelled")
    other_day = make_booking(guest, venue, event_date=in_days(15), status="confirmed")

    res = client.get("/api/bookings/calendar", headers=auth(guest))

    assert res.status_code == 200
    days = res.json()
    assert [d["event_date"] for d in days] == [day.isoformat(), in_days(15).isoformat()]
    assert [b["id"] for b in days[0]["bookings"]] == [morning.id, evening.id]
    assert days[1]["bookings"][0]["id"] == other_day.id


def test_activity_includes_derived_entries(client, auth, guest, venue, make_booking):
    stale = make_booking(guest, venue, created_at=datetime.now(timezone.utc) - STALE)

    res = client.get(f"/api/bookings/{stale.id}/activity", headers=auth(guest))

    assert res.status_code == 200
    messages = [entry["message"] for entry in res.json()]
    assert "Booking requested" in messages
    assert "Status: Expired" in messages
    assert "Automatically marked as Expired (pending too long or date passed)" in messages
    assert all(entry["derived"] for entry in res.json())


def test_activity_prefers_logged_status_change(client, auth, owner, guest, venue, make_booking):
    booking = make_booking(guest, venue)
    client.post(f"/api/bookings/{booking.id}/confirm", headers=auth(owner))

    entries = client.get(f"/api/bookings/{booking.id}/activity", headers=auth(owner)).json()

    status_entries = [e for e in entries if e["type"] == "status_change"]
    assert len(status_entries) == 1
    assert status_entries[0]["derived"] is False
