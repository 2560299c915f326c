import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENV", "test")
os.environ.setdefault("LOG_FILE", "")

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from eventlane.database import Base, SessionLocal, engine
from eventlane.main import app
from eventlane.models.booking_model import Booking
from eventlane.models.user_model import User
from eventlane.models.venue_model import Venue
from eventlane.realtime.broadcast import unread_registry
from eventlane.security.auth import create_access_token, get_password_hash
from eventlane.utils.booking_fields import build_event_timestamps
from helpers import PASSWORD, in_days


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    unread_registry.close_all()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(db):
    def _make(name="Maria Santos", email=None, role="user"):
        user = User(
            name=name,
            email=email or f"{uuid4().hex[:10]}@example.com",
            password_hash=get_password_hash(PASSWORD),
            role=role,
            status="active",
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_venue(db):
    def _make(owner, **overrides):
        fields = dict(
            name="Casa Verde Garden",
            address="12 Mabini St",
            city="Tagaytay",
            venue_type="Garden",
            capacity_max=100,
            rate_mode="single",
            rate=50000,
            currency="PHP",
            reservation_fee_percent=10,
            open_time="08:00:00",
            close_time="22:00:00",
        )
        fields.update(overrides)
        venue = Venue(owner_id=owner.id, **fields)
        db.add(venue)
        db.commit()
        db.refresh(venue)
        return venue

    return _make


@pytest.fixture
def make_booking(db):
    def _make(guest, venue, **overrides):
        event_date = overrides.pop("event_date", in_days(10))
        start_time = overrides.pop("start_time", "14:00:00")
        end_time = overrides.pop("end_time", "18:00:00")
        start_at, end_at = build_event_timestamps(event_date, start_time, end_time)
        fields = dict(
            event_name="Santos Wedding",
            event_type="Wedding",
            guest_count=50,
            status="pending",
            currency="PHP",
        )
        fields.update(overrides)
        booking = Booking(
            user_id=guest.id,
            venue_id=venue.id,
            event_date=event_date,
            start_time=start_time,
            end_time=end_time,
            event_start_at=start_at,
            event_end_at=end_at,
            **fields,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make


@pytest.fixture
def auth():
    def _headers(user):
        token, _ = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def owner(make_user):
    return make_user(name="Venue Owner")


@pytest.fixture
def guest(make_user):
    return make_user(name="Guest")


@pytest.fixture
def venue(make_venue, owner):
    return make_venue(owner)
