"""
Pytest configuration and shared fixtures for the booking engine tests.
"""

import os

# Must be set before the app config is imported
os.environ["TESTING"] = "True"
os.environ["FLASK_ENV"] = "testing"

import datetime  # noqa: E402
import sys  # noqa: E402

import pytest  # noqa: E402
from flask import Flask  # noqa: E402

from app.config import BusinessSettings, is_production_database  # noqa: E402
from app.extensions import db as database  # noqa: E402
from app.models import Base, Closure, Coupon, Discount, ForcedOpenDay, Service  # noqa: E402
from app.services.clock import FixedClock  # noqa: E402
from main import create_app  # noqa: E402

# Tuesday morning; the salon is closed on Mondays
NOW = datetime.datetime(2026, 10, 20, 8, 0)
TODAY = NOW.date()
WEDNESDAY = datetime.date(2026, 10, 21)
SATURDAY = datetime.date(2026, 10, 24)
MONDAY = datetime.date(2026, 10, 26)

ADMIN_KEY = "test-admin-key"


@pytest.fixture(scope="session")
def clock():
    return FixedClock(NOW)


@pytest.fixture(scope="session")
def settings():
    return BusinessSettings(upstream_retry_delay=0)


@pytest.fixture(scope="session")
def app(clock, settings):
    """Create and configure a test app instance."""
    test_db_url = os.environ.get("DATABASE_TEST_URL", "sqlite://")
    if is_production_database(test_db_url):
        print(f" DANGER: Database URL appears to be production: {test_db_url}")
        sys.exit(1)

    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": test_db_url,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "ADMIN_API_KEY": ADMIN_KEY,
            "BUSINESS_SETTINGS": settings,
            "CLOCK": clock,
        }
    )
    yield app


@pytest.fixture
def db(app: Flask, clock):
    """Fresh tables for every test."""
    clock.set(NOW)
    with app.app_context():
        Base.metadata.create_all(bind=database.engine)

        yield database

        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def client(app, db):
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"X-ADMIN-KEY": ADMIN_KEY}


@pytest.fixture
def services(db):
    """Catalog: one service per category except colour, which has two."""
    rows = {
        "cut": Service(
            name="Cut", category="cut", price=5500, duration=60,
            last_booking_time="19:00", display_order=1,
        ),
        "color": Service(
            name="Color", category="color", price=8800, duration=90,
            last_booking_time="18:00", display_order=2,
        ),
        "treatment": Service(
            name="Treatment", category="treatment", price=3300, duration=30,
            last_booking_time="19:00", display_order=3,
        ),
        "highlight": Service(
            name="Highlight", category="color", price=12000, duration=120,
            last_booking_time="17:00", display_order=4,
        ),
        "perm": Service(
            name="Perm", category="perm", price=11000, duration=120,
            last_booking_time="17:00", is_active=False, display_order=5,
        ),
    }
    db.session.add_all(rows.values())
    db.session.commit()
    return rows


@pytest.fixture
def coupons(db):
    rows = {
        "percent": Coupon(
            code="WELCOME20", name="Welcome 20%", discount_type="PERCENTAGE", value=20,
        ),
        "fixed": Coupon(
            code="FIXED1000", name="1000 off", discount_type="FIXED", value=1000,
        ),
        "limited": Coupon(
            code="ONCE", name="Single use", discount_type="FIXED", value=500,
            usage_limit=1,
        ),
        "cut_only": Coupon(
            code="CUT10", name="10% off cuts", discount_type="PERCENTAGE", value=10,
            applicable_categories=["cut"],
        ),
        "first_time": Coupon(
            code="FIRST", name="First visit", discount_type="FIXED", value=1500,
            only_first_time=True,
        ),
    }
    db.session.add_all(rows.values())
    db.session.commit()
    return rows


@pytest.fixture
def discounts(db):
    rows = {
        "staff": Discount(name="Staff 10%", discount_type="PERCENTAGE", value=10, display_order=1),
        "loyalty": Discount(name="Loyalty 500", discount_type="FIXED", value=500, display_order=2),
        "retired": Discount(name="Old promo", discount_type="FIXED", value=300, is_active=False),
    }
    db.session.add_all(rows.values())
    db.session.commit()
    return rows


@pytest.fixture
def add_closure(db):
    def _add(day, start=None, end=None, reason=None):
        closure = Closure(date=day, start_time=start, end_time=end, reason=reason)
        db.session.add(closure)
        db.session.commit()
        return closure

    return _add


@pytest.fixture
def add_forced_open_day(db):
    def _add(day, reason=None):
        forced = ForcedOpenDay(date=day, reason=reason)
        db.session.add(forced)
        db.session.commit()
        return forced

    return _add


@pytest.fixture
def book(client):
    """POST a reservation and return the response."""

    def _book(service_ids, start_time, day=WEDNESDAY, customer_id=1, **extra):
        payload = {
            "customer_id": customer_id,
            "service_ids": service_ids,
            "date": day.isoformat(),
            "start_time": start_time,
        }
        payload.update(extra)
        return client.post("/api/reservations", json=payload)

    return _book
