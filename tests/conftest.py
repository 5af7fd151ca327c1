# Settings are read at import time, so the environment comes first
import os

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_zoom_booking.db"

os.environ["DATABASE_URL"] = SQLALCHEMY_DATABASE_URL
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from unittest.mock import AsyncMock

from zoom_booking.main import app
from zoom_booking.database import Base, get_db
from zoom_booking.presence import PresenceChannel, get_presence
from zoom_booking import models

# --- Test Database Setup ---
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# --- Database Management Fixtures ---
@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """
    Fresh tables for every test. Bookings commit for real (the race test
    needs several sessions to see each other's writes).
    """
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def session_factory():
    return TestingSessionLocal


# --- Data helpers ---
@pytest.fixture
def make_accounts(db_session):
    def _make(count: int, active: bool = True):
        accounts = []
        for _ in range(count):
            n = db_session.query(models.ZoomAccount).count() + 1
            account = models.ZoomAccount(
                name=f"Account {n}", username=f"acct{n}@company.com", password=f"secret{n}", is_active=active
            )
            db_session.add(account)
            db_session.commit()
            accounts.append(account)
        return accounts
    return _make


@pytest.fixture
def make_user(db_session):
    def _make(username: str = "alice", role: models.UserRole = models.UserRole.USER):
        user = models.User(
            username=username, hashed_password="x", name=username.title(),
            department="IT", email=f"{username}@company.com", role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def make_booking(db_session):
    def _make(user_id: int, account_id: int | None, meeting_date: datetime.date, start: str, end: str,
              status: models.BookingStatus = models.BookingStatus.CONFIRMED):
        booking = models.Booking(
            user_id=user_id,
            zoom_account_id=account_id,
            meeting_title="Weekly sync",
            meeting_date=meeting_date,
            start_time=datetime.time.fromisoformat(start),
            end_time=datetime.time.fromisoformat(end),
            participants=5,
            purpose="Team meeting",
            status=status,
        )
        db_session.add(booking)
        db_session.commit()
        return booking
    return _make


# --- Mocking Startup Work ---
@pytest.fixture(scope="function", autouse=True)
def mock_background_tasks(mocker):
    """
    Mocks the startup work (table creation, pool seeding and the sweep scheduler).
    """
    mocker.patch("zoom_booking.main.init_db")
    mocker.patch("zoom_booking.main.run_booking_scheduler", new_callable=AsyncMock)


@pytest.fixture(scope="function")
def presence_channel():
    return PresenceChannel()


# --- API Test Client Fixture ---
@pytest.fixture(scope="function")
def client(db_session, presence_channel):
    def override_get_db():
        # Left open so the test can keep using the objects it created
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_presence] = lambda: presence_channel

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
