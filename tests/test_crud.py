# Import necessary modules
from datetime import date, timedelta
from sqlalchemy.orm import Session
from unittest.mock import MagicMock

# Import the functions to test and the models
from zoom_booking import crud, models, schemas


# --- Account pool ---

def test_seed_account_pool_fills_empty_pool(db_session: Session):
    created = crud.seed_account_pool(db_session)

    assert created == 20
    accounts = crud.list_active_accounts(db_session)
    assert len(accounts) == 20
    assert accounts[0].name == "Zoom Account 1"
    assert accounts[0].username == "zoom1@company.com"
    assert accounts[0].password == "SecurePassword1!"
    assert accounts[-1].username == "zoom20@company.com"


def test_seed_account_pool_is_idempotent(db_session: Session):
    crud.seed_account_pool(db_session)
    assert crud.seed_account_pool(db_session) == 0
    assert db_session.query(models.ZoomAccount).count() == 20


def test_seed_account_pool_skips_when_only_inactive_accounts_exist(db_session: Session, make_accounts):
    make_accounts(1, active=False)

    assert crud.seed_account_pool(db_session) == 0
    assert db_session.query(models.ZoomAccount).count() == 1


def test_seed_account_pool_does_not_query_further_when_populated():
    """An existing pool short-circuits before anything is added."""
    mock_db = MagicMock(spec=Session)
    mock_db.query.return_value.count.return_value = 3

    assert crud.seed_account_pool(mock_db) == 0
    mock_db.add.assert_not_called()
    mock_db.commit.assert_not_called()


def test_list_active_accounts_is_ordered_and_excludes_inactive(db_session: Session, make_accounts):
    first, second, third = make_accounts(3)
    crud.update_account(db_session, second.id, schemas.AccountUpdate(is_active=False))

    ids = [a.id for a in crud.list_active_accounts(db_session)]
    assert ids == [first.id, third.id]
    # Stable across calls
    assert ids == [a.id for a in crud.list_active_accounts(db_session, lock=True)]


def test_update_account_only_changes_given_fields(db_session: Session, make_accounts):
    account = make_accounts(1)[0]

    updated = crud.update_account(db_session, account.id, schemas.AccountUpdate(name="Renamed"))

    assert updated.name == "Renamed"
    assert updated.username == "acct1@company.com"
    assert updated.is_active is True
    assert crud.update_account(db_session, 999, schemas.AccountUpdate(name="x")) is None


# --- Bookings ---

def test_confirmed_bookings_on_date_excludes_other_statuses_and_days(db_session: Session, make_accounts, make_booking):
    account = make_accounts(1)[0]
    day = date.today() + timedelta(days=3)
    kept = make_booking(1, account.id, day, "09:00", "10:00")
    make_booking(1, None, day, "11:00", "12:00", status=models.BookingStatus.CANCELLED)
    make_booking(1, account.id, day, "13:00", "14:00", status=models.BookingStatus.COMPLETED)
    make_booking(1, account.id, day + timedelta(days=1), "09:00", "10:00")

    result = crud.get_confirmed_bookings_on_date(db_session, day)

    assert [b.id for b in result] == [kept.id]


def test_complete_bookings_skips_rows_no_longer_confirmed(db_session: Session, make_accounts, make_booking):
    account = make_accounts(1)[0]
    day = date.today() - timedelta(days=1)
    confirmed = make_booking(1, account.id, day, "09:00", "10:00")
    cancelled = make_booking(1, account.id, day, "11:00", "12:00", status=models.BookingStatus.CANCELLED)

    changed = crud.complete_bookings(db_session, [confirmed.id, cancelled.id])
    db_session.commit()

    assert changed == 1
    assert crud.get_booking(db_session, confirmed.id).status == models.BookingStatus.COMPLETED
    assert crud.get_booking(db_session, cancelled.id).status == models.BookingStatus.CANCELLED
    assert crud.complete_bookings(db_session, []) == 0


# --- Sessions ---

def test_create_session_revokes_previous_sessions(db_session: Session, make_user):
    user = make_user()
    first, replaced = crud.create_session(db_session, user.id, "session-one")
    assert replaced == []

    second, replaced = crud.create_session(db_session, user.id, "session-two")

    assert replaced == ["session-one"]
    assert crud.get_session(db_session, "session-one").revoked_at is not None
    assert crud.get_session(db_session, "session-two").revoked_at is None


def test_revoke_session(db_session: Session, make_user):
    user = make_user()
    crud.create_session(db_session, user.id, "only")

    assert crud.revoke_session(db_session, "only") is True
    assert crud.revoke_session(db_session, "only") is False
    assert crud.revoke_session(db_session, "missing") is False


def test_first_user_is_admin(db_session: Session):
    payload = dict(password="password123", name="N", department="IT", email="n@company.com")
    first = crud.create_user(db_session, schemas.UserCreate(username="first", **payload), hashed_password="h")
    second = crud.create_user(db_session, schemas.UserCreate(username="second", **payload), hashed_password="h")

    assert first.role == models.UserRole.ADMIN
    assert second.role == models.UserRole.USER


def test_explicit_role_overrides_first_user_rule(db_session: Session):
    payload = dict(password="password123", name="N", department="IT", email="n@company.com")
    first = crud.create_user(db_session, schemas.UserCreate(username="first", **payload), hashed_password="h",
                             role=models.UserRole.USER)

    assert first.role == models.UserRole.USER


def test_delete_user_removes_sessions_and_bookings(db_session: Session, make_user, make_accounts, make_booking):
    account = make_accounts(1)[0]
    keep, gone = make_user("keep"), make_user("gone")
    keep_id, gone_id = keep.id, gone.id
    crud.create_session(db_session, gone_id, "gone-session")
    make_booking(gone_id, account.id, date.today() + timedelta(days=1), "09:00", "10:00")
    kept_booking = make_booking(keep_id, account.id, date.today() + timedelta(days=1), "11:00", "12:00")
    kept_booking_id = kept_booking.id

    assert crud.delete_user(db_session, gone_id) == ["gone-session"]

    assert crud.get_user(db_session, gone_id) is None
    assert crud.get_session(db_session, "gone-session") is None
    assert [b.id for b in crud.get_bookings(db_session)] == [kept_booking_id]
    assert crud.delete_user(db_session, gone_id) is None
