import datetime
import logging
from sqlalchemy.orm import Session
from . import models, schemas

logger = logging.getLogger("booking_service")


# --- Users & sessions ---

def get_user(db: Session, user_id: int):
    return db.query(models.User).filter(models.User.id == user_id).first()

def get_users(db: Session, skip: int = 0, limit: int = 100):
    return db.query(models.User).order_by(models.User.id).offset(skip).limit(limit).all()

def get_user_by_username(db: Session, username: str):
    return db.query(models.User).filter(models.User.username == username).first()

def create_user(db: Session, user: schemas.UserCreate, hashed_password: str, role: models.UserRole | None = None):
    # Unless told otherwise, the first user registered is an admin
    if role is None:
        role = models.UserRole.ADMIN if db.query(models.User).count() == 0 else models.UserRole.USER
    db_user = models.User(
        **user.model_dump(exclude={"password"}),
        hashed_password=hashed_password,
        role=role,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user

def delete_user(db: Session, user_id: int) -> list[str] | None:
    """
    Deletes a user together with their sessions and bookings. Confirmed
    bookings go with them, so their accounts are free again.

    Returns the ids of the deleted sessions, or None if there is no such user.
    """
    if get_user(db, user_id) is None:
        return None
    session_ids = [sid for (sid,) in db.query(models.UserSession.id).filter(models.UserSession.user_id == user_id)]
    db.query(models.UserSession).filter(models.UserSession.user_id == user_id).delete()
    db.query(models.Booking).filter(models.Booking.user_id == user_id).delete()
    db.query(models.User).filter(models.User.id == user_id).delete()
    db.commit()
    return session_ids

def get_session(db: Session, session_id: str):
    return db.query(models.UserSession).filter(models.UserSession.id == session_id).first()

def create_session(db: Session, user_id: int, session_id: str) -> tuple[models.UserSession, list[str]]:
    """
    Starts a new login for the user and revokes every other live session
    in the same transaction.

    Returns the new session and the ids of the sessions it replaced.
    """
    now = datetime.datetime.now()
    previous = db.query(models.UserSession).filter(
        models.UserSession.user_id == user_id,
        models.UserSession.revoked_at.is_(None),
    ).all()
    for old in previous:
        old.revoked_at = now

    db_session = models.UserSession(id=session_id, user_id=user_id, created_at=now)
    db.add(db_session)
    db.commit()
    db.refresh(db_session)
    return db_session, [old.id for old in previous]

def revoke_session(db: Session, session_id: str) -> bool:
    db_session = get_session(db, session_id)
    if db_session is None or db_session.revoked_at is not None:
        return False
    db_session.revoked_at = datetime.datetime.now()
    db.commit()
    return True


# --- Account pool ---

def get_account(db: Session, account_id: int):
    return db.query(models.ZoomAccount).filter(models.ZoomAccount.id == account_id).first()

def get_accounts(db: Session, skip: int = 0, limit: int = 100):
    return db.query(models.ZoomAccount).order_by(models.ZoomAccount.id).offset(skip).limit(limit).all()

def list_active_accounts(db: Session, lock: bool = False) -> list[models.ZoomAccount]:
    """
    Active accounts in ascending id order, the order the allocator prefers them in.

    With lock=True the rows stay locked (SELECT ... FOR UPDATE) until the
    surrounding transaction ends.
    """
    query = db.query(models.ZoomAccount).filter(
        models.ZoomAccount.is_active.is_(True)
    ).order_by(models.ZoomAccount.id)
    if lock:
        query = query.with_for_update()
    return query.all()

def create_account(db: Session, account: schemas.AccountCreate):
    db_account = models.ZoomAccount(**account.model_dump())
    db.add(db_account)
    db.commit()
    db.refresh(db_account)
    return db_account

def update_account(db: Session, account_id: int, changes: schemas.AccountUpdate):
    db_account = get_account(db, account_id)
    if db_account is None:
        return None
    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(db_account, field, value)
    db.commit()
    db.refresh(db_account)
    return db_account

def seed_account_pool(db: Session, size: int = 20) -> int:
    """
    Fills an empty pool with placeholder accounts. Does nothing if any
    account already exists, active or not.
    """
    if db.query(models.ZoomAccount).count() > 0:
        return 0

    for i in range(1, size + 1):
        db.add(models.ZoomAccount(
            name=f"Zoom Account {i}",
            username=f"zoom{i}@company.com",
            password=f"SecurePassword{i}!",
            is_active=True,
        ))
    db.commit()
    logger.info(f"Seeded account pool with {size} Zoom accounts.")
    return size


# --- Bookings ---

def get_booking(db: Session, booking_id: int):
    return db.query(models.Booking).filter(models.Booking.id == booking_id).first()

def get_bookings_by_user(db: Session, user_id: int, skip: int = 0, limit: int = 100):
    return db.query(models.Booking).filter(
        models.Booking.user_id == user_id
    ).order_by(models.Booking.id).offset(skip).limit(limit).all()

def get_bookings(db: Session, skip: int = 0, limit: int = 100):
    return db.query(models.Booking).order_by(models.Booking.id).offset(skip).limit(limit).all()

def get_confirmed_bookings_on_date(db: Session, meeting_date: datetime.date) -> list[models.Booking]:
    # Only confirmed rows hold an account; cancelled ones are excluded on purpose
    return db.query(models.Booking).filter(
        models.Booking.meeting_date == meeting_date,
        models.Booking.status == models.BookingStatus.CONFIRMED,
        models.Booking.status != models.BookingStatus.CANCELLED,
    ).order_by(models.Booking.id).all()

def get_confirmed_bookings_until(db: Session, last_date: datetime.date) -> list[models.Booking]:
    """
    Confirmed bookings on or before `last_date`, the candidates for completion.
    """
    return db.query(models.Booking).filter(
        models.Booking.status == models.BookingStatus.CONFIRMED,
        models.Booking.meeting_date <= last_date,
    ).all()

def create_confirmed_booking(db: Session, booking: schemas.BookingCreate, user_id: int, zoom_account_id: int):
    """
    Inserts the booking already confirmed on its account, in one commit.
    """
    db_booking = models.Booking(
        **booking.model_dump(),
        user_id=user_id,
        zoom_account_id=zoom_account_id,
        status=models.BookingStatus.CONFIRMED,
    )
    db.add(db_booking)
    db.commit()
    db.refresh(db_booking)
    return db_booking

def update_booking_status(db: Session, booking: models.Booking, status: models.BookingStatus):
    booking.status = status
    db.commit()
    db.refresh(booking)
    return booking

def complete_bookings(db: Session, booking_ids: list[int]) -> int:
    """
    Marks the given bookings completed, skipping any that are no longer
    confirmed. Note: Does NOT commit.
    """
    if not booking_ids:
        return 0
    return db.query(models.Booking).filter(
        models.Booking.id.in_(booking_ids),
        models.Booking.status == models.BookingStatus.CONFIRMED,
    ).update({models.Booking.status: models.BookingStatus.COMPLETED}, synchronize_session=False)
