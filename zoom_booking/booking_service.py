import datetime
import logging
import threading
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import allocation, crud, models, schemas
from .errors import BookingError, ErrorKind
from .time_window import future_check, validate_window

logger = logging.getLogger("booking_service")


class DateLockRegistry:
    """
    One lock per meeting date. Holding it spans the allocation reads, the
    decision and the insert of the confirmed booking.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[datetime.date, threading.Lock] = {}

    @contextmanager
    def hold(self, meeting_date: datetime.date):
        with self._guard:
            lock = self._locks.setdefault(meeting_date, threading.Lock())
        with lock:
            yield

    def prune(self, before: datetime.date) -> None:
        # Past dates can no longer be booked
        with self._guard:
            for day in [d for d in self._locks if d < before]:
                del self._locks[day]

    def __len__(self):
        return len(self._locks)


date_locks = DateLockRegistry()


def request_booking(
        db: Session,
        requester_id: int,
        request: schemas.BookingCreate,
        now: Optional[datetime.datetime] = None,
) -> tuple[models.Booking, models.ZoomAccount]:
    """
    Validates the window, allocates an account and stores the booking as confirmed.

    Raises BookingError on rejection; no row is written in that case.
    """
    validate_window(request.start_time, request.end_time)

    now = now or datetime.datetime.now()
    if not future_check(request.meeting_date, request.start_time, now):
        raise BookingError(ErrorKind.PAST_SCHEDULE)

    with date_locks.hold(request.meeting_date):
        # Ends the transaction opened by earlier reads on this session so the
        # booking read sees every commit made before the lock was taken
        db.rollback()
        try:
            account = allocation.allocate(db, request.meeting_date, request.start_time, request.end_time)
            if account is None:
                # Releases the pool rows read FOR UPDATE
                db.rollback()
                logger.info(f"No capacity for user {requester_id} on {request.meeting_date}.")
                raise BookingError(ErrorKind.NO_CAPACITY)

            db_booking = crud.create_confirmed_booking(db, request, requester_id, account.id)
        except SQLAlchemyError as e:
            logger.error(f"Storage error while booking for user {requester_id}: {e}")
            db.rollback()
            raise

    logger.info(f"Booking {db_booking.id} confirmed for user {requester_id} on account {account.id}.")
    return db_booking, account


def cancel_booking(db: Session, booking_id: int, requester_id: int) -> models.Booking:
    # Bookings already over become completed first and can no longer be cancelled
    sweep_completed(db)

    booking = crud.get_booking(db, booking_id)
    if booking is None:
        raise BookingError(ErrorKind.NOT_FOUND)
    if booking.user_id != requester_id:
        raise BookingError(ErrorKind.NOT_OWNER)
    if booking.status != models.BookingStatus.CONFIRMED:
        raise BookingError(ErrorKind.INVALID_STATE)

    booking = crud.update_booking_status(db, booking, models.BookingStatus.CANCELLED)
    logger.info(f"Booking {booking_id} cancelled by user {requester_id}.")
    return booking


def sweep_completed(db: Session, now: Optional[datetime.datetime] = None) -> int:
    """
    Moves every confirmed booking whose end has passed to completed.

    Safe to repeat or to run concurrently: the update only touches rows
    that are still confirmed.
    """
    now = now or datetime.datetime.now()

    candidates = crud.get_confirmed_bookings_until(db, now.date())
    finished = [
        b.id for b in candidates
        if datetime.datetime.combine(b.meeting_date, b.end_time) < now
    ]
    if not finished:
        db.rollback()
        return 0

    completed = crud.complete_bookings(db, finished)
    db.commit()
    date_locks.prune(now.date())

    logger.info(f"Sweep marked {completed} bookings as completed.")
    return completed


def get_booking_for(db: Session, booking_id: int, requester_id: int) -> models.Booking:
    sweep_completed(db)
    booking = crud.get_booking(db, booking_id)
    if booking is None:
        raise BookingError(ErrorKind.NOT_FOUND)
    if booking.user_id != requester_id:
        raise BookingError(ErrorKind.NOT_OWNER)
    return booking


def list_bookings(db: Session, requester_id: Optional[int] = None, skip: int = 0, limit: int = 100):
    """
    Bookings of one requester, or of everyone when requester_id is None.
    """
    sweep_completed(db)
    if requester_id is None:
        return crud.get_bookings(db, skip=skip, limit=limit)
    return crud.get_bookings_by_user(db, user_id=requester_id, skip=skip, limit=limit)
