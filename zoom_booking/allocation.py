"""
Picks a Zoom account for a requested meeting window.

Accounts nobody has booked that day always win, so each account changes
hands as rarely as possible. Only when every active account already has a
booking on the date is an account reused, and then only if the new window
keeps a buffer (60 minutes by default) clear of each of its existing
bookings for credential rotation.
"""
import datetime
import logging
from collections import defaultdict
from typing import Iterable, Optional, Sequence

from sqlalchemy.orm import Session

from . import crud, models
from .config import settings
from .time_window import overlaps

logger = logging.getLogger("booking_service")


def choose_account(
        active_accounts: Sequence[models.ZoomAccount],
        confirmed_bookings: Iterable[models.Booking],
        start_time: datetime.time,
        end_time: datetime.time,
        buffer_minutes: int = 60,
) -> Optional[models.ZoomAccount]:
    """
    The allocation decision over rows that were already fetched.

    `active_accounts` must be in the preferred (ascending id) order and
    `confirmed_bookings` must be the confirmed bookings of the requested date.
    """
    bookings_by_account = defaultdict(list)
    for booking in confirmed_bookings:
        if booking.zoom_account_id is not None:
            bookings_by_account[booking.zoom_account_id].append(booking)

    # Phase 1: an account untouched for the day
    for account in active_accounts:
        if account.id not in bookings_by_account:
            return account

    # Phase 2: reuse an account whose bookings all clear the buffer
    for account in active_accounts:
        conflict = any(
            overlaps(start_time, end_time, b.start_time, b.end_time, buffer_minutes=buffer_minutes)
            for b in bookings_by_account[account.id]
        )
        if not conflict:
            return account

    return None


def allocate(
        db: Session,
        meeting_date: datetime.date,
        start_time: datetime.time,
        end_time: datetime.time,
        buffer_minutes: Optional[int] = None,
) -> Optional[models.ZoomAccount]:
    """
    Reads the pool and the day's confirmed bookings, then decides.

    Must run inside the caller's critical section for `meeting_date`; the
    active account rows are read FOR UPDATE so they stay locked until the
    caller commits or rolls back.
    """
    if buffer_minutes is None:
        buffer_minutes = settings.REUSE_BUFFER_MINUTES

    active_accounts = crud.list_active_accounts(db, lock=True)
    confirmed_bookings = crud.get_confirmed_bookings_on_date(db, meeting_date)

    account = choose_account(active_accounts, confirmed_bookings, start_time, end_time, buffer_minutes)

    logger.info(
        f"Allocation for {meeting_date} {start_time:%H:%M}-{end_time:%H:%M}: "
        f"{len(active_accounts)} active accounts, {len(confirmed_bookings)} confirmed bookings, "
        f"chose {account.id if account else None}"
    )
    return account
