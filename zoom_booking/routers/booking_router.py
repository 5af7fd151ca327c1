import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Annotated

from .. import schemas, models, booking_service
from ..auth import get_current_user, get_current_admin_user, get_key_by_user_id_or_ip
from ..config import settings
from ..database import get_db
from ..errors import BookingError, ErrorKind

from fastapi_limiter.depends import RateLimiter

logger = logging.getLogger("booking_service")

router = APIRouter(prefix="/bookings", tags=["Bookings"])

ERROR_STATUS_CODES = {
    ErrorKind.INVALID_WINDOW: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PAST_SCHEDULE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NO_CAPACITY: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_OWNER: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}

_create_limiter = RateLimiter(times=30, minutes=1, identifier=get_key_by_user_id_or_ip)
_read_limiter = RateLimiter(times=60, minutes=1, identifier=get_key_by_user_id_or_ip)


async def create_rate_limit(request: Request, response: Response):
    if settings.RATE_LIMIT_ENABLED:
        await _create_limiter(request, response)


async def read_rate_limit(request: Request, response: Response):
    if settings.RATE_LIMIT_ENABLED:
        await _read_limiter(request, response)


def to_http_error(exc: BookingError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS_CODES[exc.kind],
        detail={"reason": exc.kind.value, "message": exc.message},
    )


@router.post("/", response_model=schemas.BookingConfirmation, status_code=status.HTTP_201_CREATED)
def create_booking(
        booking: schemas.BookingCreate,
        user: Annotated[models.User, Depends(get_current_user)],
        db: Session = Depends(get_db),
        limit: None = Depends(create_rate_limit)
):
    """
    Book a Zoom account for the authenticated user.

    Runs in the threadpool: allocation waits on the per-date lock.
    """
    try:
        db_booking, account = booking_service.request_booking(db, requester_id=user.id, request=booking)
    except BookingError as e:
        raise to_http_error(e)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while creating the booking. Please retry."
        )

    return {"booking": db_booking, "zoom_account": account}


@router.get("/", response_model=List[schemas.BookingWithAccount])
def read_user_bookings(
        user: Annotated[models.User, Depends(get_current_user)],
        db: Session = Depends(get_db),
        skip: int = 0,
        limit: int = 100,
        limit2: None = Depends(read_rate_limit)
):
    """
    Get all bookings for the authenticated user.
    """
    return booking_service.list_bookings(db, requester_id=user.id, skip=skip, limit=limit)


@router.get("/all", response_model=List[schemas.BookingWithAccount])
def read_all_bookings(
        admin: Annotated[models.User, Depends(get_current_admin_user)],
        db: Session = Depends(get_db),
        skip: int = 0,
        limit: int = 100,
):
    return booking_service.list_bookings(db, requester_id=None, skip=skip, limit=limit)


@router.get("/{booking_id}", response_model=schemas.BookingWithAccount)
def read_booking(
        booking_id: int,
        user: Annotated[models.User, Depends(get_current_user)],
        db: Session = Depends(get_db),
):
    try:
        return booking_service.get_booking_for(db, booking_id, requester_id=user.id)
    except BookingError as e:
        raise to_http_error(e)


@router.delete("/{booking_id}", response_model=schemas.BookingRead)
def cancel_booking(
        booking_id: int,
        user: Annotated[models.User, Depends(get_current_user)],
        db: Session = Depends(get_db),
):
    """
    Cancel one of the authenticated user's confirmed bookings.
    """
    try:
        return booking_service.cancel_booking(db, booking_id, requester_id=user.id)
    except BookingError as e:
        raise to_http_error(e)
