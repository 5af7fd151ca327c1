from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional
import datetime

from .models import BookingStatus, UserRole


# --- Users & sessions ---

class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=1, max_length=255)
    department: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)

class UserRead(BaseModel):
    id: int
    username: str
    name: str
    department: str
    email: str
    role: UserRole

    model_config = ConfigDict(from_attributes=True)

class AdminUserCreate(UserCreate):
    role: UserRole = UserRole.USER

class LoginRequest(BaseModel):
    username: str
    password: str

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    session_id: str


# --- Zoom accounts ---

class AccountBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    username: str = Field(min_length=1, max_length=255)
    is_active: bool = True

class AccountCreate(AccountBase):
    password: str = Field(min_length=1, max_length=255)

class AccountUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    username: Optional[str] = Field(default=None, min_length=1, max_length=255)
    password: Optional[str] = Field(default=None, min_length=1, max_length=255)
    is_active: Optional[bool] = None

class AccountRead(AccountBase):
    id: int

    model_config = ConfigDict(from_attributes=True)

class AccountCredentials(AccountRead):
    # Only returned to the requester of a confirmed booking, or to admins
    password: str


# --- Bookings ---

class BookingBase(BaseModel):
    meeting_title: str = Field(min_length=1, max_length=255)
    meeting_date: datetime.date
    start_time: datetime.time
    end_time: datetime.time
    participants: int = Field(ge=1)
    purpose: str = Field(min_length=1, max_length=255)
    department: str = Field(default="", max_length=255)
    needs_recording: bool = False
    needs_breakout_rooms: bool = False
    needs_polls: bool = False

    @field_validator("start_time", "end_time")
    @classmethod
    def naive_time(cls, value: datetime.time) -> datetime.time:
        # Local wall-clock times only
        if value.tzinfo is not None:
            raise ValueError("time must not carry a UTC offset")
        return value

class BookingCreate(BookingBase):
    # user_id comes from the session token
    pass

class BookingRead(BookingBase):
    id: int
    user_id: int
    zoom_account_id: Optional[int]
    status: BookingStatus
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)

class BookingWithAccount(BookingRead):
    zoom_account: Optional[AccountCredentials] = None

class BookingConfirmation(BaseModel):
    booking: BookingRead
    zoom_account: AccountCredentials


# --- Presence events ---

class ForcedLogout(BaseModel):
    type: Literal["force_logout"] = "force_logout"
    target_principal_id: int
    excluded_session_id: str
    reason: str
    message: str = "Your account was signed in from another location."

class Subscribed(BaseModel):
    # First frame on a presence socket, sent once it is listening
    type: Literal["subscribed"] = "subscribed"
    session_id: str
