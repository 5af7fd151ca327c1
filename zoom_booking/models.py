from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, ForeignKey, Index, Integer, String, Time, TIMESTAMP,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
import datetime

from .database import Base


# --- ENUM for User Roles ---
class UserRole(PyEnum):
    USER = "user"
    ADMIN = "admin"


# --- ENUM for the booking lifecycle ---
class BookingStatus(PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class User(Base):
    __tablename__ = "zoom_users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    department = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False)

    sessions = relationship("UserSession", back_populates="user")
    bookings = relationship("Booking", back_populates="user")


class UserSession(Base):
    """
    Server-side record of a login. A session is live while revoked_at is NULL.
    """
    __tablename__ = "user_sessions"

    id = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("zoom_users.id"), index=True, nullable=False)
    created_at = Column(TIMESTAMP, default=datetime.datetime.now, nullable=False)
    revoked_at = Column(TIMESTAMP, nullable=True)

    user = relationship("User", back_populates="sessions")


class ZoomAccount(Base):
    __tablename__ = "zoom_accounts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)

    # Shared credentials handed to the requester once a booking is confirmed
    username = Column(String(255), nullable=False)
    password = Column(String(255), nullable=False)

    # Inactive accounts are never allocated, but they are kept for history
    is_active = Column(Boolean, default=True, nullable=False)

    bookings = relationship("Booking", back_populates="zoom_account")


class Booking(Base):
    __tablename__ = "zoom_bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("zoom_users.id"), index=True, nullable=False)
    zoom_account_id = Column(Integer, ForeignKey("zoom_accounts.id"), index=True, nullable=True)

    meeting_title = Column(String(255), nullable=False)
    meeting_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    department = Column(String(255), nullable=False, default="")
    participants = Column(Integer, nullable=False)
    purpose = Column(String(255), nullable=False)
    needs_recording = Column(Boolean, default=False, nullable=False)
    needs_breakout_rooms = Column(Boolean, default=False, nullable=False)
    needs_polls = Column(Boolean, default=False, nullable=False)

    status = Column(SQLEnum(BookingStatus), default=BookingStatus.CONFIRMED, nullable=False)
    created_at = Column(TIMESTAMP, default=datetime.datetime.now)

    user = relationship("User", back_populates="bookings")
    zoom_account = relationship("ZoomAccount", back_populates="bookings")

    __table_args__ = (
        # The allocator reads one day's confirmed bookings per request
        Index("ix_zoom_bookings_date_status", "meeting_date", "status"),
        CheckConstraint(
            "status NOT IN ('CONFIRMED', 'COMPLETED') OR zoom_account_id IS NOT NULL",
            name="ck_zoom_bookings_assigned_account",
        ),
    )
