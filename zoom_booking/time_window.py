import datetime

from .errors import BookingError, ErrorKind


def to_minutes(value: datetime.time | str) -> int:
    """
    Converts a wall-clock time ("HH:MM" or datetime.time) to minutes since midnight.
    """
    if isinstance(value, datetime.time):
        return value.hour * 60 + value.minute

    hours, sep, minutes = value.partition(":")
    if not sep or not hours.isdigit() or not minutes[:2].isdigit():
        raise ValueError(f"Invalid time value: {value!r}")
    hour, minute = int(hours), int(minutes[:2])
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time value: {value!r}")
    return hour * 60 + minute


def future_check(meeting_date: datetime.date, start_time: datetime.time, now: datetime.datetime) -> bool:
    """
    True only if the meeting starts strictly after `now`.
    """
    start = datetime.datetime.combine(meeting_date, start_time)
    return start > now


def overlaps(a_start, a_end, b_start, b_end, buffer_minutes: int = 0) -> bool:
    """
    Checks whether window A collides with window B widened by `buffer_minutes`
    on both sides.

    A touches B without overlapping when it ends exactly where the widened B
    starts, or starts exactly where it ends.
    """
    a_s, a_e = to_minutes(a_start), to_minutes(a_end)
    b_s = to_minutes(b_start) - buffer_minutes
    b_e = to_minutes(b_end) + buffer_minutes

    return (
        (b_s <= a_s < b_e)
        or (b_s < a_e <= b_e)
        or (a_s <= b_s and a_e >= b_e)
    )


def validate_window(start_time, end_time):
    # Cross-midnight windows end up with end <= start here
    if to_minutes(end_time) <= to_minutes(start_time):
        raise BookingError(ErrorKind.INVALID_WINDOW)
