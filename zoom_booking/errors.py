from enum import Enum


class ErrorKind(str, Enum):
    INVALID_WINDOW = "invalid_window"
    PAST_SCHEDULE = "past_schedule"
    NO_CAPACITY = "no_capacity"
    NOT_OWNER = "not_owner"
    INVALID_STATE = "invalid_state"
    NOT_FOUND = "not_found"


DEFAULT_MESSAGES = {
    ErrorKind.INVALID_WINDOW: "Meeting end time must be after start time on the same day.",
    ErrorKind.PAST_SCHEDULE: "Meeting must start in the future.",
    ErrorKind.NO_CAPACITY: "No Zoom accounts are available for this time slot. Please try another time.",
    ErrorKind.NOT_OWNER: "Only the requester can change this booking.",
    ErrorKind.INVALID_STATE: "Only confirmed bookings can be cancelled.",
    ErrorKind.NOT_FOUND: "Booking not found.",
}


class BookingError(Exception):
    """
    A booking request or change that was rejected. Nothing is persisted
    when this is raised, so the caller may safely retry.
    """

    def __init__(self, kind: ErrorKind, message: str | None = None):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES[kind]
        super().__init__(self.message)
