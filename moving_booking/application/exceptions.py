class BookingError(RuntimeError):
    """Base class for booking coordination errors."""
    pass


class SlotUnavailableError(BookingError):
    """Raised when the requested date/time has no remaining crew capacity."""

    def __init__(self, date: str, time: str, reason: str = "no capacity") -> None:
        super().__init__(f"Slot {date} {time} is unavailable: {reason}")
        self.date = date
        self.time = time
        self.reason = reason


class DuplicateBookingError(BookingError):
    """Raised when a booking id already exists in the store."""

    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking {booking_id} already exists")
        self.booking_id = booking_id


class NotFoundError(BookingError):
    """Raised when no appointment matches the given booking id."""

    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class InvalidStatusTransitionError(BookingError):
    """Raised when a status change would move backwards or leave a terminal state."""

    def __init__(self, booking_id: str, current: str, target: str) -> None:
        super().__init__(f"Booking {booking_id} cannot move from {current} to {target}")
        self.booking_id = booking_id
        self.current = current
        self.target = target


class StoreCorruptedError(BookingError):
    """Raised when the durable appointment collection cannot be parsed."""
    pass


class SyncFailure(BookingError):
    """Raised by calendar providers when a call fails or times out."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class NotificationFailure(BookingError):
    """Raised when an email could not be handed to the transport."""
    pass
