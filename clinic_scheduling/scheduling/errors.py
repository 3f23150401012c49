"""Errors raised by the scheduling core."""


class SchedulingError(Exception):
    """Base exception for scheduling operations."""


class NotFound(SchedulingError):
    """Raised when a dentist, template or appointment cannot be located."""


class InvalidInterval(SchedulingError):
    """Raised for malformed times, end before start, or non-positive durations."""


class InvalidStatus(SchedulingError):
    """Raised when a status value is not one the booking lifecycle knows."""


class InvalidTransition(SchedulingError):
    """Raised when a status change is not allowed from the current status."""


class SlotUnavailable(SchedulingError):
    """Raised when a requested interval conflicts with a booking or falls outside open hours."""


class ConcurrentBookingConflict(SchedulingError):
    """Raised when another booking for the same dentist and day holds the lock too long.

    Callers should refresh the available slots and retry.
    """
