"""Appointment status lifecycle."""

from enum import Enum

from clinic_scheduling.scheduling.errors import InvalidStatus, InvalidTransition


class AppointmentStatus(str, Enum):
    SCHEDULED = 'scheduled'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'


INITIAL_STATUS = AppointmentStatus.SCHEDULED

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    }),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}

# Completed appointments keep blocking their interval; only cancellation frees it.
NON_BLOCKING_STATUSES = frozenset({AppointmentStatus.CANCELLED})


def parse_status(value: str | AppointmentStatus) -> AppointmentStatus:
    if isinstance(value, AppointmentStatus):
        return value

    normalized = (value or '').strip().lower()
    try:
        return AppointmentStatus(normalized)
    except ValueError as exc:
        raise InvalidStatus(f'Unknown appointment status: {value!r}.') from exc


def is_terminal(status: AppointmentStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: str | AppointmentStatus, target: str | AppointmentStatus) -> AppointmentStatus:
    """Validate ``current -> target`` and return the parsed target status.

    Raises InvalidStatus for unknown values and InvalidTransition for any pair
    outside the transition table, including repeats of the current status.
    """
    current_status = parse_status(current)
    target_status = parse_status(target)

    if not can_transition(current_status, target_status):
        if is_terminal(current_status):
            raise InvalidTransition(
                f'Appointment is {current_status.value} and can no longer change status.'
            )
        raise InvalidTransition(
            f'Cannot change appointment status from {current_status.value} to {target_status.value}.'
        )

    return target_status


def ensure_initial_status(requested: str | AppointmentStatus | None) -> AppointmentStatus:
    if requested is None:
        return INITIAL_STATUS

    requested_status = parse_status(requested)
    if requested_status is not INITIAL_STATUS:
        raise InvalidStatus(f'New appointments must start as {INITIAL_STATUS.value}.')

    return requested_status


def blocks_slot(status: str | AppointmentStatus) -> bool:
    return parse_status(status) not in NON_BLOCKING_STATUSES
