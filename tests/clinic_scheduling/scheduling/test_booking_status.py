import pytest

from clinic_scheduling.scheduling.booking_status import (
    AppointmentStatus,
    blocks_slot,
    ensure_initial_status,
    ensure_transition,
    parse_status,
)
from clinic_scheduling.scheduling.errors import InvalidStatus, InvalidTransition


@pytest.mark.parametrize(
    ('current', 'target'),
    [
        ('scheduled', 'confirmed'),
        ('scheduled', 'cancelled'),
        ('scheduled', 'completed'),
        ('confirmed', 'cancelled'),
        ('confirmed', 'completed'),
    ],
)
def test_ensure_transition_allows_listed_moves(current: str, target: str) -> None:
    assert ensure_transition(current, target) is AppointmentStatus(target)


@pytest.mark.parametrize(
    ('current', 'target'),
    [
        ('cancelled', 'confirmed'),
        ('cancelled', 'scheduled'),
        ('completed', 'cancelled'),
        ('confirmed', 'scheduled'),
        ('scheduled', 'scheduled'),
    ],
)
def test_ensure_transition_rejects_unlisted_moves(current: str, target: str) -> None:
    with pytest.raises(InvalidTransition):
        ensure_transition(current, target)


def test_ensure_transition_rejects_unknown_status() -> None:
    with pytest.raises(InvalidStatus):
        ensure_transition('scheduled', 'no-show')


def test_parse_status_normalizes_case_and_whitespace() -> None:
    assert parse_status(' Confirmed ') is AppointmentStatus.CONFIRMED


def test_ensure_initial_status_defaults_to_scheduled() -> None:
    assert ensure_initial_status(None) is AppointmentStatus.SCHEDULED
    assert ensure_initial_status('scheduled') is AppointmentStatus.SCHEDULED


def test_ensure_initial_status_rejects_other_statuses() -> None:
    with pytest.raises(InvalidStatus):
        ensure_initial_status('confirmed')


def test_only_cancelled_appointments_stop_blocking() -> None:
    assert not blocks_slot('cancelled')
    assert blocks_slot('completed')
    assert blocks_slot(AppointmentStatus.SCHEDULED)
