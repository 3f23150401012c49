from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Iterator

from clinic_scheduling.scheduling.booking_status import blocks_slot
from clinic_scheduling.scheduling.errors import InvalidInterval


Interval = tuple[datetime, datetime]


def slot_length(duration_minutes: int) -> timedelta:
    if duration_minutes is None or duration_minutes <= 0:
        raise InvalidInterval('Slot duration must be a positive number of minutes.')
    return timedelta(minutes=duration_minutes)


def iterate_slot_starts(window_start: datetime, window_end: datetime, duration: timedelta) -> Iterator[datetime]:
    current = window_start
    while current + duration <= window_end:
        yield current
        current += duration


@dataclass(frozen=True)
class SlotWindow:
    """Candidate slot starts inside ``[start, end)``.

    Iterating the window always starts over from ``start``, so one window can
    be walked any number of times.
    """

    start: datetime
    end: datetime
    duration: timedelta

    def __iter__(self) -> Iterator[datetime]:
        return iterate_slot_starts(self.start, self.end, self.duration)

    def contains(self, start: datetime, end: datetime) -> bool:
        return self.start <= start and end <= self.end


def intervals_overlap(first_start: datetime, first_end: datetime, second_start: datetime, second_end: datetime) -> bool:
    return first_start < second_end and first_end > second_start


def booked_intervals(appointments: Iterable, exclude_id: int | None = None) -> list[Interval]:
    return [
        (appointment.start_time, appointment.end_time)
        for appointment in appointments
        if blocks_slot(appointment.status) and (exclude_id is None or appointment.id != exclude_id)
    ]


def conflicts_with(start: datetime, end: datetime, intervals: Iterable[Interval]) -> bool:
    return any(intervals_overlap(start, end, booked_start, booked_end) for booked_start, booked_end in intervals)


def filter_available_slots(
    candidates: Iterable[datetime],
    intervals: Iterable[Interval],
    duration: timedelta,
) -> Iterator[datetime]:
    intervals = list(intervals)
    for slot_start in candidates:
        if not conflicts_with(slot_start, slot_start + duration, intervals):
            yield slot_start
