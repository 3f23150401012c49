from datetime import date, datetime, time, tzinfo

from clinic_scheduling.scheduling.errors import InvalidInterval


CLOCK_FORMAT = '%H:%M'


def day_of_week_for(target_date: date) -> int:
    """Template day index for a date, Sunday=0 through Saturday=6."""
    return (target_date.weekday() + 1) % 7


def parse_clock_time(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    try:
        return datetime.strptime((value or '').strip(), CLOCK_FORMAT).time()
    except ValueError as exc:
        raise InvalidInterval(f'Expected a time formatted as HH:MM, got {value!r}.') from exc


def format_clock_time(value: time) -> str:
    return value.strftime(CLOCK_FORMAT)


def to_clinic_local(value: datetime, clinic_timezone: tzinfo | None = None) -> datetime:
    """Return a naive datetime on the clinic's wall clock."""
    if value.tzinfo is None:
        return value
    return value.astimezone(clinic_timezone).replace(tzinfo=None)


def to_clinic_date(value: str | date | datetime, clinic_timezone: tzinfo | None = None) -> date:
    if isinstance(value, datetime):
        return to_clinic_local(value, clinic_timezone).date()
    if isinstance(value, date):
        return value

    raw = (value or '').strip()
    try:
        if 'T' in raw or ' ' in raw:
            return to_clinic_local(datetime.fromisoformat(raw.replace('Z', '+00:00')), clinic_timezone).date()
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise InvalidInterval(f'Expected an ISO date, got {value!r}.') from exc


def template_window(template, target_date: date) -> tuple[datetime, datetime] | None:
    """Open interval of ``template`` placed on ``target_date``, or None if closed."""
    if template is None or not template.is_available:
        return None

    open_at = datetime.combine(target_date, parse_clock_time(template.start_time))
    close_at = datetime.combine(target_date, parse_clock_time(template.end_time))
    if close_at <= open_at:
        return None

    return open_at, close_at


def validate_template_times(start_time: str, end_time: str) -> tuple[str, str]:
    opens = parse_clock_time(start_time)
    closes = parse_clock_time(end_time)
    if closes <= opens:
        raise InvalidInterval('Schedule end time must be after its start time.')
    return format_clock_time(opens), format_clock_time(closes)
