"""
Weekly recurrence model and slot projection.

A patient's recurrence is a set of weekdays (0=Sunday..6=Saturday), an
optional per-weekday time override and a fallback time. project_due() says
whether a patient is due on a date and at what time. Everything here is pure:
no queries, no writes.
"""
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Mapping, NamedTuple, Optional, Tuple

from django.conf import settings

from .exceptions import EmptyRecurrenceError, InvalidTimeError, InvalidWeekdayError
from .models import TIME_REGEX

DEFAULT_TIME = '09:00'

_TIME_RE = re.compile(TIME_REGEX)


def default_time():
    return getattr(settings, 'RECURRENCE_DEFAULT_TIME', DEFAULT_TIME)


def is_valid_time(value):
    return isinstance(value, str) and bool(_TIME_RE.match(value))


# ============================================================================
# Calendar helpers
# ============================================================================

def normalize_to_noon(value):
    """
    Return a naive datetime at 12:00 on the calendar day of `value`.

    Accepts a date, a datetime (aware or naive; its own wall-clock date is
    kept, no timezone conversion) or an ISO "YYYY-MM-DD" string. Deriving
    weekdays from noon keeps DST and UTC offsets from shifting the day.
    """
    if isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, 12)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, 12)
    if isinstance(value, str):
        parsed = date.fromisoformat(value.strip()[:10])
        return datetime(parsed.year, parsed.month, parsed.day, 12)
    raise TypeError(f'Cannot interpret {type(value).__name__} as a calendar date')


def to_date(value):
    return normalize_to_noon(value).date()


def parse_date_or_none(value):
    """Calendar date of `value`, or None when missing or unparseable."""
    if value is None or value == '':
        return None
    try:
        return to_date(value)
    except (TypeError, ValueError):
        return None


def weekday_of(value):
    """Weekday with Sunday=0 .. Saturday=6."""
    return normalize_to_noon(value).isoweekday() % 7


def date_key(value):
    """ISO "YYYY-MM-DD" key of a date-like value."""
    return to_date(value).isoformat()


# ============================================================================
# Recurrence model
# ============================================================================

@dataclass(frozen=True)
class Recurrence:
    """
    Weekly schedule of one patient.

    `days` is None when the stored value is not a list; such a recurrence is
    never due.
    """
    days: Optional[Tuple[int, ...]]
    time: Optional[str] = None
    times: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_patient(cls, patient):
        raw_days = getattr(patient, 'appointment_days', None)
        raw_times = getattr(patient, 'appointment_times', None)
        return cls(
            days=tuple(raw_days) if isinstance(raw_days, list) else None,
            time=getattr(patient, 'appointment_time', None) or None,
            times=dict(raw_times) if isinstance(raw_times, dict) else {},
        )

    def is_due(self, weekday):
        return self.days is not None and weekday in self.days

    def time_for(self, weekday):
        # override for the weekday > fallback time > default
        return self.times.get(str(weekday)) or self.time or default_time()


class ProjectedSlot(NamedTuple):
    weekday: int
    time: str


def project_due(patient, target):
    """
    Project a recurrence onto a date.

    Args:
        patient: a Patient (or anything with the recurrence attributes) or a
            Recurrence
        target: date, datetime or "YYYY-MM-DD"

    Returns:
        ProjectedSlot(weekday, time) when due, None otherwise.
    """
    recurrence = patient if isinstance(patient, Recurrence) else Recurrence.from_patient(patient)
    weekday = weekday_of(target)
    if not recurrence.is_due(weekday):
        return None
    return ProjectedSlot(weekday=weekday, time=recurrence.time_for(weekday))


def validate_recurrence(days, time=None, times=None):
    """
    Validate recurrence input of the patient form.

    Raises:
        EmptyRecurrenceError: no weekday selected
        InvalidWeekdayError: weekday not an int in 0..6
        InvalidTimeError: fallback or override time not HH:MM
    """
    if not isinstance(days, (list, tuple)) or not days:
        raise EmptyRecurrenceError('Select at least one weekday.')

    for day in days:
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise InvalidWeekdayError(f'Invalid weekday: {day!r}. Use 0 (Sunday) to 6 (Saturday).')

    if time and not is_valid_time(time):
        raise InvalidTimeError(f'Invalid time: {time!r}. Use HH:MM.')

    validate_times(times)


def validate_times(times):
    """Per-weekday overrides: keys "0".."6", values HH:MM."""
    for key, value in (times or {}).items():
        if str(key) not in {str(d) for d in range(7)}:
            raise InvalidWeekdayError(f'Invalid weekday key: {key!r}.')
        if not is_valid_time(value):
            raise InvalidTimeError(f'Invalid time for weekday {key}: {value!r}. Use HH:MM.')
