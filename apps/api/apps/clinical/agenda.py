"""
Weekly agenda aggregation.

Merges persisted appointments ("confirmed" slots) with recurring slots that
have not been materialized yet, day by day, and groups slots sharing the
same time. Read-only: nothing here writes to storage.
"""
from dataclasses import dataclass, field
from datetime import timedelta
from itertools import groupby
from typing import Any, List, Optional

from apps.core.observability.metrics import metrics

from .recurrence import normalize_to_noon, parse_date_or_none, project_due, to_date

SOURCE_CONFIRMED = 'confirmed'
SOURCE_RECURRING = 'recurring'

DAYS_IN_WEEK = 7


@dataclass
class AgendaSlot:
    time: str
    patient: Any
    source_type: str
    appointment: Optional[Any] = None


@dataclass
class SlotGroup:
    """Slots booked at the same time on the same day."""
    time: str
    slots: List[AgendaSlot]

    @property
    def is_collision(self):
        return len(self.slots) > 1


@dataclass
class AgendaDay:
    date: Any
    weekday: int
    slots: List[AgendaSlot] = field(default_factory=list)
    groups: List[SlotGroup] = field(default_factory=list)


def week_start_for(value):
    """Sunday on or before the given date."""
    noon = normalize_to_noon(value)
    return (noon - timedelta(days=noon.isoweekday() % 7)).date()


def _slot_order(slot):
    return (slot.time or '', (getattr(slot.patient, 'name', '') or '').casefold())


def slots_for_day(day, active_patients, all_patients, appointments):
    """
    Slots of one day, sorted by time then patient name.

    Confirmed slots come from persisted appointments resolved against every
    patient, deactivated ones included. Active patients without a confirmed
    slot that day get a recurring slot when their recurrence is due.
    """
    day = to_date(day)
    patients_by_id = {p.pk: p for p in all_patients}

    slots = []
    seen = set()
    for appointment in appointments:
        if parse_date_or_none(getattr(appointment, 'date', None)) != day:
            continue
        patient = patients_by_id.get(appointment.patient_id)
        if patient is None:
            continue
        slots.append(AgendaSlot(
            time=appointment.time,
            patient=patient,
            source_type=SOURCE_CONFIRMED,
            appointment=appointment,
        ))
        seen.add(patient.pk)

    for patient in active_patients:
        if patient.pk in seen:
            continue
        projected = project_due(patient, day)
        if projected is None:
            continue
        slots.append(AgendaSlot(time=projected.time, patient=patient, source_type=SOURCE_RECURRING))

    return sorted(slots, key=_slot_order)


def group_slots_by_time(slots):
    """Group consecutive slots with an identical time string; input must be sorted."""
    return [
        SlotGroup(time=time, slots=list(group))
        for time, group in groupby(slots, key=lambda slot: slot.time)
    ]


@metrics.track_duration(metrics.agenda_build_duration_seconds)
def build_week(week_start, active_patients, all_patients, appointments):
    """
    Build the seven days starting at `week_start`.

    Returns:
        list of AgendaDay, one per day, each with sorted slots and their
        collision groups.
    """
    start = to_date(week_start)
    active_patients = list(active_patients)
    all_patients = list(all_patients)
    appointments = list(appointments)

    days = []
    for offset in range(DAYS_IN_WEEK):
        day = start + timedelta(days=offset)
        slots = slots_for_day(day, active_patients, all_patients, appointments)
        days.append(AgendaDay(
            date=day,
            weekday=day.isoweekday() % 7,
            slots=slots,
            groups=group_slots_by_time(slots),
        ))
    return days
