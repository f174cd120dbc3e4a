"""
Scheduling services.

- Appointment reconciliation: materialize recurring appointments for a date,
  idempotently, in one batch insert.
- Ad hoc creation and detail edits guarded by the two uniqueness rules.
- Status changes, hard delete, patient registration and activation.

Functions take a PracticeRepository and, where a rule depends on them, the
appointments already known for the affected date. Nothing here keeps state.
"""
import logging

from django.conf import settings

from apps.core.observability.metrics import metrics
from apps.core.observability.events import (
    log_appointment_deleted,
    log_appointment_rejected,
    log_appointment_status_changed,
    log_appointments_materialized,
    log_patient_activation,
)

from .exceptions import (
    DuplicatePatientDayError,
    InvalidTimeError,
    SlotTakenError,
    StorageError,
    ValidationRejected,
)
from .models import Appointment, AppointmentStatusChoices, GenderChoices
from .recurrence import (
    is_valid_time,
    normalize_to_noon,
    parse_date_or_none,
    project_due,
    to_date,
    validate_recurrence,
    validate_times,
)

logger = logging.getLogger(__name__)

# Materialization failures go to their own quieter sink
reconciliation_logger = logging.getLogger('apps.clinical.reconciliation')


# ============================================================================
# Ordering
# ============================================================================

def appointment_sort_key(appointment):
    """Date ascending, missing/invalid dates last, ties broken by time string."""
    day = parse_date_or_none(getattr(appointment, 'date', None))
    return (day is None, day.isoformat() if day else '', getattr(appointment, 'time', None) or '')


def sort_appointments(appointments):
    return sorted(appointments, key=appointment_sort_key)


def day_order_key(appointment):
    """Time, then patient name (case-insensitive)."""
    patient = getattr(appointment, 'patient', None)
    return (appointment.time or '', (getattr(patient, 'name', '') or '').casefold())


# ============================================================================
# Reconciliation
# ============================================================================

def plan_missing_appointments(target, active_patients, existing_appointments):
    """
    Compute the recurring appointments missing on `target`.

    Pure: builds unsaved Appointment instances with status NO_STATUS for each
    active patient due that day who has no appointment on that date yet.
    Calling it again with the rows it produced yields nothing.
    """
    noon = normalize_to_noon(target)
    day = noon.date()

    taken = {
        a.patient_id for a in existing_appointments
        if parse_date_or_none(getattr(a, 'date', None)) == day
    }

    missing = []
    for patient in active_patients:
        if patient.pk in taken:
            continue
        slot = project_due(patient, noon)
        if slot is None:
            continue
        taken.add(patient.pk)
        missing.append(Appointment(
            patient=patient,
            date=day,
            time=slot.time,
            status=AppointmentStatusChoices.NO_STATUS,
        ))
    return missing


def ensure_appointments_for_date(repository, target, active_patients, existing_appointments):
    """
    Materialize the recurring appointments due on `target`.

    Best effort: a failed batch insert is logged on the reconciliation
    logger and counted, never raised; the next view of the date retries.

    Returns:
        The created rows (empty on failure or when nothing was missing).
    """
    missing = plan_missing_appointments(target, active_patients, existing_appointments)
    if not missing:
        return []

    try:
        created = repository.insert_appointments(missing)
    except StorageError as exc:
        metrics.appointment_reconciliation_failures_total.inc()
        reconciliation_logger.warning(
            'Recurring appointment materialization failed',
            extra={
                'event': 'appointment_reconciliation_failed',
                'account_id': str(repository.user.pk),
                'target_date': str(to_date(target)),
                'missing_count': len(missing),
                'error': str(exc),
            }
        )
        return []

    metrics.appointments_materialized_total.inc(len(created))
    log_appointments_materialized(repository.user.pk, to_date(target), len(created))
    return created


def materialize_day(repository, target):
    """
    Reconcile one date against storage and return its appointments ordered
    by time then patient name.
    """
    day = to_date(target)
    active_patients = repository.fetch_patients(is_active=True)
    existing = repository.fetch_appointments(on_date=day)
    created = ensure_appointments_for_date(repository, day, active_patients, existing)
    return sorted([*existing, *created], key=day_order_key)


# ============================================================================
# Appointment writes
# ============================================================================

def check_appointment_conflicts(existing_appointments, patient_id, target, time, exclude_id=None, user_id=None):
    """
    Enforce the per-account write rules for an appointment.

    BUSINESS RULES:
    - one appointment per patient per day
    - one appointment per (date, time) across all patients and clinics

    Raises:
        DuplicatePatientDayError, SlotTakenError
    """
    day = to_date(target)
    others = [
        a for a in existing_appointments
        if (exclude_id is None or a.pk != exclude_id)
        and parse_date_or_none(getattr(a, 'date', None)) == day
    ]

    if any(a.patient_id == patient_id for a in others):
        _reject(user_id, patient_id, day, DuplicatePatientDayError.code)
        raise DuplicatePatientDayError('Patient already has an appointment on this day.')

    if any(a.time == time for a in others):
        _reject(user_id, patient_id, day, SlotTakenError.code)
        raise SlotTakenError('There is already an appointment at this time.')


def _reject(user_id, patient_id, day, reason):
    metrics.appointment_rejections_total.labels(reason=reason).inc()
    log_appointment_rejected(user_id, patient_id, day, reason)


def create_appointment(repository, existing_appointments, patient, target, time, observation=None):
    """
    Create an ad hoc appointment with status NO_STATUS.

    Validation happens before the write; nothing is stored on rejection.
    """
    if not is_valid_time(time):
        raise InvalidTimeError(f'Invalid time: {time!r}. Use HH:MM.')
    day = to_date(target)
    check_appointment_conflicts(
        existing_appointments, patient.pk, day, time, user_id=repository.user.pk
    )
    return repository.insert_appointment(
        patient=patient,
        date=day,
        time=time,
        status=AppointmentStatusChoices.NO_STATUS,
        observation=observation,
    )


def change_appointment_status(repository, appointment, status):
    """
    Set any status from any status. There are no terminal states.
    """
    if status not in AppointmentStatusChoices.values:
        raise ValidationRejected(f'Invalid status: {status!r}.', code='invalid_status')

    from_status = appointment.status
    updated = repository.update_appointment(appointment.pk, status=status)

    metrics.appointment_status_changes_total.labels(
        from_status=from_status, to_status=status
    ).inc()
    log_appointment_status_changed(updated, from_status, status)
    return updated


def change_appointment_details(repository, existing_appointments, appointment, **changes):
    """
    Edit date, time, status and observation of an appointment.

    The uniqueness rules of creation apply to the edited values, excluding
    the appointment itself from the comparison.
    """
    allowed = {'date', 'time', 'status', 'observation'}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationRejected(f'Unsupported fields: {", ".join(sorted(unknown))}.', code='invalid_field')

    if 'date' in changes:
        changes['date'] = to_date(changes['date'])
    if 'time' in changes and not is_valid_time(changes['time']):
        raise InvalidTimeError(f'Invalid time: {changes["time"]!r}. Use HH:MM.')
    if 'status' in changes and changes['status'] not in AppointmentStatusChoices.values:
        raise ValidationRejected(f'Invalid status: {changes["status"]!r}.', code='invalid_status')

    new_date = changes.get('date', appointment.date)
    new_time = changes.get('time', appointment.time)
    if new_date != appointment.date or new_time != appointment.time:
        check_appointment_conflicts(
            existing_appointments,
            appointment.patient_id,
            new_date,
            new_time,
            exclude_id=appointment.pk,
            user_id=repository.user.pk,
        )

    from_status = appointment.status
    updated = repository.update_appointment(appointment.pk, **changes)

    if 'status' in changes and changes['status'] != from_status:
        metrics.appointment_status_changes_total.labels(
            from_status=from_status, to_status=changes['status']
        ).inc()
        log_appointment_status_changed(updated, from_status, changes['status'])
    return updated


def remove_appointment(repository, appointment):
    """Hard delete. The domain event is the only remaining trace."""
    repository.call_procedure('delete_appointment', appointment_id=appointment.pk)
    metrics.appointment_deletions_total.inc()
    log_appointment_deleted(appointment.pk, appointment.patient_id, appointment.date)


# ============================================================================
# Patients
# ============================================================================

def default_avatar(gender):
    avatars = settings.DEFAULT_PATIENT_AVATARS
    return avatars.get(gender) or avatars[GenderChoices.FEMALE]


def prepare_patient_fields(fields, creating):
    """
    Validate recurrence fields and fill defaults.

    On creation the full recurrence is required. On update only the supplied
    fields are checked; a new appointment_days must still be non-empty.
    """
    fields = dict(fields)
    if creating or 'appointment_days' in fields:
        validate_recurrence(
            fields.get('appointment_days'),
            fields.get('appointment_time'),
            fields.get('appointment_times'),
        )
    else:
        if fields.get('appointment_time') and not is_valid_time(fields['appointment_time']):
            raise InvalidTimeError(f'Invalid time: {fields["appointment_time"]!r}. Use HH:MM.')
        validate_times(fields.get('appointment_times'))

    if 'appointment_days' in fields:
        fields['appointment_days'] = sorted(set(fields['appointment_days']))
    if 'appointment_times' in fields:
        fields['appointment_times'] = {
            str(k): v for k, v in (fields['appointment_times'] or {}).items()
        }
    if creating and not fields.get('profile_pic'):
        fields['profile_pic'] = default_avatar(fields.get('gender'))
    return fields


def register_patient(repository, **fields):
    """
    Create a patient. Appointments are not generated here; they are
    materialized lazily when a date is viewed.
    """
    fields = prepare_patient_fields(fields, creating=True)
    patient = repository.insert_patient(**fields)
    logger.info(
        'Patient registered',
        extra={'event': 'patient_registered', 'patient_id': patient.pk}
    )
    return patient


def edit_patient(repository, patient, **fields):
    fields = prepare_patient_fields(fields, creating=False)
    return repository.update_patient(patient.pk, **fields)


def set_patient_active(repository, patient_id, active):
    """
    Run the activate/deactivate procedure for a patient.

    Raises StorageError on failure; the metric and domain event record
    both outcomes.
    """
    action = 'activate' if active else 'deactivate'
    try:
        repository.call_procedure(f'{action}_patient', patient_id=patient_id)
    except StorageError as exc:
        metrics.patient_activation_total.labels(action=action, result='failure').inc()
        log_patient_activation(patient_id, action, result='failure', error=str(exc))
        raise
    metrics.patient_activation_total.labels(action=action, result='success').inc()
    log_patient_activation(patient_id, action)
    return True
