"""
Domain events logging helpers.

Provides structured event logging for scheduling and patient operations.
"""
from typing import Dict, Optional
from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'appointment_status_changed')
        entity_type: Type of entity (e.g., 'Appointment', 'Patient')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, rejected, etc.)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'appointment_status_changed',
            entity_type='Appointment',
            entity_id=str(appointment.id),
            entity_ids={'patient_id': str(appointment.patient_id)},
            from_status='no_status',
            to_status='completed'
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    # Log at appropriate level based on result
    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked', 'rejected']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_appointments_materialized(user_id, target_date, count):
    """Log recurring appointments created for a date."""
    log_domain_event(
        'appointments_materialized',
        entity_type='Appointment',
        entity_ids={'account_id': str(user_id)},
        result='success',
        target_date=str(target_date),
        created_count=count,
    )


def log_appointment_rejected(user_id, patient_id, target_date, reason):
    """Log a blocked appointment write (patient-day or slot uniqueness)."""
    log_domain_event(
        'appointment_rejected',
        entity_type='Appointment',
        entity_ids={
            'account_id': str(user_id),
            'patient_id': str(patient_id),
        },
        result='rejected',
        target_date=str(target_date),
        reason=reason,
    )


def log_appointment_status_changed(appointment, from_status, to_status):
    """Log appointment status change."""
    log_domain_event(
        'appointment_status_changed',
        entity_type='Appointment',
        entity_id=str(appointment.id),
        entity_ids={'patient_id': str(appointment.patient_id)},
        result='success',
        from_status=from_status,
        to_status=to_status,
    )


def log_appointment_deleted(appointment_id, patient_id, appointment_date):
    """Log appointment hard delete."""
    log_domain_event(
        'appointment_deleted',
        entity_type='Appointment',
        entity_id=str(appointment_id),
        entity_ids={'patient_id': str(patient_id)},
        result='success',
        appointment_date=str(appointment_date),
    )


def log_patient_activation(patient_id, action, result='success', **extra):
    """Log patient activation or deactivation."""
    log_domain_event(
        f'patient_{action}d',
        entity_type='Patient',
        entity_id=str(patient_id),
        entity_ids={'patient_id': str(patient_id)},
        result=result,
        **extra
    )
