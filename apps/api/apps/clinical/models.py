"""
Clinical models: patient, appointment.

A patient carries a weekly recurrence (appointment_days + times); an
appointment is one concrete, persisted occurrence on a calendar date.
"""
from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models


# ============================================================================
# Enums
# ============================================================================

class GenderChoices(models.TextChoices):
    """Patient gender (also selects the default avatar)"""
    MALE = 'male', 'Male'
    FEMALE = 'female', 'Female'


class CategoryChoices(models.TextChoices):
    """Patient category"""
    ADULT = 'adult', 'Adult'
    CHILD = 'child', 'Child'


class AppointmentStatusChoices(models.TextChoices):
    """
    Appointment status.

    A flat value set: any status may be set from any other at any time.
    Only COMPLETED and NO_SHOW count toward revenue.
    """
    NO_STATUS = 'no_status', 'No Status'
    COMPLETED = 'completed', 'Completed'
    NO_SHOW = 'no_show', 'No Show'
    CANCELED = 'canceled', 'Canceled'


# BUSINESS RULE: statuses billed to the patient
BILLABLE_STATUSES = (
    AppointmentStatusChoices.COMPLETED,
    AppointmentStatusChoices.NO_SHOW,
)

# Zero-padded 24h clock, so lexical order equals chronological order
TIME_REGEX = r'^([01]\d|2[0-3]):[0-5]\d$'

time_validator = RegexValidator(
    regex=TIME_REGEX,
    message='Time must be in 24h HH:MM format.',
)


# ============================================================================
# Models
# ============================================================================

class Patient(models.Model):
    """
    Patient owned by a practitioner account.

    Scheduling fields:
    - appointment_days: weekday ints, 0=Sunday..6=Saturday
    - appointment_time: fallback "HH:MM"
    - appointment_times: per-weekday overrides keyed by weekday string ("0".."6")

    Patients are deactivated, never deleted while appointments reference them.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='patients'
    )
    clinic = models.ForeignKey(
        'core.Clinic',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='patients'
    )
    name = models.CharField(max_length=255)
    gender = models.CharField(
        max_length=10,
        choices=GenderChoices.choices
    )
    health_plan = models.CharField(max_length=255, blank=True, default='')
    category = models.CharField(
        max_length=10,
        choices=CategoryChoices.choices,
        default=CategoryChoices.ADULT
    )
    session_value = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    # Recurrence
    appointment_days = models.JSONField(
        default=list,
        help_text="Weekdays the patient is seen on (0=Sunday..6=Saturday)"
    )
    appointment_time = models.CharField(
        max_length=5,
        blank=True,
        default='',
        validators=[time_validator],
        help_text="Fallback HH:MM time"
    )
    appointment_times = models.JSONField(
        default=dict,
        blank=True,
        help_text="Per-weekday HH:MM overrides keyed by weekday string"
    )

    profile_pic = models.CharField(max_length=500, blank=True, default='')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patient'
        verbose_name = 'Patient'
        verbose_name_plural = 'Patients'
        ordering = ['name']
        indexes = [
            models.Index(fields=['user', 'is_active'], name='idx_patient_user_active'),
            models.Index(fields=['name'], name='idx_patient_name'),
        ]

    def __str__(self):
        return self.name


class Appointment(models.Model):
    """
    One concrete appointment of a patient on a calendar date.

    Created ad hoc by the practitioner or materialized from the patient's
    recurrence. Dates and times are naive wall-clock values.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='appointments'
    )
    # BUSINESS RULE: patients with appointments cannot be physically deleted
    patient = models.ForeignKey(
        'Patient',
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    date = models.DateField()
    time = models.CharField(max_length=5, validators=[time_validator])
    status = models.CharField(
        max_length=20,
        choices=AppointmentStatusChoices.choices,
        default=AppointmentStatusChoices.NO_STATUS
    )
    observation = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'appointment'
        verbose_name = 'Appointment'
        verbose_name_plural = 'Appointments'
        ordering = ['date', 'time']
        indexes = [
            models.Index(fields=['user', 'date'], name='idx_appointment_user_date'),
            models.Index(fields=['status'], name='idx_appointment_status'),
        ]
        constraints = [
            # BUSINESS RULE: one appointment per patient per day.
            # (date, time) is checked at write time only.
            models.UniqueConstraint(
                fields=['patient', 'date'],
                name='uniq_appointment_patient_date'
            ),
        ]

    def __str__(self):
        return f"Appointment {self.date} {self.time} - {self.patient_id}"

    @property
    def is_billable(self):
        return self.status in BILLABLE_STATUSES
