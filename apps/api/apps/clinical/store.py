"""
Practice session state.

PracticeStore holds one account's profile, clinics, patients and
appointments in memory and is the only place they are mutated. Each mutation
validates first, makes one storage round trip, then swaps in the row storage
returned. On failure the error propagates and memory is left as it was.
"""
import logging
import threading
from datetime import date

from django.conf import settings

from apps.authz.models import User
from apps.authz.signals import profile_updated

from . import agenda, services
from .exceptions import NotFoundError, StorageError, StoreLoadError
from .repositories import PracticeRepository

logger = logging.getLogger(__name__)


def _by_name(patients):
    return sorted(patients, key=lambda p: ((p.name or '').casefold(), p.pk or 0))


class PracticeStore:
    """
    In-memory collections of one practitioner session.

    Attributes:
        profile: the account row, or None before the first successful load
        clinics: sorted by name
        patients: active patients, sorted by name
        deactivated_patients: sorted by name
        appointments: sorted by date, missing dates last, then time
        is_loading / loading_timed_out / last_error: load state
    """

    def __init__(self, user, repository=None, loading_timeout=None):
        self.user = user
        self.repository = repository or PracticeRepository(user)

        self.profile = None
        self.clinics = []
        self.patients = []
        self.deactivated_patients = []
        self.appointments = []

        self.is_loading = False
        self.loading_timed_out = False
        self.last_error = None

        if loading_timeout is None:
            loading_timeout = settings.PRACTICE_LOADING_TIMEOUT_SECONDS
        self._loading_timeout = loading_timeout
        self._timer = None
        self._lock = threading.RLock()
        self._dispatch_uid = f'practice-store-{id(self)}'

        profile_updated.connect(
            self._on_profile_updated,
            sender=User,
            weak=False,
            dispatch_uid=self._dispatch_uid,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self):
        """Stop listening for profile updates and drop the loading timer."""
        profile_updated.disconnect(sender=User, dispatch_uid=self._dispatch_uid)
        self._cancel_timer()

    # ========================================================================
    # Loading
    # ========================================================================

    def load(self):
        """
        Fetch everything for the account.

        Returns:
            True on success, False when a refresh failed but previous data
            is kept.

        Raises:
            StoreLoadError: the very first load failed (no profile in memory).
        """
        with self._lock:
            self.is_loading = True
            self.loading_timed_out = False
        self._arm_timer()

        try:
            profile = self.repository.fetch_profile()
            clinics = self.repository.fetch_clinics()
            patients = self.repository.fetch_patients(is_active=True)
            deactivated = self.repository.fetch_patients(is_active=False)
            appointments = self.repository.fetch_appointments()
        except StorageError as exc:
            self.last_error = str(exc)
            if self.profile is None:
                logger.error(
                    'Practice data could not be loaded',
                    extra={'event': 'practice_load_failed', 'account_id': str(self.user.pk), 'fatal': True}
                )
                raise StoreLoadError(f'Could not load practice data: {exc}') from exc
            logger.warning(
                'Practice data refresh failed, keeping last known data',
                extra={'event': 'practice_load_failed', 'account_id': str(self.user.pk), 'fatal': False}
            )
            return False
        finally:
            self._cancel_timer()
            with self._lock:
                self.is_loading = False

        with self._lock:
            self.profile = profile
            self.clinics = clinics
            self.patients = _by_name(patients)
            self.deactivated_patients = _by_name(deactivated)
            self.appointments = services.sort_appointments(appointments)
            self.last_error = None
        return True

    def _arm_timer(self):
        self._cancel_timer()
        self._timer = threading.Timer(self._loading_timeout, self._release_loading)
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _release_loading(self):
        with self._lock:
            if not self.is_loading:
                return
            self.is_loading = False
            self.loading_timed_out = True
        logger.warning(
            'Practice data still loading, releasing loading state',
            extra={'event': 'practice_load_timeout', 'account_id': str(self.user.pk),
                   'timeout_seconds': self._loading_timeout}
        )

    def _on_profile_updated(self, sender, user_id, profile, **kwargs):
        if user_id != self.user.pk:
            return
        with self._lock:
            self.profile = profile

    # ========================================================================
    # Lookups
    # ========================================================================

    def all_patients(self):
        return [*self.patients, *self.deactivated_patients]

    def get_patient(self, patient_id):
        for patient in self.all_patients():
            if patient.pk == patient_id:
                return patient
        raise NotFoundError('Patient not found or not permitted.')

    def get_appointment(self, appointment_id):
        for appointment in self.appointments:
            if appointment.pk == appointment_id:
                return appointment
        raise NotFoundError('Appointment not found or not permitted.')

    def _replace_appointment(self, updated):
        self.appointments = services.sort_appointments(
            updated if a.pk == updated.pk else a for a in self.appointments
        )

    # ========================================================================
    # Appointments
    # ========================================================================

    def ensure_appointments_for_date(self, target):
        """Materialize recurring appointments for `target` and merge them in."""
        created = services.ensure_appointments_for_date(
            self.repository, target, self.patients, self.appointments
        )
        if created:
            with self._lock:
                self.appointments = services.sort_appointments([*self.appointments, *created])
        return created

    def add_appointment(self, patient_id, target, time, observation=None):
        patient = self.get_patient(patient_id)
        created = services.create_appointment(
            self.repository, self.appointments, patient, target, time, observation
        )
        with self._lock:
            self.appointments = services.sort_appointments([*self.appointments, created])
        return created

    def update_appointment_status(self, appointment_id, status):
        appointment = self.get_appointment(appointment_id)
        updated = services.change_appointment_status(self.repository, appointment, status)
        with self._lock:
            self._replace_appointment(updated)
        return updated

    def update_appointment_details(self, appointment_id, **changes):
        appointment = self.get_appointment(appointment_id)
        updated = services.change_appointment_details(
            self.repository, self.appointments, appointment, **changes
        )
        with self._lock:
            self._replace_appointment(updated)
        return updated

    def delete_appointment(self, appointment_id):
        appointment = self.get_appointment(appointment_id)
        services.remove_appointment(self.repository, appointment)
        with self._lock:
            self.appointments = [a for a in self.appointments if a.pk != appointment_id]

    # ========================================================================
    # Patients
    # ========================================================================

    def add_patient(self, **fields):
        patient = services.register_patient(self.repository, **fields)
        with self._lock:
            self.patients = _by_name([*self.patients, patient])
        return patient

    def update_patient(self, patient_id, **fields):
        patient = self.get_patient(patient_id)
        updated = services.edit_patient(self.repository, patient, **fields)
        with self._lock:
            self.patients = _by_name(updated if p.pk == patient_id else p for p in self.patients)
            self.deactivated_patients = _by_name(
                updated if p.pk == patient_id else p for p in self.deactivated_patients
            )
        return updated

    def deactivate_patient(self, patient_id):
        """Move an active patient to the deactivated collection."""
        patient = next((p for p in self.patients if p.pk == patient_id), None)
        if patient is None:
            raise NotFoundError('Active patient not found.')
        services.set_patient_active(self.repository, patient_id, False)
        with self._lock:
            patient.is_active = False
            self.patients = [p for p in self.patients if p.pk != patient_id]
            self.deactivated_patients = _by_name([*self.deactivated_patients, patient])
        return True

    def activate_patient(self, patient_id):
        """Move a deactivated patient back to the active collection."""
        patient = next((p for p in self.deactivated_patients if p.pk == patient_id), None)
        if patient is None:
            raise NotFoundError('Deactivated patient not found.')
        services.set_patient_active(self.repository, patient_id, True)
        with self._lock:
            patient.is_active = True
            self.deactivated_patients = [p for p in self.deactivated_patients if p.pk != patient_id]
            self.patients = _by_name([*self.patients, patient])
        return True

    # ========================================================================
    # Clinics
    # ========================================================================

    def add_clinic(self, **fields):
        clinic = self.repository.insert_clinic(**fields)
        with self._lock:
            self.clinics = sorted([*self.clinics, clinic], key=lambda c: c.name)
        return clinic

    def update_clinic(self, clinic_id, **fields):
        updated = self.repository.update_clinic(clinic_id, **fields)
        with self._lock:
            self.clinics = sorted(
                (updated if c.pk == clinic_id else c for c in self.clinics),
                key=lambda c: c.name,
            )
            for patient in self.all_patients():
                if patient.clinic_id == clinic_id:
                    patient.clinic = updated
        return updated

    def delete_clinic(self, clinic_id):
        """Delete a clinic; its patients stay, without a clinic."""
        self.repository.delete_clinic(clinic_id)
        with self._lock:
            self.clinics = [c for c in self.clinics if c.pk != clinic_id]
            for patient in self.all_patients():
                if patient.clinic_id == clinic_id:
                    patient.clinic = None

    # ========================================================================
    # Views
    # ========================================================================

    def build_week(self, week_start=None):
        """Read-only weekly agenda; defaults to the week of today."""
        start = week_start if week_start is not None else agenda.week_start_for(date.today())
        return agenda.build_week(start, self.patients, self.all_patients(), self.appointments)
