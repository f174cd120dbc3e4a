"""
Storage gateway for one practitioner account.

Every query is scoped by owner (WHERE user_id = ?), so a row belonging to
another account behaves exactly like a missing row. Writes return the stored
row; failures surface as StorageError / NotFoundError.
"""
import logging
from contextlib import contextmanager

from django.db import DatabaseError, transaction

from apps.authz.models import User
from apps.core.models import Clinic

from .exceptions import NotFoundError, StorageError
from .models import Appointment, Patient

logger = logging.getLogger(__name__)


class PracticeRepository:
    """
    Owner-scoped reads and writes for profile, clinics, patients and
    appointments, plus the named transactional procedures.
    """

    PROCEDURES = ('deactivate_patient', 'activate_patient', 'delete_appointment')

    def __init__(self, user):
        self.user = user

    # ========================================================================
    # Reads
    # ========================================================================

    def fetch_profile(self):
        with self._storage('fetch_profile'):
            try:
                return User.objects.get(pk=self.user.pk)
            except User.DoesNotExist:
                raise NotFoundError('User profile not found.')

    def fetch_clinics(self):
        with self._storage('fetch_clinics'):
            return list(Clinic.objects.filter(user=self.user).order_by('name'))

    def fetch_patients(self, is_active=True):
        with self._storage('fetch_patients'):
            return list(
                Patient.objects.select_related('clinic')
                .filter(user=self.user, is_active=is_active)
                .order_by('name')
            )

    def fetch_all_patients(self):
        with self._storage('fetch_all_patients'):
            return list(
                Patient.objects.select_related('clinic')
                .filter(user=self.user)
                .order_by('name')
            )

    def fetch_appointments(self, on_date=None, start=None, end=None):
        with self._storage('fetch_appointments'):
            queryset = Appointment.objects.select_related('patient').filter(user=self.user)
            if on_date is not None:
                queryset = queryset.filter(date=on_date)
            if start is not None:
                queryset = queryset.filter(date__gte=start)
            if end is not None:
                queryset = queryset.filter(date__lte=end)
            return list(queryset.order_by('date', 'time'))

    def get_appointment(self, appointment_id):
        with self._storage('get_appointment'):
            try:
                return Appointment.objects.get(pk=appointment_id, user=self.user)
            except (Appointment.DoesNotExist, ValueError):
                raise NotFoundError('Appointment not found or not permitted.')

    def get_patient(self, patient_id):
        with self._storage('get_patient'):
            try:
                return Patient.objects.select_related('clinic').get(pk=patient_id, user=self.user)
            except (Patient.DoesNotExist, ValueError):
                raise NotFoundError('Patient not found or not permitted.')

    def get_clinic(self, clinic_id):
        with self._storage('get_clinic'):
            try:
                return Clinic.objects.get(pk=clinic_id, user=self.user)
            except (Clinic.DoesNotExist, ValueError):
                raise NotFoundError('Clinic not found or not permitted.')

    # ========================================================================
    # Appointment writes
    # ========================================================================

    def insert_appointment(self, **fields):
        with self._storage('insert_appointment', atomic=True):
            return Appointment.objects.create(user=self.user, **fields)

    def insert_appointments(self, appointments):
        """
        Insert a batch in one atomic operation and return the stored rows.

        Either every row is written or none is.
        """
        if not appointments:
            return []
        for appointment in appointments:
            appointment.user = self.user
        with self._storage('insert_appointments', atomic=True):
            created = Appointment.objects.bulk_create(appointments)
            # Backends without RETURNING leave pk unset; re-read the batch
            if any(a.pk is None for a in created):
                keys = {(a.patient_id, a.date) for a in created}
                created = [
                    a for a in Appointment.objects.filter(
                        user=self.user, date__in={a.date for a in created}
                    )
                    if (a.patient_id, a.date) in keys
                ]
        return sorted(created, key=lambda a: (a.date, a.time))

    def update_appointment(self, appointment_id, **fields):
        with self._storage('update_appointment', atomic=True):
            appointment = self._locked(Appointment, appointment_id, 'Appointment')
            for name, value in fields.items():
                setattr(appointment, name, value)
            appointment.save(update_fields=[*fields, 'updated_at'])
        return appointment

    # ========================================================================
    # Patient writes
    # ========================================================================

    def insert_patient(self, **fields):
        with self._storage('insert_patient', atomic=True):
            patient = Patient.objects.create(user=self.user, **fields)
        return self.get_patient(patient.pk)

    def update_patient(self, patient_id, **fields):
        with self._storage('update_patient', atomic=True):
            patient = self._locked(Patient, patient_id, 'Patient')
            for name, value in fields.items():
                setattr(patient, name, value)
            patient.save(update_fields=[*fields, 'updated_at'])
        return self.get_patient(patient.pk)

    # ========================================================================
    # Clinic writes
    # ========================================================================

    def insert_clinic(self, **fields):
        with self._storage('insert_clinic', atomic=True):
            return Clinic.objects.create(user=self.user, **fields)

    def update_clinic(self, clinic_id, **fields):
        with self._storage('update_clinic', atomic=True):
            clinic = self._locked(Clinic, clinic_id, 'Clinic')
            for name, value in fields.items():
                setattr(clinic, name, value)
            clinic.save(update_fields=[*fields, 'updated_at'])
        return clinic

    def delete_clinic(self, clinic_id):
        with self._storage('delete_clinic', atomic=True):
            deleted, _ = Clinic.objects.filter(pk=clinic_id, user=self.user).delete()
            if not deleted:
                raise NotFoundError('Clinic not found or not permitted.')

    # ========================================================================
    # Transactional procedures
    # ========================================================================

    def call_procedure(self, name, **args):
        """
        Run a server-side procedure by name.

        Returns True on success; raises StorageError (NotFoundError for a
        missing row) on failure. No other payload is returned.
        """
        if name not in self.PROCEDURES:
            raise StorageError(f'Unknown procedure: {name}')
        with self._storage(name, atomic=True):
            getattr(self, f'_procedure_{name}')(**args)
        return True

    def _procedure_deactivate_patient(self, patient_id):
        self._set_patient_active(patient_id, False)

    def _procedure_activate_patient(self, patient_id):
        self._set_patient_active(patient_id, True)

    def _procedure_delete_appointment(self, appointment_id):
        appointment = self._locked(Appointment, appointment_id, 'Appointment')
        appointment.delete()

    def _set_patient_active(self, patient_id, is_active):
        patient = self._locked(Patient, patient_id, 'Patient')
        patient.is_active = is_active
        patient.save(update_fields=['is_active', 'updated_at'])

    # ========================================================================
    # Helpers
    # ========================================================================

    def _locked(self, model, pk, label):
        """Fetch an owned row FOR UPDATE; zero rows is a NotFoundError."""
        try:
            return model.objects.select_for_update().get(pk=pk, user=self.user)
        except (model.DoesNotExist, ValueError):
            raise NotFoundError(f'{label} not found or not permitted.')

    @contextmanager
    def _storage(self, operation, atomic=False):
        """Translate database errors of one operation into StorageError."""
        try:
            if atomic:
                with transaction.atomic():
                    yield
            else:
                yield
        except DatabaseError as exc:
            logger.error(
                f'Storage operation failed: {operation}',
                extra={
                    'event': 'storage_failure',
                    'operation': operation,
                    'account_id': str(self.user.pk),
                    'error': str(exc),
                }
            )
            raise StorageError(f'{operation} failed: {exc}') from exc
