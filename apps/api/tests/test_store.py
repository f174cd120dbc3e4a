"""
Tests for PracticeStore: bulk load policy, loading timeout, profile
push updates and fire-and-confirm mutations.
"""
from datetime import date
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from apps.authz.models import PlanChoices
from apps.clinical.exceptions import (
    NotFoundError,
    SlotTakenError,
    StorageError,
    StoreLoadError,
)
from apps.clinical.models import Appointment
from apps.clinical.repositories import PracticeRepository
from apps.clinical.services import appointment_sort_key, sort_appointments
from apps.clinical.store import PracticeStore


@pytest.fixture
def store(practitioner_user):
    store = PracticeStore(practitioner_user)
    yield store
    store.close()


class TestAppointmentOrdering:

    def test_missing_dates_sort_last(self):
        rows = [
            SimpleNamespace(date=None, time='08:00'),
            SimpleNamespace(date='2024-02-01', time='08:00'),
            SimpleNamespace(date='2024-01-15', time='08:00'),
        ]

        ordered = sort_appointments(rows)

        assert [r.date for r in ordered] == ['2024-01-15', '2024-02-01', None]

    def test_ties_broken_by_time(self):
        late = SimpleNamespace(date=date(2024, 1, 15), time='14:00')
        early = SimpleNamespace(date=date(2024, 1, 15), time='08:00')

        assert sorted([late, early], key=appointment_sort_key) == [early, late]

    def test_unparseable_date_sorts_last(self):
        rows = [SimpleNamespace(date='garbage', time='08:00'), SimpleNamespace(date='2024-01-01', time='09:00')]

        assert sort_appointments(rows)[-1].date == 'garbage'


@pytest.mark.django_db
class TestLoad:

    def test_load_populates_sorted_collections(self, store, clinic, patient, patient_factory, appointment_factory):
        patient_factory(name='ana')
        patient_factory(name='Inactive', is_active=False)
        appointment_factory(date=date(2024, 2, 1))
        appointment_factory(date=date(2024, 1, 15))

        assert store.load() is True

        assert store.profile.email == 'practitioner@test.com'
        assert [c.name for c in store.clinics] == ['Main Clinic']
        assert [p.name for p in store.patients] == ['ana', 'John Doe']
        assert [p.name for p in store.deactivated_patients] == ['Inactive']
        assert [a.date for a in store.appointments] == [date(2024, 1, 15), date(2024, 2, 1)]
        assert store.is_loading is False
        assert store.last_error is None

    def test_first_load_failure_is_fatal(self, store):
        with patch.object(store.repository, 'fetch_clinics', side_effect=StorageError('down')):
            with pytest.raises(StoreLoadError):
                store.load()

        assert store.profile is None
        assert store.is_loading is False

    def test_refresh_failure_keeps_last_known_data(self, store, patient):
        store.load()

        with patch.object(store.repository, 'fetch_patients', side_effect=StorageError('down')):
            assert store.load() is False

        assert [p.name for p in store.patients] == ['John Doe']
        assert store.last_error is not None

    def test_loading_timeout_releases_flag(self, practitioner_user):
        store = PracticeStore(practitioner_user, loading_timeout=0.01)
        try:
            store.is_loading = True
            store._release_loading()
            assert store.is_loading is False
            assert store.loading_timed_out is True
        finally:
            store.close()

    def test_timer_is_cancelled_after_load(self, store):
        store.load()

        assert store._timer is None
        assert store.loading_timed_out is False


@pytest.mark.django_db
class TestProfileUpdates:

    def test_profile_replaced_on_account_save(self, store, practitioner_user):
        store.load()

        practitioner_user.plan = PlanChoices.PRO
        practitioner_user.save()

        assert store.profile.plan == PlanChoices.PRO

    def test_other_accounts_are_ignored(self, store, other_user):
        store.load()

        other_user.plan = PlanChoices.PRO
        other_user.save()

        assert store.profile.plan == PlanChoices.FREE

    def test_closed_store_stops_listening(self, practitioner_user):
        store = PracticeStore(practitioner_user)
        store.load()
        store.close()

        practitioner_user.full_name = 'Renamed'
        practitioner_user.save()

        assert store.profile.full_name == 'Dr. Test Practitioner'


@pytest.mark.django_db
class TestMutations:

    def test_add_appointment_keeps_order(self, store, patient, appointment_factory):
        appointment_factory(date=date(2024, 2, 1))
        store.load()

        created = store.add_appointment(patient.pk, date(2024, 1, 15), '10:00')

        assert store.appointments[0] == created
        assert created.pk is not None

    def test_rejected_write_leaves_state_untouched(self, store, patient, appointment, patient_factory):
        other = patient_factory(name='Other')
        store.load()
        before = list(store.appointments)

        with pytest.raises(SlotTakenError):
            store.add_appointment(other.pk, date(2024, 1, 10), '09:00')

        assert store.appointments == before

    def test_storage_failure_leaves_state_untouched(self, store, patient):
        store.load()

        with patch.object(store.repository, 'insert_appointment', side_effect=StorageError('down')):
            with pytest.raises(StorageError):
                store.add_appointment(patient.pk, date(2024, 1, 15), '10:00')

        assert store.appointments == []

    def test_status_update_replaces_row(self, store, appointment):
        store.load()

        updated = store.update_appointment_status(appointment.pk, 'completed')

        assert updated.status == 'completed'
        assert store.get_appointment(appointment.pk).status == 'completed'

    def test_delete_appointment(self, store, appointment):
        store.load()

        store.delete_appointment(appointment.pk)

        assert store.appointments == []
        assert not Appointment.objects.filter(pk=appointment.pk).exists()

    def test_ensure_appointments_merges_created_rows(self, store, patient):
        store.load()

        created = store.ensure_appointments_for_date(date(2024, 6, 3))
        again = store.ensure_appointments_for_date(date(2024, 6, 3))

        assert len(created) == 1
        assert again == []
        assert store.appointments == created

    def test_deactivate_and_activate_round_trip(self, store, patient):
        store.load()

        assert store.deactivate_patient(patient.pk) is True
        assert store.patients == []
        assert [p.pk for p in store.deactivated_patients] == [patient.pk]

        assert store.activate_patient(patient.pk) is True
        assert [p.pk for p in store.patients] == [patient.pk]
        assert store.deactivated_patients == []

        patient.refresh_from_db()
        assert patient.is_active is True

    def test_deactivate_unknown_patient(self, store):
        store.load()

        with pytest.raises(NotFoundError):
            store.deactivate_patient(999999)

    def test_delete_clinic_detaches_patients(self, store, clinic, patient):
        store.load()

        store.delete_clinic(clinic.pk)

        assert store.clinics == []
        assert store.patients[0].clinic is None
        patient.refresh_from_db()
        assert patient.clinic_id is None

    def test_add_patient_defaults_avatar(self, store, settings):
        settings.DEFAULT_PATIENT_AVATARS = {'male': '/m.png', 'female': '/f.png'}
        store.load()

        created = store.add_patient(
            name='Maria', gender='female', appointment_days=[2], appointment_time='08:00'
        )

        assert created.profile_pic == '/f.png'
        assert [p.name for p in store.patients] == ['Maria']
        assert not Appointment.objects.exists()


@pytest.mark.django_db
class TestRepositoryScoping:

    def test_update_of_foreign_row_is_not_found(self, other_user, appointment):
        with pytest.raises(NotFoundError):
            PracticeRepository(other_user).update_appointment(appointment.pk, status='completed')


@pytest.mark.django_db
class TestStoreEdits:

    def test_update_patient_keeps_name_order(self, store, patient, patient_factory):
        patient_factory(name='Bruno')
        store.load()

        store.update_patient(patient.pk, name='Ana Doe')

        assert [p.name for p in store.patients] == ['Ana Doe', 'Bruno']

    def test_add_and_update_clinic(self, store, clinic, patient):
        store.load()

        added = store.add_clinic(name='Annex')
        store.update_clinic(clinic.pk, name='Zeta Clinic')

        assert [c.name for c in store.clinics] == ['Annex', 'Zeta Clinic']
        assert added.pk is not None
        assert store.get_patient(patient.pk).clinic.name == 'Zeta Clinic'
