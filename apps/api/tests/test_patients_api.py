"""
Integration tests for Patient API endpoints.

Tests registration with recurrence validation, edits, activation and
deactivation, and owner scoping.
"""
import pytest
from rest_framework import status

from apps.clinical.models import Appointment, Patient


@pytest.mark.django_db
class TestPatientCreate:
    """Test POST /api/v1/patients/."""

    endpoint = '/api/v1/patients/'

    def _payload(self, **overrides):
        payload = {
            'name': 'Maria Silva',
            'gender': 'female',
            'health_plan': 'Unimed',
            'category': 'adult',
            'session_value': '120.00',
            'appointment_days': [3, 1],
            'appointment_time': '09:00',
            'appointment_times': {'3': '10:30'},
        }
        payload.update(overrides)
        return payload

    def test_register_patient(self, practitioner_client, clinic, settings):
        settings.DEFAULT_PATIENT_AVATARS = {'male': '/m.png', 'female': '/f.png'}

        response = practitioner_client.post(self.endpoint, self._payload(clinic_id=clinic.id), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['appointment_days'] == [1, 3]
        assert response.data['profile_pic'] == '/f.png'
        assert response.data['clinic_name'] == 'Main Clinic'
        assert response.data['is_active'] is True

    def test_no_appointments_generated_on_registration(self, practitioner_client):
        response = practitioner_client.post(self.endpoint, self._payload(), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert not Appointment.objects.exists()

    def test_empty_days_rejected(self, practitioner_client):
        response = practitioner_client.post(self.endpoint, self._payload(appointment_days=[]), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'empty_recurrence'
        assert not Patient.objects.exists()

    def test_invalid_weekday_rejected(self, practitioner_client):
        response = practitioner_client.post(self.endpoint, self._payload(appointment_days=[8]), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_weekday'

    def test_invalid_override_time_rejected(self, practitioner_client):
        response = practitioner_client.post(
            self.endpoint, self._payload(appointment_times={'3': '25:00'}), format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_time'

    def test_negative_session_value_rejected(self, practitioner_client):
        response = practitioner_client.post(self.endpoint, self._payload(session_value='-1'), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'session_value' in response.data

    def test_foreign_clinic_rejected(self, api_client, other_user, clinic):
        api_client.force_authenticate(user=other_user)

        response = api_client.post(self.endpoint, self._payload(clinic_id=clinic.id), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'clinic_id' in response.data


@pytest.mark.django_db
class TestPatientList:
    """Test GET /api/v1/patients/ and /api/v1/patients/deactivated/."""

    def test_lists_active_patients_by_name(self, practitioner_client, patient, patient_factory):
        patient_factory(name='Ana')
        patient_factory(name='Hidden', is_active=False)

        response = practitioner_client.get('/api/v1/patients/')

        assert response.status_code == status.HTTP_200_OK
        assert [p['name'] for p in response.data['results']] == ['Ana', 'John Doe']

    def test_search_by_name(self, practitioner_client, patient, patient_factory):
        patient_factory(name='Ana')

        response = practitioner_client.get('/api/v1/patients/', {'search': 'john'})

        assert [p['name'] for p in response.data['results']] == ['John Doe']

    def test_deactivated_list(self, practitioner_client, patient, patient_factory):
        patient_factory(name='Hidden', is_active=False)

        response = practitioner_client.get('/api/v1/patients/deactivated/')

        assert response.status_code == status.HTTP_200_OK
        assert [p['name'] for p in response.data] == ['Hidden']


@pytest.mark.django_db
class TestPatientUpdate:
    """Test PATCH /api/v1/patients/{id}/."""

    def test_partial_update(self, practitioner_client, patient):
        response = practitioner_client.patch(
            f'/api/v1/patients/{patient.id}/', {'appointment_times': {'1': '07:30'}}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['appointment_times'] == {'1': '07:30'}
        assert response.data['appointment_days'] == [1, 3]

    def test_clearing_days_rejected(self, practitioner_client, patient):
        response = practitioner_client.patch(
            f'/api/v1/patients/{patient.id}/', {'appointment_days': []}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'empty_recurrence'

    def test_override_for_unknown_weekday_rejected(self, practitioner_client, patient):
        response = practitioner_client.patch(
            f'/api/v1/patients/{patient.id}/', {'appointment_times': {'9': '10:00'}}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_weekday'

        patient.refresh_from_db()
        assert patient.appointment_times == {}

    def test_delete_not_allowed(self, practitioner_client, patient):
        response = practitioner_client.delete(f'/api/v1/patients/{patient.id}/')

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
        assert Patient.objects.filter(pk=patient.pk).exists()


@pytest.mark.django_db
class TestPatientActivation:
    """Test POST /api/v1/patients/{id}/deactivate/ and /activate/."""

    def test_round_trip(self, practitioner_client, patient):
        response = practitioner_client.post(f'/api/v1/patients/{patient.id}/deactivate/')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['is_active'] is False

        active = practitioner_client.get('/api/v1/patients/')
        assert active.data['results'] == []

        response = practitioner_client.post(f'/api/v1/patients/{patient.id}/activate/')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['is_active'] is True

        patient.refresh_from_db()
        assert patient.is_active is True

    def test_deactivated_patient_keeps_history(self, practitioner_client, patient, appointment):
        practitioner_client.post(f'/api/v1/patients/{patient.id}/deactivate/')

        assert Appointment.objects.filter(pk=appointment.pk).exists()

    def test_other_account_cannot_deactivate(self, api_client, other_user, patient):
        api_client.force_authenticate(user=other_user)

        response = api_client.post(f'/api/v1/patients/{patient.id}/deactivate/')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        patient.refresh_from_db()
        assert patient.is_active is True
