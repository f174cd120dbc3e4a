"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Authenticated API clients
- Model instances (Clinic, Patient, Appointment)
- Factory-style fixtures for building several rows per test
"""
from datetime import date
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from apps.authz.models import User
from apps.core.models import Clinic
from apps.clinical.models import Appointment, Patient
from apps.clinical.repositories import PracticeRepository


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def practitioner_user(db):
    """Practitioner account owning the test data."""
    return User.objects.create_user(
        email='practitioner@test.com',
        password='testpass123',
        full_name='Dr. Test Practitioner',
        is_active=True
    )


@pytest.fixture
def other_user(db):
    """A second account, used to check owner scoping."""
    return User.objects.create_user(
        email='other@test.com',
        password='testpass123',
        full_name='Dr. Someone Else',
        is_active=True
    )


@pytest.fixture
def practitioner_client(practitioner_user):
    """Authenticated API client for the practitioner account."""
    client = APIClient()
    client.force_authenticate(user=practitioner_user)
    return client


@pytest.fixture
def repository(practitioner_user):
    return PracticeRepository(practitioner_user)


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def clinic(db, practitioner_user):
    """Create a clinic."""
    return Clinic.objects.create(
        user=practitioner_user,
        name='Main Clinic',
        address='123 Test Street'
    )


@pytest.fixture
def patient(db, practitioner_user, clinic):
    """Active patient seen on Mondays and Wednesdays at 09:00."""
    return Patient.objects.create(
        user=practitioner_user,
        clinic=clinic,
        name='John Doe',
        gender='male',
        category='adult',
        session_value=Decimal('150.00'),
        appointment_days=[1, 3],
        appointment_time='09:00',
        appointment_times={},
    )


@pytest.fixture
def appointment(db, practitioner_user, patient):
    """Create an appointment on Wednesday 2024-01-10 at 09:00."""
    return Appointment.objects.create(
        user=practitioner_user,
        patient=patient,
        date=date(2024, 1, 10),
        time='09:00',
    )


# ============================================================================
# Factory-style Fixtures (for creating multiple instances)
# ============================================================================

@pytest.fixture
def patient_factory(db, practitioner_user):
    """
    Factory fixture for creating multiple patients.

    Usage:
        p1 = patient_factory(name='Jane Smith', appointment_days=[2])
        p2 = patient_factory(is_active=False)
    """
    created_patients = []

    def _create_patient(**kwargs):
        defaults = {
            'user': practitioner_user,
            'name': f'Patient {len(created_patients) + 1}',
            'gender': 'female',
            'category': 'adult',
            'session_value': Decimal('100.00'),
            'appointment_days': [1],
            'appointment_time': '09:00',
            'appointment_times': {},
        }
        defaults.update(kwargs)

        patient = Patient.objects.create(**defaults)
        created_patients.append(patient)
        return patient

    return _create_patient


@pytest.fixture
def appointment_factory(db, practitioner_user, patient):
    """
    Factory fixture for creating multiple appointments.

    Usage:
        apt1 = appointment_factory(date=date(2024, 1, 8), time='10:00')
        apt2 = appointment_factory(patient=other, status='completed')
    """
    created_appointments = []

    def _create_appointment(**kwargs):
        defaults = {
            'user': practitioner_user,
            'patient': patient,
            'date': date(2024, 1, 1 + len(created_appointments)),
            'time': '09:00',
            'status': 'no_status',
        }
        defaults.update(kwargs)

        appointment = Appointment.objects.create(**defaults)
        created_appointments.append(appointment)
        return appointment

    return _create_appointment
