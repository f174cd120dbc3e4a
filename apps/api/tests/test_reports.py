"""
Tests for billing reports.

BUSINESS RULE: only completed and no-show appointments of known patients
count, each worth the patient's session value. The monthly series skips
deactivated patients.
"""
from datetime import date
from decimal import Decimal

import pytest
from rest_framework import status

from apps.clinical import reports

JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


@pytest.fixture
def billing_data(patient, patient_factory, appointment_factory):
    """
    John Doe (150.00, Main Clinic): completed, no_show, canceled, no_status in January.
    Ana (80.00, no clinic): completed in January and February.
    Inactive (500.00): completed in January.
    """
    ana = patient_factory(name='ana', session_value=Decimal('80.00'))
    inactive = patient_factory(name='Inactive', session_value=Decimal('500.00'), is_active=False)

    appointment_factory(date=date(2024, 1, 3), status='completed')
    appointment_factory(date=date(2024, 1, 5), status='no_show')
    appointment_factory(date=date(2024, 1, 8), status='canceled')
    appointment_factory(date=date(2024, 1, 10), status='no_status')
    appointment_factory(patient=ana, date=date(2024, 1, 5), time='10:00', status='completed')
    appointment_factory(patient=ana, date=date(2024, 2, 2), status='completed')
    appointment_factory(patient=inactive, date=date(2024, 1, 12), status='completed')
    return {'john': patient, 'ana': ana, 'inactive': inactive}


@pytest.mark.django_db
class TestBillableEntries:

    def test_only_billable_statuses(self, repository, billing_data):
        entries = reports.billable_entries(
            repository.fetch_appointments(), repository.fetch_all_patients(), JAN_START, JAN_END
        )

        assert sorted((e[1].name, e[2]) for e in entries) == [
            ('Inactive', date(2024, 1, 12)),
            ('John Doe', date(2024, 1, 3)),
            ('John Doe', date(2024, 1, 5)),
            ('ana', date(2024, 1, 5)),
        ]

    def test_active_only_skips_deactivated_patients(self, repository, billing_data):
        entries = reports.billable_entries(
            repository.fetch_appointments(), repository.fetch_all_patients(),
            JAN_START, JAN_END, active_only=True
        )

        assert 'Inactive' not in {e[1].name for e in entries}

    def test_clinic_filter(self, repository, billing_data, clinic):
        entries = reports.billable_entries(
            repository.fetch_appointments(), repository.fetch_all_patients(),
            JAN_START, JAN_END, clinic_id=clinic.pk
        )

        assert {e[1].name for e in entries} == {'John Doe'}


@pytest.mark.django_db
class TestDailyReport:

    def test_groups_newest_first_with_totals(self, repository, billing_data):
        report = reports.daily_report(
            repository.fetch_appointments(), repository.fetch_all_patients(), JAN_START, JAN_END
        )

        assert [g['date'] for g in report['groups']] == [
            date(2024, 1, 12), date(2024, 1, 5), date(2024, 1, 3),
        ]
        jan_5 = report['groups'][1]
        assert [i['patient_name'] for i in jan_5['items']] == ['ana', 'John Doe']
        assert jan_5['total_value'] == Decimal('230.00')
        assert report['summary'] == {
            'total_appointments': 4,
            'total_to_receive': Decimal('880.00'),
        }

    def test_deactivated_patient_history_is_reported(self, repository, patient_factory, appointment_factory):
        former = patient_factory(name='Former Patient', session_value=Decimal('90.00'), is_active=False)
        appointment_factory(patient=former, date=date(2024, 1, 10), status='completed')

        report = reports.daily_report(
            repository.fetch_appointments(), repository.fetch_all_patients(), JAN_START, JAN_END
        )

        assert report['summary'] == {
            'total_appointments': 1,
            'total_to_receive': Decimal('90.00'),
        }
        assert report['groups'][0]['items'][0]['patient_name'] == 'Former Patient'

    def test_endpoint(self, practitioner_client, billing_data):
        response = practitioner_client.get(
            '/api/v1/reports/daily/', {'start': '2024-01-01', 'end': '2024-01-31'}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['summary']['total_appointments'] == 4
        assert response.data['summary']['total_to_receive'] == '880.00'

    def test_inverted_range_rejected(self, practitioner_client):
        response = practitioner_client.get(
            '/api/v1/reports/daily/', {'start': '2024-02-01', 'end': '2024-01-01'}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_range'


@pytest.mark.django_db
class TestMonthlyTotals:

    def test_months_ascending_active_patients_only(self, repository, billing_data):
        totals = reports.monthly_totals(repository.fetch_appointments(), repository.fetch_all_patients())

        assert totals == [
            {'month': '2024-01', 'total': Decimal('380.00')},
            {'month': '2024-02', 'total': Decimal('80.00')},
        ]


@pytest.mark.django_db
class TestPatientStatements:

    def test_distinct_dates_and_totals(self, repository, billing_data):
        statements = reports.patient_statements(
            repository.fetch_appointments(), repository.fetch_all_patients(), JAN_START, JAN_END
        )

        assert [s['name'] for s in statements] == ['ana', 'Inactive', 'John Doe']
        assert statements[1]['total'] == Decimal('500.00')
        john = statements[2]
        assert john['clinic'] == 'Main Clinic'
        assert john['dates'] == [date(2024, 1, 3), date(2024, 1, 5)]
        assert john['total'] == Decimal('300.00')


class TestFormatMoney:

    @pytest.mark.parametrize('value, expected', [
        (Decimal('0'), '0,00'),
        (Decimal('150'), '150,00'),
        (Decimal('1234.5'), '1.234,50'),
    ])
    def test_decimal_comma(self, value, expected):
        assert reports.format_money(value) == expected


@pytest.mark.django_db
class TestExport:

    def test_csv_layout(self, repository, billing_data, clinic):
        content = reports.export_csv(
            repository.fetch_appointments(), repository.fetch_all_patients(),
            clinic.pk, JAN_START, JAN_END
        )

        assert content.startswith('\ufeff')
        lines = content.lstrip('\ufeff').splitlines()
        assert lines == [
            'Date;Patient;Category;Status;Value',
            '05/01/2024;John Doe;Adult;No Show;150,00',
            '03/01/2024;John Doe;Adult;Completed;150,00',
            ';;;TOTAL;300,00',
        ]

    def test_endpoint_requires_clinic(self, practitioner_client):
        response = practitioner_client.get('/api/v1/reports/export/')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'clinic_required'

    def test_endpoint_returns_csv(self, practitioner_client, billing_data, clinic):
        response = practitioner_client.get(
            '/api/v1/reports/export/',
            {'clinic_id': clinic.pk, 'start': '2024-01-01', 'end': '2024-01-31'}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response['Content-Type'].startswith('text/csv')
        assert 'attachment' in response['Content-Disposition']
        assert ';;;TOTAL;300,00' in response.content.decode('utf-8')

    def test_endpoint_foreign_clinic_not_found(self, api_client, other_user, clinic):
        api_client.force_authenticate(user=other_user)

        response = api_client.get('/api/v1/reports/export/', {'clinic_id': clinic.pk})

        assert response.status_code == status.HTTP_404_NOT_FOUND
