"""
Billing reports.

BUSINESS RULE: only COMPLETED and NO_SHOW appointments of known patients are
billed; each one is worth the patient's session_value. CANCELED and NO_STATUS
appointments contribute nothing. Deactivated patients stay in the daily
report, statements and export; the monthly series
counts active patients only.
"""
import csv
import io
from collections import OrderedDict, defaultdict
from decimal import Decimal

from .models import AppointmentStatusChoices, CategoryChoices
from .recurrence import parse_date_or_none, to_date

CSV_HEADER = ['Date', 'Patient', 'Category', 'Status', 'Value']
CSV_BOM = '\ufeff'


def _value_of(patient):
    return Decimal(patient.session_value or 0)


def _clinic_name(patient):
    clinic = getattr(patient, 'clinic', None)
    return clinic.name if clinic is not None else 'N/A'


def billable_entries(appointments, patients, start=None, end=None, clinic_id=None, active_only=False):
    """
    Pair each billable appointment with its patient.

    Args:
        appointments: iterable of Appointment
        patients: every patient of the account, deactivated ones included
        start, end: inclusive date bounds, optional
        clinic_id: restrict to patients of this clinic, optional
        active_only: skip deactivated patients

    Returns:
        list of (appointment, patient, date) tuples
    """
    start = to_date(start) if start else None
    end = to_date(end) if end else None
    patients_by_id = {p.pk: p for p in patients}

    entries = []
    for appointment in appointments:
        if not appointment.is_billable:
            continue
        day = parse_date_or_none(getattr(appointment, 'date', None))
        if day is None:
            continue
        if (start and day < start) or (end and day > end):
            continue
        patient = patients_by_id.get(appointment.patient_id)
        if patient is None:
            continue
        if active_only and not patient.is_active:
            continue
        if clinic_id is not None and patient.clinic_id != clinic_id:
            continue
        entries.append((appointment, patient, day))
    return entries


def daily_report(appointments, patients, start, end, clinic_id=None):
    """
    Billable appointments grouped by date, newest date first.

    Items of a day are sorted by patient name (case-insensitive).
    """
    groups = {}
    for appointment, patient, day in billable_entries(appointments, patients, start, end, clinic_id):
        group = groups.setdefault(day, {'date': day, 'total_value': Decimal('0'), 'items': []})
        group['items'].append({
            'appointment_id': appointment.pk,
            'patient_id': patient.pk,
            'patient_name': patient.name,
            'clinic_name': _clinic_name(patient),
            'time': appointment.time,
            'status': appointment.status,
            'value': _value_of(patient),
        })
        group['total_value'] += _value_of(patient)

    ordered = sorted(groups.values(), key=lambda g: g['date'], reverse=True)
    for group in ordered:
        group['items'].sort(key=lambda item: (item['patient_name'] or '').casefold())

    return {
        'groups': ordered,
        'summary': {
            'total_appointments': sum(len(g['items']) for g in ordered),
            'total_to_receive': sum((g['total_value'] for g in ordered), Decimal('0')),
        },
    }


def monthly_totals(appointments, patients, clinic_id=None):
    """Billed value per "YYYY-MM" of active patients, ascending."""
    totals = defaultdict(Decimal)
    entries = billable_entries(appointments, patients, clinic_id=clinic_id, active_only=True)
    for _, patient, day in entries:
        totals[day.strftime('%Y-%m')] += _value_of(patient)
    return [{'month': month, 'total': totals[month]} for month in sorted(totals)]


def patient_statements(appointments, patients, start, end, clinic_id=None):
    """
    Per-patient aggregation for statements: name, clinic, distinct dates in
    ascending order and billed total. Sorted by patient name.
    """
    statements = OrderedDict()
    for _, patient, day in billable_entries(appointments, patients, start, end, clinic_id):
        statement = statements.setdefault(patient.pk, {
            'patient_id': patient.pk,
            'name': patient.name,
            'clinic': _clinic_name(patient),
            'dates': set(),
            'total': Decimal('0'),
        })
        statement['dates'].add(day)
        statement['total'] += _value_of(patient)

    result = sorted(statements.values(), key=lambda s: (s['name'] or '').casefold())
    for statement in result:
        statement['dates'] = sorted(statement['dates'])
    return result


def format_money(value):
    """1234.5 -> "1.234,50" (decimal comma, dot thousands)."""
    text = f'{Decimal(value):,.2f}'
    return text.replace(',', '_').replace('.', ',').replace('_', '.')


def export_csv(appointments, patients, clinic_id, start, end):
    """
    Semicolon-separated export of one clinic's billable appointments.

    Newest first, dates as DD/MM/YYYY, a closing TOTAL row, UTF-8 BOM prefix.
    """
    entries = billable_entries(appointments, patients, start, end, clinic_id)
    entries.sort(key=lambda entry: entry[2], reverse=True)

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=';', lineterminator='\n')
    writer.writerow(CSV_HEADER)

    total = Decimal('0')
    for appointment, patient, day in entries:
        value = _value_of(patient)
        total += value
        writer.writerow([
            day.strftime('%d/%m/%Y'),
            patient.name,
            CategoryChoices(patient.category).label if patient.category in CategoryChoices.values else patient.category,
            AppointmentStatusChoices(appointment.status).label,
            format_money(value),
        ])
    writer.writerow(['', '', '', 'TOTAL', format_money(total)])

    return CSV_BOM + buffer.getvalue()
