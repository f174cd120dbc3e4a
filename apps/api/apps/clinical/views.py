"""
Clinical API: patients, appointments, weekly agenda and billing reports.

Writes go through apps.clinical.services with an owner-scoped
PracticeRepository. Scheduling errors are mapped to responses by
SchedulingErrorMixin:
- ValidationRejected -> 400 {"error", "code"}
- NotFoundError -> 404 {"error"}
- StoreLoadError -> 503 {"error", "retry": true}
- StorageError -> 502 {"error"}
"""
import logging
from datetime import date

from django.http import HttpResponse
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.clinical import reports, services
from apps.clinical.agenda import week_start_for
from apps.clinical.exceptions import (
    NotFoundError,
    StorageError,
    StoreLoadError,
    ValidationRejected,
)
from apps.clinical.models import Appointment, Patient
from apps.clinical.permissions import IsOwner
from apps.clinical.repositories import PracticeRepository
from apps.clinical.serializers import (
    AgendaDaySerializer,
    AppointmentCreateSerializer,
    AppointmentSerializer,
    AppointmentStatusSerializer,
    AppointmentUpdateSerializer,
    DailyReportSerializer,
    MonthlyTotalSerializer,
    PatientSerializer,
)
from apps.clinical.store import PracticeStore

logger = logging.getLogger(__name__)


class SchedulingErrorMixin:
    """Render scheduling/storage errors as JSON responses."""

    def handle_exception(self, exc):
        if isinstance(exc, ValidationRejected):
            return Response({'error': str(exc), 'code': exc.code}, status=status.HTTP_400_BAD_REQUEST)
        if isinstance(exc, NotFoundError):
            return Response({'error': str(exc)}, status=status.HTTP_404_NOT_FOUND)
        if isinstance(exc, StoreLoadError):
            return Response(
                {'error': str(exc), 'retry': True},
                status=status.HTTP_503_SERVICE_UNAVAILABLE
            )
        if isinstance(exc, StorageError):
            return Response({'error': str(exc)}, status=status.HTTP_502_BAD_GATEWAY)
        return super().handle_exception(exc)


def _date_param(request, name, default=None):
    raw = request.query_params.get(name)
    if not raw:
        return default
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationRejected(f'Invalid {name}: {raw!r}. Use YYYY-MM-DD.', code='invalid_date')


def _int_param(request, name):
    raw = request.query_params.get(name)
    if raw in (None, '', 'all'):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationRejected(f'Invalid {name}: {raw!r}.', code=f'invalid_{name}')


# ============================================================================
# Patients
# ============================================================================

class PatientViewSet(SchedulingErrorMixin, viewsets.ModelViewSet):
    """
    ViewSet for Patient endpoints.

    Endpoints:
    - GET /api/v1/patients/ - Active patients, by name (?search= filters by name)
    - POST /api/v1/patients/ - Register a patient
    - GET /api/v1/patients/{id}/
    - PATCH /api/v1/patients/{id}/
    - GET /api/v1/patients/deactivated/
    - POST /api/v1/patients/{id}/deactivate/
    - POST /api/v1/patients/{id}/activate/

    Patients are never deleted through the API.
    """
    permission_classes = [IsOwner]
    serializer_class = PatientSerializer
    http_method_names = ['get', 'post', 'patch', 'head', 'options']
    search_fields = ['name']

    def get_queryset(self):
        queryset = Patient.objects.select_related('clinic').filter(user=self.request.user)
        if self.action == 'list':
            queryset = queryset.filter(is_active=True)
        elif self.action == 'deactivated':
            queryset = queryset.filter(is_active=False)
        return queryset.order_by('name')

    def get_repository(self):
        return PracticeRepository(self.request.user)

    def create(self, request, *args, **kwargs):
        """Register patient (POST /api/v1/patients/). No appointments are pre-generated."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        patient = services.register_patient(self.get_repository(), **serializer.validated_data)
        return Response(self.get_serializer(patient).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        """Update patient (PATCH /api/v1/patients/{id}/). Always partial."""
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        updated = services.edit_patient(self.get_repository(), instance, **serializer.validated_data)
        return Response(self.get_serializer(updated).data)

    @action(detail=False, methods=['get'])
    def deactivated(self, request):
        """GET /api/v1/patients/deactivated/"""
        queryset = self.filter_queryset(self.get_queryset())
        return Response(self.get_serializer(queryset, many=True).data)

    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        """POST /api/v1/patients/{id}/deactivate/"""
        return self._set_active(False)

    @action(detail=True, methods=['post'])
    def activate(self, request, pk=None):
        """POST /api/v1/patients/{id}/activate/"""
        return self._set_active(True)

    def _set_active(self, active):
        patient = self.get_object()
        repository = self.get_repository()
        services.set_patient_active(repository, patient.pk, active)
        return Response(self.get_serializer(repository.get_patient(patient.pk)).data)


# ============================================================================
# Appointments
# ============================================================================

class AppointmentViewSet(SchedulingErrorMixin, viewsets.ModelViewSet):
    """
    ViewSet for Appointment endpoints.

    Endpoints:
    - GET /api/v1/appointments/ - ?date= ?start= ?end= ?patient_id= ?status=
    - POST /api/v1/appointments/ - Ad hoc appointment
    - GET /api/v1/appointments/{id}/
    - PATCH /api/v1/appointments/{id}/ - Edit date/time/status/observation
    - DELETE /api/v1/appointments/{id}/ - Hard delete
    - POST /api/v1/appointments/{id}/status/ - Set status
    - GET /api/v1/appointments/day/?date= - Materialize recurring appointments
      for the date, then list the day by time and patient name
    """
    permission_classes = [IsOwner]
    serializer_class = AppointmentSerializer
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']
    filter_backends = []

    def get_queryset(self):
        queryset = Appointment.objects.select_related('patient').filter(user=self.request.user)

        on_date = _date_param(self.request, 'date')
        if on_date:
            queryset = queryset.filter(date=on_date)

        start = _date_param(self.request, 'start')
        if start:
            queryset = queryset.filter(date__gte=start)

        end = _date_param(self.request, 'end')
        if end:
            queryset = queryset.filter(date__lte=end)

        patient_id = _int_param(self.request, 'patient_id')
        if patient_id is not None:
            queryset = queryset.filter(patient_id=patient_id)

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        return queryset.order_by('date', 'time')

    def get_repository(self):
        return PracticeRepository(self.request.user)

    def create(self, request, *args, **kwargs):
        """
        POST /api/v1/appointments/

        BUSINESS RULES:
        - one appointment per patient per day (400 patient_day_taken)
        - one appointment per date and time in the account (400 slot_taken)
        """
        serializer = AppointmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        repository = self.get_repository()
        patient = repository.get_patient(data['patient_id'])
        existing = repository.fetch_appointments(on_date=data['date'])
        appointment = services.create_appointment(
            repository,
            existing,
            patient,
            data['date'],
            data['time'],
            data.get('observation'),
        )
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        """PATCH /api/v1/appointments/{id}/ with the same uniqueness rules as creation."""
        appointment = self.get_object()
        serializer = AppointmentUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)

        repository = self.get_repository()
        existing = repository.fetch_appointments(on_date=changes.get('date', appointment.date))
        updated = services.change_appointment_details(repository, existing, appointment, **changes)
        return Response(AppointmentSerializer(updated).data)

    def destroy(self, request, *args, **kwargs):
        """DELETE /api/v1/appointments/{id}/ - removed for good."""
        services.remove_appointment(self.get_repository(), self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], url_path='status')
    def change_status(self, request, pk=None):
        """
        POST /api/v1/appointments/{id}/status/

        Any status can be set from any status.

        Request body:
        {
            "status": "completed"
        }
        """
        appointment = self.get_object()
        serializer = AppointmentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = services.change_appointment_status(
            self.get_repository(), appointment, serializer.validated_data['status']
        )
        return Response(AppointmentSerializer(updated).data)

    @action(detail=False, methods=['get'])
    def day(self, request):
        """GET /api/v1/appointments/day/?date=YYYY-MM-DD (defaults to today)."""
        target = _date_param(request, 'date', default=date.today())
        appointments = services.materialize_day(self.get_repository(), target)
        return Response({
            'date': target,
            'appointments': AppointmentSerializer(appointments, many=True).data,
        })


# ============================================================================
# Agenda
# ============================================================================

class AgendaWeekView(SchedulingErrorMixin, APIView):
    """
    GET /api/v1/agenda/week/?start=YYYY-MM-DD

    Seven days of confirmed and recurring slots grouped by time. Read-only:
    recurring slots are not materialized here. Defaults to the week
    (Sunday first) containing today.
    """

    def get(self, request):
        start = _date_param(request, 'start') or week_start_for(date.today())
        with PracticeStore(request.user) as store:
            store.load()
            days = store.build_week(start)
        return Response({
            'week_start': start,
            'days': AgendaDaySerializer(days, many=True).data,
        })


# ============================================================================
# Reports
# ============================================================================

def _report_range(request):
    today = date.today()
    start = _date_param(request, 'start', default=today.replace(day=1))
    end = _date_param(request, 'end', default=today)
    if start > end:
        raise ValidationRejected('start must not be after end.', code='invalid_range')
    return start, end


class DailyReportView(SchedulingErrorMixin, APIView):
    """
    GET /api/v1/reports/daily/?start=&end=&clinic_id=

    Billable appointments grouped by day (newest first) with totals.
    Range defaults to the current month up to today.
    """

    def get(self, request):
        start, end = _report_range(request)
        clinic_id = _int_param(request, 'clinic_id')
        repository = PracticeRepository(request.user)
        report = reports.daily_report(
            repository.fetch_appointments(start=start, end=end),
            repository.fetch_all_patients(),
            start,
            end,
            clinic_id=clinic_id,
        )
        return Response(DailyReportSerializer(report).data)


class MonthlyReportView(SchedulingErrorMixin, APIView):
    """GET /api/v1/reports/monthly/?clinic_id= - billed value per month."""

    def get(self, request):
        repository = PracticeRepository(request.user)
        totals = reports.monthly_totals(
            repository.fetch_appointments(),
            repository.fetch_all_patients(),
            clinic_id=_int_param(request, 'clinic_id'),
        )
        return Response(MonthlyTotalSerializer(totals, many=True).data)


class ReportExportView(SchedulingErrorMixin, APIView):
    """
    GET /api/v1/reports/export/?clinic_id=&start=&end=

    CSV (semicolon separated, UTF-8 with BOM) of one clinic's billable
    appointments.
    """

    def get(self, request):
        clinic_id = _int_param(request, 'clinic_id')
        if clinic_id is None:
            raise ValidationRejected('clinic_id is required for export.', code='clinic_required')
        start, end = _report_range(request)

        repository = PracticeRepository(request.user)
        clinic = repository.get_clinic(clinic_id)
        content = reports.export_csv(
            repository.fetch_appointments(start=start, end=end),
            repository.fetch_all_patients(),
            clinic.pk,
            start,
            end,
        )

        response = HttpResponse(content, content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = (
            f'attachment; filename="report_{clinic.pk}_{start.isoformat()}_{end.isoformat()}.csv"'
        )
        return response
