"""
Clinical serializers for Patient, Appointment, agenda and reports.

Serializers check shapes and types only. Scheduling rules (recurrence
validity, one appointment per patient per day, one per slot) are enforced
in apps.clinical.services so every write path shares them.
"""
from rest_framework import serializers

from apps.core.models import Clinic
from apps.clinical.models import (
    Appointment,
    AppointmentStatusChoices,
    Patient,
    time_validator,
)


class OwnedClinicField(serializers.PrimaryKeyRelatedField):
    """Clinic reference restricted to clinics of the requesting account."""

    def get_queryset(self):
        request = self.context.get('request')
        if request is None:
            return Clinic.objects.none()
        return Clinic.objects.filter(user=request.user)


# ============================================================================
# Patients
# ============================================================================

class PatientSerializer(serializers.ModelSerializer):
    """
    Serializer for Patient list/detail/create/update.

    is_active is read-only: use the activate/deactivate endpoints.
    """
    clinic_id = OwnedClinicField(source='clinic', allow_null=True, required=False)
    clinic_name = serializers.CharField(source='clinic.name', read_only=True, default=None)
    appointment_days = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)
    appointment_times = serializers.DictField(
        child=serializers.CharField(), required=False, allow_empty=True
    )

    class Meta:
        model = Patient
        fields = [
            'id',
            'name',
            'gender',
            'health_plan',
            'category',
            'session_value',
            'appointment_days',
            'appointment_time',
            'appointment_times',
            'profile_pic',
            'clinic_id',
            'clinic_name',
            'is_active',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'is_active', 'created_at', 'updated_at']
        extra_kwargs = {
            # Time format is checked by the recurrence validation in services
            'appointment_time': {'validators': []},
            'profile_pic': {'required': False},
        }

    def validate_session_value(self, value):
        if value < 0:
            raise serializers.ValidationError('Session value cannot be negative.')
        return value


# ============================================================================
# Appointments
# ============================================================================

class AppointmentSerializer(serializers.ModelSerializer):
    """Read serializer for appointments."""
    patient_id = serializers.IntegerField(read_only=True)
    patient_name = serializers.SerializerMethodField()
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Appointment
        fields = [
            'id',
            'patient_id',
            'patient_name',
            'date',
            'time',
            'status',
            'status_display',
            'observation',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_patient_name(self, obj):
        return obj.patient.name if obj.patient_id else None


class AppointmentCreateSerializer(serializers.Serializer):
    """Ad hoc appointment. Status always starts as no_status."""
    patient_id = serializers.IntegerField()
    date = serializers.DateField()
    time = serializers.CharField(max_length=5, validators=[time_validator])
    observation = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class AppointmentUpdateSerializer(serializers.Serializer):
    """Detail edit (PATCH). Every field is optional."""
    date = serializers.DateField(required=False)
    time = serializers.CharField(max_length=5, required=False, validators=[time_validator])
    status = serializers.ChoiceField(choices=AppointmentStatusChoices.choices, required=False)
    observation = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class AppointmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AppointmentStatusChoices.choices)


# ============================================================================
# Agenda
# ============================================================================

class AgendaSlotSerializer(serializers.Serializer):
    time = serializers.CharField()
    source_type = serializers.CharField()
    patient_id = serializers.IntegerField(source='patient.pk')
    patient_name = serializers.CharField(source='patient.name')
    profile_pic = serializers.CharField(source='patient.profile_pic')
    appointment_id = serializers.SerializerMethodField()
    status = serializers.SerializerMethodField()

    def get_appointment_id(self, obj):
        return obj.appointment.pk if obj.appointment is not None else None

    def get_status(self, obj):
        return obj.appointment.status if obj.appointment is not None else None


class SlotGroupSerializer(serializers.Serializer):
    time = serializers.CharField()
    is_collision = serializers.BooleanField()
    slots = AgendaSlotSerializer(many=True)


class AgendaDaySerializer(serializers.Serializer):
    date = serializers.DateField()
    weekday = serializers.IntegerField()
    groups = SlotGroupSerializer(many=True)


# ============================================================================
# Reports
# ============================================================================

class ReportItemSerializer(serializers.Serializer):
    appointment_id = serializers.IntegerField()
    patient_id = serializers.IntegerField()
    patient_name = serializers.CharField()
    clinic_name = serializers.CharField()
    time = serializers.CharField()
    status = serializers.CharField()
    value = serializers.DecimalField(max_digits=12, decimal_places=2)


class ReportGroupSerializer(serializers.Serializer):
    date = serializers.DateField()
    total_value = serializers.DecimalField(max_digits=12, decimal_places=2)
    items = ReportItemSerializer(many=True)


class ReportSummarySerializer(serializers.Serializer):
    total_appointments = serializers.IntegerField()
    total_to_receive = serializers.DecimalField(max_digits=14, decimal_places=2)


class DailyReportSerializer(serializers.Serializer):
    groups = ReportGroupSerializer(many=True)
    summary = ReportSummarySerializer()


class MonthlyTotalSerializer(serializers.Serializer):
    month = serializers.CharField()
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
