from django.contrib import admin
from .models import Patient, Appointment


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['name', 'user', 'clinic', 'category', 'session_value', 'is_active', 'created_at']
    list_filter = ['is_active', 'gender', 'category']
    search_fields = ['name', 'health_plan', 'user__email']
    readonly_fields = ['created_at', 'updated_at']
    autocomplete_fields = ['clinic']

    fieldsets = (
        ('Basic Info', {
            'fields': ('user', 'clinic', 'name', 'gender', 'health_plan', 'category', 'profile_pic')
        }),
        ('Recurrence', {
            'fields': ('appointment_days', 'appointment_time', 'appointment_times')
        }),
        ('Billing', {
            'fields': ('session_value',)
        }),
        ('Status', {
            'fields': ('is_active', 'created_at', 'updated_at')
        }),
    )


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ['date', 'time', 'patient', 'status', 'user']
    list_filter = ['status', 'date']
    search_fields = ['patient__name', 'user__email']
    readonly_fields = ['created_at', 'updated_at']
    date_hierarchy = 'date'
    raw_id_fields = ['patient']
