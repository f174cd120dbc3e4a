"""
Clinical URLs - Patients, Appointments, Agenda, Reports.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    PatientViewSet,
    AppointmentViewSet,
    AgendaWeekView,
    DailyReportView,
    MonthlyReportView,
    ReportExportView,
)

router = DefaultRouter()
router.register(r'patients', PatientViewSet, basename='patient')
router.register(r'appointments', AppointmentViewSet, basename='appointment')

urlpatterns = [
    # Weekly agenda (read-only)
    path('agenda/week/', AgendaWeekView.as_view(), name='agenda-week'),

    # Billing reports
    path('reports/daily/', DailyReportView.as_view(), name='report-daily'),
    path('reports/monthly/', MonthlyReportView.as_view(), name='report-monthly'),
    path('reports/export/', ReportExportView.as_view(), name='report-export'),

    # Standard CRUD via router
    path('', include(router.urls)),
]
