"""
Core views - Clinics.

Clinic writes go through the owner-scoped PracticeRepository so they share the
storage error handling of the clinical API. Deleting a clinic keeps its
patients; they are left without a clinic.
"""
import logging

from rest_framework import status, viewsets
from rest_framework.response import Response

from apps.clinical.permissions import IsOwner
from apps.clinical.repositories import PracticeRepository
from apps.clinical.views import SchedulingErrorMixin

from .models import Clinic
from .serializers import ClinicSerializer

logger = logging.getLogger(__name__)


class ClinicViewSet(SchedulingErrorMixin, viewsets.ModelViewSet):
    """
    ViewSet for Clinic endpoints.

    Endpoints:
    - GET /api/v1/clinics/ - List clinics by name
    - POST /api/v1/clinics/
    - GET /api/v1/clinics/{id}/
    - PATCH /api/v1/clinics/{id}/
    - DELETE /api/v1/clinics/{id}/
    """
    permission_classes = [IsOwner]
    serializer_class = ClinicSerializer
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']
    search_fields = ['name']

    def get_queryset(self):
        return Clinic.objects.filter(user=self.request.user).order_by('name')

    def get_repository(self):
        return PracticeRepository(self.request.user)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        clinic = self.get_repository().insert_clinic(**serializer.validated_data)
        logger.info('Clinic created', extra={'clinic_id': clinic.pk, 'account_id': str(request.user.pk)})
        return Response(self.get_serializer(clinic).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        clinic = self.get_repository().update_clinic(instance.pk, **serializer.validated_data)
        return Response(self.get_serializer(clinic).data)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        self.get_repository().delete_clinic(instance.pk)
        logger.info('Clinic deleted', extra={'clinic_id': instance.pk, 'account_id': str(request.user.pk)})
        return Response(status=status.HTTP_204_NO_CONTENT)
