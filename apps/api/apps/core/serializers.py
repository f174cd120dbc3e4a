"""
Core serializers - Clinic.
"""
from rest_framework import serializers

from .models import Clinic


class ClinicSerializer(serializers.ModelSerializer):
    """Serializer for Clinic list/detail/create/update."""

    class Meta:
        model = Clinic
        fields = ['id', 'name', 'address', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Clinic name cannot be blank.')
        return value
