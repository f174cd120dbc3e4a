"""
Authz serializers for the practitioner profile.
"""
from rest_framework import serializers
from apps.authz.models import User


class ProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for the current account (GET/PATCH /api/v1/me/).

    plan is read-only here; it changes through billing, not the profile form.
    """

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'full_name',
            'plan',
            'profile_pic',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'email', 'plan', 'created_at', 'updated_at']
