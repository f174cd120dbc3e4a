"""
Authz views for the current practitioner profile.
"""
from rest_framework import generics
from rest_framework.permissions import IsAuthenticated

from apps.authz.serializers import ProfileSerializer


class ProfileView(generics.RetrieveUpdateAPIView):
    """
    Current account profile.

    Endpoints:
    - GET /api/v1/me/ - Profile of the authenticated practitioner
    - PATCH /api/v1/me/ - Update full_name / profile_pic
    """
    permission_classes = [IsAuthenticated]
    serializer_class = ProfileSerializer
    http_method_names = ['get', 'patch', 'head', 'options']

    def get_object(self):
        return self.request.user
