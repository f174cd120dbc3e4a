"""
Clinical permissions for API endpoints.

BUSINESS RULE: a practitioner only ever sees and changes rows of their own
account. Querysets are already owner-scoped; IsOwner is the object-level
backstop.
"""
from rest_framework import permissions


class IsOwner(permissions.BasePermission):
    """
    Object-level permission: obj.user must be the requesting account.

    - Authenticated owner: full access
    - Anyone else: denied
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        return getattr(obj, 'user_id', None) == request.user.pk
