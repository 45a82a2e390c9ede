"""
Authz permissions for the psychologist directory.
"""
from rest_framework import permissions
from apps.authz.models import RoleChoices


class PsychologistDirectoryPermission(permissions.BasePermission):
    """
    Permission for Psychologist endpoints based on role.

    - Admin: Full CRUD
    - Psychologist: Read-only (pick a colleague, see transfer targets)
    - Receptionist: Read-only (appointment booking)
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        if request.method in permissions.SAFE_METHODS:
            return request.user.role in {
                RoleChoices.ADMIN,
                RoleChoices.PSYCHOLOGIST,
                RoleChoices.RECEPTIONIST,
            }

        # Create/Update: only Admin
        return request.user.role == RoleChoices.ADMIN

    def has_object_permission(self, request, view, obj):
        """Object-level permission (same as has_permission for psychologists)"""
        return self.has_permission(request, view)
