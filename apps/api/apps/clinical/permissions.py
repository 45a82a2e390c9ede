"""
Clinical permissions for API endpoints.

Per-patient decisions are made by apps.clinical.access, not here: a
receptionist asking for a patient record must reach the access check so
the denial is written to the audit trail. These classes only gate the
endpoints that have no patient yet (registration).
"""
from rest_framework import permissions
from apps.authz.models import RoleChoices


class IsClinicalStaff(permissions.BasePermission):
    """
    Admin and psychologists only.

    - Admin: allowed
    - Psychologist: allowed
    - Receptionist: NO ACCESS to clinical records
    """
    message = 'You do not have permission to access clinical records.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.role in {RoleChoices.ADMIN, RoleChoices.PSYCHOLOGIST}
