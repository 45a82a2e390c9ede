"""
Authz views for Psychologist.
"""
from django.db.models import Q
from rest_framework import mixins, viewsets
from apps.authz.models import Psychologist
from apps.authz.serializers import (
    PsychologistListSerializer,
    PsychologistWriteSerializer,
)
from apps.authz.permissions import PsychologistDirectoryPermission


class PsychologistViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.CreateModelMixin,
                          mixins.UpdateModelMixin,
                          viewsets.GenericViewSet):
    """
    ViewSet for Psychologist endpoints.

    Endpoints:
    - GET /api/v1/psychologists/ - List psychologists (filtered by is_active)
    - GET /api/v1/psychologists/{id}/ - Get psychologist detail
    - POST /api/v1/psychologists/ - Create profile (Admin only)
    - PATCH /api/v1/psychologists/{id}/ - Update profile (Admin only)

    Query parameters:
    - ?include_inactive=true - Include inactive psychologists (default: false)
    - ?q=search_term - Search by name or email

    Profiles are never deleted: patients and transfers reference them.
    """
    permission_classes = [PsychologistDirectoryPermission]

    def get_queryset(self):
        """Filter by is_active and search."""
        queryset = Psychologist.objects.select_related('user').all()

        include_inactive = self.request.query_params.get('include_inactive', 'false').lower() == 'true'
        if not include_inactive:
            queryset = queryset.filter(is_active=True)

        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(Q(user__full_name__icontains=q) | Q(user__email__icontains=q))

        return queryset.order_by('user__full_name', 'id')

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve'):
            return PsychologistListSerializer
        return PsychologistWriteSerializer
