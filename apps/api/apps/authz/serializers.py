"""
Authz serializers for Psychologist.
"""
from rest_framework import serializers
from apps.authz.models import Psychologist, RoleChoices


class PsychologistListSerializer(serializers.ModelSerializer):
    """
    Serializer for Psychologist list/detail views.

    Used for:
    - Listing psychologists (GET /api/v1/psychologists/)
    - Choosing a transfer target
    """
    user_email = serializers.EmailField(source='user.email', read_only=True)
    full_name = serializers.CharField(source='user.full_name', read_only=True)

    class Meta:
        model = Psychologist
        fields = [
            'id',
            'user',
            'user_email',
            'full_name',
            'specialization',
            'is_active',
            'created_at',
        ]
        read_only_fields = fields


class PsychologistWriteSerializer(serializers.ModelSerializer):
    """
    Serializer for Psychologist create/update (Admin only).
    """

    class Meta:
        model = Psychologist
        fields = [
            'id',
            'user',
            'specialization',
            'bio',
            'hourly_rate',
            'is_active',
        ]
        read_only_fields = ['id']

    def get_fields(self):
        fields = super().get_fields()
        if self.instance is not None:
            # Re-pointing a profile would hand its patients to another user
            fields['user'] = serializers.PrimaryKeyRelatedField(read_only=True)
        return fields

    def validate_user(self, value):
        """A user gets at most one profile, and only psychologists get one."""
        if self.instance is None and Psychologist.objects.filter(user=value).exists():
            raise serializers.ValidationError(
                f"User {value.email} already has a psychologist profile"
            )
        if value.role != RoleChoices.PSYCHOLOGIST:
            raise serializers.ValidationError(
                "Only users with the psychologist role can have a psychologist profile"
            )
        return value
