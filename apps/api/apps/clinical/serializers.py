"""
Clinical serializers for patients and their record sub-resources.
"""
import os

from django.conf import settings
from rest_framework import serializers

from apps.clinical.exceptions import FileTooLarge
from apps.clinical.models import (
    AuditLog,
    ClinicalSession,
    DocumentTypeChoices,
    MedicalRecord,
    Patient,
    PatientDocument,
    PatientTransfer,
    PsychologicalAssessment,
    SessionHistory,
)


# ============================================================================
# Patients
# ============================================================================

class PatientListSerializer(serializers.ModelSerializer):
    """Serializer for Patient list view (limited fields)"""
    owner_psychologist_name = serializers.CharField(
        source='owner_psychologist.user.full_name',
        read_only=True,
        default=None
    )

    class Meta:
        model = Patient
        fields = [
            'id',
            'full_name',
            'birth_date',
            'phone',
            'status',
            'owner_psychologist',
            'owner_psychologist_name',
            'created_at',
        ]
        read_only_fields = fields


class PatientDetailSerializer(serializers.ModelSerializer):
    """
    Serializer for Patient detail/create/update.

    Ownership fields are read-only: the creator is stamped on create and
    the owner only changes through a transfer.
    """

    class Meta:
        model = Patient
        fields = [
            'id',
            'full_name',
            'cpf',
            'birth_date',
            'gender',
            'marital_status',
            'profession',
            'address',
            'phone',
            'email',
            'emergency_contact_name',
            'emergency_contact_phone',
            'insurance_provider',
            'legal_guardian_name',
            'legal_guardian_cpf',
            'status',
            'owner_psychologist',
            'created_by_user',
            'created_at',
            'updated_at',
        ]
        read_only_fields = [
            'id',
            'owner_psychologist',
            'created_by_user',
            'created_at',
            'updated_at',
        ]

    def validate_full_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Full name is required")
        return value.strip()


# ============================================================================
# Medical record (anamnesis)
# ============================================================================

class MedicalRecordSerializer(serializers.ModelSerializer):

    class Meta:
        model = MedicalRecord
        fields = [
            'id',
            'patient',
            'chief_complaint',
            'personal_history',
            'family_history',
            'current_medications',
            'medication_details',
            'diagnosis',
            'icd10_code',
            'therapeutic_objectives',
            'psychologist',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'patient', 'psychologist', 'created_at', 'updated_at']


# ============================================================================
# Clinical sessions
# ============================================================================

class ClinicalSessionSerializer(serializers.ModelSerializer):
    """Read/create serializer for clinical sessions."""
    psychologist_name = serializers.CharField(source='psychologist.user.full_name', read_only=True)

    class Meta:
        model = ClinicalSession
        fields = [
            'id',
            'patient',
            'psychologist',
            'psychologist_name',
            'session_date',
            'session_time',
            'duration_minutes',
            'session_type',
            'status',
            'subjective',
            'objective',
            'assessment',
            'plan',
            'evolution_notes',
            'clinical_observations',
            'next_steps',
            'version',
            'is_active',
            'edited_by',
            'created_at',
            'updated_at',
        ]
        read_only_fields = [
            'id',
            'patient',
            'version',
            'is_active',
            'edited_by',
            'created_at',
            'updated_at',
        ]
        extra_kwargs = {
            'psychologist': {'required': False},
        }


class ClinicalSessionUpdateSerializer(serializers.ModelSerializer):
    """
    Input for a versioned session update.

    version is the version the client edited; a mismatch with the stored
    one is rejected as a conflict.
    """
    version = serializers.IntegerField(required=False, min_value=1)

    class Meta:
        model = ClinicalSession
        fields = [
            'session_date',
            'session_time',
            'duration_minutes',
            'session_type',
            'status',
            'subjective',
            'objective',
            'assessment',
            'plan',
            'evolution_notes',
            'clinical_observations',
            'next_steps',
            'version',
        ]

    def validate_evolution_notes(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Evolution notes cannot be empty")
        return value


class SessionArchiveSerializer(serializers.Serializer):
    version = serializers.IntegerField(required=False, min_value=1)


class SessionHistorySerializer(serializers.ModelSerializer):
    edited_by_name = serializers.CharField(source='edited_by.full_name', read_only=True, default=None)

    class Meta:
        model = SessionHistory
        fields = [
            'id',
            'session',
            'version',
            'evolution_notes',
            'clinical_observations',
            'snapshot',
            'edited_by',
            'edited_by_name',
            'edited_at',
            'created_at',
        ]
        read_only_fields = fields


# ============================================================================
# Documents
# ============================================================================

class PatientDocumentSerializer(serializers.ModelSerializer):
    uploaded_by_name = serializers.CharField(source='uploaded_by.full_name', read_only=True)

    class Meta:
        model = PatientDocument
        fields = [
            'id',
            'patient',
            'document_type',
            'document_name',
            'file_size',
            'mime_type',
            'uploaded_by',
            'uploaded_by_name',
            'created_at',
        ]
        read_only_fields = fields


class PatientDocumentUploadSerializer(serializers.Serializer):
    """
    Validate an uploaded document.

    Rejects executable/script extensions (400) and files above
    CLINICAL_DOCUMENT_MAX_SIZE_MB (413).
    """
    file = serializers.FileField()
    document_type = serializers.ChoiceField(
        choices=DocumentTypeChoices.choices,
        default=DocumentTypeChoices.OTHER
    )
    document_name = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate_file(self, value):
        extension = os.path.splitext(value.name)[1].lower().lstrip('.')
        if extension in settings.CLINICAL_DOCUMENT_FORBIDDEN_EXTENSIONS:
            raise serializers.ValidationError(f"File type .{extension} is not allowed")

        max_bytes = settings.CLINICAL_DOCUMENT_MAX_SIZE_MB * 1024 * 1024
        if value.size > max_bytes:
            raise FileTooLarge(
                f"File exceeds the maximum size of {settings.CLINICAL_DOCUMENT_MAX_SIZE_MB} MB"
            )
        return value


# ============================================================================
# Assessments
# ============================================================================

class PsychologicalAssessmentSerializer(serializers.ModelSerializer):

    class Meta:
        model = PsychologicalAssessment
        fields = [
            'id',
            'patient',
            'psychologist',
            'assessment_name',
            'assessment_date',
            'results',
            'observations',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'patient', 'created_at', 'updated_at']
        extra_kwargs = {
            'psychologist': {'required': False},
        }


# ============================================================================
# Transfers and audit trail
# ============================================================================

class PatientTransferSerializer(serializers.ModelSerializer):
    from_psychologist_name = serializers.CharField(
        source='from_psychologist.user.full_name', read_only=True, default=None
    )
    to_psychologist_name = serializers.CharField(source='to_psychologist.user.full_name', read_only=True)
    transferred_by_admin_name = serializers.CharField(source='transferred_by_admin.full_name', read_only=True)

    class Meta:
        model = PatientTransfer
        fields = [
            'id',
            'patient',
            'from_psychologist',
            'from_psychologist_name',
            'to_psychologist',
            'to_psychologist_name',
            'transferred_by_admin',
            'transferred_by_admin_name',
            'reason',
            'created_at',
        ]
        read_only_fields = fields


class AuditLogSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = AuditLog
        fields = [
            'id',
            'user',
            'user_email',
            'action',
            'resource_type',
            'resource_id',
            'patient_id',
            'ip_address',
            'user_agent',
            'details',
            'created_at',
        ]
        read_only_fields = fields
