from django.contrib import admin
from .models import (
    AuditLog, ClinicalSession, MedicalRecord, Patient, PatientDocument,
    PatientTransfer, PsychologicalAssessment, SessionHistory,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    """Append-only evidence tables: viewable, never editable."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'phone', 'status', 'owner_psychologist', 'created_at']
    list_filter = ['status']
    search_fields = ['full_name', 'cpf', 'phone', 'email']
    readonly_fields = ['owner_psychologist', 'created_by_user', 'created_at', 'updated_at']

    fieldsets = (
        ('Basic Info', {
            'fields': ('full_name', 'cpf', 'birth_date', 'gender', 'marital_status', 'profession')
        }),
        ('Contact', {
            'fields': ('phone', 'email', 'address', 'emergency_contact_name', 'emergency_contact_phone')
        }),
        ('Guardian & Insurance', {
            'fields': ('legal_guardian_name', 'legal_guardian_cpf', 'insurance_provider')
        }),
        ('Ownership', {
            'fields': ('status', 'owner_psychologist', 'created_by_user', 'created_at', 'updated_at')
        }),
    )

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(MedicalRecord)
class MedicalRecordAdmin(admin.ModelAdmin):
    list_display = ['patient', 'psychologist', 'icd10_code', 'updated_at']
    search_fields = ['patient__full_name', 'icd10_code']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(ClinicalSession)
class ClinicalSessionAdmin(admin.ModelAdmin):
    list_display = ['patient', 'psychologist', 'session_date', 'status', 'version', 'is_active']
    list_filter = ['status', 'session_type', 'is_active']
    search_fields = ['patient__full_name']
    # version only moves through the versioned update service
    readonly_fields = ['version', 'edited_by', 'created_at', 'updated_at']

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(PatientDocument)
class PatientDocumentAdmin(admin.ModelAdmin):
    list_display = ['document_name', 'document_type', 'patient', 'file_size', 'uploaded_by', 'created_at']
    list_filter = ['document_type']
    search_fields = ['document_name', 'patient__full_name']


@admin.register(PsychologicalAssessment)
class PsychologicalAssessmentAdmin(admin.ModelAdmin):
    list_display = ['assessment_name', 'patient', 'psychologist', 'assessment_date']
    search_fields = ['assessment_name', 'patient__full_name']


@admin.register(SessionHistory)
class SessionHistoryAdmin(ReadOnlyAdmin):
    list_display = ['session', 'version', 'edited_by', 'edited_at']
    search_fields = ['session__patient__full_name']


@admin.register(PatientTransfer)
class PatientTransferAdmin(ReadOnlyAdmin):
    list_display = ['patient', 'from_psychologist', 'to_psychologist', 'transferred_by_admin', 'created_at']
    search_fields = ['patient__full_name']


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = ['created_at', 'user', 'action', 'resource_type', 'resource_id', 'patient_id', 'ip_address']
    list_filter = ['action', 'resource_type']
    search_fields = ['user__email', 'patient_id']
