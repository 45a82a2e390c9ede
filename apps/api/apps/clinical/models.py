"""
Clinical models: patient, medical_record, clinical_session, session_history,
patient_document, psychological_assessment, patient_transfer, audit_log.
"""
from django.db import models
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder

from apps.core.models import AppendOnlyModel


# ============================================================================
# Enums
# ============================================================================

class PatientStatusChoices(models.TextChoices):
    """Patient lifecycle. Patients are never hard-deleted."""
    ACTIVE = 'active', 'Active'
    INACTIVE = 'inactive', 'Inactive'
    DISCHARGED = 'discharged', 'Discharged'


class SessionTypeChoices(models.TextChoices):
    IN_PERSON = 'in_person', 'In Person'
    ONLINE = 'online', 'Online'


class SessionStatusChoices(models.TextChoices):
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'
    NO_SHOW = 'no_show', 'No Show'


class DocumentTypeChoices(models.TextChoices):
    CONSENT = 'consent', 'Consent'
    CONTRACT = 'contract', 'Contract'
    REPORT = 'report', 'Report'
    EXAM = 'exam', 'Exam'
    OTHER = 'other', 'Other'


class AuditActionChoices(models.TextChoices):
    """Audit log action types"""
    VIEW = 'view', 'View'
    CREATE = 'create', 'Create'
    UPDATE = 'update', 'Update'
    DELETE = 'delete', 'Delete'
    ARCHIVE = 'archive', 'Archive'
    UPLOAD = 'upload', 'Upload'
    DOWNLOAD = 'download', 'Download'
    ACCESS_DENIED = 'access_denied', 'Access Denied'
    TRANSFER_DENIED = 'transfer_denied', 'Transfer Denied'
    PATIENT_TRANSFER = 'patient_transfer', 'Patient Transfer'


class AuditResourceTypeChoices(models.TextChoices):
    """Resource types for audit logging"""
    PATIENT = 'patient', 'Patient'
    PATIENT_RECORD = 'patient_record', 'Patient Record'
    MEDICAL_RECORD = 'medical_record', 'Medical Record'
    CLINICAL_SESSION = 'clinical_session', 'Clinical Session'
    DOCUMENT = 'document', 'Document'
    ASSESSMENT = 'assessment', 'Assessment'


# ============================================================================
# Models
# ============================================================================

class Patient(models.Model):
    """
    Clinical record subject.

    Ownership:
    - owner_psychologist: explicit responsible clinician (nullable, set by transfer)
    - created_by_user: user who registered the patient (implicit owner for
      records created before explicit ownership existed)
    """
    full_name = models.CharField(max_length=255)
    cpf = models.CharField(max_length=14, unique=True, blank=True, null=True, help_text="National id")
    birth_date = models.DateField(blank=True, null=True)
    gender = models.CharField(max_length=50, blank=True, null=True)
    marital_status = models.CharField(max_length=50, blank=True, null=True)
    profession = models.CharField(max_length=255, blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    phone = models.CharField(max_length=50)
    email = models.EmailField(blank=True, null=True)
    emergency_contact_name = models.CharField(max_length=255, blank=True, null=True)
    emergency_contact_phone = models.CharField(max_length=50, blank=True, null=True)
    insurance_provider = models.CharField(max_length=255, blank=True, null=True)
    legal_guardian_name = models.CharField(max_length=255, blank=True, null=True)
    legal_guardian_cpf = models.CharField(max_length=14, blank=True, null=True)
    status = models.CharField(
        max_length=20,
        choices=PatientStatusChoices.choices,
        default=PatientStatusChoices.ACTIVE
    )

    # Ownership
    owner_psychologist = models.ForeignKey(
        'authz.Psychologist',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='owned_patients'
    )
    created_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='created_patients'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patients'
        verbose_name = 'Patient'
        verbose_name_plural = 'Patients'
        indexes = [
            models.Index(fields=['full_name'], name='idx_patient_full_name'),
            models.Index(fields=['status'], name='idx_patient_status'),
            models.Index(fields=['owner_psychologist'], name='idx_patient_owner'),
            models.Index(fields=['created_by_user'], name='idx_patient_created_by'),
        ]

    def __str__(self):
        return self.full_name


class MedicalRecord(models.Model):
    """Initial anamnesis, one per patient."""
    patient = models.OneToOneField(
        'Patient',
        on_delete=models.PROTECT,
        related_name='medical_record'
    )
    chief_complaint = models.TextField(blank=True, null=True)
    personal_history = models.TextField(blank=True, null=True)
    family_history = models.TextField(blank=True, null=True)
    current_medications = models.BooleanField(default=False)
    medication_details = models.TextField(blank=True, null=True)
    diagnosis = models.TextField(blank=True, null=True)
    icd10_code = models.CharField(max_length=20, blank=True, null=True)
    therapeutic_objectives = models.TextField(blank=True, null=True)
    psychologist = models.ForeignKey(
        'authz.Psychologist',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='medical_records'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'medical_records'
        verbose_name = 'Medical Record'
        verbose_name_plural = 'Medical Records'

    def __str__(self):
        return f"Medical record of {self.patient}"


class ClinicalSession(models.Model):
    """
    One dated encounter note (evolution) for a patient.

    version starts at 1 and is bumped by exactly one on every successful
    update; each superseded version is kept in SessionHistory.
    """
    patient = models.ForeignKey(
        'Patient',
        on_delete=models.PROTECT,
        related_name='clinical_sessions'
    )
    psychologist = models.ForeignKey(
        'authz.Psychologist',
        on_delete=models.PROTECT,
        related_name='clinical_sessions'
    )
    session_date = models.DateField()
    session_time = models.TimeField()
    duration_minutes = models.PositiveIntegerField(default=50)
    session_type = models.CharField(
        max_length=20,
        choices=SessionTypeChoices.choices,
        default=SessionTypeChoices.IN_PERSON
    )
    status = models.CharField(
        max_length=20,
        choices=SessionStatusChoices.choices,
        default=SessionStatusChoices.COMPLETED
    )

    # SOAP
    subjective = models.TextField(blank=True, null=True)
    objective = models.TextField(blank=True, null=True)
    assessment = models.TextField(blank=True, null=True)
    plan = models.TextField(blank=True, null=True)

    # Free-form evolution
    evolution_notes = models.TextField()
    clinical_observations = models.TextField(blank=True, null=True)
    next_steps = models.TextField(blank=True, null=True)

    # Version control
    version = models.PositiveIntegerField(default=1)
    is_active = models.BooleanField(default=True)
    edited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='edited_sessions'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Fields a versioned update may change
    EDITABLE_FIELDS = (
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
        'is_active',
    )

    class Meta:
        db_table = 'clinical_sessions'
        verbose_name = 'Clinical Session'
        verbose_name_plural = 'Clinical Sessions'
        indexes = [
            models.Index(fields=['patient'], name='idx_session_patient'),
            models.Index(fields=['session_date'], name='idx_session_date'),
        ]

    def __str__(self):
        return f"Session {self.session_date} - {self.patient} (v{self.version})"


class SessionHistory(AppendOnlyModel):
    """
    Immutable copy of a superseded ClinicalSession version.

    version is the number the session carried while this state was current.
    """
    session = models.ForeignKey(
        'ClinicalSession',
        on_delete=models.PROTECT,
        related_name='history'
    )
    version = models.PositiveIntegerField()
    evolution_notes = models.TextField(blank=True, null=True)
    clinical_observations = models.TextField(blank=True, null=True)
    snapshot = models.JSONField(
        encoder=DjangoJSONEncoder,
        default=dict,
        help_text='Editable fields of the superseded version'
    )
    edited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='session_history_entries',
        help_text='Author of the superseded version'
    )
    edited_at = models.DateTimeField(help_text='When the superseded version was written')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'session_history'
        verbose_name = 'Session History'
        verbose_name_plural = 'Session History'
        constraints = [
            models.UniqueConstraint(fields=['session', 'version'], name='uniq_session_history_version'),
        ]
        ordering = ['-version']

    def __str__(self):
        return f"Session {self.session_id} v{self.version}"


class PatientDocument(models.Model):
    """Uploaded document attached to a patient record."""
    patient = models.ForeignKey(
        'Patient',
        on_delete=models.PROTECT,
        related_name='documents'
    )
    document_type = models.CharField(
        max_length=20,
        choices=DocumentTypeChoices.choices,
        default=DocumentTypeChoices.OTHER
    )
    document_name = models.CharField(max_length=255)
    file = models.FileField(upload_to='documents/%Y/%m/')
    file_size = models.PositiveBigIntegerField()
    mime_type = models.CharField(max_length=255)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='uploaded_documents'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'patient_documents'
        verbose_name = 'Patient Document'
        verbose_name_plural = 'Patient Documents'
        indexes = [
            models.Index(fields=['patient'], name='idx_document_patient'),
        ]
        ordering = ['-created_at', '-id']

    def __str__(self):
        return self.document_name


class PsychologicalAssessment(models.Model):
    """Psychological test/assessment applied to a patient."""
    patient = models.ForeignKey(
        'Patient',
        on_delete=models.PROTECT,
        related_name='assessments'
    )
    psychologist = models.ForeignKey(
        'authz.Psychologist',
        on_delete=models.PROTECT,
        related_name='assessments'
    )
    assessment_name = models.CharField(max_length=255)
    assessment_date = models.DateField()
    results = models.TextField(blank=True, null=True)
    observations = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'psychological_assessments'
        verbose_name = 'Psychological Assessment'
        verbose_name_plural = 'Psychological Assessments'
        ordering = ['-assessment_date', '-id']

    def __str__(self):
        return f"{self.assessment_name} - {self.patient}"


class PatientTransfer(AppendOnlyModel):
    """
    Immutable record of a committed ownership change.

    Written in the same transaction as the Patient.owner_psychologist update,
    so a row exists if and only if that update committed.
    """
    patient = models.ForeignKey(
        'Patient',
        on_delete=models.PROTECT,
        related_name='transfers'
    )
    from_psychologist = models.ForeignKey(
        'authz.Psychologist',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='transfers_out'
    )
    to_psychologist = models.ForeignKey(
        'authz.Psychologist',
        on_delete=models.PROTECT,
        related_name='transfers_in'
    )
    transferred_by_admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='patient_transfers'
    )
    reason = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'patient_transfers'
        verbose_name = 'Patient Transfer'
        verbose_name_plural = 'Patient Transfers'
        indexes = [
            models.Index(fields=['patient'], name='idx_transfer_patient'),
        ]
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.patient_id}: {self.from_psychologist_id} -> {self.to_psychologist_id}"


class AuditLog(AppendOnlyModel):
    """
    Append-only trail of access decisions and mutations on patient records.

    patient_id is a plain column rather than a foreign key: a denial must be
    recordable for any requested id, and history must never be rewritten by
    cascades.

    Fields:
    - user: who acted (or was denied)
    - action: view|create|update|delete|archive|upload|download|
              access_denied|transfer_denied|patient_transfer
    - resource_type / resource_id: what was touched
    - patient_id: related patient, for per-patient queries
    - ip_address, user_agent: request metadata
    - details: free-form JSON
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='audit_logs'
    )
    action = models.CharField(
        max_length=30,
        choices=AuditActionChoices.choices
    )
    resource_type = models.CharField(
        max_length=30,
        choices=AuditResourceTypeChoices.choices
    )
    resource_id = models.BigIntegerField(blank=True, null=True)
    patient_id = models.BigIntegerField(blank=True, null=True)
    ip_address = models.GenericIPAddressField(blank=True, null=True)
    user_agent = models.CharField(max_length=255, blank=True, null=True)
    details = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        verbose_name = 'Audit Log'
        verbose_name_plural = 'Audit Logs'
        indexes = [
            models.Index(fields=['created_at'], name='idx_audit_created_at'),
            models.Index(fields=['user'], name='idx_audit_user'),
            models.Index(fields=['patient_id'], name='idx_audit_patient'),
            models.Index(fields=['action'], name='idx_audit_action'),
        ]
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.action} on {self.resource_type}[{self.resource_id}] by {self.user_id}"
