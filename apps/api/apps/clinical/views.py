"""
Clinical record viewsets.

Every endpoint that touches a patient goes through authorize_patient_access
first, then performs the operation, then writes the success audit entry, so
the audit trail records what actually happened.
"""
import logging
import mimetypes

from django.db.models import Q
from django.http import FileResponse
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authz.models import Psychologist
from apps.clinical.access import (
    Subject,
    authorize_patient_access,
    filter_accessible_patients,
    parse_positive_id,
)
from apps.clinical.audit import list_patient_audit_logs, record_audit_event
from apps.clinical.exceptions import InvalidInput, RecordNotFound
from apps.clinical.models import (
    AuditActionChoices,
    AuditResourceTypeChoices,
    ClinicalSession,
    MedicalRecord,
    Patient,
    PatientDocument,
    PatientStatusChoices,
    PsychologicalAssessment,
)
from apps.clinical.permissions import IsClinicalStaff
from apps.clinical.serializers import (
    AuditLogSerializer,
    ClinicalSessionSerializer,
    ClinicalSessionUpdateSerializer,
    MedicalRecordSerializer,
    PatientDetailSerializer,
    PatientDocumentSerializer,
    PatientDocumentUploadSerializer,
    PatientListSerializer,
    PatientTransferSerializer,
    PsychologicalAssessmentSerializer,
    SessionArchiveSerializer,
    SessionHistorySerializer,
)
from apps.clinical.services import (
    archive_session,
    list_patient_transfers,
    list_session_history,
    transfer_patient,
    update_session,
)
from apps.core.observability.correlation import set_user_context

logger = logging.getLogger(__name__)


class SubjectMixin:
    """Builds the access-control Subject for the authenticated user once per request."""

    def get_subject(self) -> Subject:
        subject = getattr(self.request, '_clinical_subject', None)
        if subject is None:
            set_user_context(self.request.user)
            subject = Subject.from_user(self.request.user)
            self.request._clinical_subject = subject
        return subject

    def authorize(self, patient_id) -> Patient:
        return authorize_patient_access(self.get_subject(), patient_id, request=self.request)

    def audit(self, action, resource_type, resource_id=None, patient_id=None, details=None):
        return record_audit_event(
            user_id=self.request.user.id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            patient_id=patient_id,
            details=details,
            request=self.request,
        )

    def resolve_psychologist(self, value):
        """
        Responsible psychologist for a new session/assessment.

        Psychologists write as themselves; admins must name one.
        """
        subject = self.get_subject()
        if subject.psychologist_profile_id is not None:
            return Psychologist.objects.get(pk=subject.psychologist_profile_id)
        if value is None:
            raise InvalidInput("psychologist is required")
        return value


# ============================================================================
# Patients
# ============================================================================

class PatientViewSet(
    SubjectMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for Patient endpoints.

    Endpoints:
    - GET   /api/v1/clinical/patients/
    - POST  /api/v1/clinical/patients/
    - GET   /api/v1/clinical/patients/{id}/
    - PUT/PATCH /api/v1/clinical/patients/{id}/
    - GET/POST  /api/v1/clinical/patients/{id}/medical-record/
    - GET/POST  /api/v1/clinical/patients/{id}/sessions/
    - GET/POST  /api/v1/clinical/patients/{id}/documents/
    - GET/POST  /api/v1/clinical/patients/{id}/assessments/
    - GET   /api/v1/clinical/patients/{id}/counts/
    - PATCH /api/v1/clinical/patients/{id}/transfer/
    - GET   /api/v1/clinical/patients/{id}/transfers/
    - GET   /api/v1/clinical/patients/{id}/audit-logs/

    No delete: patients change status instead.
    """
    queryset = Patient.objects.all()

    def get_permissions(self):
        if self.action == 'create':
            return [IsClinicalStaff()]
        return super().get_permissions()

    def get_queryset(self):
        """
        Patients visible to the caller.

        - Admin: all patients
        - Psychologist: owned or created by them
        - ?active=false includes inactive and discharged patients
        - ?q= searches name, phone and email
        """
        queryset = filter_accessible_patients(
            Patient.objects.select_related('owner_psychologist__user'),
            self.get_subject(),
        )

        if self.request.query_params.get('active', 'true').lower() != 'false':
            queryset = queryset.filter(status=PatientStatusChoices.ACTIVE)

        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(
                Q(full_name__icontains=q) |
                Q(phone__icontains=q) |
                Q(email__icontains=q)
            )

        return queryset.order_by('full_name', 'id')

    def get_object(self):
        return self.authorize(self.kwargs['pk'])

    def get_serializer_class(self):
        if self.action == 'list':
            return PatientListSerializer
        return PatientDetailSerializer

    def perform_create(self, serializer):
        patient = serializer.save(created_by_user=self.request.user)
        self.audit(
            AuditActionChoices.CREATE,
            AuditResourceTypeChoices.PATIENT,
            resource_id=patient.id,
            patient_id=patient.id,
        )
        logger.info(
            "Patient created",
            extra={'event': 'patient_created', 'patient_id': patient.id}
        )

    def retrieve(self, request, *args, **kwargs):
        patient = self.get_object()
        self.audit(
            AuditActionChoices.VIEW,
            AuditResourceTypeChoices.PATIENT,
            resource_id=patient.id,
            patient_id=patient.id,
        )
        return Response(PatientDetailSerializer(patient).data)

    def perform_update(self, serializer):
        patient = serializer.save()
        self.audit(
            AuditActionChoices.UPDATE,
            AuditResourceTypeChoices.PATIENT,
            resource_id=patient.id,
            patient_id=patient.id,
            details={'changes': sorted(serializer.validated_data.keys())},
        )

    # ------------------------------------------------------------------
    # Medical record (anamnesis)
    # ------------------------------------------------------------------

    @action(detail=True, methods=['get', 'post'], url_path='medical-record')
    def medical_record(self, request, pk=None):
        patient = self.authorize(pk)
        record = MedicalRecord.objects.filter(patient=patient).first()

        if request.method == 'GET':
            self.audit(
                AuditActionChoices.VIEW,
                AuditResourceTypeChoices.MEDICAL_RECORD,
                resource_id=record.id if record else None,
                patient_id=patient.id,
                details={'found': record is not None},
            )
            return Response(MedicalRecordSerializer(record).data if record else None)

        serializer = MedicalRecordSerializer(record, data=request.data, partial=record is not None)
        serializer.is_valid(raise_exception=True)
        subject = self.get_subject()
        extra = {}
        if subject.psychologist_profile_id is not None:
            extra['psychologist_id'] = subject.psychologist_profile_id
        saved = serializer.save(patient=patient, **extra)

        self.audit(
            AuditActionChoices.UPDATE if record else AuditActionChoices.CREATE,
            AuditResourceTypeChoices.MEDICAL_RECORD,
            resource_id=saved.id,
            patient_id=patient.id,
            details={'method': 'update' if record else 'create'},
        )
        return Response(MedicalRecordSerializer(saved).data)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @action(detail=True, methods=['get', 'post'], url_path='sessions')
    def sessions(self, request, pk=None):
        patient = self.authorize(pk)

        if request.method == 'GET':
            queryset = (
                ClinicalSession.objects
                .filter(patient=patient)
                .select_related('psychologist__user')
                .order_by('-session_date', '-session_time', '-id')
            )
            if request.query_params.get('include_archived', 'false').lower() != 'true':
                queryset = queryset.filter(is_active=True)
            return Response(ClinicalSessionSerializer(queryset, many=True).data)

        serializer = ClinicalSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        psychologist = self.resolve_psychologist(serializer.validated_data.get('psychologist'))
        session = serializer.save(
            patient=patient,
            psychologist=psychologist,
            edited_by=request.user,
        )
        self.audit(
            AuditActionChoices.CREATE,
            AuditResourceTypeChoices.CLINICAL_SESSION,
            resource_id=session.id,
            patient_id=patient.id,
        )
        return Response(ClinicalSessionSerializer(session).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @action(detail=True, methods=['get', 'post'], url_path='documents')
    def documents(self, request, pk=None):
        patient = self.authorize(pk)

        if request.method == 'GET':
            queryset = PatientDocument.objects.filter(patient=patient).select_related('uploaded_by')
            return Response(PatientDocumentSerializer(queryset, many=True).data)

        serializer = PatientDocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        upload = serializer.validated_data['file']
        mime_type = (
            getattr(upload, 'content_type', None)
            or mimetypes.guess_type(upload.name)[0]
            or 'application/octet-stream'
        )
        document = PatientDocument.objects.create(
            patient=patient,
            document_type=serializer.validated_data['document_type'],
            document_name=serializer.validated_data.get('document_name') or upload.name,
            file=upload,
            file_size=upload.size,
            mime_type=mime_type,
            uploaded_by=request.user,
        )
        self.audit(
            AuditActionChoices.UPLOAD,
            AuditResourceTypeChoices.DOCUMENT,
            resource_id=document.id,
            patient_id=patient.id,
            details={'document_type': document.document_type, 'file_size': document.file_size},
        )
        return Response(PatientDocumentSerializer(document).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    @action(detail=True, methods=['get', 'post'], url_path='assessments')
    def assessments(self, request, pk=None):
        patient = self.authorize(pk)

        if request.method == 'GET':
            queryset = PsychologicalAssessment.objects.filter(patient=patient)
            return Response(PsychologicalAssessmentSerializer(queryset, many=True).data)

        serializer = PsychologicalAssessmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        psychologist = self.resolve_psychologist(serializer.validated_data.get('psychologist'))
        assessment = serializer.save(patient=patient, psychologist=psychologist)
        self.audit(
            AuditActionChoices.CREATE,
            AuditResourceTypeChoices.ASSESSMENT,
            resource_id=assessment.id,
            patient_id=patient.id,
        )
        return Response(
            PsychologicalAssessmentSerializer(assessment).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['get'], url_path='counts')
    def counts(self, request, pk=None):
        """Badge counts for the record tabs. Archived sessions are not counted."""
        patient = self.authorize(pk)
        return Response({
            'sessions': ClinicalSession.objects.filter(patient=patient, is_active=True).count(),
            'documents': PatientDocument.objects.filter(patient=patient).count(),
            'assessments': PsychologicalAssessment.objects.filter(patient=patient).count(),
        })

    # ------------------------------------------------------------------
    # Transfers and audit trail
    # ------------------------------------------------------------------

    @action(detail=True, methods=['patch'], url_path='transfer')
    def transfer(self, request, pk=None):
        """Admin-only: move the patient to another psychologist."""
        transfer = transfer_patient(
            self.get_subject(),
            pk,
            request.data.get('to_psychologist_id'),
            reason=request.data.get('reason'),
            request=request,
        )
        return Response({
            'message': 'Patient transferred successfully',
            'transfer': PatientTransferSerializer(transfer).data,
        })

    @action(detail=True, methods=['get'], url_path='transfers')
    def transfers(self, request, pk=None):
        queryset = list_patient_transfers(self.get_subject(), pk)
        return Response(PatientTransferSerializer(queryset, many=True).data)

    @action(detail=True, methods=['get'], url_path='audit-logs')
    def audit_logs(self, request, pk=None):
        """Audit trail of the patient; same access rule as the record itself."""
        patient = self.authorize(pk)
        queryset = list_patient_audit_logs(patient.id).select_related('user')
        return Response(AuditLogSerializer(queryset, many=True).data)


# ============================================================================
# Sessions
# ============================================================================

class ClinicalSessionViewSet(
    SubjectMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for ClinicalSession endpoints.

    Endpoints:
    - GET       /api/v1/clinical/sessions/{id}/
    - PUT/PATCH /api/v1/clinical/sessions/{id}/          (versioned update)
    - PATCH     /api/v1/clinical/sessions/{id}/archive/
    - GET       /api/v1/clinical/sessions/{id}/history/
    """
    queryset = ClinicalSession.objects.all()
    serializer_class = ClinicalSessionSerializer

    def get_object(self):
        session_id = parse_positive_id(self.kwargs['pk'], 'session id')
        session = ClinicalSession.objects.filter(pk=session_id).first()
        if session is None:
            raise RecordNotFound("Session not found")
        self.authorize(session.patient_id)
        return session

    def update(self, request, *args, **kwargs):
        session = self.get_object()
        serializer = ClinicalSessionUpdateSerializer(
            data=request.data,
            partial=kwargs.pop('partial', False) or request.method == 'PATCH',
        )
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)
        expected_version = changes.pop('version', None)

        updated = update_session(session.id, request.user, changes, expected_version=expected_version)
        self.audit(
            AuditActionChoices.UPDATE,
            AuditResourceTypeChoices.CLINICAL_SESSION,
            resource_id=updated.id,
            patient_id=updated.patient_id,
            details={'version': updated.version, 'changes': sorted(changes.keys())},
        )
        return Response(ClinicalSessionSerializer(updated).data)

    def partial_update(self, request, *args, **kwargs):
        kwargs['partial'] = True
        return self.update(request, *args, **kwargs)

    @action(detail=True, methods=['patch'], url_path='archive')
    def archive(self, request, pk=None):
        session = self.get_object()
        serializer = SessionArchiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        archived = archive_session(
            session.id,
            request.user,
            expected_version=serializer.validated_data.get('version'),
        )
        self.audit(
            AuditActionChoices.ARCHIVE,
            AuditResourceTypeChoices.CLINICAL_SESSION,
            resource_id=archived.id,
            patient_id=archived.patient_id,
            details={'version': archived.version},
        )
        return Response(ClinicalSessionSerializer(archived).data)

    @action(detail=True, methods=['get'], url_path='history')
    def history(self, request, pk=None):
        session = self.get_object()
        return Response(SessionHistorySerializer(list_session_history(session.id), many=True).data)


# ============================================================================
# Documents
# ============================================================================

class PatientDocumentViewSet(SubjectMixin, viewsets.GenericViewSet):
    """
    ViewSet for document download/delete.

    Endpoints:
    - GET    /api/v1/clinical/documents/{id}/download/
    - DELETE /api/v1/clinical/documents/{id}/
    """
    queryset = PatientDocument.objects.all()
    serializer_class = PatientDocumentSerializer

    def get_object(self):
        document_id = parse_positive_id(self.kwargs['pk'], 'document id')
        document = PatientDocument.objects.filter(pk=document_id).first()
        if document is None:
            raise RecordNotFound("Document not found")
        self.authorize(document.patient_id)
        return document

    @action(detail=True, methods=['get'], url_path='download')
    def download(self, request, pk=None):
        document = self.get_object()
        if not document.file or not document.file.storage.exists(document.file.name):
            raise RecordNotFound("Document file not found")

        self.audit(
            AuditActionChoices.DOWNLOAD,
            AuditResourceTypeChoices.DOCUMENT,
            resource_id=document.id,
            patient_id=document.patient_id,
        )
        return FileResponse(
            document.file.open('rb'),
            as_attachment=True,
            filename=document.document_name,
            content_type=document.mime_type,
        )

    def destroy(self, request, pk=None):
        document = self.get_object()
        document_id, patient_id = document.id, document.patient_id
        stored_file = document.file

        document.delete()
        if stored_file:
            stored_file.storage.delete(stored_file.name)

        self.audit(
            AuditActionChoices.DELETE,
            AuditResourceTypeChoices.DOCUMENT,
            resource_id=document_id,
            patient_id=patient_id,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)
