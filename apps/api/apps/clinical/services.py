"""
Clinical record services.

- Patient transfer: reassigns a patient to another psychologist. The
  ownership change and the transfer-history row commit together or not
  at all.
- Session versioning: every update of a clinical session bumps its
  version by one and keeps the superseded state in session history.
"""
import logging
from typing import Any, Dict, Optional

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.authz.models import Psychologist
from apps.clinical.access import Subject, parse_positive_id
from apps.clinical.audit import record_audit_event
from apps.clinical.exceptions import (
    Conflict,
    Forbidden,
    InvalidInput,
    RecordNotFound,
    StoreFailure,
)
from apps.clinical.models import (
    AuditActionChoices,
    AuditResourceTypeChoices,
    ClinicalSession,
    Patient,
    PatientTransfer,
    SessionHistory,
)
from apps.core.observability import metrics
from apps.core.observability.events import (
    log_consistency_checkpoint,
    log_patient_transferred,
    log_session_updated,
    log_session_version_conflict,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Patient transfer
# ============================================================================

def transfer_patient(
    subject: Subject,
    patient_id,
    to_psychologist_id,
    reason: Optional[str] = None,
    request=None,
) -> PatientTransfer:
    """
    Move a patient to another psychologist.

    Checks, in order:
    1. subject is admin (else transfer_denied audit entry + Forbidden)
    2. patient_id is a positive integer (InvalidInput)
    3. to_psychologist_id is given and a positive integer (InvalidInput)
    4. target psychologist exists (RecordNotFound)
    5. patient exists (RecordNotFound)
    6. target is not already the owner (Conflict)

    Steps 4-6 and both writes run in one transaction with the patient row
    locked, so concurrent transfers of the same patient serialize.

    Returns:
        The created PatientTransfer.

    Raises:
        StoreFailure: the store rejected a write; nothing was committed.
    """
    if not subject.is_admin:
        metrics.clinical_patient_transfers_total.labels(result='denied').inc()
        record_audit_event(
            user_id=subject.user_id,
            action=AuditActionChoices.TRANSFER_DENIED,
            resource_type=AuditResourceTypeChoices.PATIENT_RECORD,
            resource_id=_id_or_none(patient_id),
            patient_id=_id_or_none(patient_id),
            details={'reason': 'not_admin', 'role': subject.role},
            request=request,
        )
        logger.warning(
            "Patient transfer denied: caller is not admin",
            extra={
                'event': 'patient_transfer_denied',
                'user_id': subject.user_id,
                'subject_role': subject.role,
            }
        )
        raise Forbidden()

    patient_pk = parse_positive_id(patient_id, 'patient id')
    if to_psychologist_id in (None, ''):
        raise InvalidInput("to_psychologist_id is required")
    target_pk = parse_positive_id(to_psychologist_id, 'to_psychologist_id')

    try:
        transfer = _commit_transfer(subject, patient_pk, target_pk, reason)
    except DatabaseError as e:
        metrics.clinical_patient_transfers_total.labels(result='failure').inc()
        logger.error(
            "Patient transfer failed - rolled back",
            exc_info=True,
            extra={
                'event': 'patient_transfer_failed',
                'patient_id': patient_pk,
                'to_psychologist_id': target_pk,
                'error_type': e.__class__.__name__,
            }
        )
        raise StoreFailure() from e

    # Outside the transaction: a failed audit write must not undo the transfer
    record_audit_event(
        user_id=subject.user_id,
        action=AuditActionChoices.PATIENT_TRANSFER,
        resource_type=AuditResourceTypeChoices.PATIENT,
        resource_id=patient_pk,
        patient_id=patient_pk,
        details={
            'transfer_id': transfer.id,
            'from_psychologist_id': transfer.from_psychologist_id,
            'to_psychologist_id': transfer.to_psychologist_id,
            'reason': transfer.reason,
        },
        request=request,
    )
    log_patient_transferred(transfer)
    log_consistency_checkpoint(
        'patient_transfer_consistency',
        entity_ids={'patient_id': str(patient_pk), 'transfer_id': str(transfer.id)},
        checks_passed={
            'owner_updated': Patient.objects.filter(
                pk=patient_pk, owner_psychologist_id=target_pk
            ).exists(),
            'transfer_recorded': PatientTransfer.objects.filter(
                pk=transfer.id, patient_id=patient_pk, to_psychologist_id=target_pk
            ).exists(),
        },
    )
    metrics.clinical_patient_transfers_total.labels(result='success').inc()
    return transfer


@metrics.track_duration(metrics.clinical_patient_transfer_duration_seconds)
def _commit_transfer(subject, patient_pk, target_pk, reason):
    with transaction.atomic():
        target = Psychologist.objects.filter(pk=target_pk).first()
        if target is None:
            metrics.clinical_patient_transfers_total.labels(result='not_found').inc()
            raise RecordNotFound("Psychologist not found")

        try:
            patient = Patient.objects.select_for_update().get(pk=patient_pk)
        except Patient.DoesNotExist:
            metrics.clinical_patient_transfers_total.labels(result='not_found').inc()
            raise RecordNotFound("Patient not found")

        from_pk = patient.owner_psychologist_id
        if from_pk == target.id:
            metrics.clinical_patient_transfers_total.labels(result='conflict').inc()
            raise Conflict("Patient is already assigned to this psychologist")

        patient.owner_psychologist = target
        patient.save(update_fields=['owner_psychologist', 'updated_at'])

        transfer = PatientTransfer.objects.create(
            patient=patient,
            from_psychologist_id=from_pk,
            to_psychologist=target,
            transferred_by_admin_id=subject.user_id,
            reason=reason or None,
        )

        logger.info(
            "Patient transfer committed",
            extra={
                'event': 'patient_transfer_committed',
                'patient_id': patient.id,
                'from_psychologist_id': from_pk,
                'to_psychologist_id': target.id,
                'transfer_id': transfer.id,
            }
        )
        return transfer


def list_patient_transfers(subject: Subject, patient_id):
    """Transfer history of a patient, newest first. Admin only."""
    if not subject.is_admin:
        raise Forbidden()
    patient_pk = parse_positive_id(patient_id, 'patient id')
    return (
        PatientTransfer.objects
        .filter(patient_id=patient_pk)
        .select_related('from_psychologist__user', 'to_psychologist__user', 'transferred_by_admin')
        .order_by('-created_at', '-id')
    )


def _id_or_none(value):
    try:
        return parse_positive_id(value)
    except InvalidInput:
        return None


# ============================================================================
# Session versioning
# ============================================================================

def update_session(
    session_id,
    editor,
    changes: Dict[str, Any],
    expected_version: Optional[int] = None,
) -> ClinicalSession:
    """
    Apply changes to a clinical session as a new version.

    The write is a compare-and-swap on the version column; a concurrent
    writer that got there first makes this call fail with Conflict instead
    of silently overwriting its change. The superseded state is stored in
    SessionHistory under the old version number, in the same transaction.

    Args:
        session_id: Session to update
        editor: User making the change (becomes edited_by)
        changes: field -> new value, limited to ClinicalSession.EDITABLE_FIELDS
        expected_version: Version the caller based its edit on, if known

    Raises:
        InvalidInput: changes is empty or names a field that cannot be edited
        RecordNotFound: no such session
        Conflict: stale expected_version, or lost the race to another writer
    """
    session_pk = parse_positive_id(session_id, 'session id')
    if not changes:
        raise InvalidInput("No changes to apply")
    unknown = set(changes) - set(ClinicalSession.EDITABLE_FIELDS)
    if unknown:
        raise InvalidInput(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    with transaction.atomic():
        current = ClinicalSession.objects.filter(pk=session_pk).first()
        if current is None:
            raise RecordNotFound("Session not found")

        if expected_version is not None and expected_version != current.version:
            _version_conflict(session_pk, expected_version, current.version)

        updated = ClinicalSession.objects.filter(
            pk=session_pk,
            version=current.version,
        ).update(
            version=F('version') + 1,
            edited_by=editor,
            updated_at=timezone.now(),
            **changes,
        )
        if updated == 0:
            _version_conflict(session_pk, current.version)

        try:
            SessionHistory.objects.create(
                session_id=session_pk,
                version=current.version,
                evolution_notes=current.evolution_notes,
                clinical_observations=current.clinical_observations,
                snapshot=_snapshot(current),
                edited_by_id=current.edited_by_id,
                edited_at=current.updated_at,
            )
        except IntegrityError:
            # Another writer already archived this version
            _version_conflict(session_pk, current.version)

    session = ClinicalSession.objects.select_related('patient', 'psychologist', 'edited_by').get(pk=session_pk)
    metrics.clinical_session_updates_total.labels(result='success').inc()
    log_session_updated(session, previous_version=current.version)
    return session


def archive_session(session_id, editor, expected_version: Optional[int] = None) -> ClinicalSession:
    """Deactivate a session. Archiving is a versioned update like any other."""
    return update_session(
        session_id,
        editor,
        {'is_active': False},
        expected_version=expected_version,
    )


def list_session_history(session_id):
    """Superseded versions of a session, newest first."""
    session_pk = parse_positive_id(session_id, 'session id')
    return (
        SessionHistory.objects
        .filter(session_id=session_pk)
        .select_related('edited_by')
        .order_by('-version')
    )


def _snapshot(session: ClinicalSession) -> Dict[str, Any]:
    return {field: getattr(session, field) for field in ClinicalSession.EDITABLE_FIELDS}


def _version_conflict(session_pk, expected_version, current_version=None):
    metrics.clinical_session_updates_total.labels(result='conflict').inc()
    log_session_version_conflict(session_pk, expected_version, current_version)
    raise Conflict("Session was modified by another user; reload and try again")
