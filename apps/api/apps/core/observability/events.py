"""
Domain events logging helpers.

Provides structured event logging for clinical record operations.
Identifiers only; clinical content never goes into an event.
"""
from typing import Dict, Optional
from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'patient_transferred')
        entity_type: Type of entity (e.g., 'Patient', 'ClinicalSession')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, denied, conflict...)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'patient_transferred',
            entity_type='Patient',
            entity_id=str(patient.id),
            entity_ids={'transfer_id': str(transfer.id)},
            result='success',
            from_psychologist_id=3,
            to_psychologist_id=7
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    # Log at appropriate level based on result
    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'denied', 'conflict']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_consistency_checkpoint(
    checkpoint_name: str,
    entity_ids: Dict[str, str],
    checks_passed: Dict[str, bool],
    **extra_fields
):
    """
    Log a consistency checkpoint event.

    Used to verify data integrity at critical points.

    Example:
        log_consistency_checkpoint(
            'patient_transfer_consistency',
            entity_ids={'patient_id': '12', 'transfer_id': '40'},
            checks_passed={
                'owner_updated': True,
                'transfer_row_matches_owner': True,
            },
        )
    """
    all_passed = all(checks_passed.values())

    event_data = {
        'event': 'consistency_checkpoint',
        'checkpoint': checkpoint_name,
        'status': 'passed' if all_passed else 'failed',
        'checks': checks_passed,
    }
    event_data.update(entity_ids)
    event_data.update(sanitize_dict(extra_fields))

    if all_passed:
        logger.info(f'Checkpoint passed: {checkpoint_name}', extra=event_data)
    else:
        logger.error(f'Checkpoint FAILED: {checkpoint_name}', extra=event_data)


def log_access_denied(subject, patient_id, owner_psychologist_id=None):
    """Log a denied patient record access."""
    log_domain_event(
        'patient_access_denied',
        entity_type='Patient',
        entity_id=str(patient_id),
        entity_ids={'patient_id': str(patient_id)},
        result='denied',
        subject_user_id=subject.user_id,
        subject_role=subject.role,
        owner_psychologist_id=owner_psychologist_id,
    )


def log_patient_transferred(transfer):
    """Log a committed ownership transfer."""
    log_domain_event(
        'patient_transferred',
        entity_type='Patient',
        entity_id=str(transfer.patient_id),
        entity_ids={
            'patient_id': str(transfer.patient_id),
            'transfer_id': str(transfer.id),
        },
        result='success',
        from_psychologist_id=transfer.from_psychologist_id,
        to_psychologist_id=transfer.to_psychologist_id,
        transferred_by_admin_id=transfer.transferred_by_admin_id,
    )


def log_session_updated(session, previous_version):
    """Log a versioned clinical session update."""
    log_domain_event(
        'clinical_session_updated',
        entity_type='ClinicalSession',
        entity_id=str(session.id),
        entity_ids={
            'session_id': str(session.id),
            'patient_id': str(session.patient_id),
        },
        result='success',
        previous_version=previous_version,
        new_version=session.version,
        edited_by_id=session.edited_by_id,
    )


def log_session_version_conflict(session_id, expected_version, current_version=None):
    """Log a concurrent edit that lost the version race."""
    log_domain_event(
        'clinical_session_version_conflict',
        entity_type='ClinicalSession',
        entity_id=str(session_id),
        entity_ids={'session_id': str(session_id)},
        result='conflict',
        expected_version=expected_version,
        current_version=current_version,
    )
