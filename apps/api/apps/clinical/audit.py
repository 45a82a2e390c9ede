"""
Audit trail for patient records.

Every access decision and every record mutation is written here. Writes are
best-effort: a failing insert is logged and counted but never propagates, so
the outcome of the operation being audited does not depend on the audit store.
"""
import logging
from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address
from django.db import transaction

from apps.clinical.models import AuditLog
from apps.core.observability import metrics

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 255


def get_client_ip(request) -> Optional[str]:
    """
    Peer address of the request (REMOTE_ADDR).

    X-Forwarded-For is client-controlled and is not trusted. A value that is
    not an IP address is stored as None so the insert cannot fail on it.
    """
    if request is None:
        return None
    remote_addr = request.META.get('REMOTE_ADDR')
    if not remote_addr:
        return None
    try:
        validate_ipv46_address(remote_addr)
    except ValidationError:
        return None
    return remote_addr


def get_user_agent(request) -> Optional[str]:
    if request is None:
        return None
    user_agent = request.META.get('HTTP_USER_AGENT')
    if not user_agent:
        return None
    return user_agent[:USER_AGENT_MAX_LENGTH]


def record_audit_event(
    user_id: int,
    action: str,
    resource_type: str,
    resource_id: Optional[int] = None,
    patient_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    request=None,
) -> Optional[AuditLog]:
    """
    Append one entry to the audit trail.

    Args:
        user_id: Acting (or denied) user
        action: AuditActionChoices value
        resource_type: AuditResourceTypeChoices value
        resource_id: Touched resource, if any
        patient_id: Related patient, if any
        details: Free-form JSON-serializable context
        request: Django/DRF request to capture IP and user agent from

    Returns:
        The created AuditLog, or None if the write failed.
    """
    try:
        # Own savepoint: a failed insert must not poison an enclosing transaction
        with transaction.atomic():
            entry = AuditLog.objects.create(
                user_id=user_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                patient_id=patient_id,
                ip_address=get_client_ip(request),
                user_agent=get_user_agent(request),
                details=details or {},
            )
    except Exception:
        metrics.clinical_audit_write_failures_total.labels(action=action).inc()
        logger.exception(
            "Audit trail write failed",
            extra={
                'event': 'audit_write_failed',
                'audit_action': action,
                'resource_type': resource_type,
                'resource_id': resource_id,
                'patient_id': patient_id,
                'user_id': user_id,
            }
        )
        return None

    metrics.clinical_audit_entries_total.labels(action=action).inc()
    return entry


def list_patient_audit_logs(patient_id: int):
    """
    Audit entries for a patient, newest first.

    No access check here; callers authorize the subject first.
    """
    return AuditLog.objects.filter(patient_id=patient_id).order_by('-created_at', '-id')
