"""
Patient record access control.

A fixed decision table, evaluated fresh on every call:

    admin         -> allow
    psychologist  -> allow iff owner_psychologist_id == own profile id
                     OR created_by_user_id == own user id
    anything else -> deny

Ownership changes through transfers, so verdicts are never cached.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.db.models import Q

from apps.authz.models import RoleChoices, get_psychologist_for_user
from apps.clinical.audit import record_audit_event
from apps.clinical.exceptions import Forbidden, InvalidInput, RecordNotFound
from apps.clinical.models import (
    AuditActionChoices,
    AuditResourceTypeChoices,
    Patient,
)
from apps.core.observability import metrics
from apps.core.observability.events import log_access_denied

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Subject:
    """Who is asking: user id, role and, for clinicians, the profile id."""
    user_id: int
    role: str
    psychologist_profile_id: Optional[int] = None

    @classmethod
    def from_user(cls, user):
        profile_id = None
        if user.role == RoleChoices.PSYCHOLOGIST:
            profile = get_psychologist_for_user(user.id)
            profile_id = profile.id if profile else None
        return cls(
            user_id=user.id,
            role=user.role,
            psychologist_profile_id=profile_id,
        )

    @property
    def is_admin(self):
        return self.role == RoleChoices.ADMIN


def parse_positive_id(value, field_name='id') -> int:
    """Parse a path/body identifier; anything but a positive integer is InvalidInput."""
    if isinstance(value, bool):
        raise InvalidInput(f"Invalid {field_name}")
    if isinstance(value, int):
        parsed = value
    else:
        text = str(value).strip() if value is not None else ''
        if not (text.isascii() and text.isdigit()):
            raise InvalidInput(f"Invalid {field_name}")
        parsed = int(text)
    if parsed <= 0:
        raise InvalidInput(f"Invalid {field_name}")
    return parsed


def get_patient(patient_id) -> Patient:
    """Load a patient by id or raise RecordNotFound."""
    try:
        return Patient.objects.get(pk=patient_id)
    except Patient.DoesNotExist:
        raise RecordNotFound("Patient not found")


def is_patient_owned(patient: Patient, subject: Subject) -> bool:
    """
    Ownership proof for a psychologist.

    Two independent predicates: the explicit owner profile, and the creator
    for records registered before explicit ownership existed. Both are
    checked on every call.
    """
    owned_explicitly = (
        subject.psychologist_profile_id is not None
        and patient.owner_psychologist_id == subject.psychologist_profile_id
    )
    owned_as_creator = (
        patient.created_by_user_id is not None
        and patient.created_by_user_id == subject.user_id
    )
    return owned_explicitly or owned_as_creator


def is_access_allowed(patient: Patient, subject: Subject) -> bool:
    if subject.role == RoleChoices.ADMIN:
        return True
    if subject.role == RoleChoices.PSYCHOLOGIST:
        return is_patient_owned(patient, subject)
    return False


def authorize_patient_access(subject: Subject, patient_id, request=None) -> Patient:
    """
    Resolve a patient and check that the subject may act on it.

    Returns:
        The loaded Patient.

    Raises:
        InvalidInput: patient_id is not a positive integer
        RecordNotFound: no such patient
        Forbidden: subject is not allowed (an access_denied entry is
            written to the audit trail first)
    """
    patient = get_patient(parse_positive_id(patient_id, 'patient id'))

    if is_access_allowed(patient, subject):
        metrics.clinical_access_decisions_total.labels(
            role=subject.role, result='allowed'
        ).inc()
        return patient

    metrics.clinical_access_decisions_total.labels(
        role=subject.role, result='denied'
    ).inc()
    record_audit_event(
        user_id=subject.user_id,
        action=AuditActionChoices.ACCESS_DENIED,
        resource_type=AuditResourceTypeChoices.PATIENT_RECORD,
        resource_id=patient.id,
        patient_id=patient.id,
        details={
            'reason': 'unauthorized',
            'role': subject.role,
            'owner_psychologist_id': patient.owner_psychologist_id,
        },
        request=request,
    )
    log_access_denied(subject, patient.id, patient.owner_psychologist_id)
    raise Forbidden()


def filter_accessible_patients(queryset, subject: Subject):
    """
    Restrict a Patient queryset to what the subject may see.

    Same decision table as authorize_patient_access, expressed as a filter.
    """
    if subject.role == RoleChoices.ADMIN:
        return queryset
    if subject.role != RoleChoices.PSYCHOLOGIST:
        raise Forbidden()

    ownership = Q(created_by_user_id=subject.user_id)
    if subject.psychologist_profile_id is not None:
        ownership |= Q(owner_psychologist_id=subject.psychologist_profile_id)
    return queryset.filter(ownership)
