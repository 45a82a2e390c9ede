"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Users and authenticated API clients by role
- Psychologist profiles
- Model instances (Patient, ClinicalSession)
"""
import datetime
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from apps.authz.models import Psychologist, RoleChoices, User
from apps.clinical.access import Subject
from apps.clinical.models import ClinicalSession, Patient


def _client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ============================================================================
# User Fixtures
# ============================================================================

@pytest.fixture
def admin_user(db):
    """Admin user. Admins see every patient and may transfer."""
    return User.objects.create_user(
        email='admin@test.com',
        password='testpass123',
        full_name='Ana Admin',
        role=RoleChoices.ADMIN,
        is_staff=True,
        is_active=True
    )


@pytest.fixture
def psychologist_user(db):
    return User.objects.create_user(
        email='psychologist@test.com',
        password='testpass123',
        full_name='Dr. Paula Souza',
        role=RoleChoices.PSYCHOLOGIST,
        is_active=True
    )


@pytest.fixture
def other_psychologist_user(db):
    """A second clinician who does not own the default patient."""
    return User.objects.create_user(
        email='other.psychologist@test.com',
        password='testpass123',
        full_name='Dr. Bruno Lima',
        role=RoleChoices.PSYCHOLOGIST,
        is_active=True
    )


@pytest.fixture
def receptionist_user(db):
    """Receptionist: no access to clinical records."""
    return User.objects.create_user(
        email='reception@test.com',
        password='testpass123',
        full_name='Rita Reception',
        role=RoleChoices.RECEPTIONIST,
        is_active=True
    )


# ============================================================================
# Psychologist profiles
# ============================================================================

@pytest.fixture
def psychologist(db, psychologist_user):
    return Psychologist.objects.create(
        user=psychologist_user,
        specialization='Cognitive Behavioral Therapy',
        hourly_rate=Decimal('200.00'),
        is_active=True
    )


@pytest.fixture
def other_psychologist(db, other_psychologist_user):
    return Psychologist.objects.create(
        user=other_psychologist_user,
        specialization='Psychoanalysis',
        hourly_rate=Decimal('180.00'),
        is_active=True
    )


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    return _client_for(admin_user)


@pytest.fixture
def psychologist_client(psychologist):
    """Authenticated as the psychologist who owns the default patient."""
    return _client_for(psychologist.user)


@pytest.fixture
def other_psychologist_client(other_psychologist):
    return _client_for(other_psychologist.user)


@pytest.fixture
def receptionist_client(receptionist_user):
    return _client_for(receptionist_user)


# ============================================================================
# Access-control subjects
# ============================================================================

@pytest.fixture
def admin_subject(admin_user):
    return Subject.from_user(admin_user)


@pytest.fixture
def psychologist_subject(psychologist):
    return Subject.from_user(psychologist.user)


@pytest.fixture
def other_psychologist_subject(other_psychologist):
    return Subject.from_user(other_psychologist.user)


@pytest.fixture
def receptionist_subject(receptionist_user):
    return Subject.from_user(receptionist_user)


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def patient(db, psychologist, admin_user):
    """Patient registered by the admin and owned by `psychologist`."""
    return Patient.objects.create(
        full_name='Joao Pereira',
        phone='+5511999990000',
        email='joao@test.com',
        owner_psychologist=psychologist,
        created_by_user=admin_user
    )


@pytest.fixture
def clinical_session(db, patient, psychologist):
    """Version 1 session note for the default patient."""
    return ClinicalSession.objects.create(
        patient=patient,
        psychologist=psychologist,
        session_date=datetime.date(2024, 3, 4),
        session_time=datetime.time(14, 0),
        evolution_notes='First session: rapport established.',
        edited_by=psychologist.user
    )


# ============================================================================
# Factory-style Fixtures (for creating multiple instances)
# ============================================================================

@pytest.fixture
def patient_factory(db, admin_user):
    """
    Factory fixture for creating multiple patients.

    Usage:
        p1 = patient_factory(owner_psychologist=psychologist)
        p2 = patient_factory(created_by_user=psychologist.user)
    """
    created_patients = []

    def _create_patient(**kwargs):
        defaults = {
            'full_name': f'Test Patient {len(created_patients)}',
            'phone': f'+55119000000{len(created_patients):02d}',
            'created_by_user': admin_user,
        }
        defaults.update(kwargs)

        patient = Patient.objects.create(**defaults)
        created_patients.append(patient)
        return patient

    return _create_patient


@pytest.fixture
def session_factory(db, patient, psychologist):
    """
    Factory fixture for creating multiple clinical sessions.

    Usage:
        s1 = session_factory()
        s2 = session_factory(is_active=False)
    """
    created_sessions = []

    def _create_session(**kwargs):
        defaults = {
            'patient': patient,
            'psychologist': psychologist,
            'session_date': datetime.date(2024, 3, 4) + datetime.timedelta(days=7 * len(created_sessions)),
            'session_time': datetime.time(10, 0),
            'evolution_notes': f'Session note {len(created_sessions)}',
            'edited_by': psychologist.user,
        }
        defaults.update(kwargs)

        session = ClinicalSession.objects.create(**defaults)
        created_sessions.append(session)
        return session

    return _create_session
