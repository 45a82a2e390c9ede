"""
Tests for the psychologist directory.

Endpoints tested:
- GET /api/v1/psychologists/
- GET /api/v1/psychologists/{id}/
- POST /api/v1/psychologists/ (Admin only)
- PATCH /api/v1/psychologists/{id}/ (Admin only)
"""
import pytest
from rest_framework import status

from apps.authz.models import Psychologist, RoleChoices, User, get_psychologist_for_user
from apps.clinical.access import Subject, authorize_patient_access
from apps.clinical.exceptions import Forbidden
from apps.clinical.models import PatientTransfer

BASE_URL = '/api/v1/psychologists/'


@pytest.mark.django_db
class TestPsychologistList:

    @pytest.mark.parametrize('client_fixture', ['admin_client', 'psychologist_client', 'receptionist_client'])
    def test_staff_can_list(self, request, client_fixture, psychologist, other_psychologist):
        client = request.getfixturevalue(client_fixture)

        response = client.get(BASE_URL)

        assert response.status_code == status.HTTP_200_OK
        assert {row['id'] for row in response.data} == {psychologist.id, other_psychologist.id}

    def test_inactive_hidden_by_default(self, admin_client, psychologist, other_psychologist):
        other_psychologist.is_active = False
        other_psychologist.save()

        default = admin_client.get(BASE_URL)
        everything = admin_client.get(BASE_URL, {'include_inactive': 'true'})

        assert [row['id'] for row in default.data] == [psychologist.id]
        assert len(everything.data) == 2

    def test_search_by_name(self, admin_client, psychologist, other_psychologist):
        response = admin_client.get(BASE_URL, {'q': 'bruno'})

        assert [row['full_name'] for row in response.data] == ['Dr. Bruno Lima']

    def test_unauthenticated(self, api_client):
        assert api_client.get(BASE_URL).status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestPsychologistWrite:

    def test_admin_creates_profile(self, admin_client):
        user = User.objects.create_user(
            email='new.psy@test.com', full_name='Dr. Nova', role=RoleChoices.PSYCHOLOGIST
        )

        response = admin_client.post(
            BASE_URL,
            {'user': user.id, 'specialization': 'Family therapy', 'hourly_rate': '150.00'},
            format='json'
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert get_psychologist_for_user(user.id).specialization == 'Family therapy'

    def test_profile_requires_psychologist_role(self, admin_client, receptionist_user):
        response = admin_client.post(
            BASE_URL,
            {'user': receptionist_user.id, 'hourly_rate': '150.00'},
            format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not Psychologist.objects.filter(user=receptionist_user).exists()

    def test_one_profile_per_user(self, admin_client, psychologist):
        response = admin_client.post(
            BASE_URL,
            {'user': psychologist.user_id, 'hourly_rate': '150.00'},
            format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_psychologist_cannot_create(self, psychologist_client, other_psychologist_user):
        response = psychologist_client.post(
            BASE_URL,
            {'user': other_psychologist_user.id, 'hourly_rate': '150.00'},
            format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_deactivates_profile(self, admin_client, other_psychologist):
        response = admin_client.patch(
            f'{BASE_URL}{other_psychologist.id}/', {'is_active': False}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        other_psychologist.refresh_from_db()
        assert other_psychologist.is_active is False

    def test_profile_user_cannot_be_changed(self, admin_client, psychologist, patient):
        newcomer = User.objects.create_user(
            email='newcomer@test.com', full_name='Dr. Newcomer', role=RoleChoices.PSYCHOLOGIST
        )

        response = admin_client.patch(
            f'{BASE_URL}{psychologist.id}/', {'user': newcomer.id, 'specialization': 'DBT'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        psychologist.refresh_from_db()
        assert psychologist.user_id != newcomer.id
        assert psychologist.specialization == 'DBT'
        with pytest.raises(Forbidden):
            authorize_patient_access(Subject.from_user(newcomer), patient.id)
        assert not PatientTransfer.objects.exists()

    def test_no_delete(self, admin_client, psychologist):
        response = admin_client.delete(f'{BASE_URL}{psychologist.id}/')

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
