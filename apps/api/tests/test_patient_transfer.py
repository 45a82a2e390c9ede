"""
Tests for patient ownership transfer.

Critical Behavior:
- Owner change and PatientTransfer row commit together or not at all
- Non-admin callers get 403 and a transfer_denied audit entry
- Transfer to the current owner is a Conflict with no new row
- A failing audit write never rolls back a committed transfer
- The previous owner loses access on the very next request
"""
import threading
from unittest import mock

import pytest
from django.db import DatabaseError, connection
from rest_framework import status

from apps.clinical.access import authorize_patient_access
from apps.clinical.exceptions import (
    Conflict,
    Forbidden,
    InvalidInput,
    RecordNotFound,
    StoreFailure,
)
from apps.clinical.models import AuditLog, Patient, PatientTransfer
from apps.clinical.services import list_patient_transfers, transfer_patient


def _transfer_url(patient_id):
    return f'/api/v1/clinical/patients/{patient_id}/transfer/'


@pytest.mark.django_db
class TestTransferService:

    def test_admin_transfer_moves_owner_and_records_history(
        self, admin_subject, admin_user, patient, psychologist, other_psychologist
    ):
        transfer = transfer_patient(admin_subject, patient.id, other_psychologist.id, reason='reassignment')

        patient.refresh_from_db()
        assert patient.owner_psychologist_id == other_psychologist.id

        assert PatientTransfer.objects.filter(patient=patient).count() == 1
        assert transfer.from_psychologist_id == psychologist.id
        assert transfer.to_psychologist_id == other_psychologist.id
        assert transfer.transferred_by_admin_id == admin_user.id
        assert transfer.reason == 'reassignment'

        audit = AuditLog.objects.get(patient_id=patient.id, action='patient_transfer')
        assert audit.user_id == admin_user.id
        assert audit.details['from_psychologist_id'] == psychologist.id
        assert audit.details['to_psychologist_id'] == other_psychologist.id
        assert audit.details['reason'] == 'reassignment'

    def test_transfer_of_unowned_patient_records_null_origin(
        self, admin_subject, other_psychologist, patient_factory
    ):
        unowned = patient_factory(owner_psychologist=None)

        transfer = transfer_patient(admin_subject, unowned.id, other_psychologist.id)

        assert transfer.from_psychologist_id is None
        assert transfer.reason is None

    def test_non_admin_is_denied_and_audited(self, psychologist_subject, patient, psychologist, other_psychologist):
        with pytest.raises(Forbidden):
            transfer_patient(psychologist_subject, patient.id, other_psychologist.id)

        patient.refresh_from_db()
        assert patient.owner_psychologist_id == psychologist.id
        assert not PatientTransfer.objects.exists()

        denied = AuditLog.objects.get(action='transfer_denied')
        assert denied.patient_id == patient.id
        assert denied.resource_type == 'patient_record'
        assert denied.details == {'reason': 'not_admin', 'role': 'psychologist'}

    def test_admin_check_comes_before_input_validation(self, receptionist_subject):
        with pytest.raises(Forbidden):
            transfer_patient(receptionist_subject, 'not-an-id', None)

        denied = AuditLog.objects.get(action='transfer_denied')
        assert denied.patient_id is None

    def test_transfer_to_current_owner_is_conflict(self, admin_subject, patient, psychologist):
        with pytest.raises(Conflict):
            transfer_patient(admin_subject, patient.id, psychologist.id)

        assert not PatientTransfer.objects.exists()
        assert not AuditLog.objects.filter(action='patient_transfer').exists()

    def test_repeated_transfer_is_rejected(self, admin_subject, patient, other_psychologist):
        transfer_patient(admin_subject, patient.id, other_psychologist.id)

        with pytest.raises(Conflict):
            transfer_patient(admin_subject, patient.id, other_psychologist.id)

        assert PatientTransfer.objects.count() == 1

    @pytest.mark.parametrize('target', [None, '', 'abc', 0, -1])
    def test_invalid_target(self, admin_subject, patient, target):
        with pytest.raises(InvalidInput):
            transfer_patient(admin_subject, patient.id, target)

    def test_missing_target_psychologist(self, admin_subject, patient):
        with pytest.raises(RecordNotFound):
            transfer_patient(admin_subject, patient.id, 999999)

    def test_missing_patient(self, admin_subject, other_psychologist):
        with pytest.raises(RecordNotFound):
            transfer_patient(admin_subject, 999999, other_psychologist.id)

    def test_store_failure_rolls_back_owner_change(self, admin_subject, patient, psychologist, other_psychologist):
        with mock.patch.object(
            PatientTransfer.objects, 'create', side_effect=DatabaseError('disk full')
        ):
            with pytest.raises(StoreFailure):
                transfer_patient(admin_subject, patient.id, other_psychologist.id)

        patient.refresh_from_db()
        assert patient.owner_psychologist_id == psychologist.id
        assert not PatientTransfer.objects.exists()
        assert not AuditLog.objects.filter(action='patient_transfer').exists()

    def test_audit_failure_does_not_undo_transfer(self, admin_subject, patient, other_psychologist):
        with mock.patch.object(AuditLog.objects, 'create', side_effect=DatabaseError('audit store down')):
            transfer = transfer_patient(admin_subject, patient.id, other_psychologist.id)

        patient.refresh_from_db()
        assert patient.owner_psychologist_id == other_psychologist.id
        assert PatientTransfer.objects.filter(pk=transfer.pk).exists()

    def test_previous_owner_loses_access_immediately(
        self, admin_subject, psychologist_subject, other_psychologist_subject, patient, other_psychologist
    ):
        authorize_patient_access(psychologist_subject, patient.id)

        transfer_patient(admin_subject, patient.id, other_psychologist.id)

        with pytest.raises(Forbidden):
            authorize_patient_access(psychologist_subject, patient.id)
        assert authorize_patient_access(other_psychologist_subject, patient.id).id == patient.id


@pytest.mark.django_db(transaction=True)
class TestConcurrentTransfers:

    def test_concurrent_transfers_serialize(self, admin_subject, patient, other_psychologist):
        """Two simultaneous transfers to the same target: one commits, the other sees the new owner."""
        if not connection.features.has_select_for_update:
            pytest.skip("Database backend has no row locks")

        barrier = threading.Barrier(2)
        outcomes = []

        def worker():
            try:
                barrier.wait(timeout=5)
                transfer_patient(admin_subject, patient.id, other_psychologist.id)
                outcomes.append('ok')
            except Conflict:
                outcomes.append('conflict')
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(outcomes) == ['conflict', 'ok']
        assert PatientTransfer.objects.filter(patient=patient).count() == 1
        assert Patient.objects.get(pk=patient.id).owner_psychologist_id == other_psychologist.id


@pytest.mark.django_db
class TestTransferHistory:

    def test_history_is_newest_first(self, admin_subject, patient, psychologist, other_psychologist):
        first = transfer_patient(admin_subject, patient.id, other_psychologist.id)
        second = transfer_patient(admin_subject, patient.id, psychologist.id)

        history = list(list_patient_transfers(admin_subject, patient.id))

        assert [t.id for t in history] == [second.id, first.id]

    def test_history_is_admin_only(self, psychologist_subject, patient):
        with pytest.raises(Forbidden):
            list_patient_transfers(psychologist_subject, patient.id)


@pytest.mark.django_db
class TestTransferAPI:

    def test_admin_transfer(self, admin_client, patient, psychologist, other_psychologist):
        response = admin_client.patch(
            _transfer_url(patient.id),
            {'to_psychologist_id': other_psychologist.id, 'reason': 'reassignment'},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['message']
        assert response.data['transfer']['from_psychologist'] == psychologist.id
        assert response.data['transfer']['to_psychologist'] == other_psychologist.id
        assert Patient.objects.get(pk=patient.id).owner_psychologist_id == other_psychologist.id

    def test_non_admin_gets_403(self, psychologist_client, patient, other_psychologist):
        response = psychologist_client.patch(
            _transfer_url(patient.id),
            {'to_psychologist_id': other_psychologist.id},
            format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert AuditLog.objects.filter(action='transfer_denied', patient_id=patient.id).count() == 1
        assert not PatientTransfer.objects.exists()

    def test_missing_target_gets_400(self, admin_client, patient):
        response = admin_client.patch(_transfer_url(patient.id), {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_target_gets_404(self, admin_client, patient):
        response = admin_client.patch(
            _transfer_url(patient.id),
            {'to_psychologist_id': 999999},
            format='json'
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_same_owner_gets_400(self, admin_client, patient, psychologist):
        response = admin_client.patch(
            _transfer_url(patient.id),
            {'to_psychologist_id': psychologist.id},
            format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not PatientTransfer.objects.exists()

    def test_store_failure_gets_500(self, admin_client, patient, other_psychologist):
        with mock.patch.object(
            PatientTransfer.objects, 'create', side_effect=DatabaseError('disk full')
        ):
            response = admin_client.patch(
                _transfer_url(patient.id),
                {'to_psychologist_id': other_psychologist.id},
                format='json'
            )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR

    def test_transfer_history_endpoint(self, admin_client, patient, other_psychologist):
        admin_client.patch(
            _transfer_url(patient.id),
            {'to_psychologist_id': other_psychologist.id},
            format='json'
        )

        response = admin_client.get(f'/api/v1/clinical/patients/{patient.id}/transfers/')

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        assert response.data[0]['to_psychologist_name'] == other_psychologist.user.full_name

    def test_transfer_history_endpoint_is_admin_only(self, psychologist_client, patient):
        response = psychologist_client.get(f'/api/v1/clinical/patients/{patient.id}/transfers/')

        assert response.status_code == status.HTTP_403_FORBIDDEN
