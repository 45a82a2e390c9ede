"""
Tests for observability layer.

Validates that metrics, logs, and events are emitted correctly
without logging PHI/PII.
"""
import json
import logging

import pytest
from unittest.mock import MagicMock, Mock, patch
from prometheus_client import REGISTRY

from apps.core.observability.correlation import (
    RequestCorrelationMiddleware,
    clear_request_context,
    get_request_id,
    get_user_id,
    get_user_roles,
    set_user_context,
)
from apps.core.observability.events import (
    log_access_denied,
    log_domain_event,
    log_session_version_conflict,
)
from apps.core.observability.logging import (
    CorrelationFilter,
    SanitizedJSONFormatter,
    sanitize_dict,
)
from apps.core.observability.metrics import metrics


@pytest.fixture(autouse=True)
def _clean_context():
    clear_request_context()
    yield
    clear_request_context()


class TestRequestCorrelation:
    """Test request correlation middleware."""

    def test_generates_request_id_if_missing(self):
        middleware = RequestCorrelationMiddleware(lambda r: Mock(status_code=200))
        request = Mock(META={}, path='/api/test', method='GET')
        request.user = Mock(is_authenticated=False)

        middleware.process_request(request)

        assert request.request_id
        assert get_request_id() == request.request_id

    def test_propagates_existing_request_id(self):
        middleware = RequestCorrelationMiddleware(lambda r: Mock(status_code=200))
        request = Mock(META={'HTTP_X_REQUEST_ID': 'test-request-123'}, path='/api/test', method='GET')
        request.user = Mock(is_authenticated=False)

        middleware.process_request(request)

        assert request.request_id == 'test-request-123'

    @pytest.mark.django_db
    def test_adds_request_id_to_response_headers(self, client):
        response = client.get('/healthz', HTTP_X_REQUEST_ID='abc-123')

        assert response['X-Request-ID'] == 'abc-123'

    def test_user_context_uses_role(self):
        user = Mock(is_authenticated=True, id=7, role='psychologist')

        set_user_context(user)

        assert get_user_id() == '7'
        assert get_user_roles() == ['psychologist']

    def test_anonymous_user_clears_context(self):
        set_user_context(Mock(is_authenticated=True, id=7, role='admin'))
        set_user_context(Mock(is_authenticated=False))

        assert get_user_id() is None
        assert get_user_roles() == []

    @pytest.mark.django_db
    def test_http_metrics_use_route_pattern(self, admin_client, patient):
        raw_path = f'/api/v1/clinical/patients/{patient.id}/'

        admin_client.get(raw_path)

        paths = {
            sample.labels['path']
            for metric in REGISTRY.collect()
            for sample in metric.samples
            if sample.name == 'http_requests_total'
        }
        assert paths
        assert not any(f'patients/{patient.id}/' in path for path in paths)


class TestSanitization:
    """Test PHI/PII sanitization."""

    def test_sanitize_dict_redacts_clinical_fields(self):
        data = {
            'patient_id': 12,
            'full_name': 'Joao Pereira',
            'evolution_notes': 'Reports insomnia',
            'diagnosis': 'F41.1',
            'cpf': '123.456.789-00',
        }

        sanitized = sanitize_dict(data)

        assert sanitized['patient_id'] == 12
        assert sanitized['full_name'] == '[REDACTED]'
        assert sanitized['evolution_notes'] == '[REDACTED]'
        assert sanitized['diagnosis'] == '[REDACTED]'
        assert sanitized['cpf'] == '[REDACTED]'
        assert data['full_name'] == 'Joao Pereira'

    def test_sanitize_dict_handles_nested_objects(self):
        data = {'session': {'id': 3, 'plan': 'Weekly'}, 'changes': [{'email': 'x@y.z'}, 'plain']}

        sanitized = sanitize_dict(data)

        assert sanitized['session'] == {'id': 3, 'plan': '[REDACTED]'}
        assert sanitized['changes'] == [{'email': '[REDACTED]'}, 'plain']

    def test_formatter_redacts_extra_fields(self):
        record = logging.LogRecord('apps.test', logging.INFO, __file__, 1, 'Event', None, None)
        record.patient_id = 12
        record.evolution_notes = 'Reports insomnia'
        record.details = {'phone': '+55', 'version': 2}
        CorrelationFilter().filter(record)

        payload = json.loads(SanitizedJSONFormatter().format(record))

        assert payload['message'] == 'Event'
        assert payload['patient_id'] == 12
        assert payload['evolution_notes'] == '[REDACTED]'
        assert payload['details'] == {'phone': '[REDACTED]', 'version': 2}
        assert payload['request_id'] == '-'

    def test_filter_keeps_explicit_user_id(self):
        record = logging.LogRecord('apps.test', logging.INFO, __file__, 1, 'Event', None, None)
        record.user_id = 42

        CorrelationFilter().filter(record)

        assert record.user_id == 42


class TestMetricsRegistry:

    def test_clinical_metrics_exist(self):
        assert hasattr(metrics, 'clinical_access_decisions_total')
        assert hasattr(metrics, 'clinical_patient_transfers_total')
        assert hasattr(metrics, 'clinical_patient_transfer_duration_seconds')
        assert hasattr(metrics, 'clinical_audit_entries_total')
        assert hasattr(metrics, 'clinical_audit_write_failures_total')
        assert hasattr(metrics, 'clinical_session_updates_total')

    def test_no_unbounded_labels(self):
        """Patient, session and user ids never become label values."""
        forbidden = {'patient_id', 'session_id', 'user_id', 'psychologist_id'}
        for metric in (
            metrics.clinical_access_decisions_total,
            metrics.clinical_patient_transfers_total,
            metrics.clinical_audit_entries_total,
            metrics.clinical_audit_write_failures_total,
            metrics.clinical_session_updates_total,
            metrics.http_requests_total,
        ):
            assert not forbidden & set(metric._labelnames)

    def test_track_duration_observes_on_failure(self):
        histogram = MagicMock()

        @metrics.track_duration(histogram)
        def failing():
            raise ValueError('boom')

        with pytest.raises(ValueError):
            failing()

        histogram.observe.assert_called_once()


class TestDomainEvents:

    @patch('apps.core.observability.events.logger')
    def test_log_domain_event_structure(self, mock_logger):
        log_domain_event(
            'patient_transferred',
            entity_type='Patient',
            entity_id='12',
            entity_ids={'transfer_id': '40'},
            from_psychologist_id=3,
        )

        mock_logger.info.assert_called_once()
        extra = mock_logger.info.call_args[1]['extra']
        assert extra['event'] == 'patient_transferred'
        assert extra['result'] == 'success'
        assert extra['entity_id'] == '12'
        assert extra['transfer_id'] == '40'
        assert extra['from_psychologist_id'] == 3

    @patch('apps.core.observability.events.logger')
    def test_extra_fields_are_sanitized(self, mock_logger):
        log_domain_event('patient_updated', evolution_notes='Reports insomnia')

        extra = mock_logger.info.call_args[1]['extra']
        assert extra['evolution_notes'] == '[REDACTED]'

    @patch('apps.core.observability.events.logger')
    def test_access_denied_is_a_warning(self, mock_logger):
        subject = Mock(user_id=5, role='receptionist')

        log_access_denied(subject, 12, owner_psychologist_id=3)

        mock_logger.warning.assert_called_once()
        extra = mock_logger.warning.call_args[1]['extra']
        assert extra['result'] == 'denied'
        assert extra['subject_role'] == 'receptionist'
        assert extra['patient_id'] == '12'

    @patch('apps.core.observability.events.logger')
    def test_version_conflict_is_a_warning(self, mock_logger):
        log_session_version_conflict(9, expected_version=1, current_version=2)

        extra = mock_logger.warning.call_args[1]['extra']
        assert extra['result'] == 'conflict'
        assert extra['expected_version'] == 1
        assert extra['current_version'] == 2


@pytest.mark.django_db
class TestHealthChecks:
    """Test health check endpoints."""

    def test_healthz_returns_200(self, client):
        response = client.get('/healthz')

        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'ok'
        assert 'version' in data

    def test_readyz_checks_database(self, client):
        response = client.get('/readyz')

        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'ready'
        assert data['checks']['database'] is True

    @patch('apps.core.observability.health.connection')
    def test_readyz_fails_on_db_error(self, mock_connection, client):
        mock_connection.cursor.side_effect = Exception("DB connection failed")

        response = client.get('/readyz')

        assert response.status_code == 503
        data = response.json()
        assert data['status'] == 'not_ready'
        assert data['checks']['database'] is False

    def test_metrics_endpoint_exposes_clinical_counters(self, client):
        response = client.get('/metrics')

        assert response.status_code == 200
        assert response['Content-Type'].startswith('text/plain')
        assert b'clinical_access_decisions_total' in response.content
