"""
Tests for activity logging.

Run with: python -m pytest tests/test_audit_service.py -v
"""

from unittest.mock import Mock

from flask import Flask

from services import audit_service
from services.contracts.exceptions import RepositoryError


class TestLogActivity:
    def test_records_request_context(self):
        repository = Mock()
        repository.insert_activity.side_effect = lambda record: record
        app = Flask(__name__)

        with app.test_request_context(headers={'X-Forwarded-For': '10.0.0.1, 10.0.0.2', 'User-Agent': 'pytest'}):
            row = audit_service.log_permission_changed(repository, 'admin1', 't1', 'sales_rep', False)

        assert row == {
            'user_id': 'admin1',
            'action': audit_service.PERMISSION_CHANGE,
            'resource_type': audit_service.CONTRACT_PERMISSION,
            'resource_id': 't1',
            'details': {'role': 'sales_rep', 'can_access': False},
            'ip_address': '10.0.0.1',
            'user_agent': 'pytest'
        }

    def test_outside_request(self):
        repository = Mock()
        repository.insert_activity.side_effect = lambda record: record

        row = audit_service.log_role_changed(repository, 'admin1', 'rep1', 'admin')

        assert row['ip_address'] is None
        assert row['details'] == {'new_role': 'admin'}

    def test_backend_failure_returns_none(self):
        repository = Mock()
        repository.insert_activity.side_effect = RepositoryError("down")

        assert audit_service.log_contract_toggled(repository, 'admin1', 't1', True) is None
