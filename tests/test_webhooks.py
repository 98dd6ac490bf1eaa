"""
Tests for SignNow webhook handling.

Run with: python -m pytest tests/test_webhooks.py -v
"""

import pytest

from services.contracts.exceptions import ValidationError
from services.contracts.local_store import LocalStore
from services.contracts.repository import ContractRepository
from services.contracts.webhooks import parse_webhook, process_webhook


@pytest.fixture
def repository():
    repository = ContractRepository(client=None, local_store=LocalStore())
    repository.local.insert('documents', {
        'id': 'd1', 'customer_id': 'c1', 'signnow_document_id': 'sn1', 'status': 'sent'
    })
    return repository


class TestParse:
    def test_signnow_shape(self):
        payload = {'meta': {'event': 'document.complete'}, 'content': {'document_id': 'sn1'}}
        assert parse_webhook(payload) == ('document.complete', 'sn1')

    def test_document_object_shape(self):
        payload = {'event': 'document.complete', 'document': {'id': 'sn1'}, 'meta': {'ip': '1.2.3.4'}}
        assert parse_webhook(payload) == ('document.complete', 'sn1')

    def test_non_object_meta_is_ignored(self):
        payload = {'event': 'document.sign', 'document': {'id': 'sn1'}, 'meta': 'oops', 'content': ['x']}
        assert parse_webhook(payload) == ('document.sign', 'sn1')

    def test_flat_shape(self):
        assert parse_webhook({'event': 'document.view', 'documentId': 42}) == ('document.view', '42')

    @pytest.mark.parametrize("payload", [
        {'event': 'document.complete'},
        {'content': {'document_id': 'sn1'}},
    ])
    def test_missing_values(self, payload):
        with pytest.raises(ValidationError):
            parse_webhook(payload)


class TestProcess:
    def test_complete_marks_signed(self, repository):
        result = process_webhook(repository, {'event': 'document.complete', 'document_id': 'sn1'})

        assert result['status'] == 'signed'
        document = repository.get_document('d1')
        assert document['signed_at']
        assert [e['event_type'] for e in repository.document_events('d1')] == ['webhook.document.complete']

    def test_decline_marks_failed(self, repository):
        result = process_webhook(repository, {'event': 'document.decline', 'document_id': 'sn1'})
        assert result['status'] == 'failed'

    def test_view_is_recorded_only(self, repository):
        result = process_webhook(repository, {'event': 'document.view', 'document_id': 'sn1'})

        assert result['status'] == 'sent'
        assert len(repository.document_events('d1')) == 1

    def test_unknown_event_is_recorded(self, repository):
        result = process_webhook(repository, {'event': 'document.fieldinvite.create', 'document_id': 'sn1'})

        assert result['matched'] is True
        assert result['status'] == 'sent'

    def test_unknown_document(self, repository):
        result = process_webhook(repository, {'event': 'document.complete', 'document_id': 'other'})

        assert result == {'event': 'document.complete', 'documentId': 'other', 'matched': False}
        assert repository.document_events('d1') == []
