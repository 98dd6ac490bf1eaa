"""
Tests for the signature dispatcher and field placement policy.

Run with: python -m pytest tests/test_dispatcher.py -v
"""

from datetime import date

import pytest
import requests

from conftest import FakeHTTPResponse, FakeSession, signnow_happy_session
from services.contracts.catalog import ContractCatalog
from services.contracts.dispatcher import (
    EVENT_DOCUMENT_SENT,
    EVENT_PROVIDER_ERROR,
    FALLBACK_PROVIDER_ERROR,
    FALLBACK_UNCONFIGURED,
    FieldPlacementPolicy,
    SignatureDispatcher
)
from services.contracts.exceptions import ValidationError
from services.contracts.local_store import LocalStore
from services.contracts.repository import ContractRepository
from services.contracts.signnow_client import SignNowClient
from services.contracts.types import Customer, DeliveryMethod, DispatchRequest

FIXED_CLOCK = lambda: 1700000000.0  # noqa: E731


@pytest.fixture
def catalog():
    return ContractCatalog.load()


@pytest.fixture
def repository():
    return ContractRepository(client=None, local_store=LocalStore())


@pytest.fixture
def customer(repository):
    row = repository.create_customer({
        'firstName': 'Jane', 'lastName': 'Doe', 'email': 'jane@example.com', 'phone': '(555) 123-4567'
    })
    return Customer.from_dict(row)


def make_dispatcher(session, repository, catalog, api_key='test-key'):
    client = SignNowClient(api_key=api_key, session=session)
    return SignatureDispatcher(client, repository, catalog, clock=FIXED_CLOCK)


def event_types(repository, document_id):
    return [e['event_type'] for e in repository.document_events(document_id)]


class TestEmailDispatch:
    def test_happy_path(self, repository, catalog, customer):
        session = signnow_happy_session()
        dispatcher = make_dispatcher(session, repository, catalog)

        result = dispatcher.dispatch(b'%PDF-1.4', customer, DispatchRequest('charge-slip', 'english'))

        assert result.success is True
        assert result.mock is False
        assert result.document_id == 'doc123'
        assert result.invite_id == 'inv456'
        assert result.signature_url.startswith('https://app.signnow.com/webapp/document/doc123')

        row = result.db_document
        assert row['status'] == 'sent'
        assert row['document_type'] == 'charge-slip'
        assert row['customer_id'] == customer.id
        assert row['signnow_document_id'] == 'doc123'
        assert row['email_sent_at']
        assert event_types(repository, row['id']) == [EVENT_DOCUMENT_SENT]

    def test_upload_file_name_and_single_field_request(self, repository, catalog, customer):
        session = signnow_happy_session()
        make_dispatcher(session, repository, catalog).dispatch(
            b'%PDF-1.4', customer, DispatchRequest('charge-slip', 'english')
        )

        upload = session.calls_to('POST', r'/document$')[0]
        assert upload.kwargs['files']['file'][0] == 'Doe_charge-slip_1700000000000.pdf'

        puts = session.calls_to('PUT', r'/document/doc123$')
        assert len(puts) == 1
        assert puts[0].kwargs['json']['fields'][0]['role'] == 'Signer 1'

    def test_missing_email_rejected_before_network(self, repository, catalog):
        session = signnow_happy_session()
        customer = Customer(id='c1', first_name='Jane', last_name='Doe')

        with pytest.raises(ValidationError):
            make_dispatcher(session, repository, catalog).dispatch(
                b'%PDF-1.4', customer, DispatchRequest('charge-slip')
            )
        assert session.calls == []

    def test_missing_customer_id_rejected(self, repository, catalog):
        customer = Customer(first_name='Jane', last_name='Doe', email='jane@example.com')
        with pytest.raises(ValidationError) as exc_info:
            make_dispatcher(FakeSession(), repository, catalog).dispatch(
                b'%PDF-1.4', customer, DispatchRequest('charge-slip')
            )
        assert exc_info.value.field == 'customerId'


class TestSMSDispatch:
    def test_sms_invite_uses_normalized_number(self, repository, catalog, customer):
        session = signnow_happy_session()
        request = DispatchRequest('charge-slip', delivery_method=DeliveryMethod.SMS, sms_number='555-987-6543')

        result = make_dispatcher(session, repository, catalog).dispatch(b'%PDF-1.4', customer, request)

        invite = session.calls_to('POST', r'/invite$')[0]
        assert invite.kwargs['json']['to'][0]['phone_number'] == '+15559876543'
        assert result.delivery_method == 'sms'
        assert result.db_document['sms_number'] == '+15559876543'
        assert result.db_document['sms_sent_at']

    def test_falls_back_to_customer_phone(self, repository, catalog, customer):
        session = signnow_happy_session()
        request = DispatchRequest('charge-slip', delivery_method=DeliveryMethod.SMS)

        make_dispatcher(session, repository, catalog).dispatch(b'%PDF-1.4', customer, request)

        invite = session.calls_to('POST', r'/invite$')[0]
        assert invite.kwargs['json']['to'][0]['phone_number'] == '+15551234567'

    def test_seven_digit_number_rejected_before_network(self, repository, catalog, customer):
        session = signnow_happy_session()
        request = DispatchRequest('charge-slip', delivery_method=DeliveryMethod.SMS, sms_number='1234567')

        with pytest.raises(ValidationError):
            make_dispatcher(session, repository, catalog).dispatch(b'%PDF-1.4', customer, request)
        assert session.calls == []
        assert repository.list_documents()[1] == 0


class TestMockFallback:
    def test_unconfigured_client(self, repository, catalog, customer):
        session = FakeSession()
        dispatcher = make_dispatcher(session, repository, catalog, api_key=None)

        result = dispatcher.dispatch(b'%PDF-1.4', customer, DispatchRequest('charge-slip'))

        assert result.success is True
        assert result.mock is True
        assert result.fallback_reason == FALLBACK_UNCONFIGURED
        assert result.document_id == 'MOCK-DOC-1700000000000'
        assert result.db_document['signnow_document_id'] == 'MOCK-DOC-1700000000000'
        assert session.calls == []

    def test_provider_unreachable(self, repository, catalog, customer):
        session = FakeSession().add('POST', r'/document', requests.exceptions.ConnectionError("refused"))

        result = make_dispatcher(session, repository, catalog).dispatch(
            b'%PDF-1.4', customer, DispatchRequest('charge-slip')
        )

        assert result.success is True
        assert result.mock is True
        assert result.fallback_reason == FALLBACK_PROVIDER_ERROR
        assert 'refused' in result.error
        assert result.db_document['status'] == 'sent'

        events = repository.document_events(result.db_document['id'])
        provider_error = [e for e in events if e['event_type'] == EVENT_PROVIDER_ERROR][0]
        assert provider_error['event_data']['stage'] == 'uploading'

    def test_invite_failure_takes_mock_path(self, repository, catalog, customer):
        session = FakeSession()
        session.add('POST', r'/document', FakeHTTPResponse(200, {'id': 'doc123'}))
        session.add('PUT', r'/document/doc123', FakeHTTPResponse(200, {'id': 'doc123'}))
        session.add('POST', r'/document/doc123/invite', FakeHTTPResponse(500, {'error': 'boom'}))

        result = make_dispatcher(session, repository, catalog).dispatch(
            b'%PDF-1.4', customer, DispatchRequest('charge-slip')
        )

        assert result.mock is True
        assert result.fallback_reason == FALLBACK_PROVIDER_ERROR
        events = repository.document_events(result.db_document['id'])
        stages = [e['event_data'].get('stage') for e in events if e['event_type'] == EVENT_PROVIDER_ERROR]
        assert stages == ['invited']

    def test_reasons_are_distinguishable_in_output(self, repository, catalog, customer):
        unconfigured = make_dispatcher(FakeSession(), repository, catalog, api_key=None).dispatch(
            b'%PDF-1.4', customer, DispatchRequest('charge-slip')
        ).to_dict()
        failing = FakeSession().add('POST', r'/document', FakeHTTPResponse(401, {'error': 'invalid token'}))
        provider_error = make_dispatcher(failing, repository, catalog).dispatch(
            b'%PDF-1.4', customer, DispatchRequest('charge-slip')
        ).to_dict()

        assert unconfigured['fallbackReason'] == 'unconfigured'
        assert provider_error['fallbackReason'] == 'provider_error'
        assert 'error' not in unconfigured


class TestFieldPlacementPolicy:
    FIELDS = [
        {'type': 'signature', 'x': 1, 'y': 1, 'width': 10, 'height': 10, 'page_number': 0},
        {'type': 'signature', 'x': 2, 'y': 2, 'width': 10, 'height': 10, 'page_number': 1},
        {'type': 'signature', 'x': 3, 'y': 3, 'width': 10, 'height': 10, 'page_number': 2},
    ]

    def test_batch_success(self):
        session = signnow_happy_session()
        client = SignNowClient(api_key='k', session=session)

        outcome = FieldPlacementPolicy(client, FIXED_CLOCK).place('doc123', self.FIELDS)

        assert outcome.mode == 'batch'
        assert outcome.placed == 3
        assert len(session.calls) == 1

    def test_individual_retry_with_unique_ids(self):
        session = FakeSession().add(
            'PUT', r'/document/doc1',
            FakeHTTPResponse(400, {'errors': ['batch rejected']}),
            FakeHTTPResponse(200, {'id': 'doc1'}),
            FakeHTTPResponse(500, {'errors': ['second failed']}),
            FakeHTTPResponse(200, {'id': 'doc1'}),
        )
        client = SignNowClient(api_key='k', session=session)

        outcome = FieldPlacementPolicy(client, FIXED_CLOCK).place('doc1', self.FIELDS)

        assert outcome.mode == 'individual'
        assert (outcome.placed, outcome.failed) == (2, 1)
        assert len(session.calls) == 4

        singles = [call.kwargs['json']['fields'] for call in session.calls[1:]]
        assert all(len(fields) == 1 for fields in singles)
        assert [f[0]['field_id'] for f in singles] == [
            'signature_field_1_1700000000000',
            'signature_field_2_1700000000000',
            'signature_field_3_1700000000000',
        ]
        assert [f[0]['name'] for f in singles] == ['signature_1', 'signature_2', 'signature_3']
        # Original payloads are untouched
        assert 'field_id' not in self.FIELDS[0]


class TestFieldPayload:
    def test_today_prefill(self, repository):
        catalog = ContractCatalog.from_dict({
            'templates': [],
            'signature_layouts': {
                'demo_english': [
                    {'type': 'signature', 'x': 1, 'y': 1, 'width': 10, 'height': 10},
                    {'type': 'text', 'x': 1, 'y': 20, 'width': 10, 'height': 10, 'prefill': 'today'},
                ]
            },
            'default_signature_fields': [{'type': 'signature', 'x': 0, 'y': 0, 'width': 1, 'height': 1}],
        })
        client = SignNowClient(api_key='k', session=FakeSession())
        dispatcher = SignatureDispatcher(client, repository, catalog, clock=FIXED_CLOCK)

        payload = dispatcher._field_payload(DispatchRequest('demo', 'english'), date(2026, 7, 4))

        assert 'prefilled_text' not in payload[0]
        assert payload[1]['prefilled_text'] == '7/4/2026'
