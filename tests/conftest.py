"""
Shared fixtures: fake Supabase client, fake HTTP session for SignNow,
fake Twilio client, and generated PDF form templates.
"""

import io
import re
import sys
import uuid
from pathlib import Path
from types import SimpleNamespace

import pytest
import requests
from pypdf import PdfWriter
from pypdf.generic import (
    ArrayObject,
    DecodedStreamObject,
    DictionaryObject,
    FloatObject,
    NameObject,
    TextStringObject
)

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import TestingConfig


# =============================================================================
# FAKE SUPABASE
# =============================================================================

class FakeResponse:
    """Mimics a postgrest APIResponse."""
    def __init__(self, data=None, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable table query over in-memory rows."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = 'select'
        self.payload = None
        self.on_conflict = None
        self.count = None
        self.filters = []
        self.order_by = None
        self.bounds = None
        self.max_rows = None

    def select(self, columns='*', count=None):
        self.op = 'select'
        self.count = count
        return self

    def insert(self, record):
        self.op = 'insert'
        self.payload = record
        return self

    def update(self, changes):
        self.op = 'update'
        self.payload = changes
        return self

    def upsert(self, record, on_conflict=None):
        self.op = 'upsert'
        self.payload = record
        self.on_conflict = on_conflict
        return self

    def delete(self):
        self.op = 'delete'
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: str(row.get(column)) == str(value))
        return self

    def or_(self, expression):
        clauses = []
        for clause in expression.split(','):
            column, _, pattern = clause.split('.', 2)
            clauses.append((column, pattern.strip('%').lower()))
        self.filters.append(
            lambda row: any(term in str(row.get(column) or '').lower() for column, term in clauses)
        )
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def range(self, start, end):
        self.bounds = (start, end)
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.op))
        if self.db.fail:
            raise ConnectionError("Supabase unavailable")

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == 'insert':
            records = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for record in records:
                row = dict(record)
                row.setdefault('id', str(uuid.uuid4()))
                row.setdefault('created_at', '2026-01-01T00:00:00+00:00')
                rows.append(row)
                inserted.append(dict(row))
            return FakeResponse(inserted)

        if self.op == 'upsert':
            keys = (self.on_conflict or 'id').split(',')
            for row in rows:
                if all(str(row.get(k)) == str(self.payload.get(k)) for k in keys):
                    row.update(self.payload)
                    return FakeResponse([dict(row)])
            row = {'id': str(uuid.uuid4()), **self.payload}
            rows.append(row)
            return FakeResponse([dict(row)])

        matched = [row for row in rows if self._matches(row)]

        if self.op == 'update':
            for row in matched:
                row.update(self.payload)
            return FakeResponse([dict(row) for row in matched])

        if self.op == 'delete':
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            return FakeResponse([dict(row) for row in matched])

        result = [dict(row) for row in matched]
        if self.order_by:
            column, desc = self.order_by
            result.sort(key=lambda row: str(row.get(column) or ''), reverse=desc)
        total = len(result)
        if self.bounds:
            result = result[self.bounds[0]:self.bounds[1] + 1]
        if self.max_rows is not None:
            result = result[:self.max_rows]
        return FakeResponse(result, total if self.count else None)


class FakeRPC:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.rpc_calls.append((self.name, self.params))
        if self.db.fail:
            raise ConnectionError("Supabase unavailable")
        handler = self.db.rpc_handlers.get(self.name)
        if handler is None:
            raise RuntimeError(f"function {self.name} does not exist")
        return FakeResponse(handler(self.params))


class FakeBucket:
    def __init__(self, db, bucket):
        self.db = db
        self.bucket = bucket

    def upload(self, path, file, file_options=None):
        self.db.stored_files[(self.bucket, path)] = file
        return {'Key': f"{self.bucket}/{path}"}

    def create_signed_url(self, path, expires_in):
        return {'signedURL': f"https://storage.test/{self.bucket}/{path}?expires={expires_in}"}

    def remove(self, paths):
        for path in paths:
            self.db.stored_files.pop((self.bucket, path), None)


class FakeSupabase:
    """
    In-memory stand-in for supabase.Client.

    Set `fail = True` to make every call raise, as when Supabase is down.
    """

    def __init__(self, tables=None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.calls = []
        self.rpc_calls = []
        self.stored_files = {}
        self.fail = False
        self.storage = SimpleNamespace(from_=lambda bucket: FakeBucket(self, bucket))
        self.rpc_handlers = {
            'get_documents_by_status': self._documents_by_status,
            'update_document_status': self._update_document_status,
            'get_customer_document_stats': self._customer_stats,
        }

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params):
        return FakeRPC(self, name, params)

    def _documents_by_status(self, params):
        rows = [
            dict(r) for r in self.tables.get('documents', [])
            if params['doc_status'] is None or r.get('status') == params['doc_status']
        ]
        rows.sort(key=lambda r: str(r.get('created_at') or ''), reverse=True)
        start = params['page_offset']
        return rows[start:start + params['page_size']]

    def _update_document_status(self, params):
        for row in self.tables.get('documents', []):
            if str(row.get('id')) == str(params['doc_id']):
                row['status'] = params['new_status']
                if params['set_signed_at']:
                    row['signed_at'] = '2026-01-02T00:00:00+00:00'
                return True
        return False

    def _customer_stats(self, params):
        documents = [
            r for r in self.tables.get('documents', [])
            if str(r.get('customer_id')) == str(params['customer_uuid'])
        ]
        stats = {'total_documents': len(documents)}
        for status in ('pending', 'sent', 'signed', 'failed'):
            stats[f"{status}_documents"] = sum(1 for r in documents if r.get('status') == status)
        return [stats]


# =============================================================================
# FAKE HTTP SESSION (SignNow)
# =============================================================================

class FakeHTTPResponse:
    def __init__(self, status_code=200, json_data=None, content=b'', text=None):
        self.status_code = status_code
        self._json = json_data
        self.content = content
        self._text = text

    @property
    def text(self):
        if self._text is not None:
            return self._text
        if self._json is not None:
            return str(self._json)
        return self.content.decode('latin-1')

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Client Error", response=self)


class FakeSession:
    """
    Records requests and answers them from registered routes.

    Each route holds a list of responses; calls consume them in order and
    the last one repeats. A response may be an exception to raise.
    """

    def __init__(self):
        self.calls = []
        self.routes = []

    def add(self, method, pattern, *responses):
        self.routes.append([method, re.compile(pattern), list(responses)])
        return self

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.calls.append(SimpleNamespace(method=method, url=url, headers=headers, timeout=timeout, kwargs=kwargs))
        path = re.sub(r'^https?://[^/]+', '', url)

        for route_method, pattern, responses in self.routes:
            if route_method == method and pattern.fullmatch(path):
                response = responses.pop(0) if len(responses) > 1 else responses[0]
                if isinstance(response, Exception):
                    raise response
                return response

        return FakeHTTPResponse(404, {'errors': [{'message': f"No route for {method} {path}"}]})

    def calls_to(self, method, pattern):
        regex = re.compile(pattern)
        return [c for c in self.calls if c.method == method and regex.search(c.url)]


def signnow_happy_session(document_id='doc123', invite_id='inv456', history=None, signed_pdf=b'%PDF-1.4 signed'):
    """Session where every SignNow step succeeds."""
    session = FakeSession()
    session.add('POST', r'/document', FakeHTTPResponse(200, {'id': document_id}))
    session.add('PUT', rf'/document/{document_id}', FakeHTTPResponse(200, {'id': document_id}))
    session.add('POST', rf'/document/{document_id}/invite', FakeHTTPResponse(200, {'id': invite_id, 'status': 'success'}))
    session.add(
        'GET', rf'/document/{document_id}/invite/{invite_id}',
        FakeHTTPResponse(200, {'signing_link': f"https://app.signnow.com/webapp/document/{document_id}/invite?token=abc"})
    )
    session.add('GET', rf'/document/{document_id}/historyfull', FakeHTTPResponse(200, history or []))
    session.add('GET', rf'/document/{document_id}/download', FakeHTTPResponse(200, content=signed_pdf))
    return session


# =============================================================================
# FAKE TWILIO
# =============================================================================

class FakeTwilioMessages:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def create(self, body, from_, to):
        if self.error is not None:
            raise self.error
        self.sent.append({'body': body, 'from_': from_, 'to': to})
        return SimpleNamespace(sid=f"SM{len(self.sent):04d}", status='queued')


class FakeTwilioClient:
    def __init__(self, error=None):
        self.messages = FakeTwilioMessages(error)


# =============================================================================
# PDF FIXTURES
# =============================================================================

def make_form_pdf(text_fields=(), checkboxes=(), choice_fields=(), default_appearance=False):
    """Build a one-page PDF with the given AcroForm text and checkbox fields.

    default_appearance adds an AcroForm /DA with a Helvetica /DR entry so
    appearance streams can be generated for text fields.
    """
    writer = PdfWriter()
    page = writer.add_blank_page(width=612, height=792)

    annots = ArrayObject()
    fields = ArrayObject()

    def add_widget(name, field_type, y, extra):
        widget = DictionaryObject({
            NameObject('/Type'): NameObject('/Annot'),
            NameObject('/Subtype'): NameObject('/Widget'),
            NameObject('/FT'): NameObject(field_type),
            NameObject('/T'): TextStringObject(name),
            NameObject('/Rect'): ArrayObject([FloatObject(50), FloatObject(y), FloatObject(300), FloatObject(y + 18)]),
        })
        widget.update(extra)
        ref = writer._add_object(widget)
        annots.append(ref)
        fields.append(ref)

    y = 740
    for name in text_fields:
        add_widget(name, '/Tx', y, {NameObject('/V'): TextStringObject('')})
        y -= 24

    for name in choice_fields:
        add_widget(name, '/Ch', y, {NameObject('/V'): TextStringObject('')})
        y -= 24

    for name in checkboxes:
        on_stream = writer._add_object(DecodedStreamObject())
        off_stream = writer._add_object(DecodedStreamObject())
        add_widget(name, '/Btn', y, {
            NameObject('/V'): NameObject('/Off'),
            NameObject('/AS'): NameObject('/Off'),
            NameObject('/AP'): DictionaryObject({
                NameObject('/N'): DictionaryObject({
                    NameObject('/Yes'): on_stream,
                    NameObject('/Off'): off_stream,
                })
            }),
        })
        y -= 24

    page[NameObject('/Annots')] = annots
    acro_form = DictionaryObject({NameObject('/Fields'): fields})
    if default_appearance:
        acro_form[NameObject('/DA')] = TextStringObject('/Helv 0 Tf 0 g')
        acro_form[NameObject('/DR')] = DictionaryObject({
            NameObject('/Font'): DictionaryObject({
                NameObject('/Helv'): writer._add_object(DictionaryObject({
                    NameObject('/Type'): NameObject('/Font'),
                    NameObject('/Subtype'): NameObject('/Type1'),
                    NameObject('/BaseFont'): NameObject('/Helvetica'),
                    NameObject('/Encoding'): NameObject('/WinAnsiEncoding'),
                }))
            })
        })
    writer._root_object[NameObject('/AcroForm')] = acro_form

    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


CHARGE_SLIP_FIELDS = ('CustomerName', 'CustomerAddress', 'City', 'State', 'Zip', 'CustomerEmail', 'Total', 'Date')
MEMBERSHIP_CHECKBOXES = ('PlatinumBox', 'GoldBox', 'SilverBox')


@pytest.fixture
def charge_slip_pdf():
    return make_form_pdf(text_fields=CHARGE_SLIP_FIELDS)


@pytest.fixture
def membership_pdf():
    return make_form_pdf(
        text_fields=('Customer Name', 'Customer Address', 'Membership Start Date', 'Membership End Date'),
        checkboxes=MEMBERSHIP_CHECKBOXES
    )


# =============================================================================
# APP FIXTURES
# =============================================================================

@pytest.fixture
def templates_dir(tmp_path, charge_slip_pdf, membership_pdf):
    directory = tmp_path / 'pdfs'
    directory.mkdir()
    (directory / 'charge-slip-english.pdf').write_bytes(charge_slip_pdf)
    (directory / 'membership-plan.pdf').write_bytes(membership_pdf)
    return directory


@pytest.fixture
def make_app(templates_dir):
    """Factory: make_app(config_overrides..., supabase_client=, http_session=, twilio_client=)."""
    from app import create_app

    def factory(supabase_client=None, http_session=None, twilio_client=None, **overrides):
        settings = {'TEMPLATES_DIR': str(templates_dir)}
        settings.update(overrides)
        config_class = type('TestConfig', (TestingConfig,), settings)
        return create_app(
            config_class,
            supabase_client=supabase_client,
            http_session=http_session,
            twilio_client=twilio_client
        )

    return factory


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()
