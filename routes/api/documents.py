# routes/api/documents.py
"""
Document API endpoints.
"""

from datetime import datetime, timezone

from flask import current_app, request

from services import supabase_storage
from services.container import get_services
from services.contracts.exceptions import NotFoundError, ValidationError
from services.contracts.repository import DEFAULT_PAGE_SIZE, page_bounds
from services.contracts.types import DocumentStatus, to_snake_case
from . import api_bp
from .helpers import get_json_body, pagination, success_response

# Columns a client may change through PUT /documents/<id>; status goes through /status
UPDATABLE_FIELDS = frozenset({
    'language',
    'signnow_document_id',
    'signnow_signature_url',
    'signed_document_path',
    'delivery_method',
    'sms_number',
    'additional_fields',
})


@api_bp.route('/documents', methods=['GET'])
def list_documents():
    """List documents, newest first (?status, ?page, ?limit)."""
    page, limit = page_bounds(request.args.get('page', 1), request.args.get('limit', DEFAULT_PAGE_SIZE))
    rows, total = get_services().repository.list_documents(request.args.get('status'), page, limit)
    return success_response(rows, pagination=pagination(page, limit, total))


@api_bp.route('/documents/<document_id>', methods=['GET'])
def get_document(document_id):
    """A document with its customer, signature events and a link to the signed PDF."""
    services = get_services()
    document = services.repository.get_document(document_id)
    document['events'] = services.repository.document_events(document_id)

    storage_path = document.get('signed_document_path')
    if storage_path and services.supabase is not None:
        try:
            document['signed_document_url'] = supabase_storage.get_signed_document_url(
                services.supabase, storage_path, services.poller.bucket
            )
        except Exception as e:
            current_app.logger.warning(f"No signed URL for {storage_path}: {e}")

    return success_response(document)


@api_bp.route('/documents/<document_id>', methods=['PUT'])
def update_document(document_id):
    changes = {}
    for key, value in get_json_body().items():
        column = to_snake_case(key)
        if column == 'status':
            raise ValidationError(
                f"Use PUT /api/documents/{document_id}/status to change status", field='status'
            )
        if column in UPDATABLE_FIELDS:
            changes[column] = value

    if not changes:
        raise ValidationError("No updatable fields provided")

    return success_response(get_services().repository.update_document(document_id, changes))


@api_bp.route('/documents/<document_id>/status', methods=['PUT'])
def update_document_status(document_id):
    """Set a document's status; a change is recorded as a signature event."""
    status = get_json_body().get('status')
    if not status:
        raise ValidationError("Status is required", field='status')

    new_status = DocumentStatus.parse(status)
    repository = get_services().repository
    previous = repository.get_document(document_id).get('status')
    document = repository.update_document_status(document_id, new_status)

    if previous != new_status.value:
        repository.log_signature_event(document_id, f"status.{new_status.value}", {
            'previous_status': previous,
            'new_status': new_status.value,
            'updated_at': datetime.now(timezone.utc).isoformat(),
            'updated_via': 'api'
        })
        current_app.logger.info(f"Document {document_id} status {previous} -> {new_status.value}")

    return success_response(document, message='Document status updated successfully')


@api_bp.route('/documents/<document_id>', methods=['DELETE'])
def delete_document(document_id):
    """Delete a document row and its stored signed PDF."""
    services = get_services()
    try:
        storage_path = services.repository.get_document(document_id).get('signed_document_path')
    except NotFoundError:
        storage_path = None

    services.repository.delete_document(document_id)
    if storage_path and services.supabase is not None:
        supabase_storage.delete_file(services.supabase, services.poller.bucket, storage_path)
    current_app.logger.info(f"Document deleted: {document_id}")
    return success_response({'id': document_id, 'deleted': True})
