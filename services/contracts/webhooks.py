"""
SignNow webhook processing.

Maps SignNow document events onto document statuses and records every
received event as a signature event on the matching document.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from .exceptions import ValidationError
from .types import DocumentStatus

logger = logging.getLogger(__name__)

# SignNow event -> new document status (None = record only)
WEBHOOK_STATUS_MAP = {
    'document.create': DocumentStatus.SENT,
    'document.sign': DocumentStatus.SIGNED,
    'document.complete': DocumentStatus.SIGNED,
    'document.decline': DocumentStatus.FAILED,
    'document.cancel': DocumentStatus.FAILED,
    'document.view': None,
}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def parse_webhook(payload: Dict[str, Any]) -> Tuple[str, str]:
    """
    Pull (event, document_id) out of a webhook body.

    Accepts `{event, document: {id}, meta}`, the SignNow
    `{meta: {event}, content: {document_id}}` shape, and a flat
    `{event, document_id}` body.

    Raises:
        ValidationError: If either value is missing
    """
    meta = _as_dict(payload.get('meta'))
    content = _as_dict(payload.get('content'))
    document = _as_dict(payload.get('document'))

    event = payload.get('event') or meta.get('event')
    document_id = (
        document.get('id')
        or content.get('document_id')
        or payload.get('document_id')
        or payload.get('documentId')
    )

    if not event:
        raise ValidationError("Webhook event is required", field='event')
    if not document_id:
        raise ValidationError("Webhook document id is required", field='document_id')
    return event, str(document_id)


def process_webhook(repository, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply a SignNow webhook.

    Returns:
        dict with event, documentId, matched, and status (when matched)
    """
    event, signnow_document_id = parse_webhook(payload)
    result: Dict[str, Any] = {
        'event': event,
        'documentId': signnow_document_id,
        'matched': False
    }

    document = repository.find_document_by_provider_id(signnow_document_id)
    if document is None:
        logger.info(f"Webhook {event} for unknown document {signnow_document_id}")
        return result

    result['matched'] = True
    new_status: Optional[DocumentStatus] = WEBHOOK_STATUS_MAP.get(event)
    current = document.get('status')

    if new_status is not None and current != new_status.value:
        updated = repository.update_document_status(document['id'], new_status)
        current = updated.get('status', new_status.value)
        logger.info(f"Webhook {event}: document {document['id']} -> {current}")
    elif event not in WEBHOOK_STATUS_MAP:
        logger.debug(f"Unhandled webhook event {event} for {signnow_document_id}")

    repository.log_signature_event(document['id'], f"webhook.{event}", {
        'signnow_document_id': signnow_document_id,
        'payload': payload
    })

    result['status'] = current
    return result
