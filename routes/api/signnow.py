# routes/api/signnow.py
"""
SignNow endpoints: fill-and-dispatch upload, per-document actions,
bulk status check and the webhook receiver.
"""

from flask import current_app, request

from services.container import get_services
from services.contracts.exceptions import NotFoundError, ValidationError
from services.contracts.status_poller import is_mock_document
from services.contracts.types import DispatchRequest
from services.contracts.webhooks import process_webhook
from . import api_bp
from .helpers import decode_pdf, get_json_body, pdf_data_url, success_response

DOCUMENT_ACTIONS = ('history', 'download', 'status')


@api_bp.route('/signnow-upload', methods=['POST'])
def signnow_upload():
    """
    Send a contract for signature.

    Body:
        customerData: customer fields (camelCase or snake_case); created if it has no id
        documentData: {documentType, language, deliveryMethod, smsNumber, additionalFields, filePath}
        pdfBlob: optional base64 PDF; when absent the template is filled server-side
    """
    payload = get_json_body()
    customer_data = payload.get('customerData')
    document_data = payload.get('documentData')

    if not isinstance(customer_data, dict) or not isinstance(document_data, dict):
        raise ValidationError("customerData and documentData are required")

    dispatch_request = DispatchRequest.from_dict(document_data)
    pdf_bytes = decode_pdf(payload['pdfBlob']) if payload.get('pdfBlob') else None

    result = get_services().workflow.fill_and_dispatch(
        customer_data,
        dispatch_request,
        file_path=document_data.get('filePath') or document_data.get('file_path'),
        pdf_bytes=pdf_bytes
    )

    if result.mock:
        current_app.logger.warning(
            f"Dispatch of {dispatch_request.document_type} used mock path ({result.fallback_reason})"
        )

    data = result.to_dict()
    data.pop('success', None)
    return success_response(data)


def _document_action(action, document_id):
    poller = get_services().poller

    if action == 'history':
        return {
            'documentId': document_id,
            'history': poller.history(document_id),
            'mock': is_mock_document(document_id) or not poller.client.is_configured()
        }

    if action == 'download':
        pdf_bytes = poller.download(document_id)
        if pdf_bytes is None:
            raise NotFoundError(
                "Signed document not available", resource='document', resource_id=document_id
            )
        return {
            'documentId': document_id,
            'size': len(pdf_bytes),
            'documentData': pdf_data_url(pdf_bytes)
        }

    return poller.check_provider_document(document_id).to_dict(include_document=True)


@api_bp.route('/signnow-document', methods=['GET', 'POST'])
def signnow_document():
    """Document history, download or status (?action=history|download|status&documentId=...)."""
    payload = get_json_body() if request.method == 'POST' else {}
    action = request.args.get('action') or payload.get('action')
    document_id = request.args.get('documentId') or payload.get('documentId')

    if not action or not document_id:
        raise ValidationError("action and documentId are required")
    if action not in DOCUMENT_ACTIONS:
        raise ValidationError(
            f"Invalid action. Use: {', '.join(DOCUMENT_ACTIONS)}", field='action'
        )

    current_app.logger.info(f"SignNow document {action} for {document_id}")
    return success_response(_document_action(action, document_id))


@api_bp.route('/signnow-status/bulk', methods=['POST'])
def signnow_bulk_status():
    """Check every sent document against SignNow."""
    results = get_services().poller.check_all_sent()
    return success_response({
        'checked': len(results),
        'updated': sum(1 for r in results if r.changed),
        'failed': sum(1 for r in results if r.error),
        'results': [r.to_dict() for r in results]
    })


@api_bp.route('/signnow-webhook', methods=['POST'])
def signnow_webhook():
    """
    Receive SignNow document events.

    Configure this URL in SignNow: https://yourdomain.com/api/signnow-webhook
    """
    payload = get_json_body()
    if not payload:
        raise ValidationError("No payload")

    result = process_webhook(get_services().repository, payload)
    current_app.logger.info(
        f"SignNow webhook {result['event']} for {result['documentId']} (matched={result['matched']})"
    )
    return success_response(result)
