# routes/api/contracts.py
"""
Contract template endpoints: which contracts a user may send, and
filling a template without dispatching it.
"""

import io

from flask import current_app, send_file

from services.container import get_services
from services.contracts.exceptions import RepositoryError, ValidationError
from services.contracts.types import ContractTemplate, Customer
from . import api_bp
from .decorators import current_user_id
from .helpers import get_json_body, success_response


def _available_templates(services, user_id):
    """The user's permitted templates, or the built-in list when that lookup is unavailable."""
    if user_id:
        try:
            rows = services.repository.get_user_contracts(user_id)
        except RepositoryError as e:
            current_app.logger.warning(f"Falling back to built-in contracts for {user_id}: {e}")
        else:
            templates = []
            for row in rows:
                try:
                    templates.append(ContractTemplate.from_dict(row))
                except KeyError as e:
                    current_app.logger.warning(f"Skipping contract row missing {e}: {row.get('id')}")
            return templates

    return [t for t in services.catalog.templates() if t.is_active]


@api_bp.route('/contracts', methods=['GET'])
def list_contracts():
    """Contracts available to the caller (X-User-Id), plus their extra input fields."""
    services = get_services()
    templates = _available_templates(services, current_user_id())

    offered_types = {t.document_type for t in templates}
    for template in services.catalog.always_offered():
        if template.document_type not in offered_types:
            templates.append(template)
            offered_types.add(template.document_type)

    return success_response(
        [t.to_dict() for t in templates],
        extraFields={doc_type: services.catalog.extra_fields(doc_type) for doc_type in sorted(offered_types)}
    )


@api_bp.route('/contracts/fill', methods=['POST'])
def fill_contract():
    """
    Fill a template and return the PDF.

    Body: {customerData, documentType, language?, filePath?}
    """
    payload = get_json_body()
    customer_data = payload.get('customerData')
    document_type = payload.get('documentType')

    if not isinstance(customer_data, dict):
        raise ValidationError("customerData is required", field='customerData')
    if not document_type:
        raise ValidationError("Document type is required", field='documentType')

    language = payload.get('language') or 'english'
    customer = Customer.from_dict(customer_data)

    pdf_bytes = get_services().workflow.fill(
        customer, document_type, language, file_path=payload.get('filePath')
    )

    download_name = f"{customer.last_name or 'Customer'}_{document_type}_{language}.pdf"
    return send_file(
        io.BytesIO(pdf_bytes),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=download_name
    )
