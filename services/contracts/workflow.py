"""
Contract Workflow

Glues the field mapper, PDF filler and signature dispatcher together:
pick a template, fill it from customer data, and send it for signature.
"""

import logging
from datetime import date
from typing import Any, Dict, Optional

from .catalog import ContractCatalog
from .dispatcher import SignatureDispatcher
from .exceptions import NotFoundError
from .field_mapper import FieldMapper
from .pdf_filler import PDFFiller
from .template_store import TemplateStore
from .types import ContractTemplate, Customer, DispatchRequest, DispatchResult, to_snake_case

logger = logging.getLogger(__name__)


class ContractWorkflow:
    """
    Fill and fill-and-dispatch operations.

    Usage:
        workflow = ContractWorkflow(catalog, templates, dispatcher, repository)
        pdf_bytes = workflow.fill(customer, 'charge-slip', 'english')
        result = workflow.fill_and_dispatch(customer_data, DispatchRequest(...))
    """

    def __init__(
        self,
        catalog: ContractCatalog,
        templates: TemplateStore,
        dispatcher: SignatureDispatcher,
        repository
    ):
        self.catalog = catalog
        self.templates = templates
        self.dispatcher = dispatcher
        self.repository = repository

    def resolve_template(
        self,
        document_type: str,
        language: str = 'english',
        file_path: Optional[str] = None
    ) -> ContractTemplate:
        """
        Find the template for a (document type, language) pair.

        An explicit file_path (from a database template record) wins over
        the built-in catalog.

        Raises:
            NotFoundError: If no template matches
        """
        if file_path:
            return ContractTemplate(
                id=file_path,
                name=file_path,
                document_type=document_type,
                language=language,
                file_path=file_path
            )

        template = self.catalog.find_template(document_type, language)
        if template is None:
            raise NotFoundError(
                f"No template for {document_type} ({language})",
                resource='template',
                resource_id=f"{document_type}_{language}"
            )
        return template

    def fill(
        self,
        customer: Customer,
        document_type: str,
        language: str = 'english',
        file_path: Optional[str] = None,
        today: Optional[date] = None
    ) -> bytes:
        """
        Fill a template from customer data.

        Raises:
            NotFoundError: If the template cannot be found
            PDFFillError: If the template is not a valid PDF
        """
        template = self.resolve_template(document_type, language, file_path)
        template_bytes = self.templates.read_template(template)

        values = FieldMapper.build(customer, document_type, today=today)
        checkbox_group = FieldMapper.checkbox_group(customer, document_type)

        logger.info(f"Filling {template.file_path} for {customer.full_name or 'customer'}")
        return PDFFiller.fill(template_bytes, values, checkbox_group)

    def ensure_customer(self, customer_data: Dict[str, Any]) -> Customer:
        """Use the given customer id, or create the customer first."""
        customer = Customer.from_dict(customer_data)
        if customer.id:
            return customer

        row = self.repository.create_customer(customer_data)
        saved = Customer.from_dict(row)
        saved.extra.update(customer.extra)
        logger.info(f"Created customer {saved.id} for dispatch")
        return saved

    def _additional_fields(self, customer: Customer, request: DispatchRequest) -> Dict[str, Any]:
        """Document-type extras to store with the document row."""
        if request.additional_fields:
            return request.additional_fields
        fields = {}
        for extra_field in self.catalog.extra_fields(request.document_type):
            name = extra_field.get('name')
            value = customer.get(name) if name else None
            if value not in (None, ''):
                fields[name] = value
        return fields

    def fill_and_dispatch(
        self,
        customer_data: Dict[str, Any],
        request: DispatchRequest,
        file_path: Optional[str] = None,
        pdf_bytes: Optional[bytes] = None,
        today: Optional[date] = None
    ) -> DispatchResult:
        """
        Fill (unless pdf_bytes is given) and send for signature.

        Raises:
            ValidationError: Bad recipient or customer data
            NotFoundError: Template missing
            PDFFillError: Template is not a valid PDF
        """
        merged = dict(customer_data)
        present = {to_snake_case(key) for key in merged}
        for key, value in (request.additional_fields or {}).items():
            if to_snake_case(key) not in present:
                merged[key] = value

        # Reject a bad recipient before anything is written or sent
        self.dispatcher.validate_recipient(Customer.from_dict(merged), request)

        customer = self.ensure_customer(merged)
        request.additional_fields = self._additional_fields(customer, request)

        if pdf_bytes is None:
            pdf_bytes = self.fill(customer, request.document_type, request.language, file_path, today)

        return self.dispatcher.dispatch(pdf_bytes, customer, request, today=today)
