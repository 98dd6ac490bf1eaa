"""
Contract Fill & Sign System

Fills customer data into PDF contract templates, sends them out for
e-signature through SignNow, persists everything in Supabase (with a
local JSON mirror), and polls SignNow for completed signatures.

Usage:
    from services.contracts import ContractCatalog, ContractWorkflow, DispatchRequest

    # On app startup
    catalog = ContractCatalog.load()

    # When sending a contract
    request = DispatchRequest.from_dict({'documentType': 'charge-slip', 'deliveryMethod': 'email'})
    result = workflow.fill_and_dispatch(customer_data, request)

    # Later
    results = poller.check_all_sent()
"""

from .types import (
    DocumentType,
    DocumentStatus,
    DeliveryMethod,
    UserRole,
    Customer,
    ContractTemplate,
    SignatureField,
    CheckboxGroup,
    DispatchRequest,
    DispatchResult,
    StatusCheckResult
)

from .exceptions import (
    ContractError,
    ConfigurationError,
    ValidationError,
    NotFoundError,
    PDFFillError,
    SignNowAPIError,
    RepositoryError,
    SMSDeliveryError
)

from .catalog import ContractCatalog
from .template_store import TemplateStore
from .field_mapper import FieldMapper
from .pdf_filler import PDFFiller
from .signnow_client import SignNowClient
from .local_store import LocalStore
from .repository import ContractRepository
from .dispatcher import FieldPlacementPolicy, SignatureDispatcher
from .status_poller import StatusPoller
from .workflow import ContractWorkflow
from .webhooks import process_webhook

__all__ = [
    # Types
    'DocumentType',
    'DocumentStatus',
    'DeliveryMethod',
    'UserRole',
    'Customer',
    'ContractTemplate',
    'SignatureField',
    'CheckboxGroup',
    'DispatchRequest',
    'DispatchResult',
    'StatusCheckResult',

    # Exceptions
    'ContractError',
    'ConfigurationError',
    'ValidationError',
    'NotFoundError',
    'PDFFillError',
    'SignNowAPIError',
    'RepositoryError',
    'SMSDeliveryError',

    # Components
    'ContractCatalog',
    'TemplateStore',
    'FieldMapper',
    'PDFFiller',
    'SignNowClient',
    'LocalStore',
    'ContractRepository',
    'FieldPlacementPolicy',
    'SignatureDispatcher',
    'StatusPoller',
    'ContractWorkflow',
    'process_webhook',
]
