"""
Contract System Exceptions

Custom exceptions for contract filling, dispatch and persistence errors.
"""


class ContractError(Exception):
    """Base exception for all contract system errors."""
    pass


class ConfigurationError(ContractError):
    """
    Raised when contract configuration is invalid.

    This includes YAML syntax errors, missing required keys in the
    catalog, and signature layouts that reference unknown field types.
    """
    pass


class ValidationError(ContractError):
    """
    Raised when caller input is malformed.

    Carries the offending field name so API handlers can report it.
    """
    def __init__(self, message: str, field: str = None):
        self.field = field
        super().__init__(message)


class NotFoundError(ContractError):
    """Raised when a customer, document or template does not exist."""
    def __init__(self, message: str, resource: str = None, resource_id: str = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(message)


class PDFFillError(ContractError):
    """
    Raised when a template cannot be parsed as a PDF.

    Missing or incompatible form fields never raise this; only a
    structurally invalid source document does.
    """
    pass


class SignNowAPIError(ContractError):
    """
    Raised when SignNow API calls fail.

    Wraps the underlying transport error with context.
    """
    def __init__(self, message: str, status_code: int = None, response_body: str = None):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class RepositoryError(ContractError):
    """Raised when the backing store fails and no local fallback exists."""
    pass


class SMSDeliveryError(ContractError):
    """Raised when the SMS provider rejects or fails a message."""
    pass
