# routes/api/errors.py
"""
Map contract exceptions onto JSON error responses.
"""

from flask import current_app

from services.contracts.exceptions import (
    ConfigurationError,
    ContractError,
    NotFoundError,
    PDFFillError,
    RepositoryError,
    SignNowAPIError,
    SMSDeliveryError,
    ValidationError
)
from . import api_bp
from .helpers import error_response


@api_bp.errorhandler(ValidationError)
def handle_validation_error(e):
    return error_response(str(e), 400, field=e.field)


@api_bp.errorhandler(NotFoundError)
def handle_not_found(e):
    return error_response(str(e), 404, resource=e.resource)


@api_bp.errorhandler(PDFFillError)
def handle_pdf_fill_error(e):
    current_app.logger.error(f"PDF fill failed: {e}")
    return error_response(str(e), 422)


@api_bp.errorhandler(SignNowAPIError)
def handle_signnow_error(e):
    current_app.logger.error(f"SignNow error: {e} (status={e.status_code})")
    return error_response(str(e), 502, providerStatus=e.status_code)


@api_bp.errorhandler(RepositoryError)
def handle_repository_error(e):
    current_app.logger.error(f"Database error: {e}")
    return error_response(str(e), 500)


@api_bp.errorhandler(SMSDeliveryError)
def handle_sms_error(e):
    current_app.logger.error(f"SMS delivery failed: {e}")
    return error_response(str(e), 500)


@api_bp.errorhandler(ConfigurationError)
@api_bp.errorhandler(ContractError)
def handle_contract_error(e):
    current_app.logger.error(f"Contract error: {e}", exc_info=True)
    return error_response(str(e), 500)
