"""
Signature Dispatcher

Sends a filled PDF through SignNow and records the result:

    uploading -> fields-placed -> invited -> recorded

When SignNow is not configured, or any provider call in the first three
stages fails, the dispatcher takes the mock path: it still records a
document (with a MOCK-DOC-<millis> id) so the workflow completes, and
the result says why via `fallback_reason`.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .catalog import ContractCatalog
from .exceptions import RepositoryError, SignNowAPIError, ValidationError
from .signnow_client import SignNowClient, document_url
from .transforms import format_us_date, normalize_us_phone
from .types import Customer, DeliveryMethod, DispatchRequest, DispatchResult, DocumentStatus

logger = logging.getLogger(__name__)

FALLBACK_UNCONFIGURED = 'unconfigured'
FALLBACK_PROVIDER_ERROR = 'provider_error'

EVENT_DOCUMENT_SENT = 'document.sent'
EVENT_PROVIDER_ERROR = 'dispatch.provider_error'


class DispatchStage(Enum):
    UPLOADING = "uploading"
    FIELDS_PLACED = "fields-placed"
    INVITED = "invited"
    RECORDED = "recorded"


def _millis(clock: Callable[[], float]) -> int:
    return int(clock() * 1000)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class PlacementOutcome:
    """What the field placement policy managed to do."""
    mode: str
    placed: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


class FieldPlacementPolicy:
    """
    Places fields with one batch PUT, falling back to one PUT per field.

    In the per-field fallback each field gets a unique field_id and name
    so later PUTs do not overwrite earlier ones. Individual failures are
    logged and skipped; placement never raises.
    """

    def __init__(self, client: SignNowClient, clock: Callable[[], float] = time.time):
        self.client = client
        self._clock = clock

    def place(self, document_id: str, fields: List[Dict[str, Any]]) -> PlacementOutcome:
        try:
            self.client.add_fields(document_id, fields)
            logger.info(f"Placed {len(fields)} field(s) on {document_id} in one request")
            return PlacementOutcome(mode='batch', placed=len(fields))
        except SignNowAPIError as e:
            logger.warning(f"Batch field placement failed for {document_id}, adding fields individually: {e}")

        outcome = PlacementOutcome(mode='individual')
        suffix = _millis(self._clock)

        for index, original in enumerate(fields, start=1):
            unique_field = dict(original)
            unique_field['field_id'] = f"signature_field_{index}_{suffix}"
            unique_field['name'] = f"signature_{index}"
            try:
                self.client.add_fields(document_id, [unique_field])
                outcome.placed += 1
            except SignNowAPIError as e:
                logger.error(f"Field {index}/{len(fields)} failed on {document_id}: {e}")
                outcome.failed += 1
                outcome.errors.append(str(e))

        return outcome


class SignatureDispatcher:
    """
    Upload, place fields, invite, and record.

    Usage:
        dispatcher = SignatureDispatcher(client, repository, catalog)
        result = dispatcher.dispatch(pdf_bytes, customer, request)
    """

    def __init__(
        self,
        client: SignNowClient,
        repository,
        catalog: ContractCatalog,
        placement_policy: Optional[FieldPlacementPolicy] = None,
        clock: Callable[[], float] = time.time
    ):
        self.client = client
        self.repository = repository
        self.catalog = catalog
        self.placement_policy = placement_policy or FieldPlacementPolicy(client, clock)
        self._clock = clock

    def validate_recipient(self, customer: Customer, request: DispatchRequest) -> str:
        """
        Validate and return the invite recipient.

        Raises:
            ValidationError: Missing email, or missing/malformed SMS number
        """
        if request.delivery_method == DeliveryMethod.SMS:
            number = request.sms_number or customer.phone
            if not number:
                raise ValidationError("Phone number is required for SMS delivery", field='smsNumber')
            return normalize_us_phone(number)

        if not customer.email:
            raise ValidationError("Customer email is required for email delivery", field='email')
        return customer.email

    def _field_payload(self, request: DispatchRequest, today: date) -> List[Dict[str, Any]]:
        payload = []
        for signature_field in self.catalog.signature_fields(request.document_type, request.language):
            prefill = None
            if signature_field.prefill == 'today':
                prefill = format_us_date(today)
            elif signature_field.prefill:
                prefill = signature_field.prefill
            payload.append(signature_field.to_signnow(self.catalog.signer_role, prefill))
        return payload

    def dispatch(
        self,
        pdf_bytes: bytes,
        customer: Customer,
        request: DispatchRequest,
        today: Optional[date] = None
    ) -> DispatchResult:
        """
        Run the dispatch workflow.

        Raises:
            ValidationError: Bad recipient or missing customer id (before any network call)
        """
        if not customer.id:
            raise ValidationError("Customer id is required", field='customerId')

        recipient = self.validate_recipient(customer, request)
        today = today or date.today()

        if not self.client.is_configured():
            logger.info("SignNow API key not configured, using mock response")
            return self._mock(customer, request, recipient, FALLBACK_UNCONFIGURED)

        stage = DispatchStage.UPLOADING
        try:
            file_name = f"{customer.last_name or 'Customer'}_{request.document_type}_{_millis(self._clock)}.pdf"
            document_id = self.client.upload_document(pdf_bytes, file_name)

            stage = DispatchStage.FIELDS_PLACED
            placement = self.placement_policy.place(document_id, self._field_payload(request, today))
            logger.debug(f"{document_id}: {placement.mode} placement, {placement.placed} placed")

            stage = DispatchStage.INVITED
            if request.delivery_method == DeliveryMethod.SMS:
                invite = self.client.send_sms_invite(document_id, recipient)
            else:
                invite = self.client.send_email_invite(document_id, recipient)
        except SignNowAPIError as e:
            logger.error(f"SignNow dispatch failed at stage {stage.value}: {e}")
            return self._mock(
                customer, request, recipient, FALLBACK_PROVIDER_ERROR,
                error=str(e), stage=stage, status_code=e.status_code
            )

        invite_id = invite.get('id') if isinstance(invite, dict) else None
        signing_url = self._signing_url(document_id, invite_id)

        db_document = self._record(customer, request, recipient, document_id, signing_url)
        logger.info(f"Dispatched {request.document_type} to {recipient} as {document_id}")

        return DispatchResult(
            success=True,
            document_id=document_id,
            signature_url=signing_url,
            db_document=db_document,
            delivery_method=request.delivery_method.value,
            invite_id=invite_id
        )

    def _signing_url(self, document_id: str, invite_id: Optional[str]) -> str:
        if invite_id:
            try:
                link = self.client.get_signing_link(document_id, invite_id)
                if link:
                    return link
            except SignNowAPIError as e:
                logger.info(f"Could not get signing link for {document_id}, using default: {e}")
        return document_url(document_id)

    def _mock(
        self,
        customer: Customer,
        request: DispatchRequest,
        recipient: str,
        reason: str,
        error: Optional[str] = None,
        stage: Optional[DispatchStage] = None,
        status_code: Optional[int] = None
    ) -> DispatchResult:
        document_id = f"MOCK-DOC-{_millis(self._clock)}"
        signing_url = document_url(document_id)

        db_document = self._record(
            customer, request, recipient, document_id, signing_url,
            mock=True, fallback_reason=reason
        )

        if reason == FALLBACK_PROVIDER_ERROR and db_document:
            self._log_event(db_document, EVENT_PROVIDER_ERROR, {
                'error': error,
                'stage': stage.value if stage else None,
                'status_code': status_code
            })

        return DispatchResult(
            success=True,
            document_id=document_id,
            signature_url=signing_url,
            db_document=db_document,
            delivery_method=request.delivery_method.value,
            mock=True,
            fallback_reason=reason,
            error=error
        )

    def _record(
        self,
        customer: Customer,
        request: DispatchRequest,
        recipient: str,
        document_id: str,
        signing_url: str,
        mock: bool = False,
        fallback_reason: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Persist the document row and its document.sent event."""
        now = _utc_now()
        is_sms = request.delivery_method == DeliveryMethod.SMS

        record = {
            'customer_id': customer.id,
            'document_type': request.document_type,
            'language': request.language,
            'signnow_document_id': document_id,
            'signnow_signature_url': signing_url,
            'delivery_method': request.delivery_method.value,
            'sms_number': recipient if is_sms else (request.sms_number or customer.phone),
            'status': DocumentStatus.SENT.value,
            'sent_at': now,
            'additional_fields': request.additional_fields or {}
        }
        if is_sms:
            record['sms_sent_at'] = now
        else:
            record['email_sent_at'] = now

        try:
            db_document = self.repository.create_document(record)
        except RepositoryError as e:
            logger.error(f"Error saving document {document_id}: {e}")
            return None

        self._log_event(db_document, EVENT_DOCUMENT_SENT, {
            'signnow_document_id': document_id,
            'delivery_method': request.delivery_method.value,
            'recipient': recipient,
            'mock': mock,
            'fallback_reason': fallback_reason
        })
        logger.debug(f"{document_id}: {DispatchStage.RECORDED.value}")
        return db_document

    def _log_event(self, db_document: Dict[str, Any], event_type: str, data: Dict[str, Any]) -> None:
        try:
            self.repository.log_signature_event(db_document.get('id'), event_type, data)
        except RepositoryError as e:
            logger.error(f"Error logging {event_type} for {db_document.get('id')}: {e}")
