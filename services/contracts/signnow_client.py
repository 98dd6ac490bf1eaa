"""
SignNow Client

Thin wrapper around the SignNow REST API for the signing workflow:
upload, field placement, invites, history and signed-document download.

The client is constructed from configuration and injected; an instance
without an API key reports `is_configured() == False` and callers take
their mock path instead of calling it.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from .exceptions import SignNowAPIError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = 'https://api.signnow.com'
DEFAULT_SIGNER_ROLE = 'Signer 1'

# Request timeouts
DEFAULT_TIMEOUT = 30
UPLOAD_TIMEOUT = 60

INVITE_EXPIRATION_DAYS = 30

# History events that mean the signer finished
COMPLETION_EVENTS = frozenset({
    'document_signing_session_completed',
    'document_complete',
    'document_signed',
})


def document_url(document_id: str) -> str:
    """Generic SignNow web link for a document."""
    return f"https://app.signnow.com/document/{document_id}"


def is_signed(history: Any) -> bool:
    """True if any history event is a completion event."""
    if not isinstance(history, list):
        return False
    return any(
        isinstance(event, dict) and event.get('event') in COMPLETION_EVENTS
        for event in history
    )


class SignNowClient:
    """
    Client for SignNow API operations.

    Provides methods for:
        - Uploading a PDF (returns the SignNow document id)
        - Placing signature fields
        - Sending email or SMS invites and looking up signing links
        - Fetching document history and downloading signed copies
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = DEFAULT_API_URL,
        sender_email: Optional[str] = None,
        signer_role: str = DEFAULT_SIGNER_ROLE,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_TIMEOUT,
        upload_timeout: int = UPLOAD_TIMEOUT
    ):
        self.api_key = (api_key or '').strip()
        self.api_url = (api_url or DEFAULT_API_URL).rstrip('/')
        self.sender_email = sender_email
        self.signer_role = signer_role
        self.session = session or requests.Session()
        self.timeout = timeout
        self.upload_timeout = upload_timeout

    def is_configured(self) -> bool:
        """Check if an API key is present."""
        return bool(self.api_key)

    def _get_headers(self, json_body: bool = True) -> Dict[str, str]:
        """Get request headers with auth."""
        headers = {'Authorization': f"Bearer {self.api_key}"}
        if json_body:
            headers['Content-Type'] = 'application/json'
        return headers

    def _request(
        self,
        method: str,
        path: str,
        action: str,
        json_body: bool = True,
        timeout: Optional[int] = None,
        **kwargs
    ) -> requests.Response:
        """
        Send a request and raise SignNowAPIError on any transport or HTTP error.

        Args:
            action: Human-readable description used in error messages
        """
        if not self.is_configured():
            raise SignNowAPIError(f"Failed to {action}: SignNow API key not configured")

        try:
            response = self.session.request(
                method,
                f"{self.api_url}{path}",
                headers=self._get_headers(json_body),
                timeout=timeout or self.timeout,
                **kwargs
            )
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            error_body = None
            status_code = None
            if hasattr(e, 'response') and e.response is not None:
                status_code = e.response.status_code
                try:
                    error_body = e.response.text
                except Exception:
                    pass

            logger.error(f"SignNow {action} failed: {e}")
            if error_body:
                logger.error(f"Response body: {error_body}")

            raise SignNowAPIError(
                f"Failed to {action}: {e}",
                status_code=status_code,
                response_body=error_body
            )

    @staticmethod
    def _json(response: requests.Response, action: str) -> Any:
        try:
            return response.json()
        except ValueError:
            raise SignNowAPIError(
                f"Failed to {action}: response was not JSON",
                status_code=response.status_code,
                response_body=response.text
            )

    def upload_document(self, pdf_bytes: bytes, file_name: str) -> str:
        """
        Upload a PDF.

        Returns:
            SignNow document id
        """
        response = self._request(
            'POST', '/document',
            action='upload document',
            json_body=False,
            timeout=self.upload_timeout,
            files={'file': (file_name, pdf_bytes, 'application/pdf')}
        )
        data = self._json(response, 'upload document')
        document_id = data.get('id') if isinstance(data, dict) else None
        if not document_id:
            raise SignNowAPIError(
                "Failed to upload document: no document id in response",
                status_code=response.status_code,
                response_body=response.text
            )
        logger.info(f"Uploaded {file_name} to SignNow as {document_id}")
        return document_id

    def add_fields(self, document_id: str, fields: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Place fields on an uploaded document (single PUT)."""
        response = self._request(
            'PUT', f"/document/{document_id}",
            action=f"add fields to {document_id}",
            json={'fields': fields}
        )
        return self._json(response, f"add fields to {document_id}")

    def _invite(self, document_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self._request(
            'POST', f"/document/{document_id}/invite",
            action=f"send invite for {document_id}",
            json=payload
        )
        return self._json(response, f"send invite for {document_id}")

    def send_email_invite(self, document_id: str, email: str) -> Dict[str, Any]:
        """
        Invite a signer by email.

        Custom subject/message are not sent; they require an upgraded plan.
        """
        payload = {
            'to': [{
                'email': email,
                'role': self.signer_role,
                'order': 1,
                'expiration_days': INVITE_EXPIRATION_DAYS
            }]
        }
        if self.sender_email:
            payload['from'] = self.sender_email
        return self._invite(document_id, payload)

    def send_sms_invite(self, document_id: str, phone_number: str) -> Dict[str, Any]:
        """Invite a signer by SMS. `phone_number` must already be +1XXXXXXXXXX."""
        payload = {
            'to': [{
                'phone_number': phone_number,
                'role': self.signer_role,
                'order': 1,
                'expiration_days': INVITE_EXPIRATION_DAYS
            }]
        }
        return self._invite(document_id, payload)

    def get_invite(self, document_id: str, invite_id: str) -> Dict[str, Any]:
        response = self._request(
            'GET', f"/document/{document_id}/invite/{invite_id}",
            action=f"fetch invite {invite_id}",
            json_body=False
        )
        return self._json(response, f"fetch invite {invite_id}")

    def get_signing_link(self, document_id: str, invite_id: str) -> Optional[str]:
        """Direct signing link for an invite, or None if unavailable."""
        invite = self.get_invite(document_id, invite_id)
        if isinstance(invite, dict):
            return invite.get('signing_link') or None
        return None

    def get_history(self, document_id: str) -> List[Dict[str, Any]]:
        """Full event history for a document."""
        response = self._request(
            'GET', f"/document/{document_id}/historyfull",
            action=f"fetch history for {document_id}"
        )
        history = self._json(response, f"fetch history for {document_id}")
        return history if isinstance(history, list) else []

    def download_document(
        self,
        document_id: str,
        download_type: str = 'collapsed',
        with_history: bool = True
    ) -> bytes:
        """Download a document as PDF bytes."""
        params = {'type': download_type or 'collapsed'}
        if with_history:
            params['with_history'] = '1'
        response = self._request(
            'GET', f"/document/{document_id}/download",
            action=f"download {document_id}",
            json_body=False,
            timeout=self.upload_timeout,
            params=params
        )
        return response.content
