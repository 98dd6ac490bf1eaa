"""
SMS Service

Sends text messages (e.g. signing links) through Twilio. When Twilio
credentials are not configured, messages are not sent and a mock
result is returned instead.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

from services.contracts.exceptions import SMSDeliveryError, ValidationError
from services.contracts.transforms import normalize_us_phone

logger = logging.getLogger(__name__)

PROVIDER_TWILIO = 'twilio'
PROVIDER_MOCK = 'mock'

# Twilio rejects bodies over 1600 characters
MAX_MESSAGE_LENGTH = 1600


class SMSService:
    """
    Twilio-backed SMS sender.

    Usage:
        sms = SMSService(sid, token, '+13055550100')
        result = sms.send('5551234567', 'Please sign: https://...')
    """

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        client: Optional[Any] = None
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client = client

    def is_configured(self) -> bool:
        """Check if Twilio credentials and a sender number are present."""
        if self._client is not None:
            return bool(self.from_number)
        return bool(self.account_sid and self.auth_token and self.from_number)

    @property
    def client(self):
        if self._client is None:
            self._client = TwilioClient(self.account_sid, self.auth_token)
        return self._client

    def send(self, phone_number: str, message: str) -> Dict[str, Any]:
        """
        Send a text message.

        Returns:
            dict with messageId, phoneNumber, status, sentAt and provider

        Raises:
            ValidationError: If the number or message is missing/invalid
            SMSDeliveryError: If Twilio rejects the message
        """
        if not message or not str(message).strip():
            raise ValidationError("Message is required", field='message')
        if len(message) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                f"Message exceeds {MAX_MESSAGE_LENGTH} characters",
                field='message'
            )

        to_number = normalize_us_phone(phone_number)
        sent_at = datetime.now(timezone.utc).isoformat()

        if not self.is_configured():
            logger.info(f"Twilio not configured, mock SMS to {to_number}")
            return {
                'messageId': f"MOCK-SMS-{int(time.time() * 1000)}",
                'phoneNumber': to_number,
                'status': 'sent',
                'sentAt': sent_at,
                'provider': PROVIDER_MOCK
            }

        try:
            sent = self.client.messages.create(body=message, from_=self.from_number, to=to_number)
        except TwilioException as e:
            logger.error(f"Twilio SMS to {to_number} failed: {e}")
            raise SMSDeliveryError(f"Failed to send SMS: {e}")

        logger.info(f"SMS sent to {to_number} (sid={sent.sid})")
        return {
            'messageId': sent.sid,
            'phoneNumber': to_number,
            'status': getattr(sent, 'status', None) or 'queued',
            'sentAt': sent_at,
            'provider': PROVIDER_TWILIO
        }
