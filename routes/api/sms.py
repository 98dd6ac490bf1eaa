# routes/api/sms.py
"""
SMS endpoint for sending signing links by text message.
"""

from flask import current_app

from services.container import get_services
from services.contracts.exceptions import ValidationError
from services.contracts.transforms import format_phone_display
from . import api_bp
from .helpers import get_json_body, success_response


@api_bp.route('/send-sms', methods=['POST'])
def send_sms():
    """
    Body: {phoneNumber, message, documentId?, signingUrl?}

    The signing URL is appended to the message when it is not already in it.
    """
    payload = get_json_body()
    phone_number = payload.get('phoneNumber')
    message = payload.get('message')

    if not phone_number or not message:
        raise ValidationError("Phone number and message are required")

    signing_url = payload.get('signingUrl')
    if signing_url and signing_url not in message:
        message = f"{message} {signing_url}"

    result = get_services().sms.send(phone_number, message)
    result['displayNumber'] = format_phone_display(result['phoneNumber'])
    if payload.get('documentId'):
        result['documentId'] = payload['documentId']

    current_app.logger.info(
        f"SMS ({result['provider']}) sent to {result['displayNumber']}: {result['messageId']}"
    )
    return success_response(result)
