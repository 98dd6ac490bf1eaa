# routes/api/helpers.py
"""
Shared helper functions for API routes.
"""

import base64
import binascii
import math

from flask import jsonify, request

from services.contracts.exceptions import ValidationError


def success_response(data=None, status=200, **extra):
    """Build the success envelope: {"success": true, "data": ...}."""
    body = {'success': True, 'data': data}
    body.update(extra)
    return jsonify(body), status


def error_response(message, status=400, **extra):
    """Build the error envelope: {"success": false, "error": "..."}."""
    body = {'success': False, 'error': message}
    body.update({k: v for k, v in extra.items() if v is not None})
    return jsonify(body), status


def get_json_body():
    """Request JSON as a dict; malformed or non-object bodies are a 400."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def pagination(page, limit, total):
    """Pagination block for list responses."""
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'totalPages': math.ceil(total / limit) if limit else 0
    }


def decode_pdf(value, field='pdfBlob'):
    """
    Decode a base64 PDF, with or without a data: URL prefix.

    Raises:
        ValidationError: If the value is not valid base64
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("PDF data must be a base64 string", field=field)

    encoded = value.strip()
    if encoded.startswith('data:') and ',' in encoded:
        encoded = encoded.split(',', 1)[1]

    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("PDF data is not valid base64", field=field)


def pdf_data_url(pdf_bytes):
    """Encode PDF bytes as a data: URL."""
    return 'data:application/pdf;base64,' + base64.b64encode(pdf_bytes).decode('ascii')
