"""
Supabase client and signed-PDF storage.

Signed contracts live in a private bucket under documents/<document id>/
and are only handed out through short-lived signed URLs.
"""

import logging
import uuid
from typing import Dict, Optional

from supabase import Client, create_client

logger = logging.getLogger(__name__)

SIGNED_DOCUMENTS_BUCKET = 'signed-documents'
SIGNED_URL_TTL_SECONDS = 3600


def create_supabase_client(supabase_url: Optional[str], supabase_key: Optional[str]) -> Optional[Client]:
    """
    Create a Supabase client from SUPABASE_URL / SUPABASE_KEY values.

    Returns None when either value is missing (demo mode).
    """
    if not supabase_url or not supabase_key:
        logger.info("SUPABASE_URL/SUPABASE_KEY not set, running without Supabase")
        return None

    return create_client(supabase_url, supabase_key)


def signed_document_path(document_id: str) -> str:
    """Object key for a new signed copy; each download gets its own key."""
    return f"documents/{document_id}/signed-{uuid.uuid4().hex[:12]}.pdf"


def upload_signed_document(
    client: Client,
    document_id: str,
    pdf_bytes: bytes,
    bucket: str = SIGNED_DOCUMENTS_BUCKET
) -> Dict[str, object]:
    """
    Store a downloaded signed PDF for a document.

    Returns:
        dict with 'path' (object key in the bucket) and 'size'

    Raises:
        Whatever the storage client raises on upload failure
    """
    path = signed_document_path(document_id)
    client.storage.from_(bucket).upload(
        path=path,
        file=pdf_bytes,
        file_options={'content-type': 'application/pdf'}
    )
    logger.info(f"Stored signed PDF for document {document_id} at {bucket}/{path}")
    return {'path': path, 'size': len(pdf_bytes)}


def get_signed_document_url(
    client: Client,
    storage_path: str,
    bucket: str = SIGNED_DOCUMENTS_BUCKET,
    expires_in: int = SIGNED_URL_TTL_SECONDS
) -> str:
    """Time-limited download link for a stored signed PDF."""
    signed = client.storage.from_(bucket).create_signed_url(path=storage_path, expires_in=expires_in)
    return signed['signedURL']


def delete_file(client: Client, bucket: str, storage_path: str) -> bool:
    """Remove a stored PDF; failures are logged and reported as False."""
    try:
        client.storage.from_(bucket).remove([storage_path])
    except Exception as e:
        logger.error(f"Failed to delete {bucket}/{storage_path}: {e}")
        return False
    return True
