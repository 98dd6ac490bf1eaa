"""
Status Poller

Caller-driven signing-status checks against SignNow document history.

A document counts as signed once its history contains a completion
event. Signed documents are downloaded, optionally stored in Supabase
Storage, and flipped to `signed` with a `status.signed` event. Mock
documents and an unconfigured client never reach the provider and
never change status.
"""

import logging
from typing import Any, Dict, List, Optional

from services import supabase_storage

from .exceptions import RepositoryError, SignNowAPIError
from .signnow_client import SignNowClient, is_signed
from .types import DocumentStatus, StatusCheckResult

logger = logging.getLogger(__name__)

MOCK_DOCUMENT_PREFIX = 'MOCK-DOC-'

EVENT_STATUS_SIGNED = 'status.signed'


def is_mock_document(provider_document_id: Optional[str]) -> bool:
    return not provider_document_id or str(provider_document_id).startswith(MOCK_DOCUMENT_PREFIX)


class StatusPoller:
    """
    Checks signing status for one document or every sent document.

    Usage:
        poller = StatusPoller(client, repository, storage_client=supabase)
        result = poller.check(document_row)
        results = poller.check_all_sent()
    """

    def __init__(
        self,
        client: SignNowClient,
        repository,
        storage_client=None,
        bucket: str = supabase_storage.SIGNED_DOCUMENTS_BUCKET
    ):
        self.client = client
        self.repository = repository
        self.storage_client = storage_client
        self.bucket = bucket

    def history(self, provider_document_id: str) -> List[Dict[str, Any]]:
        """Provider history; empty for mock documents or an unconfigured client."""
        if is_mock_document(provider_document_id) or not self.client.is_configured():
            return []
        return self.client.get_history(provider_document_id)

    def download(
        self,
        provider_document_id: str,
        download_type: str = 'collapsed',
        with_history: bool = True
    ) -> Optional[bytes]:
        """PDF bytes from the provider; None for mock documents or an unconfigured client."""
        if is_mock_document(provider_document_id) or not self.client.is_configured():
            return None
        return self.client.download_document(provider_document_id, download_type, with_history)

    def check(self, document: Dict[str, Any]) -> StatusCheckResult:
        """
        Check one document row.

        Raises:
            SignNowAPIError: If the history request fails
        """
        provider_id = document.get('signnow_document_id')
        current = document.get('status') or DocumentStatus.PENDING.value

        result = StatusCheckResult(
            provider_document_id=provider_id,
            document_id=document.get('id'),
            status=current,
            is_signed=current == DocumentStatus.SIGNED.value,
            configured=self.client.is_configured(),
            signed_document_path=document.get('signed_document_path')
        )

        if is_mock_document(provider_id) or not self.client.is_configured():
            logger.debug(f"Skipping provider status check for {provider_id}")
            return result

        history = self.client.get_history(provider_id)
        result.history = history

        if not is_signed(history):
            return result

        result.is_signed = True
        result.signed_document = self.client.download_document(provider_id)

        if current == DocumentStatus.SIGNED.value:
            return result

        if document.get('id'):
            self._mark_signed(document, result)
        else:
            result.status = DocumentStatus.SIGNED.value
            result.changed = True

        return result

    def check_provider_document(self, provider_document_id: str) -> StatusCheckResult:
        """Check by SignNow document id, updating the matching row if there is one."""
        document = self.repository.find_document_by_provider_id(provider_document_id)
        if document is None:
            document = {
                'signnow_document_id': provider_document_id,
                'status': DocumentStatus.SENT.value
            }
        return self.check(document)

    def check_all_sent(self) -> List[StatusCheckResult]:
        """
        Check every document in `sent` status, one history request each.

        A failure on one document is logged and reported in its result;
        the batch continues.
        """
        results = []
        documents = self.repository.documents_with_status(DocumentStatus.SENT.value)
        logger.info(f"Checking signing status for {len(documents)} sent document(s)")

        for document in documents:
            try:
                results.append(self.check(document))
            except (SignNowAPIError, RepositoryError) as e:
                logger.error(f"Status check failed for document {document.get('id')}: {e}")
                results.append(StatusCheckResult(
                    provider_document_id=document.get('signnow_document_id'),
                    document_id=document.get('id'),
                    status=document.get('status') or DocumentStatus.SENT.value,
                    configured=self.client.is_configured(),
                    error=str(e)
                ))

        changed = sum(1 for r in results if r.changed)
        logger.info(f"Bulk status check complete: {changed} document(s) newly signed")
        return results

    def _mark_signed(self, document: Dict[str, Any], result: StatusCheckResult) -> None:
        document_id = document['id']
        updated = self.repository.update_document_status(document_id, DocumentStatus.SIGNED)
        result.status = updated.get('status', DocumentStatus.SIGNED.value)
        result.changed = True

        if self.storage_client is not None and result.signed_document and not document.get('signed_document_path'):
            try:
                stored = supabase_storage.upload_signed_document(
                    self.storage_client, document_id, result.signed_document, self.bucket
                )
                self.repository.update_document(document_id, {'signed_document_path': stored['path']})
                result.signed_document_path = stored['path']
            except Exception as e:
                logger.error(f"Failed to store signed document for {document_id}: {e}")

        self.repository.log_signature_event(document_id, EVENT_STATUS_SIGNED, {
            'signnow_document_id': result.provider_document_id,
            'signed_document_path': result.signed_document_path
        })
        logger.info(f"Document {document_id} marked as signed")
