"""
Contract Repository

Supabase persistence for customers, documents, signature events,
contract templates, permissions, user profiles and the activity log.

Customers, documents and signature events fall back to the local JSON
mirror when Supabase fails (logged at warning), and successful remote
writes are mirrored locally. Without a Supabase client the local store
is the only store (demo mode). Templates, permissions, profiles and
activity have no local copy; failures raise RepositoryError.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from .exceptions import NotFoundError, RepositoryError, ValidationError
from .local_store import LocalStore
from .types import Customer, DocumentStatus, UserRole

logger = logging.getLogger(__name__)

T = TypeVar('T')

CUSTOMERS = 'customers'
DOCUMENTS = 'documents'
SIGNATURE_EVENTS = 'signature_events'
CONTRACT_TEMPLATES = 'contract_templates'
CONTRACT_PERMISSIONS = 'contract_permissions'
USER_PROFILES = 'user_profiles'
ACTIVITY_LOG = 'activity_log'

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
ACTIVITY_LIMIT = 50

CUSTOMER_LIST_COLUMNS = (
    '*, documents(id, document_type, language, status, delivery_method, '
    'sent_at, signed_at, created_at)'
)

# Characters that would break out of a PostgREST or() filter
_SEARCH_UNSAFE = re.compile(r'[,()%*]')


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _first(response) -> Optional[Dict[str, Any]]:
    data = getattr(response, 'data', None)
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


def _rows(response) -> List[Dict[str, Any]]:
    data = getattr(response, 'data', None)
    return list(data) if isinstance(data, list) else []


def page_bounds(page: Any, limit: Any) -> Tuple[int, int]:
    """Clamp page/limit query values; returns (page, limit)."""
    try:
        page = max(int(page or 1), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit or DEFAULT_PAGE_SIZE)
    except (TypeError, ValueError):
        limit = DEFAULT_PAGE_SIZE
    return page, min(max(limit, 1), MAX_PAGE_SIZE)


def _newest_first(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(rows, key=lambda r: str(r.get('created_at') or ''), reverse=True)


class ContractRepository:
    """
    Data access for the contract workflow.

    Usage:
        repo = ContractRepository(client=get_supabase_client(), local_store=LocalStore(path))
        customer = repo.create_customer({'firstName': 'Jane', 'lastName': 'Doe'})
    """

    def __init__(self, client=None, local_store: Optional[LocalStore] = None):
        self.client = client
        self.local = local_store or LocalStore()

    def is_configured(self) -> bool:
        return self.client is not None

    def _with_fallback(self, operation: str, remote: Callable[[], T], local: Callable[[], T]) -> T:
        if self.client is None:
            return local()
        try:
            return remote()
        except Exception as e:
            logger.warning(f"Supabase {operation} failed, using local store: {e}")
            return local()

    def _remote_only(self, operation: str, remote: Callable[[], T]) -> T:
        if self.client is None:
            raise RepositoryError(f"Cannot {operation}: Supabase is not configured")
        try:
            return remote()
        except Exception as e:
            logger.error(f"Supabase {operation} failed: {e}")
            raise RepositoryError(f"Failed to {operation}: {e}")

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    def list_customers(
        self,
        page: Any = 1,
        limit: Any = DEFAULT_PAGE_SIZE,
        search: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Newest customers first, optionally filtered by name/email/phone.

        Returns:
            (rows, total count)
        """
        page, limit = page_bounds(page, limit)
        offset = (page - 1) * limit
        term = _SEARCH_UNSAFE.sub(' ', search or '').strip()

        def remote():
            query = self.client.table(CUSTOMERS).select(CUSTOMER_LIST_COLUMNS, count='exact')
            if term:
                query = query.or_(
                    f"first_name.ilike.%{term}%,last_name.ilike.%{term}%,"
                    f"email.ilike.%{term}%,phone.ilike.%{term}%"
                )
            response = query.order('created_at', desc=True).range(offset, offset + limit - 1).execute()
            rows = _rows(response)
            total = response.count if getattr(response, 'count', None) is not None else len(rows)
            return rows, total

        def local():
            rows = self.local.all(CUSTOMERS)
            if term:
                needle = term.lower()
                rows = [
                    r for r in rows
                    if any(needle in str(r.get(key) or '').lower()
                           for key in ('first_name', 'last_name', 'email', 'phone'))
                ]
            rows = _newest_first(rows)
            return rows[offset:offset + limit], len(rows)

        return self._with_fallback('list customers', remote, local)

    def get_customer(self, customer_id: str) -> Dict[str, Any]:
        """
        Fetch a customer with their documents (newest first).

        Raises:
            NotFoundError: If no such customer exists
        """
        def remote():
            row = _first(self.client.table(CUSTOMERS).select('*').eq('id', customer_id).limit(1).execute())
            if row is None:
                return None
            documents = _rows(
                self.client.table(DOCUMENTS).select('*')
                .eq('customer_id', customer_id)
                .order('created_at', desc=True)
                .execute()
            )
            return {**row, 'documents': documents}

        def local():
            row = self.local.get(CUSTOMERS, customer_id)
            if row is None:
                return None
            documents = self.local.filter(DOCUMENTS, lambda d: str(d.get('customer_id')) == str(customer_id))
            return {**row, 'documents': _newest_first(documents)}

        customer = self._with_fallback('get customer', remote, local)
        if customer is None:
            raise NotFoundError("Customer not found", resource='customer', resource_id=customer_id)
        return customer

    def create_customer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a customer from camelCase or snake_case input.

        Raises:
            ValidationError: If first or last name is missing
        """
        record = Customer.from_dict(data).to_record()
        if not record.get('first_name') or not record.get('last_name'):
            raise ValidationError("First and last name are required", field='firstName')

        now = _utc_now()
        record.update({'created_at': now, 'updated_at': now})

        def remote():
            row = _first(self.client.table(CUSTOMERS).insert(record).execute())
            if row is None:
                raise RepositoryError("Insert returned no customer row")
            self.local.upsert(CUSTOMERS, row)
            return row

        return self._with_fallback('create customer', remote, lambda: self.local.insert(CUSTOMERS, record))

    def update_customer(self, customer_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        changes = Customer.from_dict(data).to_record()
        changes['updated_at'] = _utc_now()

        def remote():
            row = _first(self.client.table(CUSTOMERS).update(changes).eq('id', customer_id).execute())
            if row is not None:
                self.local.upsert(CUSTOMERS, row)
            return row

        row = self._with_fallback(
            'update customer', remote, lambda: self.local.update(CUSTOMERS, customer_id, changes)
        )
        if row is None:
            raise NotFoundError("Customer not found", resource='customer', resource_id=customer_id)
        return row

    def delete_customer(self, customer_id: str) -> bool:
        def remote():
            self.client.table(CUSTOMERS).delete().eq('id', customer_id).execute()
            self.local.delete(CUSTOMERS, customer_id)
            return True

        def local():
            self.local.delete(CUSTOMERS, customer_id)
            return True

        return self._with_fallback('delete customer', remote, local)

    def customer_document_stats(self, customer_id: str) -> Dict[str, int]:
        """Document counts per status for one customer."""
        def count_locally():
            stats = {
                'total_documents': 0,
                'pending_documents': 0,
                'sent_documents': 0,
                'signed_documents': 0,
                'failed_documents': 0,
            }
            for document in self.local.filter(DOCUMENTS, lambda d: str(d.get('customer_id')) == str(customer_id)):
                stats['total_documents'] += 1
                key = f"{document.get('status')}_documents"
                if key in stats:
                    stats[key] += 1
            return stats

        def remote():
            rows = _rows(self.client.rpc('get_customer_document_stats', {'customer_uuid': customer_id}).execute())
            return rows[0] if rows else count_locally()

        return self._with_fallback('customer document stats', remote, count_locally)

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    def list_documents(
        self,
        status: Optional[str] = None,
        page: Any = 1,
        limit: Any = DEFAULT_PAGE_SIZE
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Documents (optionally of one status), newest first.

        Raises:
            ValidationError: If status is not a known document status
        """
        status_value = DocumentStatus.parse(status).value if status else None
        page, limit = page_bounds(page, limit)
        offset = (page - 1) * limit

        def remote():
            rows = _rows(self.client.rpc('get_documents_by_status', {
                'doc_status': status_value,
                'page_size': limit,
                'page_offset': offset
            }).execute())
            query = self.client.table(DOCUMENTS).select('id', count='exact')
            if status_value:
                query = query.eq('status', status_value)
            response = query.execute()
            total = response.count if getattr(response, 'count', None) is not None else len(rows)
            return rows, total

        def local():
            rows = self.local.all(DOCUMENTS)
            if status_value:
                rows = [r for r in rows if r.get('status') == status_value]
            rows = _newest_first(rows)
            return rows[offset:offset + limit], len(rows)

        return self._with_fallback('list documents', remote, local)

    def documents_with_status(self, status: str) -> List[Dict[str, Any]]:
        """Every document in a status (used by the bulk status check)."""
        status_value = DocumentStatus.parse(status).value

        def remote():
            return _rows(
                self.client.table(DOCUMENTS).select('*')
                .eq('status', status_value)
                .order('created_at', desc=True)
                .execute()
            )

        def local():
            return _newest_first(self.local.filter(DOCUMENTS, lambda d: d.get('status') == status_value))

        return self._with_fallback('documents by status', remote, local)

    def get_document(self, document_id: str) -> Dict[str, Any]:
        """
        Fetch a document with its customer.

        Raises:
            NotFoundError: If no such document exists
        """
        def remote():
            return _first(
                self.client.table(DOCUMENTS).select('*, customer:customers(*)')
                .eq('id', document_id).limit(1).execute()
            )

        def local():
            document = self.local.get(DOCUMENTS, document_id)
            if document is not None:
                document['customer'] = self.local.get(CUSTOMERS, document.get('customer_id'))
            return document

        document = self._with_fallback('get document', remote, local)
        if document is None:
            raise NotFoundError("Document not found", resource='document', resource_id=document_id)
        return document

    def find_document_by_provider_id(self, signnow_document_id: str) -> Optional[Dict[str, Any]]:
        def remote():
            return _first(
                self.client.table(DOCUMENTS).select('*')
                .eq('signnow_document_id', signnow_document_id).limit(1).execute()
            )

        def local():
            matches = self.local.filter(
                DOCUMENTS, lambda d: d.get('signnow_document_id') == signnow_document_id
            )
            return matches[0] if matches else None

        return self._with_fallback('find document by SignNow id', remote, local)

    def create_document(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document row; status must be a known document status."""
        record = dict(record)
        record['status'] = DocumentStatus.parse(record.get('status') or DocumentStatus.PENDING).value
        if not record.get('customer_id'):
            raise ValidationError("Customer id is required", field='customer_id')

        now = _utc_now()
        record.setdefault('created_at', now)
        record.setdefault('updated_at', now)

        def remote():
            row = _first(self.client.table(DOCUMENTS).insert(record).execute())
            if row is None:
                raise RepositoryError("Insert returned no document row")
            self.local.upsert(DOCUMENTS, row)
            return row

        return self._with_fallback('create document', remote, lambda: self.local.insert(DOCUMENTS, record))

    def update_document(self, document_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        changes = dict(changes)
        if 'status' in changes:
            changes['status'] = DocumentStatus.parse(changes['status']).value
        changes['updated_at'] = _utc_now()

        def remote():
            row = _first(self.client.table(DOCUMENTS).update(changes).eq('id', document_id).execute())
            if row is not None:
                self.local.upsert(DOCUMENTS, row)
            return row

        row = self._with_fallback(
            'update document', remote, lambda: self.local.update(DOCUMENTS, document_id, changes)
        )
        if row is None:
            raise NotFoundError("Document not found", resource='document', resource_id=document_id)
        return row

    def update_document_status(self, document_id: str, status: Any) -> Dict[str, Any]:
        """
        Change a document's status; signed_at is set only on a transition to signed.

        Raises:
            ValidationError: If status is not pending, sent, signed or failed
            NotFoundError: If no such document exists
        """
        new_status = DocumentStatus.parse(status)

        def becomes_signed(current: Dict[str, Any]) -> bool:
            return new_status == DocumentStatus.SIGNED and current.get('status') != DocumentStatus.SIGNED.value

        def remote():
            current = _first(
                self.client.table(DOCUMENTS).select('id, status').eq('id', document_id).limit(1).execute()
            )
            if current is None:
                return None
            updated = self.client.rpc('update_document_status', {
                'doc_id': document_id,
                'new_status': new_status.value,
                'set_signed_at': becomes_signed(current)
            }).execute()
            if not getattr(updated, 'data', None):
                return None
            row = _first(self.client.table(DOCUMENTS).select('*').eq('id', document_id).limit(1).execute())
            if row is not None:
                self.local.upsert(DOCUMENTS, row)
            return row

        def local():
            current = self.local.get(DOCUMENTS, document_id)
            if current is None:
                return None
            changes = {'status': new_status.value}
            if becomes_signed(current):
                changes['signed_at'] = _utc_now()
            return self.local.update(DOCUMENTS, document_id, changes)

        row = self._with_fallback('update document status', remote, local)
        if row is None:
            raise NotFoundError("Document not found", resource='document', resource_id=document_id)
        return row

    def delete_document(self, document_id: str) -> bool:
        def remote():
            self.client.table(DOCUMENTS).delete().eq('id', document_id).execute()
            self.local.delete(DOCUMENTS, document_id)
            return True

        def local():
            self.local.delete(DOCUMENTS, document_id)
            return True

        return self._with_fallback('delete document', remote, local)

    # =========================================================================
    # SIGNATURE EVENTS
    # =========================================================================

    def log_signature_event(
        self,
        document_id: Any,
        event_type: str,
        event_data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Append a signature event."""
        record = {
            'document_id': document_id,
            'event_type': event_type,
            'event_data': event_data or {},
            'created_at': _utc_now()
        }

        def remote():
            row = _first(self.client.table(SIGNATURE_EVENTS).insert(record).execute())
            if row is None:
                raise RepositoryError("Insert returned no event row")
            self.local.upsert(SIGNATURE_EVENTS, row)
            return row

        return self._with_fallback(
            'log signature event', remote, lambda: self.local.insert(SIGNATURE_EVENTS, record)
        )

    def document_events(self, document_id: str) -> List[Dict[str, Any]]:
        def remote():
            return _rows(
                self.client.table(SIGNATURE_EVENTS).select('*')
                .eq('document_id', document_id)
                .order('created_at', desc=True)
                .execute()
            )

        def local():
            return _newest_first(
                self.local.filter(SIGNATURE_EVENTS, lambda e: str(e.get('document_id')) == str(document_id))
            )

        return self._with_fallback('document events', remote, local)

    # =========================================================================
    # TEMPLATES & PERMISSIONS
    # =========================================================================

    def list_templates(self) -> List[Dict[str, Any]]:
        return self._remote_only('list contract templates', lambda: _rows(
            self.client.table(CONTRACT_TEMPLATES).select('*').order('name').execute()
        ))

    def get_user_contracts(self, user_id: str) -> List[Dict[str, Any]]:
        """Templates the user's role may access (get_user_contracts RPC)."""
        return self._remote_only('get user contracts', lambda: _rows(
            self.client.rpc('get_user_contracts', {'user_uuid': user_id}).execute()
        ))

    def set_template_active(self, template_id: str, is_active: bool) -> Dict[str, Any]:
        row = self._remote_only('update contract template', lambda: _first(
            self.client.table(CONTRACT_TEMPLATES)
            .update({'is_active': bool(is_active)})
            .eq('id', template_id)
            .execute()
        ))
        if row is None:
            raise NotFoundError("Contract template not found", resource='template', resource_id=template_id)
        return row

    def list_permissions(self) -> List[Dict[str, Any]]:
        return self._remote_only('list contract permissions', lambda: _rows(
            self.client.table(CONTRACT_PERMISSIONS)
            .select('*, contract_templates(name, document_type)')
            .order('role')
            .execute()
        ))

    def upsert_permission(self, contract_id: str, role: Any, can_access: bool) -> Dict[str, Any]:
        record = {
            'contract_id': contract_id,
            'role': UserRole.parse(role).value,
            'can_access': bool(can_access)
        }
        row = self._remote_only('update contract permission', lambda: _first(
            self.client.table(CONTRACT_PERMISSIONS)
            .upsert(record, on_conflict='contract_id,role')
            .execute()
        ))
        return row or record

    # =========================================================================
    # USER PROFILES & ACTIVITY
    # =========================================================================

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._remote_only('get user profile', lambda: _first(
            self.client.table(USER_PROFILES).select('*').eq('id', user_id).limit(1).execute()
        ))

    def list_profiles(self) -> List[Dict[str, Any]]:
        return self._remote_only('list user profiles', lambda: _rows(
            self.client.table(USER_PROFILES).select('*').order('created_at', desc=True).execute()
        ))

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        changes = dict(changes)
        if 'role' in changes:
            changes['role'] = UserRole.parse(changes['role']).value
        row = self._remote_only('update user profile', lambda: _first(
            self.client.table(USER_PROFILES).update(changes).eq('id', user_id).execute()
        ))
        if row is None:
            raise NotFoundError("User not found", resource='user', resource_id=user_id)
        return row

    def insert_activity(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._remote_only('log activity', lambda: _first(
            self.client.table(ACTIVITY_LOG).insert(record).execute()
        ) or record)

    def recent_activity(self, limit: int = ACTIVITY_LIMIT) -> List[Dict[str, Any]]:
        return self._remote_only('list activity', lambda: _rows(
            self.client.table(ACTIVITY_LOG)
            .select('*, user_profiles(email, full_name)')
            .order('created_at', desc=True)
            .limit(limit)
            .execute()
        ))
