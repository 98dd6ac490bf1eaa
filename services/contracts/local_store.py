"""
Local Store

JSON-file mirror of customers, documents and signature events.

Used as a fallback when Supabase is unreachable and as the only store
when Supabase is not configured (demo mode). With no path the store is
in-memory only.
"""

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocalStore:
    """
    Process-local record store keyed by collection name.

    Usage:
        store = LocalStore('instance/local_store.json')
        customer = store.insert('customers', {'first_name': 'Jane'})
        store.update('customers', customer['id'], {'city': 'Miami'})
    """

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._data: Dict[str, List[Record]] = self._load()

    def _load(self) -> Dict[str, List[Record]]:
        if not self.path or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text() or '{}')
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read local store {self.path}, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        tmp_path.write_text(json.dumps(self._data, indent=2, default=str))
        tmp_path.replace(self.path)

    def all(self, collection: str) -> List[Record]:
        with self._lock:
            return [dict(record) for record in self._data.get(collection, [])]

    def get(self, collection: str, record_id: Any) -> Optional[Record]:
        with self._lock:
            for record in self._data.get(collection, []):
                if str(record.get('id')) == str(record_id):
                    return dict(record)
        return None

    def filter(self, collection: str, predicate: Callable[[Record], bool]) -> List[Record]:
        return [record for record in self.all(collection) if predicate(record)]

    def insert(self, collection: str, record: Record) -> Record:
        """Insert a record, assigning an id and timestamps when missing."""
        now = _utc_now()
        new_record = dict(record)
        new_record.setdefault('id', uuid.uuid4().hex)
        new_record.setdefault('created_at', now)
        new_record.setdefault('updated_at', now)

        with self._lock:
            self._data.setdefault(collection, []).append(new_record)
            self._save()
        return dict(new_record)

    def upsert(self, collection: str, record: Record) -> Record:
        """Insert or replace by id; used to mirror rows written remotely."""
        if record.get('id') is None:
            return self.insert(collection, record)

        with self._lock:
            records = self._data.setdefault(collection, [])
            for index, existing in enumerate(records):
                if str(existing.get('id')) == str(record['id']):
                    merged = {**existing, **record}
                    records[index] = merged
                    self._save()
                    return dict(merged)
            records.append(dict(record))
            self._save()
        return dict(record)

    def update(self, collection: str, record_id: Any, changes: Record) -> Optional[Record]:
        with self._lock:
            for record in self._data.get(collection, []):
                if str(record.get('id')) == str(record_id):
                    record.update(changes)
                    record['updated_at'] = _utc_now()
                    self._save()
                    return dict(record)
        return None

    def delete(self, collection: str, record_id: Any) -> bool:
        with self._lock:
            records = self._data.get(collection, [])
            remaining = [r for r in records if str(r.get('id')) != str(record_id)]
            if len(remaining) == len(records):
                return False
            self._data[collection] = remaining
            self._save()
        return True
