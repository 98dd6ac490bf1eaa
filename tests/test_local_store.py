"""
Tests for the JSON local mirror.

Run with: python -m pytest tests/test_local_store.py -v
"""

import json

from services.contracts.local_store import LocalStore


class TestLocalStore:
    def test_insert_assigns_id_and_timestamps(self):
        store = LocalStore()
        record = store.insert('customers', {'first_name': 'Jane'})

        assert record['id']
        assert record['created_at']
        assert store.get('customers', record['id'])['first_name'] == 'Jane'

    def test_returns_copies(self):
        store = LocalStore()
        record = store.insert('customers', {'first_name': 'Jane'})
        record['first_name'] = 'Changed'
        assert store.get('customers', record['id'])['first_name'] == 'Jane'

    def test_update_and_delete(self):
        store = LocalStore()
        record = store.insert('documents', {'status': 'sent'})

        updated = store.update('documents', record['id'], {'status': 'signed'})
        assert updated['status'] == 'signed'
        assert store.update('documents', 'missing', {'status': 'signed'}) is None

        assert store.delete('documents', record['id']) is True
        assert store.delete('documents', record['id']) is False
        assert store.all('documents') == []

    def test_upsert_merges_by_id(self):
        store = LocalStore()
        store.upsert('documents', {'id': 'd1', 'status': 'sent', 'language': 'english'})
        merged = store.upsert('documents', {'id': 'd1', 'status': 'signed'})

        assert merged == {'id': 'd1', 'status': 'signed', 'language': 'english'}
        assert len(store.all('documents')) == 1

    def test_filter(self):
        store = LocalStore()
        store.insert('documents', {'status': 'sent'})
        store.insert('documents', {'status': 'signed'})
        assert len(store.filter('documents', lambda d: d['status'] == 'sent')) == 1

    def test_persists_to_file(self, tmp_path):
        path = tmp_path / 'data' / 'store.json'
        record = LocalStore(path).insert('customers', {'first_name': 'Jane'})

        assert json.loads(path.read_text())['customers'][0]['id'] == record['id']
        assert LocalStore(path).get('customers', record['id'])['first_name'] == 'Jane'

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / 'store.json'
        path.write_text('{not json')
        assert LocalStore(path).all('customers') == []
