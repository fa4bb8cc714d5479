"""Tests for the JSON store, its backup and recovery."""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / 'scripts'))

from thread_store import ThreadStore, migrate_document
from utils import StoreError, resolve_backup_file, resolve_data_file


@pytest.fixture
def store(tmp_path, monkeypatch):
    monkeypatch.delenv('THREADS_BACKUP_FILE', raising=False)
    return ThreadStore(tmp_path / 'threads.json')


def test_load_creates_empty_document(store):
    data = store.load()
    assert data == {'threads': [], 'containers': [], 'groups': [], 'version': '1.0.0'}
    assert store.data_file.exists()


def test_backup_path_sits_beside_data_file(store, tmp_path):
    assert store.backup_file == tmp_path / 'threads.backup.json'


def test_env_paths(tmp_path, monkeypatch):
    monkeypatch.setenv('THREADS_HOME', str(tmp_path / 'home'))
    monkeypatch.delenv('THREADS_DATA_FILE', raising=False)
    monkeypatch.delenv('THREADS_BACKUP_FILE', raising=False)
    assert resolve_data_file() == tmp_path / 'home' / 'threads.json'
    assert resolve_backup_file() == tmp_path / 'home' / 'threads.backup.json'
    monkeypatch.setenv('THREADS_BACKUP_FILE', str(tmp_path / 'bk.json'))
    assert ThreadStore().backup_file == tmp_path / 'bk.json'


def test_save_copies_previous_version_to_backup(store):
    with store.transaction() as data:
        data['groups'].append({'id': 'g1', 'name': 'One'})
    with store.transaction() as data:
        data['groups'].append({'id': 'g2', 'name': 'Two'})
    backup = json.loads(store.backup_file.read_text())
    assert [g['id'] for g in backup['groups']] == ['g1']
    assert [g['id'] for g in store.load()['groups']] == ['g1', 'g2']


def test_transaction_discards_on_error(store):
    store.load()
    with pytest.raises(RuntimeError):
        with store.transaction() as data:
            data['groups'].append({'id': 'g1', 'name': 'One'})
            raise RuntimeError('boom')
    assert store.load()['groups'] == []
    assert not store.backup_file.exists()


def test_corrupt_file_recovers_from_backup(store):
    with store.transaction() as data:
        data['groups'].append({'id': 'g1', 'name': 'One'})
    with store.transaction() as data:
        data['groups'].append({'id': 'g2', 'name': 'Two'})
    store.data_file.write_text('{not json')
    data = store.load()
    assert [g['id'] for g in data['groups']] == ['g1']
    assert json.loads(store.data_file.read_text())['groups'][0]['id'] == 'g1'


def test_corrupt_file_without_backup_raises(store):
    store.data_file.write_text('{not json')
    with pytest.raises(StoreError):
        store.load()
    assert store.data_file.read_text() == '{not json'


def test_migration_fills_missing_fields():
    data = migrate_document({'threads': [{'id': 't', 'name': 'T'}], 'groups': []})
    assert data['containers'] == []
    thread = data['threads'][0]
    assert thread['type'] == 'thread'
    assert thread['links'] == [] and thread['details'] == []
    assert thread['parentId'] is None


def test_restore_backup_swaps(store):
    with store.transaction() as data:
        data['groups'].append({'id': 'g1', 'name': 'One'})
    with store.transaction() as data:
        data['groups'].append({'id': 'g2', 'name': 'Two'})

    info = store.backup_info()
    assert info.exists and info.group_count == 1

    assert store.restore_backup()
    assert len(store.load()['groups']) == 1
    assert store.restore_backup()
    assert len(store.load()['groups']) == 2


def test_restore_without_backup(store):
    store.load()
    assert store.backup_info().exists is False
    assert store.restore_backup() is False
