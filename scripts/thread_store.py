#!/usr/bin/env python3
"""
JSON document store for threads.

One file holds every thread, container and group. Each save first copies
the current file to a single backup (depth 1), then writes the new
document atomically. `transaction()` wraps one load-mutate-save cycle.
"""

import json
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from utils import STORE_VERSION, StoreError, resolve_backup_file, resolve_data_file

logger = logging.getLogger(__name__)


def empty_document() -> dict:
    return {'threads': [], 'containers': [], 'groups': [], 'version': STORE_VERSION}


def migrate_document(data: dict) -> dict:
    """Fill in fields that older documents did not carry."""
    data.setdefault('threads', [])
    data.setdefault('containers', [])
    data.setdefault('groups', [])
    data.setdefault('version', STORE_VERSION)
    for thread in data['threads']:
        thread.setdefault('type', 'thread')
        for key in ('tags', 'links', 'dependencies', 'progress', 'details'):
            thread.setdefault(key, [])
        thread.setdefault('parentId', None)
        thread.setdefault('groupId', None)
    for container in data['containers']:
        container['type'] = 'container'
        for key in ('tags', 'details'):
            container.setdefault(key, [])
        container.setdefault('parentId', None)
        container.setdefault('groupId', None)
    return data


def _atomic_write(path: Path, content: str) -> None:
    """Write content atomically via tempfile + rename."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.unlink(tmp)


def _dump(data: dict) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + '\n'


@dataclass(frozen=True)
class BackupInfo:
    exists: bool
    timestamp: datetime | None = None
    thread_count: int = 0
    container_count: int = 0
    group_count: int = 0


class ThreadStore:
    """Handle on one threads document and its backup."""

    def __init__(self, data_file: Path | None = None, backup_file: Path | None = None):
        self.data_file = Path(data_file) if data_file else resolve_data_file()
        self.backup_file = Path(backup_file) if backup_file else resolve_backup_file(self.data_file)

    def ensure(self) -> None:
        """Create the data directory and an empty document if missing."""
        if not self.data_file.exists():
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            _atomic_write(self.data_file, _dump(empty_document()))
            logger.info("Initialized empty threads file at %s", self.data_file)

    def load(self) -> dict:
        self.ensure()
        try:
            return migrate_document(json.loads(self.data_file.read_text(encoding='utf-8')))
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse %s: %s", self.data_file, exc)
            return self._recover()

    def _recover(self) -> dict:
        if not self.backup_file.exists():
            raise StoreError(f"{self.data_file} is corrupt and no backup exists")
        logger.warning("Attempting to recover from backup %s", self.backup_file)
        try:
            data = migrate_document(json.loads(self.backup_file.read_text(encoding='utf-8')))
        except json.JSONDecodeError as exc:
            raise StoreError(f"{self.data_file} is corrupt and backup recovery failed: {exc}") from exc
        _atomic_write(self.data_file, _dump(data))
        logger.warning("Recovered %s from backup", self.data_file)
        return data

    def save(self, data: dict) -> None:
        self.ensure()
        shutil.copyfile(self.data_file, self.backup_file)
        _atomic_write(self.data_file, _dump(data))
        logger.debug("Saved %d threads, %d containers, %d groups",
                     len(data['threads']), len(data['containers']), len(data['groups']))

    @contextmanager
    def transaction(self):
        """Load the document, yield it for mutation, save on clean exit."""
        data = self.load()
        yield data
        self.save(data)

    # ── Backup ───────────────────────────────────────────────

    def load_backup(self) -> dict | None:
        if not self.backup_file.exists():
            return None
        try:
            return migrate_document(json.loads(self.backup_file.read_text(encoding='utf-8')))
        except json.JSONDecodeError as exc:
            logger.error("Backup %s is unreadable: %s", self.backup_file, exc)
            return None

    def backup_info(self) -> BackupInfo:
        data = self.load_backup()
        if data is None:
            return BackupInfo(exists=False)
        mtime = datetime.fromtimestamp(self.backup_file.stat().st_mtime, tz=timezone.utc)
        return BackupInfo(
            exists=True,
            timestamp=mtime,
            thread_count=len(data['threads']),
            container_count=len(data['containers']),
            group_count=len(data['groups']),
        )

    def restore_backup(self) -> bool:
        """Swap the data file with its backup so a second restore redoes."""
        if self.load_backup() is None:
            return False
        self.ensure()
        current = self.data_file.read_text(encoding='utf-8')
        backup = self.backup_file.read_text(encoding='utf-8')
        _atomic_write(self.data_file, backup)
        _atomic_write(self.backup_file, current)
        logger.info("Swapped %s with backup", self.data_file)
        return True
