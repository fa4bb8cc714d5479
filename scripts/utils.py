#!/usr/bin/env python3
"""
Shared utilities for threads scripts.

Configuration via environment variables:
- THREADS_HOME: Directory holding the data file and its backup (default ~/.threads)
- THREADS_DATA_FILE: Path to the threads JSON document
- THREADS_BACKUP_FILE: Path to the single backup copy written before each save
- THREADS_LOG_LEVEL: Logging level name for the CLI (default WARNING)
- THREADS_NEXT_COUNT: Default number of recommendations shown by `next`
"""

import os
import re
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path


THREAD_STATUSES = ('active', 'paused', 'stopped', 'completed', 'archived')
TEMPERATURES = ('frozen', 'freezing', 'cold', 'tepid', 'warm', 'hot')
SIZES = ('tiny', 'small', 'medium', 'large', 'huge')
IMPORTANCE_RANGE = range(1, 6)
LINK_TYPES = ('web', 'file', 'thread', 'custom')

# Hottest first; used for list ordering
TEMPERATURE_ORDER = {temp: i for i, temp in enumerate(reversed(TEMPERATURES))}

STORE_VERSION = '1.0.0'


def threads_home() -> Path:
    return Path(os.getenv('THREADS_HOME', Path.home() / '.threads'))


def resolve_data_file() -> Path:
    """Resolve the data file path from env or default."""
    explicit = os.getenv('THREADS_DATA_FILE')
    if explicit:
        return Path(explicit)
    return threads_home() / 'threads.json'


def resolve_backup_file(data_file: Path | None = None) -> Path:
    """Resolve the backup path; defaults to a sibling of the data file."""
    explicit = os.getenv('THREADS_BACKUP_FILE')
    if explicit:
        return Path(explicit)
    data_file = data_file or resolve_data_file()
    return data_file.with_name(f"{data_file.stem}.backup{data_file.suffix or '.json'}")


def default_next_count() -> int:
    return validate_count(os.getenv('THREADS_NEXT_COUNT', '5'), 'THREADS_NEXT_COUNT')


def log_level_name() -> str:
    return os.getenv('THREADS_LOG_LEVEL', 'WARNING').upper()


# ── Errors ───────────────────────────────────────────────────


class ThreadsError(ValueError):
    """Expected, user-facing failure. CLI handlers print it and return."""


class NotFoundError(ThreadsError):
    pass


class AmbiguousError(ThreadsError):
    """More than one entity matched an identifier."""

    def __init__(self, identifier: str, candidates: list[dict]):
        self.identifier = identifier
        self.candidates = candidates
        super().__init__(f'Ambiguous identifier "{identifier}" matches {len(candidates)} entities')


class InvalidValueError(ThreadsError):
    pass


class InvalidCombinationError(ThreadsError):
    pass


class NoChangesError(ThreadsError):
    pass


class NoParentError(ThreadsError):
    pass


class StoreError(Exception):
    """The data file is unreadable and could not be recovered from backup."""


# ── Time helpers ─────────────────────────────────────────────


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a trailing Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime('%Y-%m-%dT%H:%M:%S.') + f"{dt.microsecond // 1000:03d}Z"


def now_iso() -> str:
    return to_iso(now_utc())


def parse_iso(value: str) -> datetime:
    """Parse a stored timestamp (or a bare YYYY-MM-DD) into an aware datetime."""
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_when(value: str, now: datetime | None = None) -> datetime:
    """Parse user-supplied times: ISO dates, 'yesterday', 'N days ago'."""
    now = now or now_utc()
    lower = value.strip().lower()
    if lower == 'now':
        return now
    if lower == 'yesterday':
        return now - timedelta(days=1)
    m = re.match(r'^(\d+)\s*days?\s*ago$', lower)
    if m:
        return now - timedelta(days=int(m.group(1)))
    try:
        return parse_iso(value)
    except ValueError:
        raise InvalidValueError(
            f'Invalid time "{value}". Use ISO format, "yesterday", or "N days ago"'
        ) from None


def days_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / 86400


# ── Entity helpers ───────────────────────────────────────────


def new_id() -> str:
    return str(uuid.uuid4())


def short_id(entity_id: str) -> str:
    return entity_id[:8]


def is_container(entity: dict) -> bool:
    return entity.get('type') == 'container'


def is_thread(entity: dict) -> bool:
    return entity.get('type', 'thread') != 'container'


def entity_kind(entity: dict) -> str:
    return 'container' if is_container(entity) else 'thread'


def all_entities(data: dict) -> list[dict]:
    return list(data.get('threads', [])) + list(data.get('containers', []))


def find_entity(data: dict, entity_id: str | None) -> dict | None:
    if not entity_id:
        return None
    for entity in all_entities(data):
        if entity['id'] == entity_id:
            return entity
    return None


def find_group(data: dict, group_id: str | None) -> dict | None:
    if not group_id:
        return None
    for group in data.get('groups', []):
        if group['id'] == group_id:
            return group
    return None


def touch(entity: dict, timestamp: str | None = None) -> None:
    entity['updatedAt'] = timestamp or now_iso()


def parse_tags(raw: str | list[str] | None) -> list[str]:
    """Split comma/space separated tags, strip a leading '#', drop empties."""
    if not raw:
        return []
    if isinstance(raw, str):
        raw = [raw]
    tags = []
    for chunk in raw:
        for part in re.split(r'[,\s]+', chunk):
            part = part.strip().lstrip('#')
            if part and part not in tags:
                tags.append(part)
    return tags


def validate_choice(value: str, choices: tuple[str, ...], label: str) -> str:
    if value not in choices:
        raise InvalidValueError(f'Invalid {label} "{value}". Valid: {", ".join(choices)}')
    return value


def validate_importance(value) -> int:
    try:
        imp = int(value)
    except (TypeError, ValueError):
        raise InvalidValueError(f'Invalid importance "{value}". Must be 1-5') from None
    if imp not in IMPORTANCE_RANGE:
        raise InvalidValueError(f'Invalid importance "{value}". Must be 1-5')
    return imp


def validate_count(value, label: str) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        count = 0
    if count < 1:
        raise InvalidValueError(f'Invalid {label} "{value}". Must be a positive integer')
    return count


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + '...'
