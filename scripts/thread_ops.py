#!/usr/bin/env python3
"""
Single-entity mutations: create, update, progress, details, tags,
dependencies, links, groups, containers, archive and clone.

All functions work on an already-loaded document and raise ThreadsError
subclasses for bad input; saving is the caller's job.
"""

import logging

from utils import (
    LINK_TYPES,
    SIZES,
    TEMPERATURES,
    THREAD_STATUSES,
    InvalidValueError,
    NoChangesError,
    is_container,
    new_id,
    now_iso,
    parse_iso,
    parse_tags,
    touch,
    validate_choice,
    validate_importance,
)
from tree_ops import cascade_group, descendants, reparent

logger = logging.getLogger(__name__)

THREAD_PROPERTIES = {
    'status': 'status',
    'temperature': 'temperature',
    'temp': 'temperature',
    'size': 'size',
    'importance': 'importance',
    'imp': 'importance',
    'name': 'name',
    'description': 'description',
    'desc': 'description',
}
CONTAINER_PROPERTIES = ('name', 'description', 'desc')


def _check_unique(items: list[dict], name: str, kind: str, exclude_id: str | None = None) -> None:
    lower = name.lower()
    for item in items:
        if item['id'] != exclude_id and item['name'].lower() == lower:
            raise InvalidValueError(f'{kind.capitalize()} "{name}" already exists')


def _coerce(prop: str, value):
    if prop == 'status':
        return validate_choice(value, THREAD_STATUSES, 'status')
    if prop == 'temperature':
        return validate_choice(value, TEMPERATURES, 'temperature')
    if prop == 'size':
        return validate_choice(value, SIZES, 'size')
    if prop == 'importance':
        return validate_importance(value)
    if prop == 'name' and not str(value).strip():
        raise InvalidValueError('Name cannot be empty')
    return value


# ── Creation ─────────────────────────────────────────────────


def create_thread(data: dict, name: str, description: str = '', status: str = 'active',
                  temperature: str = 'warm', size: str = 'medium', importance=3,
                  tags: list[str] | None = None, parent: dict | None = None,
                  group: dict | None = None) -> dict:
    """Add a new thread. A parent's group is inherited unless one is given."""
    if not name.strip():
        raise InvalidValueError('Name cannot be empty')
    _check_unique(data['threads'], name, 'thread')
    timestamp = now_iso()
    group_id = group['id'] if group else (parent.get('groupId') if parent else None)
    thread = {
        'type': 'thread',
        'id': new_id(),
        'name': name,
        'description': description or '',
        'status': _coerce('status', status),
        'importance': _coerce('importance', importance),
        'temperature': _coerce('temperature', temperature),
        'size': _coerce('size', size),
        'parentId': parent['id'] if parent else None,
        'groupId': group_id,
        'tags': list(tags or []),
        'links': [],
        'dependencies': [],
        'progress': [],
        'details': [],
        'createdAt': timestamp,
        'updatedAt': timestamp,
    }
    data['threads'].append(thread)
    logger.info("Created thread %s", thread['id'])
    return thread


def spawn_thread(data: dict, parent: dict, name: str, description: str = '',
                 size: str = 'small', importance=None, tags: list[str] | None = None) -> dict:
    """Sub-thread under parent; inherits group and (unless given) importance."""
    inherited = parent.get('importance', 3) if importance is None else importance
    return create_thread(
        data, name, description=description, temperature='warm', size=size,
        importance=inherited, tags=tags, parent=parent,
    )


def create_container(data: dict, name: str, description: str = '', parent: dict | None = None,
                     group: dict | None = None, tags: list[str] | None = None) -> dict:
    if not name.strip():
        raise InvalidValueError('Name cannot be empty')
    _check_unique(data['containers'], name, 'container')
    timestamp = now_iso()
    container = {
        'type': 'container',
        'id': new_id(),
        'name': name,
        'description': description or '',
        'parentId': parent['id'] if parent else None,
        'groupId': group['id'] if group else (parent.get('groupId') if parent else None),
        'tags': list(tags or []),
        'details': [],
        'createdAt': timestamp,
        'updatedAt': timestamp,
    }
    data['containers'].append(container)
    return container


def create_group(data: dict, name: str, description: str = '') -> dict:
    if not name.strip():
        raise InvalidValueError('Name cannot be empty')
    _check_unique(data['groups'], name, 'group')
    timestamp = now_iso()
    group = {
        'id': new_id(),
        'name': name,
        'description': description or '',
        'createdAt': timestamp,
        'updatedAt': timestamp,
    }
    data['groups'].append(group)
    return group


# ── Updates ──────────────────────────────────────────────────


def update_thread(data: dict, thread: dict, changes: dict, tags: list[str] | None = None,
                  add_tag: str | None = None, remove_tag: str | None = None) -> list[str]:
    """Apply several field changes at once; returns human-readable change lines."""
    applied = []
    for key, value in changes.items():
        if value is None:
            continue
        prop = THREAD_PROPERTIES[key]
        value = _coerce(prop, value)
        if prop == 'name':
            _check_unique(data['threads'], value, 'thread', exclude_id=thread['id'])
        thread[prop] = value
        applied.append(f"{prop} -> {value}")
    if tags is not None:
        thread['tags'] = parse_tags(tags)
        applied.append(f"tags -> {', '.join(thread['tags']) or '(none)'}")
    if add_tag:
        tag = add_tag.strip().lstrip('#')
        if tag and tag not in thread['tags']:
            thread['tags'].append(tag)
            applied.append(f"added tag #{tag}")
    if remove_tag:
        tag = remove_tag.strip().lstrip('#')
        if tag in thread['tags']:
            thread['tags'].remove(tag)
            applied.append(f"removed tag #{tag}")
    if not applied:
        raise NoChangesError('No updates specified. Use --help to see available options.')
    touch(thread)
    return applied


def set_property(data: dict, entity: dict, prop: str, value: str) -> tuple[str, object, object]:
    """Set one property; returns (property, old value, new value)."""
    key = prop.lower()
    if is_container(entity):
        if key not in CONTAINER_PROPERTIES:
            raise InvalidValueError(f'Unknown container property "{prop}". Use: name, description')
        key = 'description' if key == 'desc' else key
    else:
        if key not in THREAD_PROPERTIES:
            raise InvalidValueError(
                f'Unknown property "{prop}". Use: status, temperature, size, importance, name, description'
            )
        key = THREAD_PROPERTIES[key]
    new_value = _coerce(key, value)
    if key == 'name':
        pool = data['containers'] if is_container(entity) else data['threads']
        _check_unique(pool, new_value, entity.get('type', 'thread'), exclude_id=entity['id'])
    old_value = entity.get(key)
    entity[key] = new_value
    touch(entity)
    return key, old_value, new_value


# ── Progress & details ───────────────────────────────────────


def add_progress(thread: dict, note: str, temperature: str | None = None,
                 timestamp: str | None = None) -> dict:
    if not note.strip():
        raise InvalidValueError('Progress note cannot be empty')
    timestamp = timestamp or now_iso()
    entry = {'id': new_id(), 'timestamp': timestamp, 'note': note}
    thread['progress'].append(entry)
    if temperature:
        thread['temperature'] = _coerce('temperature', temperature)
    touch(thread, timestamp)
    return entry


def progress_index(thread: dict, raw: str) -> int:
    """Zero-based index from a 1-based position or 'last'."""
    count = len(thread['progress'])
    if count == 0:
        raise InvalidValueError(f'"{thread["name"]}" has no progress entries')
    if raw.lower() == 'last':
        return count - 1
    try:
        position = int(raw)
    except ValueError:
        position = 0
    if not 1 <= position <= count:
        raise InvalidValueError(f'Invalid index. Use 1-{count} or "last"')
    return position - 1


def edit_progress(thread: dict, index: int, note: str | None = None,
                  timestamp: str | None = None) -> dict:
    if note is None and timestamp is None:
        raise NoChangesError('Nothing to change. Use -n/--note, -t/--time or --delete')
    entry = thread['progress'][index]
    if note is not None:
        if not note.strip():
            raise InvalidValueError('Progress note cannot be empty')
        entry['note'] = note
    if timestamp is not None:
        entry['timestamp'] = timestamp
        thread['progress'].sort(key=lambda e: e['timestamp'])
    touch(thread)
    return entry


def delete_progress(thread: dict, index: int) -> dict:
    entry = thread['progress'].pop(index)
    touch(thread)
    return entry


def move_progress(source: dict, dest: dict, count: int | None = 1) -> list[dict]:
    """Move the newest `count` progress entries (None = all) from source to dest.

    Both progress lists stay in chronological order. Asking for more
    entries than the source holds moves all of them.
    """
    if source['id'] == dest['id']:
        raise InvalidValueError('Source and destination threads cannot be the same')
    entries = sorted(source['progress'], key=lambda e: parse_iso(e['timestamp']))
    if not entries:
        raise InvalidValueError(f'Source thread "{source["name"]}" has no progress entries to move')
    if count is None:
        count = len(entries)
    elif count < 1:
        raise InvalidValueError('Count must be a positive number')
    count = min(count, len(entries))

    moved = entries[-count:]
    source['progress'] = entries[:-count]
    dest['progress'] = sorted(dest['progress'] + moved, key=lambda e: parse_iso(e['timestamp']))
    timestamp = now_iso()
    touch(source, timestamp)
    touch(dest, timestamp)
    logger.info("Moved %d progress entries from %s to %s", count, source['id'], dest['id'])
    return moved


def set_details(entity: dict, content: str) -> dict:
    if not content.strip():
        raise InvalidValueError('Details content cannot be empty')
    timestamp = now_iso()
    entry = {'id': new_id(), 'timestamp': timestamp, 'content': content}
    entity.setdefault('details', []).append(entry)
    touch(entity, timestamp)
    return entry


# ── Tags ─────────────────────────────────────────────────────


def add_tags(entity: dict, tags: list[str]) -> list[str]:
    added = [t for t in parse_tags(tags) if t not in entity['tags']]
    if not added:
        raise NoChangesError('No new tags to add')
    entity['tags'].extend(added)
    touch(entity)
    return added


def remove_tags(entity: dict, tags: list[str]) -> list[str]:
    wanted = parse_tags(tags)
    removed = [t for t in entity['tags'] if t in wanted]
    if not removed:
        raise NoChangesError('None of those tags are present')
    entity['tags'] = [t for t in entity['tags'] if t not in wanted]
    touch(entity)
    return removed


def clear_tags(entity: dict) -> int:
    count = len(entity['tags'])
    entity['tags'] = []
    touch(entity)
    return count


# ── Dependencies & links ─────────────────────────────────────


def add_dependency(thread: dict, target: dict, why=None, what=None, how=None, when=None) -> tuple[str, dict]:
    """Add or update a dependency; returns ('added'|'updated', dependency)."""
    if thread['id'] == target['id']:
        raise InvalidValueError('A thread cannot depend on itself')
    fields = {'why': why, 'what': what, 'how': how, 'when': when}
    for dep in thread['dependencies']:
        if dep['threadId'] == target['id']:
            for key, value in fields.items():
                if value is not None:
                    dep[key] = value
            touch(thread)
            return 'updated', dep
    dep = {'threadId': target['id'], **{k: v or '' for k, v in fields.items()}}
    thread['dependencies'].append(dep)
    touch(thread)
    return 'added', dep


def remove_dependency(thread: dict, target: dict) -> dict:
    for dep in thread['dependencies']:
        if dep['threadId'] == target['id']:
            thread['dependencies'].remove(dep)
            touch(thread)
            return dep
    raise InvalidValueError(f'"{thread["name"]}" does not depend on "{target["name"]}"')


def add_link(thread: dict, uri: str, link_type: str, label: str | None = None,
             description: str | None = None) -> dict:
    validate_choice(link_type, LINK_TYPES, 'link type')
    links = thread.setdefault('links', [])
    if any(link['uri'] == uri for link in links):
        raise InvalidValueError(f'Link with URI "{uri}" already exists on "{thread["name"]}"')
    link = {
        'id': new_id(),
        'uri': uri,
        'type': link_type,
        'label': label,
        'description': description,
        'addedAt': now_iso(),
    }
    links.append(link)
    touch(thread)
    return link


def remove_link(thread: dict, uri_or_id: str) -> dict:
    for link in thread.get('links', []):
        if link['uri'] == uri_or_id or link['id'] == uri_or_id or link['id'].startswith(uri_or_id):
            thread['links'].remove(link)
            touch(thread)
            return link
    raise InvalidValueError(f'No link "{uri_or_id}" on "{thread["name"]}"')


# ── Structure ────────────────────────────────────────────────


def move_entity(data: dict, entity: dict, new_parent: dict | None) -> int:
    """Reparent entity (None = root); returns descendants whose group changed."""
    if entity.get('parentId') == (new_parent['id'] if new_parent else None):
        raise NoChangesError(f'"{entity["name"]}" is already there')
    return reparent(data, entity, new_parent)


def assign_group(data: dict, entity: dict, group: dict | None) -> int:
    """Put entity and its whole subtree into group (None = ungroup)."""
    group_id = group['id'] if group else None
    entity['groupId'] = group_id
    touch(entity)
    return cascade_group(data, entity['id'], group_id)


def delete_group(data: dict, group: dict) -> int:
    """Remove group; returns how many entities were ungrouped."""
    count = 0
    timestamp = now_iso()
    for entity in data['threads'] + data['containers']:
        if entity.get('groupId') == group['id']:
            entity['groupId'] = None
            touch(entity, timestamp)
            count += 1
    data['groups'] = [g for g in data['groups'] if g['id'] != group['id']]
    return count


def update_container(data: dict, container: dict, name: str | None = None,
                     description: str | None = None, parent: dict | None = None,
                     clear_parent: bool = False, group: dict | None = None,
                     clear_group: bool = False, tags: list[str] | None = None) -> tuple[list[str], int]:
    """Returns (change lines, descendants whose group changed)."""
    changes = []
    before = {e['id']: e.get('groupId') for e, _ in descendants(data, container['id'])}
    if name is not None:
        _check_unique(data['containers'], name, 'container', exclude_id=container['id'])
        container['name'] = _coerce('name', name)
        changes.append(f"name -> {name}")
    if description is not None:
        container['description'] = description
        changes.append('description updated')
    if tags is not None:
        container['tags'] = parse_tags(tags)
        changes.append(f"tags -> {', '.join(container['tags']) or '(none)'}")
    if clear_parent or parent is not None:
        reparent(data, container, None if clear_parent else parent)
        changes.append(f"parent -> {parent['name'] if parent else 'none'}")
    if clear_group or group is not None:
        assign_group(data, container, None if clear_group else group)
        changes.append(f"group -> {group['name'] if group else 'none'}")
    if not changes:
        raise NoChangesError('No updates specified. Use --help to see available options.')
    touch(container)
    cascaded = sum(1 for e, _ in descendants(data, container['id']) if e.get('groupId') != before[e['id']])
    return changes, cascaded


def archive_threads(data: dict, thread: dict, cascade: bool = False,
                    restore: bool = False) -> list[dict]:
    """Threads that would be archived (or restored). Does not mutate."""
    subtree = [e for e, _ in descendants(data, thread['id']) if not is_container(e)]
    targets = [thread] + (subtree if cascade else [])
    if restore:
        return [t for t in targets if t['status'] == 'archived']
    return [t for t in targets if t['status'] != 'archived']


def apply_archive(threads: list[dict], restore: bool = False) -> None:
    timestamp = now_iso()
    for thread in threads:
        if restore:
            thread['status'], thread['temperature'] = 'active', 'tepid'
        else:
            thread['status'], thread['temperature'] = 'archived', 'frozen'
        touch(thread, timestamp)


def clone_thread(data: dict, source: dict, name: str | None = None, parent: dict | None = None,
                 group: dict | None = None, with_children: bool = False) -> list[dict]:
    """Template copy without progress, details or dependencies."""
    name = name or f"{source['name']} (copy)"
    _check_unique(data['threads'], name, 'thread')
    parent_id = parent['id'] if parent else source.get('parentId')
    group_id = group['id'] if group else source.get('groupId')
    originals = list(data['threads'])
    timestamp = now_iso()
    created = []

    def copy_one(src: dict, new_name: str, new_parent_id: str | None) -> None:
        clone = {
            'type': 'thread',
            'id': new_id(),
            'name': new_name,
            'description': src.get('description', ''),
            'status': src['status'],
            'importance': src['importance'],
            'temperature': src['temperature'],
            'size': src['size'],
            'parentId': new_parent_id,
            'groupId': group_id,
            'tags': list(src.get('tags', [])),
            'links': [],
            'dependencies': [],
            'progress': [],
            'details': [],
            'createdAt': timestamp,
            'updatedAt': timestamp,
        }
        created.append(clone)
        if with_children:
            for child in originals:
                if child.get('parentId') == src['id']:
                    copy_one(child, child['name'], clone['id'])

    copy_one(source, name, parent_id)
    data['threads'].extend(created)
    return created
