#!/usr/bin/env python3
"""
Tree walks over parentId pointers.

Threads and containers share one hierarchy; groups are flat and sit
beside it. Every reparent goes through `would_create_cycle`.
"""

from utils import (
    InvalidValueError,
    NoParentError,
    all_entities,
    find_entity,
    touch,
)


def direct_children(data: dict, parent_id: str) -> list[dict]:
    return [e for e in all_entities(data) if e.get('parentId') == parent_id]


def descendants(data: dict, root_id: str, max_depth: int | None = None) -> list[tuple[dict, int]]:
    """All descendants of root_id as (entity, depth); direct children are depth 0.

    Order is depth-first, parents before their children.
    """
    result = []
    seen = {root_id}

    def walk(parent_id: str, depth: int) -> None:
        if max_depth is not None and depth >= max_depth:
            return
        for child in direct_children(data, parent_id):
            if child['id'] in seen:
                continue
            seen.add(child['id'])
            result.append((child, depth))
            walk(child['id'], depth + 1)

    walk(root_id, 0)
    return result


def descendant_ids(data: dict, root_id: str) -> set[str]:
    return {e['id'] for e, _ in descendants(data, root_id)}


def deletion_order(found: list[tuple[dict, int]]) -> list[dict]:
    """Deepest entities first, so no parent goes before its children."""
    return [e for e, _ in sorted(found, key=lambda pair: pair[1], reverse=True)]


def ancestry_path(data: dict, entity: dict) -> list[dict]:
    """Root-to-node chain ending with entity itself."""
    path = [entity]
    seen = {entity['id']}
    parent = find_entity(data, entity.get('parentId'))
    while parent is not None and parent['id'] not in seen:
        path.insert(0, parent)
        seen.add(parent['id'])
        parent = find_entity(data, parent.get('parentId'))
    return path


def parent_of(data: dict, entity: dict) -> dict:
    parent = find_entity(data, entity.get('parentId'))
    if parent is None:
        raise NoParentError(f'"{entity["name"]}" has no parent')
    return parent


def siblings(data: dict, entity: dict) -> list[dict]:
    """Entities sharing entity's parent, excluding entity. Roots have none."""
    if not entity.get('parentId'):
        raise NoParentError(f'"{entity["name"]}" has no parent')
    return [
        e for e in all_entities(data)
        if e.get('parentId') == entity['parentId'] and e['id'] != entity['id']
    ]


def is_descendant(data: dict, candidate_id: str, ancestor_id: str) -> bool:
    """True when ancestor_id appears on candidate_id's parent chain."""
    seen = set()
    current = find_entity(data, candidate_id)
    while current is not None and current.get('parentId'):
        parent_id = current['parentId']
        if parent_id == ancestor_id:
            return True
        if parent_id in seen:
            return False
        seen.add(parent_id)
        current = find_entity(data, parent_id)
    return False


def would_create_cycle(data: dict, entity_id: str, new_parent_id: str | None) -> bool:
    if new_parent_id is None:
        return False
    if new_parent_id == entity_id:
        return True
    return is_descendant(data, new_parent_id, entity_id)


def cascade_group(data: dict, root_id: str, group_id: str | None, timestamp: str | None = None) -> int:
    """Set groupId on every descendant of root_id. Returns how many changed."""
    changed = 0
    for entity, _ in descendants(data, root_id):
        if entity.get('groupId') != group_id:
            entity['groupId'] = group_id
            touch(entity, timestamp)
            changed += 1
    return changed


def reparent(data: dict, entity: dict, new_parent: dict | None, timestamp: str | None = None) -> int:
    """Move entity under new_parent (None = root) and take its groupId.

    The new groupId is cascaded through entity's subtree; returns the
    number of descendants whose group changed.
    """
    new_parent_id = new_parent['id'] if new_parent else None
    if would_create_cycle(data, entity['id'], new_parent_id):
        raise InvalidValueError(
            f'Cannot move "{entity["name"]}" under "{new_parent["name"]}": would create a cycle'
        )
    entity['parentId'] = new_parent_id
    if new_parent is not None:
        entity['groupId'] = new_parent.get('groupId')
    touch(entity, timestamp)
    return cascade_group(data, entity['id'], entity.get('groupId'), timestamp)
