#!/usr/bin/env python3
"""
Identifier resolution for threads, containers and groups.

Lookup order, first success wins:
1. exact id
2. exact name (case-insensitive)
3. id prefix or name substring (case-insensitive), accepted only when
   exactly one candidate remains
"""

from utils import AmbiguousError, NotFoundError, all_entities, short_id


def _resolve(items: list[dict], identifier: str, kind: str) -> dict:
    for item in items:
        if item['id'] == identifier:
            return item

    needle = identifier.lower()
    for item in items:
        if item.get('name', '').lower() == needle:
            return item

    candidates = [
        item for item in items
        if item['id'].lower().startswith(needle) or needle in item.get('name', '').lower()
    ]
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        raise NotFoundError(f'{kind.capitalize()} "{identifier}" not found')
    raise AmbiguousError(identifier, candidates)


def resolve_thread(data: dict, identifier: str) -> dict:
    return _resolve(data['threads'], identifier, 'thread')


def resolve_container(data: dict, identifier: str) -> dict:
    return _resolve(data['containers'], identifier, 'container')


def resolve_group(data: dict, identifier: str) -> dict:
    return _resolve(data['groups'], identifier, 'group')


def resolve_entity(data: dict, identifier: str) -> dict:
    """Resolve against threads and containers together."""
    return _resolve(all_entities(data), identifier, 'entity')


def format_candidates(candidates: list[dict]) -> list[str]:
    return [f"  {short_id(c['id'])}  {c.get('name', '')}" for c in candidates]
