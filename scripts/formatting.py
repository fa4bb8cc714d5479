#!/usr/bin/env python3
"""Plain-text rendering of threads, containers, groups and trees."""

from utils import TEMPERATURE_ORDER, is_container, parse_iso, short_id

BRANCH = '├── '
LAST_BRANCH = '└── '
VERTICAL = '│   '
EMPTY = '    '

PROGRESS_SHOWN = 5


def _local(timestamp: str) -> str:
    return parse_iso(timestamp).astimezone().strftime('%Y-%m-%d %H:%M')


def stars(importance: int) -> str:
    return '★' * importance + '☆' * (5 - importance)


def tags_line(tags: list[str]) -> str:
    return ' '.join(f'#{t}' for t in tags)


def thread_line(thread: dict) -> str:
    """Compact one-line form used in trees and lists."""
    tag = f" #{thread['tags'][0]}" if thread.get('tags') else ''
    return (f"{thread['name']} [{short_id(thread['id'])}] "
            f"{thread['temperature'].capitalize()} {stars(thread['importance'])}{tag}")


def container_line(container: dict) -> str:
    tag = f" #{container['tags'][0]}" if container.get('tags') else ''
    return f"📁 {container['name']} [{short_id(container['id'])}]{tag}"


def entity_line(entity: dict) -> str:
    return container_line(entity) if is_container(entity) else thread_line(entity)


def thread_summary(thread: dict) -> str:
    lines = [
        f"{thread['name']} [{short_id(thread['id'])}]",
        f"  Status: {thread['status'].upper()} | Temp: {thread['temperature'].capitalize()} | "
        f"Size: {thread['size'].capitalize()} | Importance: {stars(thread['importance'])}",
    ]
    if thread.get('description'):
        lines.append(f"  {thread['description']}")
    return '\n'.join(lines)


def _current_details(entity: dict) -> list[str]:
    if not entity.get('details'):
        return []
    current = entity['details'][-1]
    lines = ['', f"Details: (updated {_local(current['timestamp'])})"]
    lines.extend(f"  {line}" for line in current['content'].split('\n'))
    return lines


def _names(data: dict | None, entity: dict) -> tuple[str | None, str | None]:
    parent = entity.get('parentId')
    group = entity.get('groupId')
    if data is None:
        return parent, group
    for e in data['threads'] + data['containers']:
        if e['id'] == parent:
            parent = f"{e['name']} ({short_id(e['id'])})"
    for g in data['groups']:
        if g['id'] == group:
            group = g['name']
    return parent, group


def thread_detail(thread: dict, data: dict | None = None) -> str:
    lines = [
        thread['name'],
        '=' * len(thread['name']),
        f"ID:          {thread['id']}",
        f"Status:      {thread['status'].upper()}",
        f"Temperature: {thread['temperature'].capitalize()}",
        f"Size:        {thread['size'].capitalize()}",
        f"Importance:  {stars(thread['importance'])}",
        f"Created:     {_local(thread['createdAt'])}",
        f"Updated:     {_local(thread['updatedAt'])}",
    ]
    if thread.get('tags'):
        lines.append(f"Tags:        {tags_line(thread['tags'])}")
    parent, group = _names(data, thread)
    if parent:
        lines.append(f"Parent:      {parent}")
    if group:
        lines.append(f"Group:       {group}")
    if thread.get('description'):
        lines.extend(['', f"Description: {thread['description']}"])
    lines.extend(_current_details(thread))

    if thread.get('links'):
        lines.extend(['', 'Links:'])
        for link in thread['links']:
            label = f" ({link['label']})" if link.get('label') else ''
            lines.append(f"  [{link['type']}] {link['uri']}{label}")

    if thread.get('dependencies'):
        lines.extend(['', 'Dependencies:'])
        for dep in thread['dependencies']:
            lines.append(f"  → {dep['threadId']}")
            for key in ('why', 'what', 'how', 'when'):
                if dep.get(key):
                    lines.append(f"    {key.capitalize()}: {dep[key]}")

    if thread.get('progress'):
        lines.extend(['', 'Progress:'])
        for entry in thread['progress'][-PROGRESS_SHOWN:]:
            lines.append(f"  [{_local(entry['timestamp'])}] {entry['note']}")
        hidden = len(thread['progress']) - PROGRESS_SHOWN
        if hidden > 0:
            lines.append(f"  ... and {hidden} more entries")
    return '\n'.join(lines)


def container_detail(container: dict, data: dict | None = None) -> str:
    title = f"{container['name']} (container)"
    lines = [
        title,
        '=' * len(title),
        f"ID:          {container['id']}",
        f"Created:     {_local(container['createdAt'])}",
        f"Updated:     {_local(container['updatedAt'])}",
    ]
    if container.get('tags'):
        lines.append(f"Tags:        {tags_line(container['tags'])}")
    parent, group = _names(data, container)
    if parent:
        lines.append(f"Parent:      {parent}")
    if group:
        lines.append(f"Group:       {group}")
    if container.get('description'):
        lines.extend(['', f"Description: {container['description']}"])
    lines.extend(_current_details(container))
    return '\n'.join(lines)


# ── Trees ────────────────────────────────────────────────────


def sort_key(entity: dict):
    """Containers first, then hottest, most important, most recently updated."""
    if is_container(entity):
        return (0, 0, 0, entity['name'].lower())
    return (
        1,
        TEMPERATURE_ORDER.get(entity['temperature'], len(TEMPERATURE_ORDER)),
        -entity['importance'],
        -parse_iso(entity['updatedAt']).timestamp(),
    )


def render_subtree(entities: list[dict], root_ids: list[str], prefix: str = '',
                   max_depth: int | None = None) -> list[str]:
    """Render entities under the given roots with box-drawing branches."""
    by_parent: dict[str | None, list[dict]] = {}
    for e in entities:
        by_parent.setdefault(e.get('parentId'), []).append(e)
    lookup = {e['id']: e for e in entities}
    lines = []

    def walk(entity: dict, pfx: str, last: bool, depth: int, seen: set) -> None:
        lines.append(pfx + (LAST_BRANCH if last else BRANCH) + entity_line(entity))
        if entity['id'] in seen or (max_depth is not None and depth + 1 >= max_depth):
            return
        kids = sorted(by_parent.get(entity['id'], []), key=sort_key)
        child_pfx = pfx + (EMPTY if last else VERTICAL)
        for i, kid in enumerate(kids):
            walk(kid, child_pfx, i == len(kids) - 1, depth + 1, seen | {entity['id']})

    roots = sorted((lookup[r] for r in root_ids if r in lookup), key=sort_key)
    for i, root in enumerate(roots):
        walk(root, prefix, i == len(roots) - 1, 0, set())
    return lines


def render_grouped_tree(data: dict, threads: list[dict], containers: list[dict]) -> list[str]:
    """Entities bucketed by group (sorted by name) and then an Ungrouped section."""
    entities = threads + containers
    lookup = {e['id']: e for e in entities}
    lines = []
    buckets = [(g['name'], g['id']) for g in sorted(data['groups'], key=lambda g: g['name'].lower())]
    buckets.append(('Ungrouped', None))
    for title, group_id in buckets:
        members = [e for e in entities if e.get('groupId') == group_id]
        if not members:
            continue
        roots = [
            e['id'] for e in members
            if not e.get('parentId') or e['parentId'] not in lookup
            or lookup[e['parentId']].get('groupId') != group_id
        ]
        lines.append(f"📋 {title}")
        lines.extend(render_subtree(members, roots))
        lines.append('')
    return lines


def render_path(path: list[dict]) -> list[str]:
    lines = []
    for depth, entity in enumerate(path):
        marker = '' if depth == 0 else EMPTY * (depth - 1) + LAST_BRANCH
        lines.append(marker + entity_line(entity))
    return lines
