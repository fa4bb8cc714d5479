#!/usr/bin/env python3
"""
Threads CLI - track hierarchical work threads in a local JSON file.

Usage:
    threads.py new "Thread name" [-d DESC] [-s STATUS] [-t TEMP] [-z SIZE] [-i N] [-T tags]
    threads.py list [IDENT] [--flat] [--all] [--depth N] [--parent|--siblings|--path]
    threads.py progress IDENT "note" [--hot|--warm]
    threads.py move-progress FROM TO [--last|--all|--count N]
    threads.py batch --under IDENT --importance 4+ tag add urgent
    threads.py container delete IDENT [--cascade|--orphan|--move TARGET] [--dry-run] [-f]
    threads.py merge SOURCE TARGET [--keep] [--dry-run]
    threads.py next [-c N] [-e]
    threads.py agenda [--week] [--all]
    threads.py undo [--dry-run|--list]
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))
import batch_ops
import deletion
import formatting
import merge_ops
import scoring
import thread_ops
import views
from resolver import (
    format_candidates,
    resolve_container,
    resolve_entity,
    resolve_group,
    resolve_thread,
)
from thread_store import ThreadStore
from tree_ops import ancestry_path, descendants, direct_children, parent_of, siblings
from utils import (
    SIZES,
    TEMPERATURES,
    THREAD_STATUSES,
    AmbiguousError,
    InvalidValueError,
    NoChangesError,
    ThreadsError,
    default_next_count,
    entity_kind,
    find_entity,
    is_container,
    log_level_name,
    parse_tags,
    parse_when,
    short_id,
    to_iso,
    validate_choice,
    validate_count,
)

logger = logging.getLogger(__name__)


def _confirm(prompt: str, force: bool) -> bool:
    if force:
        return True
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ('y', 'yes')


def _optional_group(data: dict, ident: str | None) -> dict | None:
    return resolve_group(data, ident) if ident else None


def _optional_entity(data: dict, ident: str | None) -> dict | None:
    return resolve_entity(data, ident) if ident else None


def _is_none(value: str | None) -> bool:
    return value is not None and value.lower() in ('none', 'null', '')


# ── Create / show ────────────────────────────────────────────


def cmd_new(args):
    with args.store.transaction() as data:
        thread = thread_ops.create_thread(
            data, args.name,
            description=args.description,
            status=args.status,
            temperature=args.temperature,
            size=args.size,
            importance=args.importance,
            tags=parse_tags(args.tags),
            parent=_optional_entity(data, args.parent),
            group=_optional_group(data, args.group),
        )
    print(f"✅ Created thread: {thread['name']} [{short_id(thread['id'])}]")
    print(formatting.thread_summary(thread))


def cmd_spawn(args):
    with args.store.transaction() as data:
        parent = resolve_entity(data, args.parent)
        thread = thread_ops.spawn_thread(
            data, parent, args.name,
            description=args.description,
            size=args.size,
            importance=args.importance,
            tags=parse_tags(args.tags),
        )
    print(f"✅ Spawned sub-thread under \"{parent['name']}\": {thread['name']} [{short_id(thread['id'])}]")
    print(formatting.thread_summary(thread))


def cmd_show(args):
    data = args.store.load()
    entity = resolve_entity(data, args.identifier)
    if is_container(entity):
        print(formatting.container_detail(entity, data))
    else:
        print(formatting.thread_detail(entity, data))


def _list_filtered_threads(args, data: dict) -> list[dict]:
    if args.status:
        validate_choice(args.status, THREAD_STATUSES, 'status')
    if args.temperature:
        validate_choice(args.temperature, TEMPERATURES, 'temperature')
    if args.size:
        validate_choice(args.size, SIZES, 'size')
    threads = data['threads']
    if not args.all and args.status != 'archived':
        threads = [t for t in threads if t['status'] != 'archived']
    if args.status:
        threads = [t for t in threads if t['status'] == args.status]
    if args.active:
        threads = [t for t in threads if t['status'] == 'active']
    if args.temperature:
        threads = [t for t in threads if t['temperature'] == args.temperature]
    if args.hot:
        threads = [t for t in threads if t['temperature'] == 'hot']
    if args.size:
        threads = [t for t in threads if t['size'] == args.size]
    if args.importance:
        imp = batch_ops.parse_importance(args.importance)
        threads = [t for t in threads if imp.matches(t['importance'])]
    if args.tag:
        threads = [t for t in threads if args.tag in t.get('tags', [])]
    if args.group:
        group = resolve_group(data, args.group)
        threads = [t for t in threads if t.get('groupId') == group['id']]
    return threads


def _list_focused(args, data: dict) -> None:
    entity = resolve_entity(data, args.identifier)
    if args.path:
        print(f"📋 Path to \"{entity['name']}\":")
        for line in formatting.render_path(ancestry_path(data, entity)):
            print(line)
        return
    if args.parent:
        parent = parent_of(data, entity)
        print(f"📋 Parent of \"{entity['name']}\":")
        print(formatting.entity_line(parent))
        return
    if args.siblings:
        peers = siblings(data, entity)
        print(f"📋 Siblings of \"{entity['name']}\" ({len(peers)}):")
        if not peers:
            print("  (none)")
        for peer in sorted(peers, key=formatting.sort_key):
            print(f"  {formatting.entity_line(peer)}")
        return

    print(formatting.entity_line(entity))
    subtree = [e for e, _ in descendants(data, entity['id'])]
    if not args.all:
        subtree = [e for e in subtree if e.get('status') != 'archived']
    roots = [e['id'] for e in subtree if e.get('parentId') == entity['id']]
    for line in formatting.render_subtree(subtree, roots, max_depth=args.depth):
        print(line)
    if not roots:
        print("  (no children)")


def cmd_list(args):
    data = args.store.load()
    if args.identifier:
        _list_focused(args, data)
        return
    if args.parent or args.siblings or args.path:
        raise InvalidValueError('--parent, --siblings and --path need an identifier')

    threads = _list_filtered_threads(args, data)
    if args.flat:
        if not threads:
            print("No threads found.")
            return
        for thread in sorted(threads, key=formatting.sort_key):
            print(formatting.thread_summary(thread))
            print()
        print(f"{len(threads)} thread(s)")
        return

    filtering = any([args.status, args.temperature, args.size, args.importance,
                     args.tag, args.hot, args.active])
    containers = [] if filtering else data['containers']
    if args.group and not filtering:
        group = resolve_group(data, args.group)
        containers = [c for c in containers if c.get('groupId') == group['id']]
    if not threads and not containers:
        print("No threads found.")
        return
    for line in formatting.render_grouped_tree(data, threads, containers):
        print(line)


# ── Updates ──────────────────────────────────────────────────


def cmd_update(args):
    with args.store.transaction() as data:
        thread = resolve_thread(data, args.identifier)
        changes = thread_ops.update_thread(
            data, thread,
            {
                'status': args.status,
                'temperature': args.temperature,
                'size': args.size,
                'importance': args.importance,
                'name': args.name,
                'description': args.description,
            },
            tags=args.tags,
            add_tag=args.add_tag,
            remove_tag=args.remove_tag,
        )
    print(f"✅ Updated \"{thread['name']}\":")
    for change in changes:
        print(f"  {change}")


def cmd_set(args):
    with args.store.transaction() as data:
        entity = resolve_entity(data, args.identifier)
        prop, old, new = thread_ops.set_property(data, entity, args.property, args.value)
    print(f"✅ {entity['name']}: {prop} {old} -> {new}")


def cmd_progress(args):
    temperature = 'hot' if args.hot else ('warm' if args.warm else None)
    with args.store.transaction() as data:
        thread = resolve_thread(data, args.identifier)
        entry = thread_ops.add_progress(thread, ' '.join(args.note), temperature=temperature)
    suffix = f" (temperature -> {temperature})" if temperature else ''
    print(f"✅ Progress added to \"{thread['name']}\"{suffix}")
    print(f"  [{entry['timestamp']}] {entry['note']}")


def cmd_edit_progress(args):
    data = args.store.load()
    thread = resolve_thread(data, args.identifier)
    index = thread_ops.progress_index(thread, args.index)
    if not (args.note or args.time or args.delete):
        entry = thread['progress'][index]
        print(f"Progress #{index + 1} of \"{thread['name']}\":")
        print(f"  [{entry['timestamp']}] {entry['note']}")
        return

    if args.delete and not _confirm(f"Delete progress entry #{index + 1}?", args.force):
        print("Cancelled.")
        return

    with args.store.transaction() as data:
        thread = resolve_thread(data, thread['id'])
        if args.delete:
            entry = thread_ops.delete_progress(thread, index)
            print(f"✅ Deleted progress entry from \"{thread['name']}\": {entry['note']}")
            return
        timestamp = to_iso(parse_when(args.time)) if args.time else None
        entry = thread_ops.edit_progress(thread, index, note=args.note, timestamp=timestamp)
    print(f"✅ Updated progress entry on \"{thread['name']}\":")
    print(f"  [{entry['timestamp']}] {entry['note']}")


def cmd_move_progress(args):
    if args.all and args.count is not None:
        raise InvalidValueError('Use either --all or --count N, not both')
    count = None if args.all else (validate_count(args.count, '--count') if args.count is not None else 1)
    with args.store.transaction() as data:
        source = resolve_thread(data, args.source)
        dest = resolve_thread(data, args.dest)
        available = len(source['progress'])
        moved = thread_ops.move_progress(source, dest, count)
    if count is not None and count > available:
        print(f"⚠️ \"{source['name']}\" only had {available} progress entries")
    if len(moved) == 1:
        print(f"✅ Moved 1 progress entry from \"{source['name']}\" to \"{dest['name']}\":")
        print(f"  [{moved[0]['timestamp']}] {moved[0]['note']}")
    else:
        print(f"✅ Moved {len(moved)} progress entries from \"{source['name']}\" to \"{dest['name']}\"")


def cmd_details(args):
    if args.content is None:
        data = args.store.load()
        entity = resolve_entity(data, args.identifier)
        history = entity.get('details', [])
        if not history:
            print(f"No details for \"{entity['name']}\".")
            return
        entries = history if args.history else history[-1:]
        for i, entry in enumerate(entries, 1):
            label = f"v{i} " if args.history else ''
            print(f"{label}({entry['timestamp']})")
            for line in entry['content'].split('\n'):
                print(f"  {line}")
        return

    with args.store.transaction() as data:
        entity = resolve_entity(data, args.identifier)
        thread_ops.set_details(entity, args.content)
    print(f"✅ Details updated for \"{entity['name']}\" (version {len(entity['details'])})")


def cmd_tag(args):
    if not (args.tags or args.remove or args.clear):
        data = args.store.load()
        entity = resolve_entity(data, args.identifier)
        tags = formatting.tags_line(entity.get('tags', [])) or '(none)'
        print(f"Tags for \"{entity['name']}\": {tags}")
        return

    with args.store.transaction() as data:
        entity = resolve_entity(data, args.identifier)
        if args.clear:
            count = thread_ops.clear_tags(entity)
            print(f"✅ Cleared {count} tag(s) from \"{entity['name']}\"")
        if args.remove:
            removed = thread_ops.remove_tags(entity, args.remove)
            print(f"✅ Removed {formatting.tags_line(removed)} from \"{entity['name']}\"")
        if args.tags:
            added = thread_ops.add_tags(entity, args.tags)
            print(f"✅ Added {formatting.tags_line(added)} to \"{entity['name']}\"")


def cmd_depend(args):
    with args.store.transaction() as data:
        thread = resolve_thread(data, args.identifier)
        target = resolve_thread(data, args.on)
        if args.remove:
            thread_ops.remove_dependency(thread, target)
            print(f"✅ Removed dependency: \"{thread['name']}\" no longer depends on \"{target['name']}\"")
            return
        verb, dep = thread_ops.add_dependency(
            thread, target, why=args.why, what=args.what, how=args.how, when=args.when
        )
    print(f"✅ Dependency {verb}: \"{thread['name']}\" → \"{target['name']}\"")
    for key in ('why', 'what', 'how', 'when'):
        if dep.get(key):
            print(f"  {key.capitalize()}: {dep[key]}")


def cmd_link(args):
    if args.link_command == 'list':
        data = args.store.load()
        thread = resolve_thread(data, args.identifier)
        links = thread.get('links', [])
        if not links:
            print(f"No links on \"{thread['name']}\".")
            return
        print(f"Links on \"{thread['name']}\" ({len(links)}):")
        for link in links:
            label = f" ({link['label']})" if link.get('label') else ''
            print(f"  {short_id(link['id'])} [{link['type']}] {link['uri']}{label}")
            if link.get('description'):
                print(f"      {link['description']}")
        return

    with args.store.transaction() as data:
        thread = resolve_thread(data, args.identifier)
        if args.link_command == 'add':
            link = thread_ops.add_link(thread, args.uri, args.type, args.label, args.description)
            print(f"✅ Added link to \"{thread['name']}\": [{link['type']}] {link['uri']}")
        else:
            link = thread_ops.remove_link(thread, args.uri)
            print(f"✅ Removed link from \"{thread['name']}\": {link['uri']}")


# ── Structure ────────────────────────────────────────────────


def cmd_move(args):
    if bool(args.to) == bool(args.root):
        raise InvalidValueError('Use exactly one of --to PARENT or --root')
    with args.store.transaction() as data:
        entity = resolve_entity(data, args.identifier)
        new_parent = None if args.root else resolve_entity(data, args.to)
        cascaded = thread_ops.move_entity(data, entity, new_parent)
    dest = f"\"{new_parent['name']}\"" if new_parent else 'root level'
    extra = f" ({cascaded} descendant(s) regrouped)" if cascaded else ''
    print(f"✅ Moved \"{entity['name']}\" to {dest}{extra}")


def cmd_archive(args):
    data = args.store.load()
    thread = resolve_thread(data, args.identifier)
    action = 'restore' if args.restore else 'archive'
    subtree = [e for e, _ in descendants(data, thread['id'])]
    if subtree and not args.cascade:
        _print_affected(data, thread)
        print(f"⚠️ \"{thread['name']}\" has {len(subtree)} sub-item(s).")
        print(f"Add --cascade, -c to {action} all sub-threads too. Add --dry-run to preview.")
        return
    if subtree:
        _print_affected(data, thread)
    if args.dry_run:
        count = len(thread_ops.archive_threads(data, thread, args.cascade, args.restore))
        print(f"🚧 Dry run: Would {action} {count} thread(s)")
        return

    with args.store.transaction() as data:
        thread = resolve_thread(data, thread['id'])
        targets = thread_ops.archive_threads(data, thread, args.cascade, args.restore)
        if not targets:
            state = 'archived' if args.restore else 'active'
            raise NoChangesError(f"No {state} threads to {action}")
        thread_ops.apply_archive(targets, restore=args.restore)
    verb = 'Restored' if args.restore else 'Archived'
    print(f"✅ {verb} {len(targets)} thread(s)")


def _print_affected(data: dict, entity: dict) -> None:
    print(formatting.entity_line(entity))
    subtree = [e for e, _ in descendants(data, entity['id'])]
    roots = [e['id'] for e in subtree if e.get('parentId') == entity['id']]
    for line in formatting.render_subtree(subtree, roots):
        print(line)
    print()


def _run_delete(args, resolve) -> None:
    strategy = deletion.pick_strategy(args.cascade, args.orphan, args.move)
    data = args.store.load()
    entity = resolve(data, args.identifier)
    target = resolve_entity(data, args.move) if args.move else None
    try:
        plan = deletion.plan_delete(data, entity, strategy, target)
    except deletion.StrategyRequired as exc:
        print(f"⚠️ {exc}:")
        print()
        for line in exc.guidance():
            print(line)
        return

    if plan.children:
        _print_affected(data, entity)
        if plan.strategy != 'cascade':
            dest = plan.destination['name'] if plan.destination else 'root level (ungrouped)'
            print(f"Children will be moved to: {dest}")
    if args.dry_run:
        print(f"🚧 Dry run: Would {plan.describe()}")
        return
    if plan.needs_confirmation and not _confirm(f"{plan.describe().capitalize()}?", args.force):
        print("Cancelled.")
        return

    with args.store.transaction() as data:
        entity = find_entity(data, entity['id'])
        target = find_entity(data, target['id']) if target else None
        deleted = deletion.apply_delete(data, deletion.plan_delete(data, entity, strategy, target))
    print(f"✅ Deleted {entity_kind(entity)} \"{entity['name']}\""
          + (f" and {len(deleted) - 1} descendant(s)" if len(deleted) > 1 else '')
          + (f"; moved {len(plan.children)} child(ren)"
             if plan.children and plan.strategy in ('orphan', 'move') else ''))


def cmd_delete(args):
    _run_delete(args, resolve_thread)


def cmd_clone(args):
    with args.store.transaction() as data:
        source = resolve_thread(data, args.source)
        created = thread_ops.clone_thread(
            data, source, args.new_name,
            parent=_optional_entity(data, args.parent),
            group=_optional_group(data, args.group),
            with_children=args.with_children,
        )
    print(f"✅ Cloned \"{source['name']}\" ({len(created)} thread(s)):")
    for thread in created:
        print(formatting.thread_summary(thread))


def cmd_group(args):
    sub = args.group_command
    if sub in (None, 'list'):
        data = args.store.load()
        groups = sorted(data['groups'], key=lambda g: g['name'].lower())
        if not groups:
            print("No groups. Create one with: threads group new NAME")
            return
        shown = groups[:args.limit] if getattr(args, 'limit', None) else groups
        for group in shown:
            count = sum(1 for t in data['threads'] if t.get('groupId') == group['id'])
            desc = f" - {group['description']}" if group.get('description') else ''
            print(f"📋 {group['name']} [{short_id(group['id'])}] ({count} threads){desc}")
        if len(shown) < len(groups):
            print(f"Showing {len(shown)} of {len(groups)} groups")
        return

    with args.store.transaction() as data:
        if sub == 'new':
            group = thread_ops.create_group(data, args.name, args.description)
            print(f"✅ Created group: {group['name']} [{short_id(group['id'])}]")
        elif sub == 'add':
            entity = resolve_entity(data, args.identifier)
            group = resolve_group(data, args.group)
            cascaded = thread_ops.assign_group(data, entity, group)
            extra = f" (+ {cascaded} descendants)" if cascaded else ''
            print(f"✅ Added \"{entity['name']}\" to group \"{group['name']}\"{extra}")
        elif sub == 'remove':
            entity = resolve_entity(data, args.identifier)
            if not entity.get('groupId'):
                raise NoChangesError(f"\"{entity['name']}\" is not in a group")
            cascaded = thread_ops.assign_group(data, entity, None)
            extra = f" (+ {cascaded} descendants)" if cascaded else ''
            print(f"✅ Removed \"{entity['name']}\" from its group{extra}")
        elif sub == 'delete':
            group = resolve_group(data, args.identifier)
            count = thread_ops.delete_group(data, group)
            print(f"✅ Deleted group \"{group['name']}\" ({count} item(s) ungrouped)")


def cmd_container(args):
    sub = args.container_command
    if sub in (None, 'list'):
        data = args.store.load()
        if not data['containers']:
            print("No containers. Create one with: threads container new NAME")
            return
        for container in sorted(data['containers'], key=lambda c: c['name'].lower()):
            count = len(direct_children(data, container['id']))
            print(f"{formatting.container_line(container)} ({count} children)")
        return
    if sub == 'show':
        data = args.store.load()
        container = resolve_container(data, args.identifier)
        print(formatting.container_detail(container, data))
        _print_affected(data, container)
        return
    if sub == 'delete':
        _run_delete(args, resolve_container)
        return

    with args.store.transaction() as data:
        if sub == 'new':
            container = thread_ops.create_container(
                data, args.name,
                description=args.description,
                parent=_optional_entity(data, args.parent),
                group=_optional_group(data, args.group),
                tags=parse_tags(args.tags),
            )
            print(f"✅ Created container: {container['name']} [{short_id(container['id'])}]")
        elif sub == 'update':
            container = resolve_container(data, args.identifier)
            parent = None if args.parent is None or _is_none(args.parent) else resolve_entity(data, args.parent)
            group = None if args.group is None or _is_none(args.group) else resolve_group(data, args.group)
            changes, cascaded = thread_ops.update_container(
                data, container,
                name=args.name,
                description=args.description,
                parent=parent,
                clear_parent=_is_none(args.parent),
                group=group,
                clear_group=_is_none(args.group),
                tags=args.tags,
            )
            extra = f" (+ {cascaded} descendants)" if cascaded else ''
            print(f"✅ Updated container \"{container['name']}\"{extra}:")
            for change in changes:
                print(f"  {change}")


# ── Bulk ─────────────────────────────────────────────────────


def cmd_batch(args):
    criteria = batch_ops.Criteria.build(
        under=args.under, children=args.children, group=args.group,
        status=args.status, temp=args.temp, tag=args.tag,
        size=args.size, importance=args.importance,
    )
    if args.dry_run and not args.action:
        data = args.store.load()
        matched = batch_ops.match_threads(data, criteria)
        print(f"🚧 Dry run: would match {len(matched)} thread(s)")
        for thread in matched:
            print(f"  • {thread['name']}")
        print("No action specified")
        return

    action = batch_ops.parse_action(args.action)
    if args.dry_run:
        _print_batch(batch_ops.run_batch(args.store.load(), criteria, action, dry_run=True))
        return
    with args.store.transaction() as data:
        _print_batch(batch_ops.run_batch(data, criteria, action))


def _print_batch(report: batch_ops.BatchReport) -> None:
    if not report.matched:
        raise NoChangesError('No threads match the specified criteria')
    for line in batch_ops.format_report(report):
        print(line)


def cmd_merge(args):
    data = args.store.load()
    source = resolve_thread(data, args.source)
    target = resolve_thread(data, args.target)
    plan = merge_ops.plan_merge(data, source, target, keep=args.keep)
    if args.dry_run:
        print("🚧 [DRY RUN] Merge preview:")
        print()
        for line in merge_ops.format_plan(plan):
            print(line)
        return

    added = []
    if source['progress']:
        added.append(f"{len(source['progress'])} progress entries")
    if source['details']:
        added.append(f"{len(source['details'])} details entries")
    if plan.new_tags:
        added.append(f"{len(plan.new_tags)} new tags")
    if plan.new_dependencies:
        added.append(f"{len(plan.new_dependencies)} new dependencies")

    with args.store.transaction() as data:
        live = merge_ops.plan_merge(
            data, find_entity(data, source['id']), find_entity(data, target['id']), keep=args.keep
        )
        merge_ops.apply_merge(data, live)
    print(f"✅ Merged \"{source['name']}\" into \"{target['name']}\"")
    if added:
        print(f"  Added: {', '.join(added)}")
    if plan.children:
        print(f"  Reparented {len(plan.children)} child(ren)")
    print(f"  Source thread {'kept (not archived)' if args.keep else 'archived'}")


# ── Views ────────────────────────────────────────────────────


def cmd_search(args):
    data = args.store.load()
    results = views.search(data, args.query, args.scope, args.case_sensitive, args.limit)
    if not results:
        print(f"No matches for \"{args.query}\".")
        return
    total = sum(len(m) for _, m in results)
    print(f"🔍 {total} match(es) in {len(results)} thread(s) for \"{args.query}\":")
    for thread, matches in results:
        print()
        print(f"{thread['name']} [{short_id(thread['id'])}] ({len(matches)})")
        for match in matches[:3]:
            print(f"  {match.scope}: {match.snippet()}")
        if len(matches) > 3:
            print(f"  ... and {len(matches) - 3} more")


def cmd_timeline(args):
    data = args.store.load()
    thread_id = resolve_thread(data, args.thread)['id'] if args.thread else None
    entries = views.timeline(
        data, since=args.since, until=args.until, thread_id=thread_id,
        limit=args.limit, reverse=args.reverse,
    )
    if not entries:
        print("No progress entries found.")
        return
    current_day = None
    for entry in entries:
        local = entry.timestamp.astimezone()
        day = local.strftime('%Y-%m-%d')
        if day != current_day:
            if current_day is not None:
                print()
            print(f"📅 {day}")
            current_day = day
        print(f"  {local.strftime('%H:%M')} [{entry.thread['name']}] {entry.note}")


def cmd_next(args):
    data = args.store.load()
    ranked = scoring.rank_threads(data['threads'])
    if not ranked:
        print("No active threads. Create one with: threads new NAME")
        return
    count = validate_count(args.count, '--count') if args.count is not None else default_next_count()
    print(f"🎯 Top {min(count, len(ranked))} of {len(ranked)} active thread(s):")
    for i, scored in enumerate(ranked[:count], 1):
        thread = scored.thread
        print(f"{i}. {formatting.thread_line(thread)}  score {scored.score:.1f}")
        if args.explain:
            print(f"     importance {scored.importance_score} + temperature {scored.temperature_score}"
                  f" + recency {scored.recency_score:.2f} ({scored.days_since_activity:.1f} days idle)")


def cmd_overview(args):
    data = args.store.load()
    for line in views.overview(data, days=args.days):
        print(line)


def cmd_agenda(args):
    data = args.store.load()
    for line in views.agenda(data, week=args.week, show_all=args.all):
        print(line)


def cmd_temps(args):
    data = args.store.load()
    drift = scoring.temperature_drift(data['threads'])
    if not drift:
        print("✅ All temperatures match recent activity.")
        return
    for thread, computed in drift:
        print(f"  {thread['name']}: {thread['temperature']} -> {computed}")
    if not args.apply:
        print(f"{len(drift)} thread(s) drifted. Run with --apply to update.")
        return
    with args.store.transaction() as data:
        for thread, computed in scoring.temperature_drift(data['threads']):
            thread_ops.set_property(data, thread, 'temperature', computed)
    print(f"✅ Updated temperature on {len(drift)} thread(s)")


def cmd_undo(args):
    store = args.store
    info = store.backup_info()
    if args.list:
        if not info.exists:
            print("No backup exists yet. A backup is created before each change.")
            return
        print("Backup Info:")
        print(f"  Path:       {store.backup_file}")
        print(f"  Created:    {info.timestamp.astimezone().strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"  Threads:    {info.thread_count}")
        print(f"  Containers: {info.container_count}")
        print(f"  Groups:     {info.group_count}")
        return
    if not info.exists:
        print("❌ No backup available to restore.")
        return

    if args.dry_run:
        current = store.load()
        backup = store.load_backup()
        current_ids = {t['id']: t for t in current['threads']}
        backup_ids = {t['id']: t for t in backup['threads']}
        print("🚧 Dry run - would restore to:")
        print(f"  Threads: {len(current['threads'])} -> {len(backup['threads'])}")
        print(f"  Groups:  {len(current['groups'])} -> {len(backup['groups'])}")
        for tid, thread in current_ids.items():
            if tid not in backup_ids:
                print(f"  - Remove: \"{thread['name']}\"")
            elif backup_ids[tid]['updatedAt'] != thread['updatedAt']:
                print(f"  ~ Revert: \"{thread['name']}\"")
        for tid, thread in backup_ids.items():
            if tid not in current_ids:
                print(f"  + Restore: \"{thread['name']}\"")
        return

    store.restore_backup()
    print("✅ Restored from backup. Run undo again to redo.")


# ── Parser ───────────────────────────────────────────────────


def _add_delete_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('identifier', help='Name or ID')
    parser.add_argument('-c', '--cascade', action='store_true', help='Delete all descendants too')
    parser.add_argument('--orphan', action='store_true', help='Move children to the parent, then delete')
    parser.add_argument('--move', metavar='TARGET', help='Move children to TARGET, then delete')
    parser.add_argument('--dry-run', action='store_true', help='Preview without changes')
    parser.add_argument('-f', '--force', action='store_true', help='Skip confirmation')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Threads - track hierarchical work threads')
    parser.add_argument('--data-file', type=Path, help='Threads JSON file (default: $THREADS_DATA_FILE)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log at INFO level')
    subparsers = parser.add_subparsers(dest='command', required=True)

    new_parser = subparsers.add_parser('new', help='Create a thread')
    new_parser.add_argument('name')
    new_parser.add_argument('-d', '--description', default='')
    new_parser.add_argument('-s', '--status', default='active')
    new_parser.add_argument('-t', '--temperature', default='warm')
    new_parser.add_argument('-z', '--size', default='medium')
    new_parser.add_argument('-i', '--importance', default='3')
    new_parser.add_argument('-T', '--tags', help='Comma-separated tags')
    new_parser.add_argument('-g', '--group', help='Group name or ID')
    new_parser.add_argument('-p', '--parent', help='Parent thread or container')
    new_parser.set_defaults(func=cmd_new)

    spawn_parser = subparsers.add_parser('spawn', help='Create a sub-thread')
    spawn_parser.add_argument('parent')
    spawn_parser.add_argument('name')
    spawn_parser.add_argument('-d', '--description', default='')
    spawn_parser.add_argument('-z', '--size', default='small')
    spawn_parser.add_argument('-i', '--importance', help='Importance 1-5 (default: inherit)')
    spawn_parser.add_argument('-T', '--tags', help='Comma-separated tags')
    spawn_parser.set_defaults(func=cmd_spawn)

    list_parser = subparsers.add_parser('list', aliases=['ls'], help='List threads')
    list_parser.add_argument('identifier', nargs='?', help='Focus on one thread or container')
    list_parser.add_argument('-s', '--status')
    list_parser.add_argument('-t', '--temperature')
    list_parser.add_argument('-z', '--size')
    list_parser.add_argument('-i', '--importance', help='N, N+ or N-')
    list_parser.add_argument('-g', '--group')
    list_parser.add_argument('--tag')
    list_parser.add_argument('--hot', action='store_true')
    list_parser.add_argument('--active', action='store_true')
    list_parser.add_argument('--all', action='store_true', help='Include archived threads')
    list_parser.add_argument('--flat', action='store_true', help='Flat list instead of a tree')
    list_parser.add_argument('-D', '--depth', type=int, help='Levels shown below the focus')
    list_parser.add_argument('-p', '--parent', action='store_true', help='Show the parent')
    list_parser.add_argument('--siblings', action='store_true', help='Show siblings')
    list_parser.add_argument('--path', action='store_true', help='Show the path from the root')
    list_parser.set_defaults(func=cmd_list)

    show_parser = subparsers.add_parser('show', help='Show thread or container details')
    show_parser.add_argument('identifier')
    show_parser.set_defaults(func=cmd_show)

    update_parser = subparsers.add_parser('update', help='Update several thread fields')
    update_parser.add_argument('identifier')
    update_parser.add_argument('-s', '--status')
    update_parser.add_argument('-t', '--temperature')
    update_parser.add_argument('-z', '--size')
    update_parser.add_argument('-i', '--importance')
    update_parser.add_argument('-n', '--name')
    update_parser.add_argument('-d', '--description')
    update_parser.add_argument('--tags', help='Replace tags (comma-separated)')
    update_parser.add_argument('--add-tag')
    update_parser.add_argument('--remove-tag')
    update_parser.set_defaults(func=cmd_update)

    set_parser = subparsers.add_parser('set', help='Set a single property')
    set_parser.add_argument('identifier')
    set_parser.add_argument('property')
    set_parser.add_argument('value')
    set_parser.set_defaults(func=cmd_set)

    progress_parser = subparsers.add_parser('progress', aliases=['p'], help='Add a progress note')
    progress_parser.add_argument('identifier')
    progress_parser.add_argument('note', nargs='+')
    temp_flags = progress_parser.add_mutually_exclusive_group()
    temp_flags.add_argument('--warm', action='store_true', help='Also set temperature to warm')
    temp_flags.add_argument('--hot', action='store_true', help='Also set temperature to hot')
    progress_parser.set_defaults(func=cmd_progress)

    ep_parser = subparsers.add_parser('edit-progress', aliases=['ep'], help='Edit or delete a progress entry')
    ep_parser.add_argument('identifier')
    ep_parser.add_argument('index', help='1-based index or "last"')
    ep_parser.add_argument('-n', '--note')
    ep_parser.add_argument('-t', '--time', help='ISO time, "yesterday" or "N days ago"')
    ep_parser.add_argument('--delete', action='store_true')
    ep_parser.add_argument('-f', '--force', action='store_true', help='Skip confirmation')
    ep_parser.set_defaults(func=cmd_edit_progress)

    mp_parser = subparsers.add_parser('move-progress', help='Move progress entries to another thread')
    mp_parser.add_argument('source', help='Thread to take entries from')
    mp_parser.add_argument('dest', help='Thread to move entries to')
    mp_parser.add_argument('--last', action='store_true', help='Move the newest entry (default)')
    mp_parser.add_argument('--all', action='store_true', help='Move every entry')
    mp_parser.add_argument('--count', help='Move the newest N entries')
    mp_parser.set_defaults(func=cmd_move_progress)

    details_parser = subparsers.add_parser('details', help='Show or set versioned details')
    details_parser.add_argument('identifier')
    details_parser.add_argument('content', nargs='?')
    details_parser.add_argument('--history', action='store_true')
    details_parser.set_defaults(func=cmd_details)

    tag_parser = subparsers.add_parser('tag', help='Manage tags')
    tag_parser.add_argument('identifier')
    tag_parser.add_argument('tags', nargs='*')
    tag_parser.add_argument('-r', '--remove', nargs='+')
    tag_parser.add_argument('-c', '--clear', action='store_true')
    tag_parser.set_defaults(func=cmd_tag)

    archive_parser = subparsers.add_parser('archive', help='Archive or restore a thread')
    archive_parser.add_argument('identifier')
    archive_parser.add_argument('--restore', action='store_true')
    archive_parser.add_argument('-c', '--cascade', action='store_true', help='Include sub-threads')
    archive_parser.add_argument('--dry-run', action='store_true')
    archive_parser.set_defaults(func=cmd_archive)

    delete_parser = subparsers.add_parser('delete', help='Delete a thread')
    _add_delete_options(delete_parser)
    delete_parser.set_defaults(func=cmd_delete)

    move_parser = subparsers.add_parser('move', help='Reparent a thread or container')
    move_parser.add_argument('identifier')
    move_parser.add_argument('--to', help='New parent')
    move_parser.add_argument('--root', action='store_true', help='Move to root level')
    move_parser.set_defaults(func=cmd_move)

    clone_parser = subparsers.add_parser('clone', help='Clone a thread as a template')
    clone_parser.add_argument('source')
    clone_parser.add_argument('new_name', nargs='?')
    clone_parser.add_argument('--with-children', action='store_true')
    clone_parser.add_argument('--parent')
    clone_parser.add_argument('--group')
    clone_parser.set_defaults(func=cmd_clone)

    group_parser = subparsers.add_parser('group', help='Manage groups')
    group_sub = group_parser.add_subparsers(dest='group_command')
    group_list = group_sub.add_parser('list', help='List groups')
    group_list.add_argument('-n', '--limit', type=int)
    group_new = group_sub.add_parser('new', help='Create a group')
    group_new.add_argument('name')
    group_new.add_argument('-d', '--description', default='')
    group_add = group_sub.add_parser('add', help='Put a thread or container in a group')
    group_add.add_argument('identifier')
    group_add.add_argument('group')
    group_remove = group_sub.add_parser('remove', help='Ungroup a thread or container')
    group_remove.add_argument('identifier')
    group_delete = group_sub.add_parser('delete', help='Delete a group, ungrouping its members')
    group_delete.add_argument('identifier')
    group_parser.set_defaults(func=cmd_group, limit=None)

    cont_parser = subparsers.add_parser('container', aliases=['cont'], help='Manage containers')
    cont_sub = cont_parser.add_subparsers(dest='container_command')
    cont_sub.add_parser('list', help='List containers')
    cont_new = cont_sub.add_parser('new', help='Create a container')
    cont_new.add_argument('name')
    cont_new.add_argument('-d', '--description', default='')
    cont_new.add_argument('-p', '--parent')
    cont_new.add_argument('-g', '--group')
    cont_new.add_argument('-T', '--tags')
    cont_show = cont_sub.add_parser('show', help='Show a container and its contents')
    cont_show.add_argument('identifier')
    cont_update = cont_sub.add_parser('update', help='Update a container')
    cont_update.add_argument('identifier')
    cont_update.add_argument('-n', '--name')
    cont_update.add_argument('-d', '--description')
    cont_update.add_argument('-p', '--parent', help='New parent, or "none"')
    cont_update.add_argument('-g', '--group', help='New group, or "none"')
    cont_update.add_argument('--tags')
    cont_delete = cont_sub.add_parser('delete', help='Delete a container')
    _add_delete_options(cont_delete)
    cont_parser.set_defaults(func=cmd_container)

    batch_parser = subparsers.add_parser('batch', help='Bulk operations on matching threads')
    batch_parser.add_argument('--under', help='All descendants of an entity')
    batch_parser.add_argument('--children', help='Direct children of an entity')
    batch_parser.add_argument('--group')
    batch_parser.add_argument('--status')
    batch_parser.add_argument('--temp')
    batch_parser.add_argument('--tag')
    batch_parser.add_argument('--importance', help='N, N+ or N-')
    batch_parser.add_argument('--size')
    batch_parser.add_argument('--dry-run', action='store_true')
    batch_parser.add_argument('action', nargs='*',
                              help='archive | tag add|remove TAGS | set PROP VALUE | progress NOTE')
    batch_parser.set_defaults(func=cmd_batch)

    merge_parser = subparsers.add_parser('merge', help='Merge SOURCE into TARGET')
    merge_parser.add_argument('source')
    merge_parser.add_argument('target')
    merge_parser.add_argument('--keep', action='store_true', help='Do not archive the source')
    merge_parser.add_argument('--dry-run', action='store_true')
    merge_parser.set_defaults(func=cmd_merge)

    search_parser = subparsers.add_parser('search', help='Search names, progress, details and tags')
    search_parser.add_argument('query')
    search_parser.add_argument('--in', dest='scope', default='all')
    search_parser.add_argument('-c', '--case-sensitive', action='store_true')
    search_parser.add_argument('-l', '--limit', type=int)
    search_parser.set_defaults(func=cmd_search)

    tl_parser = subparsers.add_parser('timeline', aliases=['tl'], help='Progress across threads')
    tl_parser.add_argument('--since')
    tl_parser.add_argument('--until')
    tl_parser.add_argument('-n', '--limit', type=int)
    tl_parser.add_argument('-t', '--thread')
    tl_parser.add_argument('-r', '--reverse', action='store_true', help='Oldest first')
    tl_parser.set_defaults(func=cmd_timeline)

    next_parser = subparsers.add_parser('next', aliases=['focus'], help='Recommend what to work on')
    next_parser.add_argument('-c', '--count')
    next_parser.add_argument('-e', '--explain', action='store_true')
    next_parser.set_defaults(func=cmd_next)

    ov_parser = subparsers.add_parser('overview', aliases=['ov'], help='Dashboard')
    ov_parser.add_argument('-d', '--days', type=int, default=7)
    ov_parser.set_defaults(func=cmd_overview)

    agenda_parser = subparsers.add_parser('agenda', aliases=['ag'], help='Daily or weekly focus view')
    agenda_parser.add_argument('-w', '--week', action='store_true', help='Look back 7 days instead of today')
    agenda_parser.add_argument('-a', '--all', action='store_true', help='Include all active threads')
    agenda_parser.set_defaults(func=cmd_agenda)

    temps_parser = subparsers.add_parser('temps', help='Compare temperatures with recent activity')
    temps_parser.add_argument('--apply', action='store_true')
    temps_parser.set_defaults(func=cmd_temps)

    depend_parser = subparsers.add_parser('depend', help='Manage dependencies')
    depend_parser.add_argument('identifier')
    depend_parser.add_argument('--on', required=True)
    depend_parser.add_argument('--why')
    depend_parser.add_argument('--what')
    depend_parser.add_argument('--how')
    depend_parser.add_argument('--when')
    depend_parser.add_argument('--remove', action='store_true')
    depend_parser.set_defaults(func=cmd_depend)

    link_parser = subparsers.add_parser('link', help='Manage links')
    link_sub = link_parser.add_subparsers(dest='link_command', required=True)
    link_add = link_sub.add_parser('add', help='Add a link')
    link_add.add_argument('identifier')
    link_add.add_argument('uri')
    link_add.add_argument('-t', '--type', default='web')
    link_add.add_argument('-l', '--label')
    link_add.add_argument('-d', '--description')
    link_remove = link_sub.add_parser('remove', help='Remove a link by URI or ID')
    link_remove.add_argument('identifier')
    link_remove.add_argument('uri')
    link_list = link_sub.add_parser('list', help='List links')
    link_list.add_argument('identifier')
    link_parser.set_defaults(func=cmd_link)

    undo_parser = subparsers.add_parser('undo', help='Swap in the backup')
    undo_parser.add_argument('--dry-run', action='store_true')
    undo_parser.add_argument('--list', action='store_true')
    undo_parser.set_defaults(func=cmd_undo)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    level = logging.INFO if args.verbose else getattr(logging, log_level_name(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    args.store = ThreadStore(args.data_file) if args.data_file else ThreadStore()
    logger.debug("Using data file %s", args.store.data_file)
    try:
        args.func(args)
    except AmbiguousError as e:
        print(f"⚠️ {e}:")
        for line in format_candidates(e.candidates):
            print(line)
    except ThreadsError as e:
        print(f"❌ {e}")


if __name__ == '__main__':
    main()
