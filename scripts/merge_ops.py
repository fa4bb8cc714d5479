#!/usr/bin/env python3
"""
Merge one thread into another.

Progress and details are concatenated and ordered by timestamp, tags are
unioned, dependencies are unioned by threadId with the target's entry
winning. Children of the source move to the target and the source is
archived unless kept.
"""

import logging
from dataclasses import dataclass, field

from utils import InvalidValueError, now_iso, parse_iso, touch
from tree_ops import direct_children, is_descendant, reparent

logger = logging.getLogger(__name__)


def _by_timestamp(entry: dict):
    return parse_iso(entry['timestamp'])


def merge_progress(target: list[dict], source: list[dict]) -> list[dict]:
    return sorted([*target, *source], key=_by_timestamp)


def merge_details(target: list[dict], source: list[dict]) -> list[dict]:
    return sorted([*target, *source], key=_by_timestamp)


def merge_tags(target: list[str], source: list[str]) -> list[str]:
    merged = []
    for tag in [*target, *source]:
        if tag not in merged:
            merged.append(tag)
    return merged


def merge_dependencies(target: list[dict], source: list[dict]) -> list[dict]:
    """Union keyed by threadId; the target's entry wins on conflict."""
    merged = {dep['threadId']: dep for dep in target}
    for dep in source:
        merged.setdefault(dep['threadId'], dep)
    return list(merged.values())


@dataclass
class MergePlan:
    source: dict
    target: dict
    progress: list[dict]
    details: list[dict]
    tags: list[str]
    dependencies: list[dict]
    children: list[dict] = field(default_factory=list)
    keep: bool = False

    @property
    def new_tags(self) -> list[str]:
        return [t for t in self.source['tags'] if t not in self.target['tags']]

    @property
    def new_dependencies(self) -> list[dict]:
        existing = {d['threadId'] for d in self.target['dependencies']}
        return [d for d in self.dependencies if d['threadId'] not in existing]


def plan_merge(data: dict, source: dict, target: dict, keep: bool = False) -> MergePlan:
    """Compute the merged fields without touching the document."""
    if source['id'] == target['id']:
        raise InvalidValueError('Cannot merge a thread into itself')
    if is_descendant(data, target['id'], source['id']):
        raise InvalidValueError(
            f'Cannot merge "{source["name"]}" into its own descendant "{target["name"]}"'
        )

    parties = {source['id'], target['id']}
    source_deps = [d for d in source['dependencies'] if d['threadId'] not in parties]
    target_deps = [d for d in target['dependencies'] if d['threadId'] not in parties]

    return MergePlan(
        source=source,
        target=target,
        progress=merge_progress(target['progress'], source['progress']),
        details=merge_details(target['details'], source['details']),
        tags=merge_tags(target['tags'], source['tags']),
        dependencies=merge_dependencies(target_deps, source_deps),
        children=direct_children(data, source['id']),
        keep=keep,
    )


def apply_merge(data: dict, plan: MergePlan) -> None:
    timestamp = now_iso()
    target = plan.target
    target['progress'] = plan.progress
    target['details'] = plan.details
    target['tags'] = plan.tags
    target['dependencies'] = plan.dependencies
    touch(target, timestamp)

    for child in plan.children:
        reparent(data, child, target, timestamp)

    if not plan.keep:
        plan.source['status'] = 'archived'
        plan.source['temperature'] = 'frozen'
        touch(plan.source, timestamp)

    logger.info("Merged %s into %s (%d children moved)",
                plan.source['id'], target['id'], len(plan.children))


def format_plan(plan: MergePlan) -> list[str]:
    source, target = plan.source, plan.target
    lines = [
        f"Source: {source['name']} ({source['id'][:8]})",
        f"Target: {target['name']} ({target['id'][:8]})",
        '',
        'Progress entries:',
        f"  Target has: {len(target['progress'])}",
        f"  Source has: {len(source['progress'])}",
        f"  After merge: {len(plan.progress)}",
        '',
        'Details entries:',
        f"  Target has: {len(target['details'])}",
        f"  Source has: {len(source['details'])}",
        f"  After merge: {len(plan.details)}",
        '',
        'Tags:',
        f"  Target: [{', '.join(target['tags'])}]",
        f"  Source: [{', '.join(source['tags'])}]",
        f"  After merge: [{', '.join(plan.tags)}]",
        '',
        'Dependencies:',
        f"  Target has: {len(target['dependencies'])}",
        f"  Source has: {len(source['dependencies'])}",
        f"  After merge: {len(plan.dependencies)}",
    ]
    if plan.children:
        lines.extend(['', 'Children to reparent:'])
        lines.extend(f"  {c['name']} ({c['id'][:8]})" for c in plan.children)
    lines.extend(['', f"Source thread will be: {'kept' if plan.keep else 'archived'}"])
    return lines
