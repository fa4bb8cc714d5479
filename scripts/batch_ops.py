#!/usr/bin/env python3
"""
Bulk mutation of threads selected by criteria.

Structural criteria (under, children, group) narrow the candidate set and
always intersect with each other. Scalar criteria (status, temp, tag,
size, importance) then filter it. Only threads are matched; structural
targets may be threads or containers.

Actions:
- archive
- tag add|remove <tags>
- set <status|temperature|temp|size|importance|imp> <value>
- progress <note>
"""

import copy
import logging
import re
from dataclasses import dataclass, field

from utils import (
    SIZES,
    TEMPERATURES,
    THREAD_STATUSES,
    InvalidValueError,
    new_id,
    now_iso,
    parse_tags,
    touch,
    validate_choice,
    validate_importance,
)
from resolver import resolve_entity, resolve_group
from tree_ops import descendant_ids, direct_children

logger = logging.getLogger(__name__)

SETTABLE_PROPERTIES = {
    'status': 'status',
    'temperature': 'temperature',
    'temp': 'temperature',
    'size': 'size',
    'importance': 'importance',
    'imp': 'importance',
}


@dataclass(frozen=True)
class ImportanceFilter:
    value: int
    operator: str  # 'eq', 'gte' or 'lte'

    def matches(self, importance: int) -> bool:
        if self.operator == 'gte':
            return importance >= self.value
        if self.operator == 'lte':
            return importance <= self.value
        return importance == self.value


def parse_importance(raw: str) -> ImportanceFilter:
    """Parse '4', '4+' (at least) or '3-' (at most)."""
    m = re.fullmatch(r'\s*([1-5])\s*([+-]?)\s*', raw or '')
    if not m:
        raise InvalidValueError(f'Invalid importance filter "{raw}". Use N, N+ or N- with N in 1-5')
    operator = {'+': 'gte', '-': 'lte'}.get(m.group(2), 'eq')
    return ImportanceFilter(int(m.group(1)), operator)


@dataclass
class Criteria:
    under: str | None = None
    children: str | None = None
    group: str | None = None
    status: str | None = None
    temp: str | None = None
    tag: str | None = None
    size: str | None = None
    importance: ImportanceFilter | None = None

    @classmethod
    def build(cls, under=None, children=None, group=None, status=None, temp=None,
              tag=None, size=None, importance=None) -> 'Criteria':
        """Validate raw option values before anything is evaluated."""
        if status is not None:
            validate_choice(status, THREAD_STATUSES, 'status')
        if temp is not None:
            validate_choice(temp, TEMPERATURES, 'temperature')
        if size is not None:
            validate_choice(size, SIZES, 'size')
        imp = parse_importance(importance) if importance is not None else None
        criteria = cls(under, children, group, status, temp, tag, size, imp)
        if criteria.is_empty():
            raise InvalidValueError(
                'No match criteria specified. Use --under, --children, --group, '
                '--status, --temp, --tag, --importance, or --size'
            )
        return criteria

    def is_empty(self) -> bool:
        return all(v is None for v in (
            self.under, self.children, self.group, self.status,
            self.temp, self.tag, self.size, self.importance,
        ))

    def matches(self, thread: dict) -> bool:
        if self.status and thread['status'] != self.status:
            return False
        if self.temp and thread['temperature'] != self.temp:
            return False
        if self.tag and self.tag not in thread.get('tags', []):
            return False
        if self.size and thread['size'] != self.size:
            return False
        if self.importance and not self.importance.matches(thread['importance']):
            return False
        return True


def _structural_ids(data: dict, criteria: Criteria) -> set[str] | None:
    """Intersection of the structural sets, or None when none were given."""
    sets = []
    if criteria.under:
        root = resolve_entity(data, criteria.under)
        sets.append(descendant_ids(data, root['id']))
    if criteria.children:
        parent = resolve_entity(data, criteria.children)
        sets.append({e['id'] for e in direct_children(data, parent['id'])})
    if criteria.group:
        group = resolve_group(data, criteria.group)
        sets.append({t['id'] for t in data['threads'] if t.get('groupId') == group['id']})
    if not sets:
        return None
    return set.intersection(*sets)


def match_threads(data: dict, criteria: Criteria) -> list[dict]:
    allowed = _structural_ids(data, criteria)
    return [
        t for t in data['threads']
        if (allowed is None or t['id'] in allowed) and criteria.matches(t)
    ]


# ── Actions ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Action:
    kind: str  # 'archive', 'tag-add', 'tag-remove', 'set', 'progress'
    args: tuple = ()

    def describe(self) -> str:
        if self.kind == 'tag-add':
            return f"tag add {' '.join(self.args)}"
        if self.kind == 'tag-remove':
            return f"tag remove {' '.join(self.args)}"
        if self.kind == 'set':
            return f"set {self.args[0]} {self.args[1]}"
        if self.kind == 'progress':
            return f'progress "{self.args[0]}"'
        return self.kind


def parse_action(tokens: list[str]) -> Action:
    if not tokens:
        raise InvalidValueError(
            'No action specified. Use: tag add|remove <tags>, set <prop> <value>, archive, progress <note>'
        )
    cmd, rest = tokens[0].lower(), tokens[1:]
    if cmd == 'archive':
        if rest:
            raise InvalidValueError(f'Archive action takes no arguments, got: {" ".join(rest)}')
        return Action('archive')
    if cmd == 'tag':
        if len(rest) < 2:
            raise InvalidValueError('Tag action requires: tag add|remove <tags>')
        if rest[0] not in ('add', 'remove'):
            raise InvalidValueError(f'Unknown tag action "{rest[0]}". Use: add, remove')
        tags = parse_tags(rest[1:])
        if not tags:
            raise InvalidValueError('Tag action requires at least one tag')
        return Action(f'tag-{rest[0]}', tuple(tags))
    if cmd == 'set':
        if len(rest) != 2:
            raise InvalidValueError('Set action requires: set <property> <value>')
        prop = SETTABLE_PROPERTIES.get(rest[0].lower())
        if prop is None:
            raise InvalidValueError(
                f'Unknown property "{rest[0]}". Use: status, temperature, size, importance'
            )
        value = rest[1]
        if prop == 'status':
            validate_choice(value, THREAD_STATUSES, 'status')
        elif prop == 'temperature':
            validate_choice(value, TEMPERATURES, 'temperature')
        elif prop == 'size':
            validate_choice(value, SIZES, 'size')
        else:
            value = str(validate_importance(value))
        return Action('set', (prop, value))
    if cmd == 'progress':
        note = ' '.join(rest).strip()
        if not note:
            raise InvalidValueError('Progress action requires: progress <note>')
        return Action('progress', (note,))
    raise InvalidValueError(f'Unknown action "{tokens[0]}". Use: tag, set, archive, progress')


def apply_action(thread: dict, action: Action, timestamp: str) -> None:
    if action.kind == 'archive':
        thread['status'] = 'archived'
        thread['temperature'] = 'frozen'
    elif action.kind == 'tag-add':
        tags = thread.setdefault('tags', [])
        tags.extend(t for t in action.args if t not in tags)
    elif action.kind == 'tag-remove':
        thread['tags'] = [t for t in thread.get('tags', []) if t not in action.args]
    elif action.kind == 'set':
        prop, value = action.args
        thread[prop] = int(value) if prop == 'importance' else value
    elif action.kind == 'progress':
        thread.setdefault('progress', []).append(
            {'id': new_id(), 'timestamp': timestamp, 'note': action.args[0]}
        )
    else:
        raise InvalidValueError(f'Unknown action type "{action.kind}"')
    touch(thread, timestamp)


# ── Execution ────────────────────────────────────────────────


@dataclass(frozen=True)
class BatchResult:
    thread_id: str
    name: str
    ok: bool
    error: str | None = None


@dataclass
class BatchReport:
    action: Action
    dry_run: bool
    results: list[BatchResult] = field(default_factory=list)

    @property
    def matched(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)


def run_batch(data: dict, criteria: Criteria, action: Action, dry_run: bool = False) -> BatchReport:
    """Apply action to every matching thread.

    A dry run does the same work on a scratch copy of the document, so
    its report is the one the live run would produce.
    """
    working = copy.deepcopy(data) if dry_run else data
    report = BatchReport(action=action, dry_run=dry_run)
    timestamp = now_iso()
    for thread in match_threads(working, criteria):
        try:
            apply_action(thread, action, timestamp)
        except (InvalidValueError, KeyError, TypeError) as exc:
            report.results.append(BatchResult(thread['id'], thread['name'], False, str(exc)))
            continue
        report.results.append(BatchResult(thread['id'], thread['name'], True))
    logger.info("Batch %s: %d matched, %d succeeded, %d failed%s",
                action.describe(), report.matched, report.succeeded, report.failed,
                ' (dry run)' if dry_run else '')
    return report


def format_report(report: BatchReport) -> list[str]:
    verb = 'Dry run: would match' if report.dry_run else 'Batch: matched'
    lines = [f"{verb} {report.matched} thread(s)", '']
    described = report.action.describe()
    for i, result in enumerate(report.results, 1):
        mark = '✓' if result.ok else f"✗ {result.error}"
        lines.append(f"  [{i}/{report.matched}] {result.name} - {described} {mark}")
    lines.append('')
    prefix = 'Would complete' if report.dry_run else 'Done'
    lines.append(f"{prefix}: {report.succeeded} succeeded, {report.failed} failed")
    return lines
