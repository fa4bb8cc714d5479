#!/usr/bin/env python3
"""
Deleting threads and containers that may have children.

Strategies for an entity with children:
- cascade: delete every descendant, deepest first, then the entity
- orphan: direct children move to the entity's parent (or become roots)
- move: direct children move under a chosen target
"""

import logging
from dataclasses import dataclass, field

from utils import (
    InvalidCombinationError,
    InvalidValueError,
    entity_kind,
    find_entity,
    is_container,
    now_iso,
)
from tree_ops import deletion_order, descendants, direct_children, is_descendant, reparent

logger = logging.getLogger(__name__)

STRATEGIES = ('cascade', 'orphan', 'move')


def pick_strategy(cascade: bool = False, orphan: bool = False, move_to: str | None = None) -> str | None:
    chosen = [name for name, on in (('cascade', cascade), ('orphan', orphan), ('move', move_to)) if on]
    if len(chosen) > 1:
        raise InvalidCombinationError('Cannot combine --cascade, --orphan, and --move. Choose one.')
    return chosen[0] if chosen else None


class StrategyRequired(InvalidValueError):
    """The entity has children and no strategy was chosen."""

    def __init__(self, entity: dict, descendant_count: int):
        self.entity = entity
        self.descendant_count = descendant_count
        super().__init__(f'{entity_kind(entity).capitalize()} "{entity["name"]}" has children. Choose a strategy')

    def guidance(self) -> list[str]:
        return [
            f"  --cascade, -c    Delete {entity_kind(self.entity)} and all {self.descendant_count} descendant(s)",
            "  --orphan         Move children to parent (or ungrouped) then delete",
            "  --move <target>  Move children to another entity then delete",
            "",
            "Add --dry-run to preview, -f to skip confirmation.",
        ]


@dataclass
class DeletePlan:
    entity: dict
    strategy: str | None
    descendants: list[tuple[dict, int]] = field(default_factory=list)
    children: list[dict] = field(default_factory=list)
    destination: dict | None = None

    @property
    def to_delete(self) -> list[dict]:
        """Entities removed, in removal order."""
        if self.strategy == 'cascade':
            return deletion_order(self.descendants) + [self.entity]
        return [self.entity]

    @property
    def needs_confirmation(self) -> bool:
        return bool(self.children)

    def describe(self) -> str:
        name = self.entity['name']
        if not self.children:
            return f'delete {entity_kind(self.entity)} "{name}"'
        if self.strategy == 'cascade':
            return f'delete "{name}" and {len(self.descendants)} descendant(s)'
        dest = f'"{self.destination["name"]}"' if self.destination else 'root level'
        verb = 'orphan' if self.strategy == 'orphan' else 'move'
        return f'{verb} {len(self.children)} child(ren) to {dest} and delete "{name}"'


def plan_delete(data: dict, entity: dict, strategy: str | None = None,
                move_target: dict | None = None) -> DeletePlan:
    """Decide what a delete would do. Raises before anything is mutated."""
    found = descendants(data, entity['id'])
    children = direct_children(data, entity['id'])
    plan = DeletePlan(entity=entity, strategy=strategy, descendants=found, children=children)
    if not children:
        return plan
    if strategy is None:
        raise StrategyRequired(entity, len(found))
    if strategy == 'orphan':
        plan.destination = find_entity(data, entity.get('parentId'))
    elif strategy == 'move':
        if move_target is None:
            raise InvalidValueError('--move requires a target')
        if move_target['id'] == entity['id']:
            raise InvalidValueError('Cannot move children to the entity being deleted')
        if is_descendant(data, move_target['id'], entity['id']):
            raise InvalidValueError('Cannot move children to a descendant')
        plan.destination = move_target
    return plan


def _remove(data: dict, entity: dict) -> None:
    key = 'containers' if is_container(entity) else 'threads'
    data[key] = [e for e in data[key] if e['id'] != entity['id']]


def apply_delete(data: dict, plan: DeletePlan) -> list[str]:
    """Carry out plan; returns deleted ids in removal order."""
    timestamp = now_iso()
    if plan.strategy in ('orphan', 'move'):
        for child in plan.children:
            if plan.destination is None:
                child['groupId'] = None
            reparent(data, child, plan.destination, timestamp)

    deleted = []
    for entity in plan.to_delete:
        _remove(data, entity)
        deleted.append(entity['id'])

    gone = set(deleted)
    for thread in data['threads']:
        deps = thread.get('dependencies', [])
        kept = [d for d in deps if d['threadId'] not in gone]
        if len(kept) != len(deps):
            thread['dependencies'] = kept
    logger.info("Deleted %d entities (%s)", len(deleted), plan.strategy or 'simple')
    return deleted
