"""Tests for merging threads."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / 'scripts'))

from merge_ops import (
    apply_merge,
    format_plan,
    merge_dependencies,
    merge_details,
    merge_progress,
    merge_tags,
    plan_merge,
)
from utils import InvalidValueError


def _dep(tid, why=''):
    return {'threadId': tid, 'why': why, 'what': '', 'how': '', 'when': ''}


def _entry(ts, note):
    return {'id': note, 'timestamp': f'2026-02-{ts:02d}T09:00:00.000Z', 'note': note}


def _thread(tid, name, **kw):
    t = {
        'type': 'thread', 'id': tid, 'name': name, 'status': 'active', 'temperature': 'warm',
        'importance': 3, 'size': 'medium', 'parentId': None, 'groupId': None,
        'tags': [], 'links': [], 'dependencies': [], 'progress': [], 'details': [],
        'createdAt': '2026-01-01T00:00:00.000Z', 'updatedAt': '2026-01-01T00:00:00.000Z',
    }
    t.update(kw)
    return t


def test_merge_progress_sorted_without_dedup():
    target = [_entry(1, 't1'), _entry(5, 't5')]
    source = [_entry(3, 's3'), _entry(5, 's5')]
    merged = merge_progress(target, source)
    assert len(merged) == 4
    assert [e['note'] for e in merged] == ['t1', 's3', 't5', 's5']


def test_merge_details_sorted():
    target = [{'id': 'a', 'timestamp': '2026-02-10T00:00:00.000Z', 'content': 'new'}]
    source = [{'id': 'b', 'timestamp': '2026-02-01T00:00:00.000Z', 'content': 'old'}]
    assert [d['content'] for d in merge_details(target, source)] == ['old', 'new']


def test_merge_tags_union_without_duplicates():
    merged = merge_tags(['b', 'c'], ['a', 'b'])
    assert len(merged) == len(set(merged))
    assert set(merged) == {'a', 'b', 'c'}


def test_merge_dependencies_target_wins():
    merged = merge_dependencies([_dep('x', 't')], [_dep('x', 's'), _dep('y', 's')])
    assert [d['threadId'] for d in merged] == ['x', 'y']
    assert merged[0]['why'] == 't'


def test_merge_scenario_tags_and_dependency():
    s = _thread('s', 'Source', tags=['a', 'b'], dependencies=[_dep('x', 's')])
    t = _thread('t', 'Target', tags=['b', 'c'], dependencies=[_dep('x', 't')])
    x = _thread('x', 'X')
    data = {'threads': [s, t, x], 'containers': [], 'groups': []}
    apply_merge(data, plan_merge(data, s, t))
    assert set(t['tags']) == {'a', 'b', 'c'}
    assert t['dependencies'] == [_dep('x', 't')]
    assert s['status'] == 'archived'
    assert s['temperature'] == 'frozen'


def test_merge_drops_dependencies_between_parties():
    s = _thread('s', 'Source', dependencies=[_dep('t')])
    t = _thread('t', 'Target', dependencies=[_dep('s')])
    data = {'threads': [s, t], 'containers': [], 'groups': []}
    assert plan_merge(data, s, t).dependencies == []


def test_self_merge_rejected():
    s = _thread('s', 'Source')
    data = {'threads': [s], 'containers': [], 'groups': []}
    with pytest.raises(InvalidValueError, match='itself'):
        plan_merge(data, s, s)


def test_merge_into_descendant_rejected():
    s = _thread('s', 'Source')
    child = _thread('c', 'Child', parentId='s')
    data = {'threads': [s, child], 'containers': [], 'groups': []}
    with pytest.raises(InvalidValueError, match='descendant'):
        plan_merge(data, s, child)


def test_children_reparented_and_keep_flag():
    s = _thread('s', 'Source')
    t = _thread('t', 'Target', groupId='g')
    kid = _thread('k', 'Kid', parentId='s')
    box = {'type': 'container', 'id': 'box', 'name': 'Box', 'parentId': 's', 'groupId': None,
           'updatedAt': '2026-01-01T00:00:00.000Z'}
    data = {'threads': [s, t, kid], 'containers': [box], 'groups': []}
    apply_merge(data, plan_merge(data, s, t, keep=True))
    assert kid['parentId'] == 't'
    assert box['parentId'] == 't'
    assert kid['groupId'] == 'g'
    assert s['status'] == 'active'


def test_plan_does_not_mutate():
    s = _thread('s', 'Source', tags=['a'], progress=[_entry(1, 'p')])
    t = _thread('t', 'Target')
    data = {'threads': [s, t], 'containers': [], 'groups': []}
    plan = plan_merge(data, s, t)
    lines = format_plan(plan)
    assert t['tags'] == []
    assert t['progress'] == []
    assert '  After merge: 1' in lines
    assert 'Source thread will be: archived' in lines
