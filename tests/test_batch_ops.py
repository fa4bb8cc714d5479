"""Tests for criteria matching and batch actions."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / 'scripts'))

from batch_ops import (
    Criteria,
    format_report,
    match_threads,
    parse_action,
    parse_importance,
    run_batch,
)
from utils import InvalidValueError, NotFoundError

TS = '2026-01-01T00:00:00.000Z'


def _thread(tid, importance=3, parent=None, group=None, **kw):
    t = {
        'type': 'thread', 'id': tid, 'name': tid.capitalize(), 'status': 'active',
        'temperature': 'warm', 'importance': importance, 'size': 'medium',
        'parentId': parent, 'groupId': group, 'tags': [], 'progress': [],
        'createdAt': TS, 'updatedAt': TS,
    }
    t.update(kw)
    return t


@pytest.fixture
def data():
    return {
        'threads': [
            _thread('alpha', 5, parent='proj', group='gw'),
            _thread('beta', 4, parent='alpha', group='gw', tags=['urgent']),
            _thread('gamma', 2, parent='proj', group='gh', status='paused'),
            _thread('delta', 3),
        ],
        'containers': [
            {'type': 'container', 'id': 'proj', 'name': 'Project', 'parentId': None,
             'groupId': 'gw', 'updatedAt': TS},
        ],
        'groups': [{'id': 'gw', 'name': 'Work'}, {'id': 'gh', 'name': 'Home'}],
    }


def _names(threads):
    return sorted(t['id'] for t in threads)


@pytest.mark.parametrize('raw,value,op', [('4', 4, 'eq'), ('4+', 4, 'gte'), ('3-', 3, 'lte')])
def test_parse_importance(raw, value, op):
    imp = parse_importance(raw)
    assert (imp.value, imp.operator) == (value, op)


@pytest.mark.parametrize('raw', ['0', '6+', 'abc', '', '3*'])
def test_invalid_importance_rejected(raw):
    with pytest.raises(InvalidValueError):
        parse_importance(raw)


def test_importance_at_least(data):
    assert _names(match_threads(data, Criteria.build(importance='4+'))) == ['alpha', 'beta']


def test_importance_at_most(data):
    assert _names(match_threads(data, Criteria.build(importance='3-'))) == ['delta', 'gamma']


def test_under_is_recursive_through_containers(data):
    assert _names(match_threads(data, Criteria.build(under='Project'))) == ['alpha', 'beta', 'gamma']


def test_structural_filters_intersect(data):
    crit = Criteria.build(children='Project', group='Home')
    assert _names(match_threads(data, crit)) == ['gamma']


def test_empty_structural_set_still_intersects(data):
    # delta has no children; intersecting with a group must stay empty
    crit = Criteria.build(children='delta', group='Work')
    assert match_threads(data, crit) == []


def test_scalar_filters(data):
    crit = Criteria.build(under='Project', status='active', tag='urgent')
    assert _names(match_threads(data, crit)) == ['beta']


def test_invalid_criteria_rejected_up_front():
    with pytest.raises(InvalidValueError):
        Criteria.build(status='sleeping')
    with pytest.raises(InvalidValueError):
        Criteria.build()


def test_unknown_structural_target(data):
    with pytest.raises(NotFoundError):
        match_threads(data, Criteria.build(under='nowhere'))


def test_parse_action_variants():
    assert parse_action(['archive']).kind == 'archive'
    assert parse_action(['tag', 'add', 'a,b', 'c']).args == ('a', 'b', 'c')
    assert parse_action(['set', 'imp', '5']).args == ('importance', '5')
    assert parse_action(['progress', 'checked', 'in']).args == ('checked in',)


@pytest.mark.parametrize('tokens', [
    [], ['explode'], ['tag', 'add'], ['tag', 'toggle', 'x'], ['set', 'status', 'sleeping'],
    ['set', 'color', 'red'], ['set', 'importance', '9'], ['progress'], ['archive', 'now'],
])
def test_parse_action_rejects(tokens):
    with pytest.raises(InvalidValueError):
        parse_action(tokens)


def test_run_batch_archive(data):
    report = run_batch(data, Criteria.build(group='Work'), parse_action(['archive']))
    assert (report.matched, report.succeeded, report.failed) == (2, 2, 0)
    alpha = data['threads'][0]
    assert alpha['status'] == 'archived'
    assert alpha['temperature'] == 'frozen'
    assert alpha['updatedAt'] != TS


def test_run_batch_tags_and_progress(data):
    run_batch(data, Criteria.build(under='Project'), parse_action(['tag', 'add', 'q1']))
    run_batch(data, Criteria.build(tag='q1'), parse_action(['tag', 'remove', 'urgent']))
    run_batch(data, Criteria.build(tag='q1'), parse_action(['progress', 'reviewed']))
    beta = data['threads'][1]
    assert beta['tags'] == ['q1']
    assert beta['progress'][-1]['note'] == 'reviewed'
    assert data['threads'][3]['tags'] == []


def test_run_batch_set_importance_is_int(data):
    run_batch(data, Criteria.build(size='medium'), parse_action(['set', 'importance', '1']))
    assert {t['importance'] for t in data['threads']} == {1}


def test_dry_run_reports_like_live_run_without_mutation(data):
    crit = Criteria.build(importance='4+')
    action = parse_action(['set', 'status', 'paused'])
    dry = run_batch(data, crit, action, dry_run=True)
    assert data['threads'][0]['status'] == 'active'
    live = run_batch(data, crit, action)
    assert [(r.name, r.ok) for r in dry.results] == [(r.name, r.ok) for r in live.results]
    assert format_report(dry)[2:-1] == format_report(live)[2:-1]
    assert data['threads'][0]['status'] == 'paused'
