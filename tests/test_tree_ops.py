"""Tests for parent-pointer tree walks."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / 'scripts'))

from tree_ops import (
    ancestry_path,
    cascade_group,
    deletion_order,
    descendants,
    direct_children,
    is_descendant,
    parent_of,
    reparent,
    siblings,
    would_create_cycle,
)
from utils import InvalidValueError, NoParentError

TS = '2026-01-01T00:00:00.000Z'


def _entity(eid, parent=None, group=None, kind='thread'):
    return {'type': kind, 'id': eid, 'name': eid.upper(), 'parentId': parent,
            'groupId': group, 'updatedAt': TS}


@pytest.fixture
def data():
    # root(c) -> a -> a1 -> a1x
    #         -> b
    # lone
    return {
        'threads': [
            _entity('a', 'root', 'g1'),
            _entity('a1', 'a', 'g1'),
            _entity('a1x', 'a1', 'g1'),
            _entity('b', 'root', 'g1'),
            _entity('lone'),
        ],
        'containers': [_entity('root', None, 'g1', 'container')],
        'groups': [{'id': 'g1', 'name': 'G1'}, {'id': 'g2', 'name': 'G2'}],
    }


def test_descendants_carry_depth(data):
    found = {e['id']: depth for e, depth in descendants(data, 'root')}
    assert found == {'a': 0, 'a1': 1, 'a1x': 2, 'b': 0}


def test_descendants_max_depth(data):
    found = [e['id'] for e, _ in descendants(data, 'root', max_depth=1)]
    assert sorted(found) == ['a', 'b']


def test_direct_children(data):
    assert sorted(e['id'] for e in direct_children(data, 'root')) == ['a', 'b']


def test_deletion_order_is_deepest_first(data):
    order = [e['id'] for e in deletion_order(descendants(data, 'root'))]
    assert order.index('a1x') < order.index('a1') < order.index('a')


def test_ancestry_path_root_to_node(data):
    leaf = data['threads'][2]
    assert [e['id'] for e in ancestry_path(data, leaf)] == ['root', 'a', 'a1', 'a1x']


def test_siblings_exclude_self(data):
    a = data['threads'][0]
    assert [e['id'] for e in siblings(data, a)] == ['b']


def test_root_has_no_siblings_or_parent(data):
    lone = data['threads'][4]
    with pytest.raises(NoParentError, match='has no parent'):
        siblings(data, lone)
    with pytest.raises(NoParentError, match='has no parent'):
        parent_of(data, lone)


def test_is_descendant_walks_full_chain(data):
    assert is_descendant(data, 'a1x', 'root')
    assert not is_descendant(data, 'root', 'a1x')
    assert not is_descendant(data, 'b', 'a')


def test_cycle_detection(data):
    assert would_create_cycle(data, 'a', 'a')
    assert would_create_cycle(data, 'a', 'a1x')
    assert not would_create_cycle(data, 'a1x', 'b')
    assert not would_create_cycle(data, 'a', None)


def test_reparent_rejects_descendant(data):
    a = data['threads'][0]
    a1x = data['threads'][2]
    with pytest.raises(InvalidValueError, match='cycle'):
        reparent(data, a, a1x)
    assert a['parentId'] == 'root'


def test_reparent_inherits_and_cascades_group(data):
    lone = data['threads'][4]
    lone['groupId'] = 'g2'
    a = data['threads'][0]
    changed = reparent(data, a, lone)
    assert a['parentId'] == 'lone'
    assert a['groupId'] == 'g2'
    assert changed == 2
    assert data['threads'][2]['groupId'] == 'g2'


def test_cascade_group_counts_changes(data):
    assert cascade_group(data, 'root', 'g2') == 4
    assert cascade_group(data, 'root', 'g2') == 0
