"""Tests for identifier resolution."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / 'scripts'))

from resolver import (
    format_candidates,
    resolve_entity,
    resolve_group,
    resolve_thread,
)
from utils import AmbiguousError, NotFoundError


def _thread(tid, name):
    return {'type': 'thread', 'id': tid, 'name': name, 'parentId': None, 'groupId': None}


@pytest.fixture
def data():
    return {
        'threads': [
            _thread('a1b2c3d4-0000-4000-8000-000000000001', 'Garden planning'),
            _thread('a1b2ffff-0000-4000-8000-000000000002', 'Garden watering'),
            _thread('9f8e7d6c-0000-4000-8000-000000000003', 'Tax return'),
            _thread('77777777-0000-4000-8000-000000000004', 'tax'),
        ],
        'containers': [
            {'type': 'container', 'id': 'c0ffee00-0000-4000-8000-000000000005',
             'name': 'Home projects', 'parentId': None, 'groupId': None},
        ],
        'groups': [
            {'id': 'g1000000-0000-4000-8000-000000000006', 'name': 'Personal'},
        ],
    }


def test_exact_id_wins(data):
    t = resolve_thread(data, '9f8e7d6c-0000-4000-8000-000000000003')
    assert t['name'] == 'Tax return'


def test_exact_name_is_case_insensitive(data):
    assert resolve_thread(data, 'GARDEN PLANNING')['id'].startswith('a1b2c3d4')


def test_exact_name_beats_substring(data):
    # "tax" is a substring of "Tax return" but also an exact name
    assert resolve_thread(data, 'TAX')['id'].startswith('77777777')


def test_unique_id_prefix(data):
    assert resolve_thread(data, '9F8E')['name'] == 'Tax return'


def test_unique_name_substring(data):
    assert resolve_thread(data, 'water')['name'] == 'Garden watering'


def test_prefix_and_substring_form_one_candidate_set(data):
    # "a1b2" prefixes two ids
    with pytest.raises(AmbiguousError) as exc:
        resolve_thread(data, 'a1b2')
    assert len(exc.value.candidates) == 2


def test_ambiguous_exposes_candidates(data):
    with pytest.raises(AmbiguousError) as exc:
        resolve_thread(data, 'garden')
    names = {c['name'] for c in exc.value.candidates}
    assert names == {'Garden planning', 'Garden watering'}
    lines = format_candidates(exc.value.candidates)
    assert lines[0].strip().startswith('a1b2')
    assert any('Garden watering' in line for line in lines)


def test_not_found(data):
    with pytest.raises(NotFoundError, match='not found'):
        resolve_thread(data, 'zzz-nothing')


def test_entity_resolution_includes_containers(data):
    assert resolve_entity(data, 'home')['type'] == 'container'


def test_thread_resolution_excludes_containers(data):
    with pytest.raises(NotFoundError):
        resolve_thread(data, 'home projects')


def test_group_resolution(data):
    assert resolve_group(data, 'pers')['name'] == 'Personal'
