"""Tests for search, timeline and overview."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / 'scripts'))

from utils import InvalidValueError
from views import agenda, categorize_agenda, find_matches, overview, relative_time, search, timeline

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _thread(tid, name, progress=(), details=(), tags=(), **kw):
    t = {
        'id': tid, 'name': name, 'status': 'active', 'temperature': 'warm', 'importance': 3, 'groupId': None,
        'tags': list(tags),
        'progress': [{'id': f'{tid}{i}', 'timestamp': ts, 'note': note} for i, (ts, note) in enumerate(progress)],
        'details': [{'id': f'{tid}d{i}', 'timestamp': '2026-03-01T00:00:00.000Z', 'content': c}
                    for i, c in enumerate(details)],
        'createdAt': '2026-01-01T00:00:00.000Z', 'updatedAt': '2026-03-01T00:00:00.000Z',
    }
    t.update(kw)
    return t


@pytest.fixture
def data():
    return {
        'threads': [
            _thread('t1', 'Garden', progress=[('2026-03-09T08:00:00.000Z', 'planted garden beds')],
                    tags=['outdoor'], temperature='hot'),
            _thread('t2', 'Budget', progress=[('2026-03-04T08:00:00.000Z', 'garden costs'),
                                                ('2026-03-05T08:00:00.000Z', 'review')],
                    details=['Garden GARDEN garden']),
            _thread('t3', 'Old thing', status='archived'),
        ],
        'containers': [],
        'groups': [],
    }


def test_find_matches_overlapping_and_case():
    assert len(find_matches('aaa', 'aa', 'name')) == 2
    assert len(find_matches('Garden', 'garden', 'name', case_sensitive=True)) == 0


def test_search_orders_by_match_count(data):
    results = search(data, 'garden')
    assert [t['id'] for t, _ in results] == ['t2', 't1']
    assert len(results[0][1]) == 4


def test_search_scope_and_limit(data):
    assert [t['id'] for t, _ in search(data, 'garden', scope='name')] == ['t1']
    assert [t['id'] for t, _ in search(data, 'out', scope='tags')] == ['t1']
    assert len(search(data, 'garden', limit=1)) == 1


def test_search_validation(data):
    with pytest.raises(InvalidValueError, match='at least 2'):
        search(data, 'g')
    with pytest.raises(InvalidValueError, match='Invalid scope'):
        search(data, 'garden', scope='everything')


def test_timeline_newest_first(data):
    notes = [e.note for e in timeline(data, now=NOW)]
    assert notes == ['planted garden beds', 'review', 'garden costs']


def test_timeline_filters(data):
    assert [e.note for e in timeline(data, reverse=True, limit=1, now=NOW)] == ['garden costs']
    assert [e.note for e in timeline(data, since='2026-03-05', until='2026-03-05', now=NOW)] == ['review']
    assert [e.note for e in timeline(data, thread_id='t1', now=NOW)] == ['planted garden beds']
    assert len(timeline(data, since='3 days ago', now=NOW)) == 1


def test_overview_sections(data):
    lines = overview(data, days=7, now=NOW)
    assert 'Hot (1)' in lines
    assert '  * Garden - "planted garden beds"' in lines
    assert '  * Budget (2 updates) - last: "review"' in lines
    assert '  Ungrouped: 2 threads (1 hot, 1 warm)' in lines
    assert '  Total: 2 active, 0 paused, 1 archived' in lines


def _names(threads):
    return [t['name'] for t in threads]


def test_agenda_today(data):
    data['threads'].append(_thread('t4', 'Shed', temperature='cold'))
    data['threads'].append(_thread('t5', 'Quiet', status='paused'))
    sections = categorize_agenda(data, now=NOW)
    assert _names(sections.hot) == ['Garden']
    assert sections.active == []
    assert _names(sections.attention) == ['Shed']
    assert sections.other == []


def test_agenda_week_and_all(data):
    data['threads'].append(_thread('t5', 'Quiet', status='paused'))
    week = categorize_agenda(data, week=True, now=NOW)
    assert _names(week.active) == ['Budget']
    everything = categorize_agenda(data, show_all=True, now=NOW)
    assert _names(everything.other) == ['Budget', 'Quiet']


def test_agenda_lines(data):
    lines = agenda(data, week=True, now=NOW)
    assert 'Hot (1)' in lines
    assert '      planted garden beds' in lines
    assert 'Active This Week (1)' in lines
    assert '  Warm ★★★☆☆ Budget (5d ago)' in lines
    assert '  All active threads are warm' in lines
    assert lines[-1] == 'Total: 2 active, 0 paused'


def test_relative_time():
    assert relative_time('2026-03-10T08:00:00.000Z', NOW) == 'today'
    assert relative_time('2026-03-09T08:00:00.000Z', NOW) == 'yesterday'
    assert relative_time('2026-02-24T08:00:00.000Z', NOW) == '2w ago'
