"""Tests for recommendation scores and recency temperature."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / 'scripts'))

from scoring import (
    TEMPERATURE_SCORES,
    compute_temperature,
    last_activity,
    rank_threads,
    recency_score,
    score_thread,
    temperature_drift,
)
from utils import to_iso

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _thread(name, importance=3, temperature='warm', status='active', updated=NOW, progress=()):
    return {
        'id': name, 'name': name, 'importance': importance, 'temperature': temperature,
        'status': status, 'updatedAt': to_iso(updated),
        'progress': [{'id': str(i), 'timestamp': to_iso(ts), 'note': 'n'} for i, ts in enumerate(progress)],
    }


def test_temperature_scores():
    assert TEMPERATURE_SCORES == {
        'hot': 5, 'warm': 4, 'tepid': 3, 'cold': 2, 'freezing': 1, 'frozen': 0,
    }


def test_recency_score_curve():
    assert recency_score(0) == 5
    assert recency_score(7) == pytest.approx(2.5)
    assert recency_score(-3) == 5


def test_last_activity_uses_latest_progress():
    later = NOW + timedelta(hours=5)
    t = _thread('t', updated=NOW, progress=[NOW - timedelta(days=2), later])
    assert last_activity(t) == later


def test_future_activity_clamps_to_zero_days():
    t = _thread('t', importance=1, temperature='frozen', updated=NOW + timedelta(days=3))
    scored = score_thread(t, NOW)
    assert scored.days_since_activity == 0
    assert scored.score == pytest.approx(1 * 3 + 0 + 5)


def test_score_formula():
    t = _thread('t', importance=4, temperature='tepid', updated=NOW - timedelta(days=7))
    assert score_thread(t, NOW).score == pytest.approx(4 * 3 + 3 * 2 + 2.5)


def test_high_importance_hot_ranks_first():
    a = _thread('A', importance=5, temperature='hot')
    b = _thread('B', importance=1, temperature='frozen')
    ranked = rank_threads([b, a], NOW)
    assert [s.thread['name'] for s in ranked] == ['A', 'B']


def test_only_active_threads_ranked():
    ranked = rank_threads([_thread('x', status='paused'), _thread('y')], NOW)
    assert [s.thread['name'] for s in ranked] == ['y']


def test_ties_keep_input_order():
    ranked = rank_threads([_thread('first'), _thread('second'), _thread('third')], NOW)
    assert [s.thread['name'] for s in ranked] == ['first', 'second', 'third']


@pytest.mark.parametrize('days,expected', [
    (0, 'hot'), (1, 'hot'), (1.5, 'warm'), (3, 'warm'), (4, 'tepid'), (7, 'tepid'),
    (8, 'cold'), (14, 'cold'), (15, 'freezing'), (30, 'freezing'), (31, 'frozen'), (400, 'frozen'),
])
def test_compute_temperature_thresholds(days, expected):
    assert compute_temperature(NOW - timedelta(days=days), NOW) == expected


def test_compute_temperature_never_warms_with_age():
    order = ['frozen', 'freezing', 'cold', 'tepid', 'warm', 'hot']
    ranks = [order.index(compute_temperature(NOW - timedelta(hours=h), NOW)) for h in range(0, 24 * 40, 6)]
    assert ranks == sorted(ranks, reverse=True)


def test_temperature_drift_skips_archived():
    stale = _thread('stale', temperature='hot', updated=NOW - timedelta(days=10))
    archived = _thread('old', temperature='hot', status='archived', updated=NOW - timedelta(days=90))
    fresh = _thread('fresh', temperature='hot')
    drift = temperature_drift([stale, archived, fresh], NOW)
    assert [(t['name'], temp) for t, temp in drift] == [('stale', 'cold')]
