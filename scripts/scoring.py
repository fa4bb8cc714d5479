#!/usr/bin/env python3
"""
Recommendation scoring and recency-derived temperature.

score = importance * 3 + temperature score * 2 + recency
recency = 5 / (1 + days_since_last_activity / 7)
"""

from dataclasses import dataclass
from datetime import datetime

from utils import days_between, now_utc, parse_iso

TEMPERATURE_SCORES = {
    'hot': 5,
    'warm': 4,
    'tepid': 3,
    'cold': 2,
    'freezing': 1,
    'frozen': 0,
}

# (max days since activity, temperature), checked in order
TEMPERATURE_THRESHOLDS = (
    (1, 'hot'),
    (3, 'warm'),
    (7, 'tepid'),
    (14, 'cold'),
    (30, 'freezing'),
)


@dataclass(frozen=True)
class ScoredThread:
    thread: dict
    score: float
    importance_score: int
    temperature_score: int
    recency_score: float
    days_since_activity: float


def last_activity(thread: dict) -> datetime:
    """Latest of updatedAt and the newest progress timestamp."""
    latest = parse_iso(thread['updatedAt'])
    for entry in thread.get('progress', []):
        ts = parse_iso(entry['timestamp'])
        if ts > latest:
            latest = ts
    return latest


def days_since(timestamp: datetime, now: datetime | None = None) -> float:
    """Elapsed days, clamped to zero for timestamps in the future."""
    return max(0.0, days_between(timestamp, now or now_utc()))


def recency_score(days: float) -> float:
    return 5 / (1 + max(0.0, days) / 7)


def score_thread(thread: dict, now: datetime | None = None) -> ScoredThread:
    days = days_since(last_activity(thread), now)
    imp = thread['importance'] * 3
    temp = TEMPERATURE_SCORES.get(thread['temperature'], 0) * 2
    rec = recency_score(days)
    return ScoredThread(
        thread=thread,
        score=imp + temp + rec,
        importance_score=imp,
        temperature_score=temp,
        recency_score=rec,
        days_since_activity=days,
    )


def rank_threads(threads: list[dict], now: datetime | None = None) -> list[ScoredThread]:
    """Score active threads and sort by descending score. Ties keep input order."""
    now = now or now_utc()
    scored = [score_thread(t, now) for t in threads if t.get('status') == 'active']
    return sorted(scored, key=lambda s: s.score, reverse=True)


def compute_temperature(timestamp: datetime, now: datetime | None = None) -> str:
    days = days_since(timestamp, now)
    for limit, temperature in TEMPERATURE_THRESHOLDS:
        if days <= limit:
            return temperature
    return 'frozen'


def temperature_drift(threads: list[dict], now: datetime | None = None) -> list[tuple[dict, str]]:
    """Non-archived threads whose stored temperature differs from recency."""
    now = now or now_utc()
    drift = []
    for thread in threads:
        if thread.get('status') == 'archived':
            continue
        computed = compute_temperature(last_activity(thread), now)
        if computed != thread.get('temperature'):
            drift.append((thread, computed))
    return drift
