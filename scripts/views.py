#!/usr/bin/env python3
"""Read-only queries: search, timeline, the overview dashboard and the agenda."""

from dataclasses import dataclass
from datetime import datetime

from formatting import sort_key, stars
from utils import InvalidValueError, days_between, now_utc, parse_iso, parse_when, truncate

SEARCH_SCOPES = ('name', 'progress', 'details', 'tags', 'all')
MIN_QUERY_LENGTH = 2


@dataclass(frozen=True)
class Match:
    scope: str
    text: str
    start: int
    end: int

    def snippet(self, max_len: int = 80) -> str:
        width = self.end - self.start
        before = max(0, (max_len - width) // 2)
        lo = max(0, self.start - before)
        hi = min(len(self.text), lo + max_len)
        body = self.text[lo:hi].replace('\n', ' ')
        return ('...' if lo > 0 else '') + body + ('...' if hi < len(self.text) else '')


def find_matches(text: str, pattern: str, scope: str, case_sensitive: bool = False) -> list[Match]:
    haystack = text if case_sensitive else text.lower()
    needle = pattern if case_sensitive else pattern.lower()
    found = []
    pos = haystack.find(needle)
    while pos != -1:
        found.append(Match(scope, text, pos, pos + len(pattern)))
        pos = haystack.find(needle, pos + 1)
    return found


def search_thread(thread: dict, pattern: str, scope: str = 'all', case_sensitive: bool = False) -> list[Match]:
    matches = []
    if scope in ('all', 'name'):
        matches += find_matches(thread['name'], pattern, 'name', case_sensitive)
    if scope in ('all', 'progress'):
        for entry in thread.get('progress', []):
            matches += find_matches(entry['note'], pattern, 'progress', case_sensitive)
    if scope in ('all', 'details'):
        for entry in thread.get('details', []):
            matches += find_matches(entry['content'], pattern, 'details', case_sensitive)
    if scope in ('all', 'tags'):
        for tag in thread.get('tags', []):
            matches += find_matches(tag, pattern, 'tags', case_sensitive)
    return matches


def search(data: dict, query: str, scope: str = 'all', case_sensitive: bool = False,
           limit: int | None = None) -> list[tuple[dict, list[Match]]]:
    """Threads with at least one match, most matches first."""
    if scope not in SEARCH_SCOPES:
        raise InvalidValueError(f'Invalid scope "{scope}". Use: {", ".join(SEARCH_SCOPES)}')
    if len(query) < MIN_QUERY_LENGTH:
        raise InvalidValueError(f'Search query must be at least {MIN_QUERY_LENGTH} characters')
    results = []
    for thread in data['threads']:
        matches = search_thread(thread, query, scope, case_sensitive)
        if matches:
            results.append((thread, matches))
    results.sort(key=lambda pair: len(pair[1]), reverse=True)
    if limit is not None and limit > 0:
        results = results[:limit]
    return results


# ── Timeline ─────────────────────────────────────────────────


@dataclass(frozen=True)
class TimelineEntry:
    thread: dict
    timestamp: datetime
    note: str


def _day_bound(value: str, end_of_day: bool, now: datetime) -> datetime:
    dt = parse_when(value, now)
    if len(value.strip()) == 10 and end_of_day:
        dt = dt.replace(hour=23, minute=59, second=59, microsecond=999999)
    return dt


def timeline(data: dict, since: str | None = None, until: str | None = None,
             thread_id: str | None = None, limit: int | None = None,
             reverse: bool = False, now: datetime | None = None) -> list[TimelineEntry]:
    """Progress entries across threads, newest first unless reverse."""
    now = now or now_utc()
    lo = _day_bound(since, False, now) if since else None
    hi = _day_bound(until, True, now) if until else None
    entries = []
    for thread in data['threads']:
        if thread_id and thread['id'] != thread_id:
            continue
        for entry in thread.get('progress', []):
            ts = parse_iso(entry['timestamp'])
            if lo and ts < lo:
                continue
            if hi and ts > hi:
                continue
            entries.append(TimelineEntry(thread, ts, entry['note']))
    entries.sort(key=lambda e: e.timestamp, reverse=not reverse)
    if limit is not None and limit > 0:
        entries = entries[:limit]
    return entries


# ── Overview ─────────────────────────────────────────────────


def _last_progress(thread: dict) -> dict | None:
    progress = thread.get('progress', [])
    return progress[-1] if progress else None


def overview(data: dict, days: int = 7, now: datetime | None = None) -> list[str]:
    now = now or now_utc()
    threads = [t for t in data['threads'] if t['status'] != 'archived']
    groups = {g['id']: g for g in data['groups']}
    lines = ['=== THREADS OVERVIEW ===', '']

    hot = [t for t in threads if t['temperature'] == 'hot']
    lines.append(f"Hot ({len(hot)})")
    if not hot:
        lines.append('  No hot threads')
    for t in hot:
        last = _last_progress(t)
        suffix = f' - "{truncate(last["note"], 50)}"' if last else ''
        lines.append(f"  * {t['name']}{suffix}")
    lines.append('')

    recent = []
    for t in threads:
        last = _last_progress(t)
        if last and days_between(parse_iso(last['timestamp']), now) <= days:
            count = sum(1 for p in t['progress']
                        if days_between(parse_iso(p['timestamp']), now) <= days)
            recent.append((parse_iso(last['timestamp']), t, count, last['note']))
    recent.sort(key=lambda r: r[0], reverse=True)
    lines.append(f"Recent Activity (last {days} days)")
    if not recent:
        lines.append('  No recent activity')
    for _, t, count, note in recent:
        label = '1 update' if count == 1 else f'{count} updates'
        lines.append(f'  * {t["name"]} ({label}) - last: "{truncate(note, 40)}"')
    lines.append('')

    cold = []
    for t in threads:
        if t['status'] != 'active':
            continue
        last = _last_progress(t)
        anchor = parse_iso(last['timestamp'] if last else t['createdAt'])
        if days_between(anchor, now) > days:
            cold.append(t)
    lines.append(f"Going Cold (no updates in {days}+ days)")
    if not cold:
        lines.append('  No threads going cold')
    for t in cold:
        lines.append(f"  * {t['name']} - active but no recent progress")
    lines.append('')

    lines.append('Summary')
    stats: dict[str | None, list[int]] = {}
    for t in threads:
        bucket = stats.setdefault(t.get('groupId'), [0, 0, 0])
        bucket[0] += 1
        bucket[1] += t['temperature'] == 'hot'
        bucket[2] += t['temperature'] == 'warm'
    for group_id, (count, n_hot, n_warm) in stats.items():
        if group_id is None:
            continue
        name = groups[group_id]['name'] if group_id in groups else 'Unknown'
        lines.append(f"  {name}: {count} threads ({n_hot} hot, {n_warm} warm)")
    if None in stats:
        count, n_hot, n_warm = stats[None]
        lines.append(f"  Ungrouped: {count} threads ({n_hot} hot, {n_warm} warm)")
    by_status = {s: sum(1 for t in data['threads'] if t['status'] == s)
                 for s in ('active', 'paused', 'archived')}
    lines.append(f"  Total: {by_status['active']} active, {by_status['paused']} paused, "
                 f"{by_status['archived']} archived")
    return lines


# ── Agenda ───────────────────────────────────────────────────

COLD_TEMPERATURES = ('cold', 'freezing', 'frozen')
ATTENTION_DAYS = 7


@dataclass
class AgendaSections:
    hot: list[dict]
    active: list[dict]
    attention: list[dict]
    other: list[dict]


def relative_time(timestamp: str, now: datetime) -> str:
    days = int(days_between(parse_iso(timestamp), now))
    if days <= 0:
        return 'today'
    if days == 1:
        return 'yesterday'
    if days < 7:
        return f'{days}d ago'
    if days < 30:
        return f'{days // 7}w ago'
    return f'{days // 30}mo ago'


def categorize_agenda(data: dict, week: bool = False, show_all: bool = False,
                      now: datetime | None = None) -> AgendaSections:
    """Split active and paused threads into agenda sections.

    `active` holds non-hot threads with progress inside the lookback
    window (one day, or seven with `week`). `attention` holds active
    threads that are cold or have had no progress for over a week.
    `other` is filled only with `show_all`.
    """
    now = now or now_utc()
    lookback = 7 if week else 1
    live = [t for t in data['threads'] if t['status'] in ('active', 'paused')]

    def idle_days(thread: dict) -> int | None:
        last = _last_progress(thread)
        return int(days_between(parse_iso(last['timestamp']), now)) if last else None

    hot = [t for t in live if t['temperature'] == 'hot']
    active = [t for t in live if t['temperature'] != 'hot'
              and idle_days(t) is not None and idle_days(t) < lookback]
    attention = [
        t for t in live
        if t['status'] == 'active' and t['temperature'] != 'hot'
        and (t['temperature'] in COLD_TEMPERATURES
             or idle_days(t) is None or idle_days(t) > ATTENTION_DAYS)
    ]
    other = []
    if show_all:
        shown = {t['id'] for t in hot + active + attention}
        other = [t for t in live if t['id'] not in shown]
    return AgendaSections(*(sorted(s, key=sort_key) for s in (hot, active, attention, other)))


def _agenda_line(thread: dict, now: datetime) -> str:
    last = _last_progress(thread)
    when = relative_time(last['timestamp'], now) if last else 'no progress'
    return f"  {thread['temperature'].capitalize()} {stars(thread['importance'])} {thread['name']} ({when})"


def agenda(data: dict, week: bool = False, show_all: bool = False,
           now: datetime | None = None) -> list[str]:
    now = now or now_utc()
    sections = categorize_agenda(data, week, show_all, now)
    lines = [f"=== AGENDA: {now.astimezone().strftime('%A, %B %d, %Y')} ===", '']

    lines.append(f"Hot ({len(sections.hot)})")
    if not sections.hot:
        lines.append('  No hot threads')
    for t in sections.hot:
        lines.append(f"  {t['temperature'].capitalize()} {stars(t['importance'])} {t['name']}")
        last = _last_progress(t)
        if last:
            lines.append(f"      {truncate(last['note'], 60)}")
    lines.append('')

    label = 'Active This Week' if week else 'Active Today'
    lines.append(f"{label} ({len(sections.active)})")
    if not sections.active:
        lines.append(f"  No progress recorded {'this week' if week else 'today'}")
    lines.extend(_agenda_line(t, now) for t in sections.active)
    lines.append('')

    lines.append(f"Needs Attention ({len(sections.attention)})")
    if not sections.attention:
        lines.append('  All active threads are warm')
    lines.extend(_agenda_line(t, now) for t in sections.attention)
    lines.append('')

    if sections.other:
        lines.append(f"Other Active ({len(sections.other)})")
        lines.extend(_agenda_line(t, now) for t in sections.other)
        lines.append('')

    n_active = sum(1 for t in data['threads'] if t['status'] == 'active')
    n_paused = sum(1 for t in data['threads'] if t['status'] == 'paused')
    lines.append(f"Total: {n_active} active, {n_paused} paused")
    return lines
