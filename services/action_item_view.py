"""
Action item view helpers: bucketing and ordering for display and export.

Items are plain mappings so that both stored artifacts and client-side
records (which may carry ``priority_label``, ``confidence``, ``status`` and
a due date under several keys) can be handled. All functions are pure; the
current time is passed in.
"""

from __future__ import annotations

import functools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

BUCKETS = ("Overdue", "Today", "This Week", "Later", "No due date", "Completed")

_PRIORITY_ALIASES = {
    "critical": ("critical", "crit", "p0", "urgent", "blocker"),
    "high": ("high", "p1"),
    "medium": ("medium", "med", "p2"),
    "low": ("low", "p3"),
}
_PRIORITY_ORDER = ("critical", "high", "medium", "low")
_DUE_KEYS = ("due_at", "dueDate", "due_date", "due")


def normalize_priority(value: Any) -> str:
    """Map a free-form priority label to critical/high/medium/low/unknown."""
    label = str(value or "").strip().lower()
    for name, aliases in _PRIORITY_ALIASES.items():
        if label in aliases:
            return name
    return "unknown"


def priority_rank(value: Any) -> int:
    """0 for critical through 3 for low; 4 for anything unrecognised."""
    name = normalize_priority(value)
    return _PRIORITY_ORDER.index(name) if name in _PRIORITY_ORDER else len(_PRIORITY_ORDER)


def normalize_confidence(value: Any) -> float:
    """Return confidence in [0, 1], accepting both 0..1 and 0..100 scales.

    >>> normalize_confidence(92)
    0.92
    >>> normalize_confidence(None)
    0.0
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        return 0.0
    if value > 1:
        value = value / 100
    return float(max(0.0, min(1.0, value)))


def parse_due_date(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 date or datetime; None when missing or unparseable.

    Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif value:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _due_value(item: Mapping[str, Any]) -> Any:
    for key in _DUE_KEYS:
        if item.get(key):
            return item[key]
    return None


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return now if now.tzinfo else now.replace(tzinfo=timezone.utc)


def is_completed(item: Mapping[str, Any]) -> bool:
    status = str(item.get("status") or "").lower()
    return item.get("completed") is True or status in ("completed", "done")


def is_overdue(due: Optional[datetime], now: datetime) -> bool:
    return due is not None and due < _start_of_day(now)


def is_today(due: Optional[datetime], now: datetime) -> bool:
    if due is None:
        return False
    return _start_of_day(due.astimezone(now.tzinfo)) == _start_of_day(now)


def is_this_week(due: Optional[datetime], now: datetime) -> bool:
    """Due between tomorrow and the end of the seventh day from today."""
    if due is None:
        return False
    today = _start_of_day(now)
    return today + timedelta(days=1) <= due < today + timedelta(days=8)


def get_bucket(item: Mapping[str, Any], now: Optional[datetime] = None) -> str:
    """Display bucket for *item*. Completed items always land in Completed."""
    now = _now(now)
    if is_completed(item):
        return "Completed"
    due = parse_due_date(_due_value(item))
    if due is None:
        return "No due date"
    if is_overdue(due, now):
        return "Overdue"
    if is_today(due, now):
        return "Today"
    if is_this_week(due, now):
        return "This Week"
    return "Later"


def compare_action_items(
    a: Mapping[str, Any], b: Mapping[str, Any], now: Optional[datetime] = None
) -> int:
    """Ordering: open before completed, overdue first, then priority, due
    date (dated before undated), higher confidence, and finally id/text.
    """
    now = _now(now)
    a_done, b_done = is_completed(a), is_completed(b)
    if a_done != b_done:
        return 1 if a_done else -1

    a_due = parse_due_date(_due_value(a))
    b_due = parse_due_date(_due_value(b))

    a_over = not a_done and is_overdue(a_due, now)
    b_over = not b_done and is_overdue(b_due, now)
    if a_over != b_over:
        return -1 if a_over else 1

    rank_a = priority_rank(a.get("priority_label") or a.get("priority"))
    rank_b = priority_rank(b.get("priority_label") or b.get("priority"))
    if rank_a != rank_b:
        return rank_a - rank_b

    if a_due and b_due and a_due != b_due:
        return -1 if a_due < b_due else 1
    if a_due and not b_due:
        return -1
    if b_due and not a_due:
        return 1

    conf_a = normalize_confidence(a.get("confidence"))
    conf_b = normalize_confidence(b.get("confidence"))
    if conf_a != conf_b:
        return -1 if conf_a > conf_b else 1

    key_a = str(a.get("id") or a.get("task") or a.get("text") or "")
    key_b = str(b.get("id") or b.get("task") or b.get("text") or "")
    return (key_a > key_b) - (key_a < key_b)


def sort_action_items(
    items: Iterable[Mapping[str, Any]], now: Optional[datetime] = None
) -> List[Mapping[str, Any]]:
    now = _now(now)
    return sorted(items, key=functools.cmp_to_key(lambda x, y: compare_action_items(x, y, now)))


def group_and_sort(
    items: Optional[Iterable[Mapping[str, Any]]], now: Optional[datetime] = None
) -> Dict[str, List[Mapping[str, Any]]]:
    """Group items into every bucket (empty ones included), each sorted."""
    now = _now(now)
    groups: Dict[str, List[Mapping[str, Any]]] = {bucket: [] for bucket in BUCKETS}
    for item in items or []:
        groups[get_bucket(item, now)].append(item)
    return {bucket: sort_action_items(members, now) for bucket, members in groups.items()}
