# streaks.py
"""
Streak and completion-rate accounting for daily habits.

Everything here is a pure function over plain values: the caller owns the
habit's fields for the duration of the call, supplies ``now`` and persists
whatever comes back.
"""
import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

ONE_DAY = timedelta(days=1)


def current_time() -> datetime:
    """Timezone-aware local "now"; Firestore would read a naive value as UTC."""
    return datetime.now().astimezone()


def as_local(ts: datetime) -> datetime:
    """Return ``ts`` as a naive local datetime (Firestore hands back UTC-aware values)."""
    if ts.tzinfo is not None:
        return ts.astimezone().replace(tzinfo=None)
    return ts


def normalize_to_day(ts: datetime) -> date:
    """Reduce a timestamp to its calendar day."""
    return as_local(ts).date()


def day_start(day: date) -> datetime:
    return datetime(day.year, day.month, day.day)


def update_streak(
    streak_count: int,
    longest_streak: int,
    last_completed: Optional[datetime],
    now: datetime,
) -> Tuple[int, int]:
    """
    Compute the streak counters after a completion at ``now``.

    Assumes the habit was not already completed on ``now``'s calendar day;
    that check belongs to the caller.
    """
    yesterday = normalize_to_day(now) - ONE_DAY

    if last_completed is None:
        streak_count = 1
    elif normalize_to_day(last_completed) == yesterday:
        streak_count += 1
    else:
        # any gap, one day or two hundred, starts over at 1
        streak_count = 1

    return streak_count, max(longest_streak, streak_count)


def completion_rate(created_at: Optional[datetime], completion_count: int, now: datetime) -> float:
    """All-time completion percentage. Not capped at 100."""
    if created_at is None:
        return 0
    elapsed = as_local(now) - as_local(created_at)
    days_since_creation = max(1, math.ceil(elapsed / ONE_DAY))
    return (completion_count / days_since_creation) * 100


def longest_run(days: Iterable[date]) -> int:
    """Longest run of consecutive calendar days in ``days`` (duplicates collapse)."""
    ordered = sorted(set(days))
    if not ordered:
        return 0

    longest = current = 1
    for previous, day in zip(ordered, ordered[1:]):
        if (day - previous).days == 1:
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def period_stats(completions: List[datetime], now: datetime, window_days: int) -> Dict[str, Any]:
    """
    Statistics over the trailing ``window_days`` ending at ``now``.

    ``window_days`` must already be validated as a positive integer.
    Unlike :func:`completion_rate`, the window rate is capped at 100.
    """
    window_start = day_start(normalize_to_day(now) - timedelta(days=window_days))
    in_window = [as_local(ts) for ts in completions if as_local(ts) >= window_start]

    return {
        "completions": len(in_window),
        "completionRate": min(len(in_window) / window_days * 100, 100),
        "longestStreak": longest_run(normalize_to_day(ts) for ts in in_window),
    }


def format_rate(rate: float) -> str:
    return f"{rate:.2f}%"
