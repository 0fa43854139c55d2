"""Dense per-day attendance counts over a rolling window ending today (UTC)."""

from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from services.query_filter import parse_positive_int
from services.records import count_by_day

DEFAULT_STATS_DAYS = 14
MAX_STATS_DAYS = 3650


@dataclass(frozen=True)
class DaySeriesPoint:
    date: str  # YYYY-MM-DD, UTC
    count: int

    def to_dict(self) -> dict:
        return asdict(self)


def window_start(now: datetime, days: int) -> datetime:
    """UTC midnight of the first day of a ``days``-long window whose last day is ``now``'s."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    midnight = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=days - 1)


def densify(sparse: Mapping[str, int], start: datetime, days: int) -> list[DaySeriesPoint]:
    """Expand sparse ``{date: count}`` into one point per day, zero where missing."""
    points = []
    for offset in range(days):
        key = (start + timedelta(days=offset)).strftime("%Y-%m-%d")
        points.append(DaySeriesPoint(date=key, count=int(sparse.get(key, 0))))
    return points


def get_daily_counts(
    db: Session,
    days: Any = None,
    now: Optional[datetime] = None,
    default_days: int = DEFAULT_STATS_DAYS,
    max_days: int = MAX_STATS_DAYS,
) -> list[DaySeriesPoint]:
    """Return exactly ``days`` points ascending by date, the last one being today.

    ``days`` may be a raw query string; anything that is not a positive integer
    falls back to ``default_days``, and values above ``max_days`` are clamped.
    ``now`` is read once so the window cannot shift if the query straddles
    midnight.
    """
    days = parse_positive_int(days, default_days, maximum=max_days)
    if now is None:
        now = datetime.now(timezone.utc)
    start = window_start(now, days)
    return densify(count_by_day(db, start), start, days)
