"""Filter construction for the attendance list endpoint.

Every parameter is optional and parsed permissively: a value that cannot be
understood falls back to "no bound" (timestamps) or the default cap (limit)
instead of failing the request.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Select

from models.attendance import AttendanceRecord

DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 10_000

_LEADING_INT = re.compile(r"^\s*([+-]?)(\d+)")
# Longer digit runs are clamped before int() sees them
_MAX_DIGITS = 18


@dataclass(frozen=True)
class QueryFilter:
    device_id: Optional[str] = None
    start: Optional[datetime] = None  # inclusive
    end: Optional[datetime] = None  # inclusive
    limit: int = DEFAULT_LIST_LIMIT


def parse_positive_int(value: Any, default: int, maximum: Optional[int] = None) -> int:
    """Parse the leading integer of ``value``; fall back to ``default`` unless it is positive.

    A positive result is clamped to ``maximum`` when one is given.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        parsed = value
    else:
        match = _LEADING_INT.match(str(value))
        if not match:
            return default
        sign, digits = match.groups()
        digits = digits.lstrip("0")
        if sign == "-" or not digits:
            return default
        parsed = int(digits) if len(digits) <= _MAX_DIGITS else 10 ** _MAX_DIGITS
    if parsed <= 0:
        return default
    if maximum is not None:
        return min(parsed, maximum)
    return parsed


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 date/date-time or epoch milliseconds into an aware UTC datetime.

    Values without an offset are taken as UTC. Returns None when unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        # Offsets can push instants at the ends of the calendar out of range
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def to_naive_utc(instant: datetime) -> datetime:
    """Storage representation of an instant."""
    if instant.tzinfo is not None:
        instant = instant.astimezone(timezone.utc).replace(tzinfo=None)
    return instant


def build_query_filter(
    device_id: Optional[str] = None,
    from_: Optional[str] = None,
    to: Optional[str] = None,
    limit: Optional[str] = None,
    default_limit: int = DEFAULT_LIST_LIMIT,
    max_limit: int = MAX_LIST_LIMIT,
) -> QueryFilter:
    start = parse_instant(from_) if from_ else None
    end = parse_instant(to) if to else None
    return QueryFilter(
        device_id=device_id or None,
        start=to_naive_utc(start) if start else None,
        end=to_naive_utc(end) if end else None,
        limit=parse_positive_int(limit, default_limit, maximum=max_limit),
    )


def apply_query_filter(stmt: Select, query_filter: QueryFilter) -> Select:
    """Add the filter's predicates to ``stmt``, newest first, capped at the limit."""
    if query_filter.device_id is not None:
        stmt = stmt.where(AttendanceRecord.device_id == query_filter.device_id)
    if query_filter.start is not None:
        stmt = stmt.where(AttendanceRecord.timestamp >= query_filter.start)
    if query_filter.end is not None:
        stmt = stmt.where(AttendanceRecord.timestamp <= query_filter.end)
    return stmt.order_by(AttendanceRecord.timestamp.desc()).limit(query_filter.limit)
