"""Record store operations on a SQLAlchemy session.

Records are append-only: there is no update or delete here.
"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.attendance import AttendanceRecord
from services.query_filter import QueryFilter, apply_query_filter, to_naive_utc

logger = logging.getLogger(__name__)


def insert_record(
    db: Session,
    device_id: str,
    timestamp: datetime,
    device_name: Optional[str] = None,
    battery: Optional[float] = None,
) -> AttendanceRecord:
    record = AttendanceRecord(
        device_id=device_id,
        device_name=device_name,
        timestamp=to_naive_utc(timestamp),
        battery=battery,
    )
    try:
        db.add(record)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(record)
    logger.debug(f"Stored attendance for {device_id} at {record.timestamp.isoformat()}")
    return record


def find_records(db: Session, query_filter: QueryFilter) -> list[AttendanceRecord]:
    stmt = apply_query_filter(select(AttendanceRecord), query_filter)
    return list(db.scalars(stmt).all())


def _day_key(value) -> str:
    # SQLite returns 'YYYY-MM-DD' strings, other backends return dates
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)[:10]


def count_by_day(db: Session, start: datetime) -> dict[str, int]:
    """Count records with ``timestamp >= start`` per UTC calendar date.

    Sparse: only days with at least one record are present.
    """
    day = func.date(AttendanceRecord.timestamp)
    stmt = (
        select(day, func.count(AttendanceRecord.id))
        .where(AttendanceRecord.timestamp >= to_naive_utc(start))
        .group_by(day)
        .order_by(day)
    )
    return {_day_key(d): count for d, count in db.execute(stmt).all()}
