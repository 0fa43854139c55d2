from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from config import get_settings
from database import get_db
from rate_limit import limiter
from services.day_series import get_daily_counts
from services.query_filter import build_query_filter, parse_instant
from services.records import insert_record, find_records


router = APIRouter(prefix="/attendance", tags=["attendance"])


# --- Pydantic Schemas ---

class AttendanceCreate(BaseModel):
    device_id: Optional[str] = Field(None, alias="deviceId")
    device_name: Optional[str] = Field(None, alias="deviceName")
    # ISO-8601 string or epoch milliseconds
    timestamp: Optional[Union[str, int, float]] = None
    battery: Optional[float] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("device_id", mode="before")
    @classmethod
    def numeric_device_id(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class AttendanceResponse(BaseModel):
    id: str
    device_id: str
    device_name: Optional[str]
    timestamp: datetime
    battery: Optional[float]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        from_attributes=True, populate_by_name=True, alias_generator=to_camel
    )

    @field_validator("timestamp", "created_at", "updated_at")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class DailyCount(BaseModel):
    date: str
    count: int


# --- Routes ---

@router.post("", response_model=AttendanceResponse, status_code=201)
# Read per request so a changed setting applies without re-importing the router
@limiter.limit(lambda: get_settings().WRITE_RATE_LIMIT)
def create_attendance(request: Request, payload: AttendanceCreate, db: Session = Depends(get_db)):
    if not payload.device_id or not payload.timestamp:
        raise HTTPException(status_code=400, detail="deviceId and timestamp required")

    timestamp = parse_instant(payload.timestamp)
    if timestamp is None:
        raise HTTPException(
            status_code=400,
            detail="timestamp must be an ISO-8601 date or epoch milliseconds",
        )

    return insert_record(
        db,
        device_id=payload.device_id,
        timestamp=timestamp,
        device_name=payload.device_name,
        battery=payload.battery,
    )


@router.get("", response_model=list[AttendanceResponse])
def list_attendance(
    device_id: Optional[str] = Query(None, alias="deviceId"),
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Records newest first, optionally filtered by device and inclusive time range."""
    settings = get_settings()
    query_filter = build_query_filter(
        device_id,
        from_,
        to,
        limit,
        default_limit=settings.DEFAULT_LIST_LIMIT,
        max_limit=settings.MAX_LIST_LIMIT,
    )
    return find_records(db, query_filter)


@router.get("/stats", response_model=list[DailyCount])
def attendance_stats(days: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Per-day record counts for the last N days (today included), zero-filled."""
    settings = get_settings()
    points = get_daily_counts(
        db, days, default_days=settings.DEFAULT_STATS_DAYS, max_days=settings.MAX_STATS_DAYS
    )
    return [p.to_dict() for p in points]
