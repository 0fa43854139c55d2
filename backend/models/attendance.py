import uuid
from datetime import datetime, timezone
from sqlalchemy import String, DateTime, Float
from sqlalchemy.orm import Mapped, mapped_column
from database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    device_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    device_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Naive UTC
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    battery: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self):
        return f"<AttendanceRecord {self.device_id} at {self.timestamp}>"
