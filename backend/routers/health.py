from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check():
    return {"ok": True, "time": datetime.now(timezone.utc).isoformat()}
