from routers.attendance import router as attendance_router
from routers.health import router as health_router

__all__ = ["attendance_router", "health_router"]
