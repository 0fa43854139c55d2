import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from config import Settings, get_settings
from database import RecordStore
from rate_limit import limiter
from routers.attendance import router as attendance_router
from routers.health import router as health_router

logging.basicConfig(
    level=get_settings().LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)
access_logger = logging.getLogger("attendance.access")


@asynccontextmanager
async def lifespan(app: FastAPI):
    store: RecordStore = app.state.store
    logger.info("Starting attendance service...")
    store.connect()
    store.create_tables()
    logger.info("Database tables created/verified.")
    yield
    store.close()
    logger.info("Shutting down attendance service.")


async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Record store failure on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(store: Optional[RecordStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Device Attendance Service",
        version="1.0.0",
        description="Records device attendance pings and serves filtered and daily aggregated history.",
        lifespan=lifespan,
    )
    app.state.store = store or RecordStore(settings.DATABASE_URL, echo=settings.DEBUG)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        access_logger.info(
            f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f} ms"
        )
        return response

    app.include_router(attendance_router, prefix="/api")
    app.include_router(health_router, prefix="/api")

    # Mounted last so it never shadows the API
    static_dir = Path(settings.STATIC_DIR)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
        logger.info(f"Serving static files from {static_dir.resolve()}")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
