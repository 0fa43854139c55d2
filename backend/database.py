import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class RecordStore:
    """Connection handle for the attendance record store.

    Owns the SQLAlchemy engine and session factory. Constructed explicitly and
    handed to the application; ``connect`` must be called before use and
    ``close`` on shutdown.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        engine_kwargs: dict = {"pool_pre_ping": True, "echo": echo}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            # In-memory databases live per connection, so every session must share one.
            if url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, **engine_kwargs)
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def connect(self):
        """Check the database is reachable. Raises on failure."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info(f"Record store connected ({self.engine.url.get_backend_name()}).")

    def create_tables(self):
        import models  # noqa: F401  register models on Base.metadata
        Base.metadata.create_all(bind=self.engine)

    def close(self):
        self.engine.dispose()
        logger.info("Record store closed.")

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def get_db(request: Request):
    with get_store(request).session() as db:
        yield db
