import os

# Must be set before config.get_settings() is first called
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STATIC_DIR", "__no_static__")

import pytest
from fastapi.testclient import TestClient

from database import RecordStore
from main import create_app
from rate_limit import limiter


@pytest.fixture
def store():
    store = RecordStore("sqlite://")
    store.connect()
    store.create_tables()
    yield store
    store.close()


@pytest.fixture
def db(store):
    with store.session() as session:
        yield session


@pytest.fixture
def client(store):
    limiter.reset()
    app = create_app(store=store)
    with TestClient(app) as client:
        yield client
