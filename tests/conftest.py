"""Shared fixtures: temporary databases, app clients and fake collaborators."""

import pytest
from fastapi.testclient import TestClient
from helpers import make_settings

from svreport.database import create_engine, create_session_factory, init_db
from svreport.store import AugmentationStore
from svreport.web.app import create_app


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
async def store(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await init_db(engine)
    yield AugmentationStore(create_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client
