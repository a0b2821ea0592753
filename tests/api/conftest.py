"""Fixtures for HTTP dashboard API tests (FastAPI)."""

from __future__ import annotations

from collections.abc import AsyncIterator, Generator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

import lexiboard.dashboard as dash_module
from lexiboard.core import BoardDB
from lexiboard.dashboard import create_app
from tests._db_factory import make_db
from tests.conftest import PopulatedDB


@pytest.fixture
def dashboard_db(populated_db: PopulatedDB) -> PopulatedDB:
    """Use the populated_db fixture for dashboard tests.

    Reconnects the underlying DB with check_same_thread=False so the
    connection can be shared with the ASGI app.  Returns the full
    PopulatedDB wrapper so tests can access ``.db`` and ``.ids``.
    """
    db = populated_db.db
    db.reconnect(check_same_thread=False)
    return populated_db


@pytest.fixture
async def client(dashboard_db: PopulatedDB) -> AsyncIterator[AsyncClient]:
    """Test client backed by the populated board."""
    dash_module._db = dashboard_db.db
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    dash_module._db = None


@pytest.fixture
def shallow_db(tmp_path: Path) -> Generator[BoardDB, None, None]:
    """BoardDB whose rebalance threshold is one character, so any bisection queues a rebalance."""
    db = make_db(tmp_path, rebalance_threshold=1, check_same_thread=False)
    yield db
    db.close()


@pytest.fixture
async def shallow_client(shallow_db: BoardDB) -> AsyncIterator[AsyncClient]:
    """Test client backed by ``shallow_db``."""
    dash_module._db = shallow_db
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    dash_module._db = None
