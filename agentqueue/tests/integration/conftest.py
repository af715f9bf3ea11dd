"""集成测试共享 fixture"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from agentqueue.core.config import MonitorConfig
from agentqueue.core.store import create_store_group
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture
async def integration_app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """集成测试用 FastAPI app"""
    db_path = str(tmp_path / "integration.db")
    monkeypatch.setenv("AGENTQUEUE_DB_PATH", db_path)

    from agentqueue.gateway.main import create_app
    from agentqueue.gateway.services.notification_hub import NotificationHub

    app = create_app()

    store_group = await create_store_group(db_path)
    app.state.store_group = store_group
    app.state.notification_hub = NotificationHub()
    app.state.monitor_config = MonitorConfig()

    yield app

    await store_group.conn.close()


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def owner() -> dict[str, str]:
    return {"X-User-Id": "student-1"}


@pytest.fixture
def stranger() -> dict[str, str]:
    return {"X-User-Id": "student-2"}
