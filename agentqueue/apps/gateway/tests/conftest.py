"""apps/gateway 测试配置 -- FastAPI app + httpx AsyncClient fixture"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from agentqueue.core.config import MonitorConfig
from agentqueue.core.store import create_store_group
from httpx import ASGITransport, AsyncClient


def auth(user_id: str = "user-1") -> dict[str, str]:
    """构造请求者请求头"""
    return {"X-User-Id": user_id}


def task_payload(**overrides) -> dict:
    """默认的任务提交请求体"""
    payload = {
        "agentType": "note-taker",
        "courseInstanceId": "course-1",
        "taskName": "Chapter 3 Notes",
        "config": {"noteStyle": "bullet"},
        "files": [
            {
                "fileId": "file-1",
                "fileName": "chapter3.pdf",
                "fileSize": 1024,
                "mimeType": "application/pdf",
            }
        ],
    }
    payload.update(overrides)
    return payload


@pytest_asyncio.fixture
async def test_app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """创建测试用 FastAPI app，手动初始化 app.state（ASGITransport 不触发 lifespan）"""
    db_path = str(tmp_path / "sqlite" / "gateway_test.db")
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
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def headers() -> Callable[..., dict[str, str]]:
    """返回请求头构造函数"""
    return auth


@pytest.fixture
def payload() -> Callable[..., dict]:
    """返回任务提交请求体构造函数"""
    return task_payload


@pytest_asyncio.fixture
async def submit_task(client: AsyncClient) -> Callable[..., Awaitable[str]]:
    """返回提交任务的协程函数，结果为 taskId"""

    async def _submit(user_id: str = "user-1", **overrides) -> str:
        resp = await client.post(
            "/api/agents/tasks", json=task_payload(**overrides), headers=auth(user_id)
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["taskId"]

    return _submit


@pytest_asyncio.fixture
async def complete_task(client: AsyncClient) -> Callable[..., Awaitable[dict]]:
    """返回将任务上报为 completed 的协程函数"""

    async def _complete(task_id: str, content: str = "# Notes") -> dict:
        resp = await client.put(
            f"/api/agents/tasks/{task_id}/status",
            json={
                "status": "completed",
                "progress": 100,
                "result": {"content": content, "format": "markdown"},
                "usage": {"tokensUsed": 1500, "processingTime": 4200, "cost": 0.03},
            },
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["task"]

    return _complete
