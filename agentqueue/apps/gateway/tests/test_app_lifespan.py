"""应用生命周期测试"""

from pathlib import Path

from agentqueue.core.config import MonitorConfig
from agentqueue.gateway.main import create_app
from agentqueue.gateway.services.notification_hub import NotificationHub


async def test_lifespan_initializes_state(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "sqlite" / "lifespan.db"
    monkeypatch.setenv("AGENTQUEUE_DB_PATH", str(db_path))
    monkeypatch.setenv("AGENTQUEUE_HEALTH_BACKLOG_DEGRADED", "7")

    app = create_app()
    async with app.router.lifespan_context(app):
        assert db_path.exists()
        assert isinstance(app.state.notification_hub, NotificationHub)
        assert isinstance(app.state.monitor_config, MonitorConfig)
        assert app.state.monitor_config.backlog_degraded == 7

        cursor = await app.state.store_group.conn.execute("SELECT COUNT(*) FROM agent_tasks")
        assert (await cursor.fetchone())[0] == 0


def test_routes_registered():
    paths = {route.path for route in create_app().routes}
    for path in (
        "/api/agents/tasks",
        "/api/agents/tasks/{task_id}",
        "/api/agents/tasks/{task_id}/status",
        "/api/agents/tasks/{task_id}/cancel",
        "/api/agents/tasks/{task_id}/messages",
        "/api/agents/tasks/{task_id}/stream",
        "/api/agents/tasks/{task_id}/share",
        "/api/agents/shared/{share_token}",
        "/api/agents/templates",
        "/api/agents/queue/dashboard",
        "/api/agents/queue/status",
        "/api/agents/usage",
        "/health",
        "/ready",
    ):
        assert path in paths, path
