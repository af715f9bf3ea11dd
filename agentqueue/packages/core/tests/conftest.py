"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import pytest_asyncio
from agentqueue.core.models import AgentType, Task, TaskNotification, TaskStatus, TaskUsage
from agentqueue.core.store import StoreGroup, create_store_group


class RecordingNotifier:
    """记录所有通知，供断言使用"""

    def __init__(self) -> None:
        self.notifications: list[TaskNotification] = []

    async def publish(self, notification: TaskNotification) -> None:
        self.notifications.append(notification)

    @property
    def actions(self) -> list[str]:
        return [n.action.value for n in self.notifications]


class FailingNotifier:
    """投递必定失败的通知器"""

    async def publish(self, notification: TaskNotification) -> None:
        raise ConnectionError("dispatcher unavailable")


def make_task(
    task_id: str,
    *,
    user_id: str = "user-1",
    status: TaskStatus = TaskStatus.QUEUED,
    agent_type: AgentType = AgentType.NOTE_TAKER,
    created_at: datetime | None = None,
    finished_at: datetime | None = None,
    tokens_used: int | None = None,
    cost: float = 0.0,
    processing_time: float = 0.0,
    course_instance_id: str = "course-1",
) -> Task:
    """构造任意状态/时间的 Task，绕过状态机直接写库"""
    created = created_at or datetime(2026, 1, 1, tzinfo=UTC)
    usage = None
    if tokens_used is not None:
        usage = TaskUsage(tokens_used=tokens_used, cost=cost, processing_time=processing_time)
    return Task(
        task_id=task_id,
        user_id=user_id,
        course_instance_id=course_instance_id,
        task_name=f"Task {task_id}",
        agent_type=agent_type,
        status=status,
        usage=usage,
        completed_at=finished_at if status == TaskStatus.COMPLETED else None,
        finished_at=finished_at,
        created_at=created,
        updated_at=finished_at or created,
    )


@pytest_asyncio.fixture
async def core_db_path(tmp_path: Path) -> Path:
    """核心层临时数据库路径"""
    return tmp_path / "core_test.db"


@pytest_asyncio.fixture
async def stores(core_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """核心层已初始化的 Store 实例组"""
    store_group = await create_store_group(str(core_db_path))
    yield store_group
    await store_group.conn.close()


@pytest_asyncio.fixture
async def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def failing_notifier() -> FailingNotifier:
    return FailingNotifier()


@pytest.fixture
def task_factory():
    """返回 make_task 构造函数"""
    return make_task
