"""TaskLifecycleManager 单元测试

测试内容：
1. 创建：初始状态、默认名称、所有者校验、process_task 通知
2. 查询：NotFound / Unauthorized、附带会话
3. 列表：筛选、倒序、limit 校验、游标翻页
4. 状态上报：合法流转、字段组合校验、终态拒绝、通知
5. 取消与删除（会话级联）
"""

from datetime import UTC, datetime

import pytest
from agentqueue.core.conversations import ConversationManager
from agentqueue.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    PayloadValidationError,
    UnauthorizedError,
)
from agentqueue.core.lifecycle import (
    CANCELLED_ERROR_MESSAGE,
    TaskLifecycleManager,
    default_task_name,
)
from agentqueue.core.models import (
    AgentType,
    Message,
    MessageRole,
    TaskFile,
    TaskResult,
    TaskStatus,
    TaskStatusUpdate,
    TaskUsage,
)
from agentqueue.core.store import StoreGroup

OWNER = "user-1"
OTHER = "user-2"


def _manager(stores: StoreGroup, notifier=None) -> TaskLifecycleManager:
    return TaskLifecycleManager(stores.task_store, stores.conversation_store, notifier=notifier)


async def _create(manager: TaskLifecycleManager, **overrides):
    kwargs = {
        "user_id": OWNER,
        "course_instance_id": "course-1",
        "agent_type": "note-taker",
        "task_name": "Chapter 3 Notes",
        "config": {"mode": "bullet"},
        "files": [TaskFile(file_id="f1")],
    }
    kwargs.update(overrides)
    return await manager.create(**kwargs)


def _completed_update() -> TaskStatusUpdate:
    return TaskStatusUpdate(
        status=TaskStatus.COMPLETED,
        result=TaskResult(content="...", format="md", metadata={}),
        usage=TaskUsage(tokens_used=500, processing_time=1200, cost=0.02),
    )


class TestCreate:
    """任务创建"""

    async def test_create_is_queued_without_progress(self, stores, notifier):
        manager = _manager(stores, notifier)
        task = await _create(manager)

        assert task.status == TaskStatus.QUEUED
        assert task.progress is None
        assert task.agent_type == AgentType.NOTE_TAKER
        assert task.config == {"mode": "bullet"}
        assert task.created_at == task.updated_at

        stored = await stores.task_store.get_task(task.task_id)
        assert stored.task_name == "Chapter 3 Notes"
        assert notifier.actions == ["process_task"]

    async def test_blank_name_gets_default(self, stores):
        task = await _create(_manager(stores), task_name="  ")
        assert task.task_name.startswith("note taker Task - ")

    def test_default_task_name_format(self):
        now = datetime(2026, 1, 1, 14, 3, 27, tzinfo=UTC)
        assert default_task_name(AgentType.STUDY_BUDDY, now) == "study buddy Task - 14:03:27"

    async def test_empty_user_rejected(self, stores):
        with pytest.raises(UnauthorizedError):
            await _create(_manager(stores), user_id="")

    async def test_invalid_agent_type_rejected(self, stores):
        with pytest.raises(PayloadValidationError):
            await _create(_manager(stores), agent_type="painter")

    async def test_notifier_failure_does_not_fail_create(self, stores, failing_notifier):
        task = await _create(_manager(stores, failing_notifier))
        assert await stores.task_store.get_task(task.task_id) is not None


class TestGet:
    """任务查询"""

    async def test_get_missing(self, stores):
        with pytest.raises(NotFoundError):
            await _manager(stores).get("missing", OWNER)

    async def test_get_by_other_user(self, stores):
        task = await _create(_manager(stores))
        with pytest.raises(UnauthorizedError):
            await _manager(stores).get(task.task_id, OTHER)

    async def test_get_includes_conversation(self, stores):
        manager = _manager(stores)
        task = await _create(manager)

        detail = await manager.get(task.task_id, OWNER)
        assert detail.conversation == []

        now = datetime.now(UTC)
        await stores.conversation_store.append_message(
            "conv-1", task.task_id, OWNER, Message(role=MessageRole.USER, content="hi"), now
        )
        detail = await manager.get(task.task_id, OWNER)
        assert [m.content for m in detail.conversation] == ["hi"]


class TestList:
    """任务列表"""

    async def test_list_newest_first_with_filters(self, stores):
        manager = _manager(stores)
        a = await _create(manager, course_instance_id="course-a")
        b = await _create(manager, course_instance_id="course-b")
        c = await _create(manager, course_instance_id="course-a")
        await _create(manager, user_id=OTHER)

        page = await manager.list_tasks(OWNER)
        assert [t.task_id for t in page.tasks] == [c.task_id, b.task_id, a.task_id]
        assert page.has_more is False
        assert page.next_cursor is None

        page = await manager.list_tasks(OWNER, course_instance_id="course-a")
        assert [t.task_id for t in page.tasks] == [c.task_id, a.task_id]

        await manager.update_status(b.task_id, TaskStatusUpdate(status=TaskStatus.PROCESSING))
        page = await manager.list_tasks(OWNER, status=TaskStatus.PROCESSING)
        assert [t.task_id for t in page.tasks] == [b.task_id]

    async def test_cursor_pagination(self, stores):
        manager = _manager(stores)
        created = [await _create(manager) for _ in range(5)]
        expected = [t.task_id for t in reversed(created)]

        first = await manager.list_tasks(OWNER, limit=2)
        assert [t.task_id for t in first.tasks] == expected[:2]
        assert first.has_more is True
        assert first.next_cursor == expected[1]

        second = await manager.list_tasks(OWNER, limit=2, cursor=first.next_cursor)
        assert [t.task_id for t in second.tasks] == expected[2:4]

        third = await manager.list_tasks(OWNER, limit=2, cursor=second.next_cursor)
        assert [t.task_id for t in third.tasks] == expected[4:]
        assert third.has_more is False

    @pytest.mark.parametrize("limit", [0, 101])
    async def test_limit_bounds(self, stores, limit: int):
        with pytest.raises(PayloadValidationError):
            await _manager(stores).list_tasks(OWNER, limit=limit)

    async def test_unknown_cursor(self, stores):
        with pytest.raises(PayloadValidationError):
            await _manager(stores).list_tasks(OWNER, cursor="missing")


class TestUpdateStatus:
    """Worker 状态上报"""

    async def test_queued_processing_completed(self, stores, notifier):
        manager = _manager(stores, notifier)
        task = await _create(manager)

        updated = await manager.update_status(
            task.task_id, TaskStatusUpdate(status=TaskStatus.PROCESSING, progress=10)
        )
        assert updated.status == TaskStatus.PROCESSING
        assert updated.progress == 10
        assert updated.completed_at is None

        updated = await manager.update_status(task.task_id, _completed_update())
        assert updated.status == TaskStatus.COMPLETED
        assert updated.completed_at is not None
        assert updated.finished_at == updated.completed_at
        assert updated.result.content == "..."
        assert updated.usage.tokens_used == 500
        assert updated.progress == 10
        assert notifier.actions == ["process_task", "status_changed", "status_changed"]
        assert notifier.notifications[-1].status == TaskStatus.COMPLETED

    async def test_progress_only_update(self, stores):
        manager = _manager(stores)
        task = await _create(manager)
        await manager.update_status(task.task_id, TaskStatusUpdate(status=TaskStatus.PROCESSING))

        updated = await manager.update_status(task.task_id, TaskStatusUpdate(progress=60))
        assert updated.status == TaskStatus.PROCESSING
        assert updated.progress == 60
        assert updated.updated_at >= task.updated_at

    async def test_failed_sets_error_and_finished_at(self, stores):
        manager = _manager(stores)
        task = await _create(manager)
        updated = await manager.update_status(
            task.task_id, TaskStatusUpdate(status=TaskStatus.FAILED, error="model timeout")
        )
        assert updated.status == TaskStatus.FAILED
        assert updated.error == "model timeout"
        assert updated.finished_at is not None
        assert updated.completed_at is None
        assert updated.result is None

    async def test_missing_task(self, stores):
        with pytest.raises(NotFoundError):
            await _manager(stores).update_status("missing", TaskStatusUpdate(progress=1))

    async def test_processing_cannot_go_back_to_queued(self, stores):
        manager = _manager(stores)
        task = await _create(manager)
        await manager.update_status(task.task_id, TaskStatusUpdate(status=TaskStatus.PROCESSING))
        with pytest.raises(InvalidStateError):
            await manager.update_status(task.task_id, TaskStatusUpdate(status=TaskStatus.QUEUED))

    @pytest.mark.parametrize(
        "update",
        [
            TaskStatusUpdate(status=TaskStatus.QUEUED),
            TaskStatusUpdate(status=TaskStatus.PROCESSING),
            TaskStatusUpdate(progress=50),
            TaskStatusUpdate(status=TaskStatus.FAILED, error="late"),
        ],
    )
    async def test_terminal_task_rejects_any_update(self, stores, update: TaskStatusUpdate):
        manager = _manager(stores)
        task = await _create(manager)
        await manager.update_status(task.task_id, _completed_update())

        with pytest.raises(InvalidStateError):
            await manager.update_status(task.task_id, update)
        stored = await stores.task_store.get_task(task.task_id)
        assert stored.status == TaskStatus.COMPLETED

    @pytest.mark.parametrize(
        "update",
        [
            TaskStatusUpdate(status=TaskStatus.COMPLETED),
            TaskStatusUpdate(
                status=TaskStatus.COMPLETED, result=TaskResult(content="x")
            ),
            TaskStatusUpdate(status=TaskStatus.COMPLETED, usage=TaskUsage()),
            TaskStatusUpdate(status=TaskStatus.FAILED),
            TaskStatusUpdate(status=TaskStatus.PROCESSING, error="boom"),
            TaskStatusUpdate(status=TaskStatus.PROCESSING, result=TaskResult(content="x")),
            TaskStatusUpdate(progress=5, usage=TaskUsage()),
        ],
    )
    async def test_inconsistent_fields_rejected(self, stores, update: TaskStatusUpdate):
        manager = _manager(stores)
        task = await _create(manager)
        with pytest.raises(PayloadValidationError):
            await manager.update_status(task.task_id, update)
        stored = await stores.task_store.get_task(task.task_id)
        assert stored.status == TaskStatus.QUEUED

    async def test_lost_race_is_invalid_state(self, stores):
        manager = _manager(stores)
        task = await _create(manager)

        # 读取与写入之间另一个 worker 已将任务置为 failed
        original_get = stores.task_store.get_task
        calls = {"n": 0}

        async def racing_get(task_id: str):
            current = await original_get(task_id)
            calls["n"] += 1
            if calls["n"] == 1:
                await stores.task_store.patch_task(
                    task_id, {"status": TaskStatus.FAILED, "error": "other worker"}
                )
            return current

        stores.task_store.get_task = racing_get
        with pytest.raises(InvalidStateError):
            await manager.update_status(task.task_id, _completed_update())

        stored = await original_get(task.task_id)
        assert stored.status == TaskStatus.FAILED
        assert stored.result is None


class TestCancel:
    """任务取消"""

    async def test_cancel_processing_task(self, stores, notifier):
        manager = _manager(stores, notifier)
        task = await _create(manager)
        await manager.update_status(
            task.task_id, TaskStatusUpdate(status=TaskStatus.PROCESSING, progress=30)
        )

        cancelled = await manager.cancel(task.task_id, OWNER)
        assert cancelled.status == TaskStatus.FAILED
        assert cancelled.error == CANCELLED_ERROR_MESSAGE
        assert cancelled.progress == 30
        assert cancelled.completed_at is None
        assert notifier.notifications[-1].status == TaskStatus.FAILED

    async def test_cancel_queued_task_sets_zero_progress(self, stores):
        manager = _manager(stores)
        task = await _create(manager)
        cancelled = await manager.cancel(task.task_id, OWNER)
        assert cancelled.progress == 0

    async def test_cancel_terminal_task(self, stores):
        manager = _manager(stores)
        task = await _create(manager)
        await manager.update_status(task.task_id, _completed_update())
        with pytest.raises(InvalidStateError):
            await manager.cancel(task.task_id, OWNER)

    async def test_cancel_by_other_user(self, stores):
        manager = _manager(stores)
        task = await _create(manager)
        with pytest.raises(UnauthorizedError):
            await manager.cancel(task.task_id, OTHER)


class TestDelete:
    """任务删除"""

    async def test_delete_cascades_conversation(self, stores):
        manager = _manager(stores)
        task = await _create(manager)
        await stores.conversation_store.append_message(
            "conv-1",
            task.task_id,
            OWNER,
            Message(role=MessageRole.USER, content="hi"),
            datetime.now(UTC),
        )

        await manager.delete(task.task_id, OWNER)
        assert await stores.task_store.get_task(task.task_id) is None
        assert await stores.conversation_store.get_conversation(task.task_id) is None

        conversations = ConversationManager(stores.task_store, stores.conversation_store)
        assert await conversations.get_messages(task.task_id) == []

    async def test_delete_completed_task(self, stores):
        manager = _manager(stores)
        task = await _create(manager)
        await manager.update_status(task.task_id, _completed_update())
        await manager.delete(task.task_id, OWNER)
        with pytest.raises(NotFoundError):
            await manager.get(task.task_id, OWNER)

    async def test_delete_by_other_user_keeps_task(self, stores):
        manager = _manager(stores)
        task = await _create(manager)
        with pytest.raises(UnauthorizedError):
            await manager.delete(task.task_id, OTHER)
        detail = await manager.get(task.task_id, OWNER)
        assert detail.task_id == task.task_id

    async def test_delete_missing(self, stores):
        with pytest.raises(NotFoundError):
            await _manager(stores).delete("missing", OWNER)
