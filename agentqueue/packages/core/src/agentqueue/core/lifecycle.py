"""TaskLifecycleManager -- 任务创建、状态流转、查询与删除

状态机：
    queued -> {queued, processing, completed, failed}
    processing -> {processing, completed, failed}
    completed / failed 为终态，不可再流转

状态写入采用 compare-and-set：仅当数据库中的状态仍等于读取时的状态才提交，
并发竞争失败时抛出 InvalidStateError。
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from ulid import ULID

from .config import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT
from .exceptions import (
    InvalidStateError,
    PayloadValidationError,
    TaskNotFoundError,
    UnauthorizedError,
)
from .models.enums import (
    TERMINAL_STATES,
    AgentType,
    NotificationAction,
    TaskStatus,
    validate_transition,
)
from .models.notification import TaskNotification
from .models.task import Task, TaskDetail, TaskFile, TaskPage, TaskStatusUpdate
from .notify import TaskNotifier, publish_safely
from .store.protocols import ConversationStore, TaskStore

log = structlog.get_logger()

CANCELLED_ERROR_MESSAGE = "Task cancelled by user"


def default_task_name(agent_type: AgentType, now: datetime) -> str:
    """未提供任务名时的默认名称，例如 "note taker Task - 14:03:27" """
    return f"{agent_type.value.replace('-', ' ')} Task - {now:%H:%M:%S}"


def parse_agent_type(value: str | AgentType) -> AgentType:
    try:
        return AgentType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in AgentType)
        raise PayloadValidationError(
            f"Invalid agent type '{value}', expected one of: {allowed}"
        ) from None


async def get_owned_task(task_store: TaskStore, task_id: str, requester_id: str) -> Task:
    """读取任务并校验所有者

    Raises:
        TaskNotFoundError: 任务不存在
        UnauthorizedError: 请求者不是所有者
    """
    task = await task_store.get_task(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    if task.user_id != requester_id:
        raise UnauthorizedError("Not authorized to access this task")
    return task


class TaskLifecycleManager:
    """任务生命周期管理"""

    def __init__(
        self,
        task_store: TaskStore,
        conversation_store: ConversationStore,
        notifier: TaskNotifier | None = None,
    ) -> None:
        self._tasks = task_store
        self._conversations = conversation_store
        self._notifier = notifier

    async def create(
        self,
        user_id: str,
        course_instance_id: str,
        agent_type: str | AgentType,
        task_name: str | None = None,
        config: dict[str, Any] | None = None,
        files: list[TaskFile] | None = None,
    ) -> Task:
        """创建任务，初始状态 queued，progress 未设置

        Raises:
            UnauthorizedError: user_id 为空
            PayloadValidationError: agent_type 非法
        """
        if not user_id:
            raise UnauthorizedError("User id is required")
        agent = parse_agent_type(agent_type)

        now = datetime.now(UTC)
        name = (task_name or "").strip() or default_task_name(agent, now)
        task = Task(
            task_id=str(ULID()),
            user_id=user_id,
            course_instance_id=course_instance_id,
            task_name=name,
            agent_type=agent,
            status=TaskStatus.QUEUED,
            config=config or {},
            files=files or [],
            created_at=now,
            updated_at=now,
        )
        await self._tasks.create_task(task)

        await log.ainfo(
            "task_created",
            task_id=task.task_id,
            user_id=user_id,
            agent_type=agent,
            file_count=len(task.files),
        )
        await publish_safely(
            self._notifier,
            TaskNotification(
                task_id=task.task_id,
                user_id=user_id,
                course_instance_id=course_instance_id,
                action=NotificationAction.PROCESS_TASK,
                status=task.status,
            ),
        )
        return task

    async def get(self, task_id: str, requester_id: str) -> TaskDetail:
        """查询任务详情（附带会话消息，无会话时为空列表）"""
        task = await get_owned_task(self._tasks, task_id, requester_id)
        conversation = await self._conversations.get_conversation(task_id)
        messages = conversation.messages if conversation else []
        return TaskDetail(**task.model_dump(), conversation=messages)

    async def list_tasks(
        self,
        requester_id: str,
        course_instance_id: str | None = None,
        status: TaskStatus | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        cursor: str | None = None,
    ) -> TaskPage:
        """查询请求者的任务列表：筛选 -> created_at 倒序 -> 截断

        Args:
            cursor: 上一页最后一个任务的 task_id

        Raises:
            PayloadValidationError: limit 越界或 cursor 无效
        """
        if not requester_id:
            raise UnauthorizedError("User id is required")
        if limit < 1 or limit > MAX_LIST_LIMIT:
            raise PayloadValidationError(f"limit must be between 1 and {MAX_LIST_LIMIT}")

        before: tuple[datetime, str] | None = None
        if cursor:
            anchor = await self._tasks.get_task(cursor)
            if anchor is None or anchor.user_id != requester_id:
                raise PayloadValidationError("Invalid cursor")
            before = (anchor.created_at, anchor.task_id)

        # 多取一条判断是否还有下一页
        tasks = await self._tasks.list_tasks_for_user(
            requester_id,
            course_instance_id=course_instance_id,
            status=status,
            limit=limit + 1,
            before=before,
        )
        has_more = len(tasks) > limit
        tasks = tasks[:limit]
        return TaskPage(
            tasks=tasks,
            has_more=has_more,
            next_cursor=tasks[-1].task_id if has_more else None,
        )

    async def update_status(self, task_id: str, update: TaskStatusUpdate) -> Task:
        """Worker 上报状态/进度/结果（可信路径，不校验所有者）

        Raises:
            TaskNotFoundError: 任务不存在
            InvalidStateError: 非法流转或终态任务
            PayloadValidationError: 字段组合与目标状态不一致
        """
        task = await self._tasks.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.status in TERMINAL_STATES:
            raise InvalidStateError(f"Task {task_id} is already {task.status}")

        target = update.status or task.status
        if not validate_transition(task.status, target):
            raise InvalidStateError(f"Invalid status transition: {task.status} -> {target}")
        self._check_update_fields(target, update)

        now = datetime.now(UTC)
        fields: dict[str, Any] = {"updated_at": now}
        if update.status is not None:
            fields["status"] = target
        if update.progress is not None:
            fields["progress"] = update.progress
        if target == TaskStatus.COMPLETED:
            fields["result"] = update.result
            fields["usage"] = update.usage
            fields["completed_at"] = now
            fields["finished_at"] = now
        elif target == TaskStatus.FAILED:
            fields["error"] = update.error
            fields["finished_at"] = now

        updated = await self._patch_checked(task, fields)

        await log.ainfo(
            "task_status_updated",
            task_id=task_id,
            from_status=task.status,
            to_status=updated.status,
            progress=updated.progress,
        )
        await self._notify_status(updated)
        return updated

    async def cancel(self, task_id: str, requester_id: str) -> Task:
        """取消任务：标记为 failed，保留当前进度

        Raises:
            InvalidStateError: 任务已处于终态
        """
        task = await get_owned_task(self._tasks, task_id, requester_id)
        if task.status in TERMINAL_STATES:
            raise InvalidStateError("Task cannot be cancelled in its current state")

        now = datetime.now(UTC)
        updated = await self._patch_checked(
            task,
            {
                "status": TaskStatus.FAILED,
                "error": CANCELLED_ERROR_MESSAGE,
                "progress": task.progress or 0,
                "finished_at": now,
                "updated_at": now,
            },
        )

        await log.ainfo("task_cancelled", task_id=task_id, from_status=task.status)
        await self._notify_status(updated)
        return updated

    async def delete(self, task_id: str, requester_id: str) -> None:
        """删除任务：先删会话，再删任务（两步不构成原子单元）"""
        task = await get_owned_task(self._tasks, task_id, requester_id)

        removed_conversations = await self._conversations.delete_for_task(task_id)
        await self._tasks.delete_task(task_id)

        if task.status == TaskStatus.COMPLETED and task.usage is not None:
            await log.ainfo(
                "task_deleted",
                task_id=task_id,
                conversations=removed_conversations,
                tokens_used=task.usage.tokens_used,
                cost=task.usage.cost,
            )
        else:
            await log.ainfo(
                "task_deleted",
                task_id=task_id,
                conversations=removed_conversations,
            )

    @staticmethod
    def _check_update_fields(target: TaskStatus, update: TaskStatusUpdate) -> None:
        """result/usage 仅随 completed 出现，error 仅随 failed 出现"""
        if target == TaskStatus.COMPLETED:
            if update.result is None or update.usage is None:
                raise PayloadValidationError("Completed status requires both result and usage")
        elif update.result is not None or update.usage is not None:
            raise PayloadValidationError("result and usage are only accepted with status completed")

        if target == TaskStatus.FAILED:
            if not update.error:
                raise PayloadValidationError("Failed status requires an error message")
        elif update.error is not None:
            raise PayloadValidationError("error is only accepted with status failed")

    async def _patch_checked(self, task: Task, fields: dict[str, Any]) -> Task:
        """以读取时的状态为条件写入，失败时区分 NotFound 与并发冲突"""
        applied = await self._tasks.patch_task(
            task.task_id, fields, expected_status=task.status
        )
        current = await self._tasks.get_task(task.task_id)
        if current is None:
            raise TaskNotFoundError(task.task_id)
        if not applied:
            raise InvalidStateError(
                f"Task {task.task_id} changed status concurrently (now {current.status})"
            )
        return current

    async def _notify_status(self, task: Task) -> None:
        await publish_safely(
            self._notifier,
            TaskNotification(
                task_id=task.task_id,
                user_id=task.user_id,
                course_instance_id=task.course_instance_id,
                action=NotificationAction.STATUS_CHANGED,
                status=task.status,
                progress=task.progress,
            ),
        )
