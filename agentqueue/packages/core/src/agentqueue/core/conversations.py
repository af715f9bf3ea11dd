"""ConversationManager -- 任务会话消息的追加与查询"""

from datetime import UTC, datetime

import aiosqlite
import structlog
from ulid import ULID

from .exceptions import PayloadValidationError, TaskNotFoundError
from .lifecycle import get_owned_task
from .models.conversation import Message
from .models.enums import MessageRole, NotificationAction, TaskStatus
from .models.notification import TaskNotification
from .notify import TaskNotifier, publish_safely
from .store.protocols import ConversationStore, TaskStore

log = structlog.get_logger()


class ConversationManager:
    """会话管理：每个任务一条会话，首次追加时创建"""

    def __init__(
        self,
        task_store: TaskStore,
        conversation_store: ConversationStore,
        notifier: TaskNotifier | None = None,
    ) -> None:
        self._tasks = task_store
        self._conversations = conversation_store
        self._notifier = notifier

    async def append_message(
        self,
        task_id: str,
        requester_id: str,
        role: str | MessageRole,
        content: str,
    ) -> list[Message]:
        """追加一条消息并返回完整的有序消息列表

        已完成任务收到 user 消息时发送 process_followup 通知，任务状态保持不变。

        Raises:
            TaskNotFoundError / UnauthorizedError: 任务不存在或非所有者
            PayloadValidationError: role 非法或 content 为空
        """
        try:
            message_role = MessageRole(role)
        except ValueError:
            raise PayloadValidationError(f"Invalid message role '{role}'") from None
        if not content or not content.strip():
            raise PayloadValidationError("Message content is required")

        task = await get_owned_task(self._tasks, task_id, requester_id)

        now = datetime.now(UTC)
        message = Message(role=message_role, content=content, timestamp=now)
        try:
            await self._conversations.append_message(
                conversation_id=str(ULID()),
                task_id=task_id,
                user_id=task.user_id,
                message=message,
                now=now,
            )
        except aiosqlite.IntegrityError:
            # 校验后任务被并发删除，外键拒绝写入
            raise TaskNotFoundError(task_id) from None
        await log.ainfo(
            "conversation_message_appended",
            task_id=task_id,
            role=message_role,
            content_length=len(content),
        )

        if message_role == MessageRole.USER and task.status == TaskStatus.COMPLETED:
            await publish_safely(
                self._notifier,
                TaskNotification(
                    task_id=task_id,
                    user_id=task.user_id,
                    course_instance_id=task.course_instance_id,
                    action=NotificationAction.PROCESS_FOLLOWUP,
                    status=task.status,
                ),
            )

        conversation = await self._conversations.get_conversation(task_id)
        return conversation.messages if conversation else [message]

    async def get_messages(
        self, task_id: str, requester_id: str | None = None
    ) -> list[Message]:
        """查询任务的有序消息列表，无会话时返回空列表

        给出 requester_id 时校验任务所有者；不给出时不读取任务，
        任务已删除时同样返回空列表。
        """
        if requester_id is not None:
            await get_owned_task(self._tasks, task_id, requester_id)

        conversation = await self._conversations.get_conversation(task_id)
        if conversation is None:
            return []
        return conversation.messages
