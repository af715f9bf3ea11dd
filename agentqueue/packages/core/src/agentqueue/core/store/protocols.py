"""Store Protocol 接口定义

定义 TaskStore、ConversationStore、TemplateStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from datetime import datetime
from typing import Any, Protocol

from ..models.conversation import Conversation, Message
from ..models.enums import TaskStatus
from ..models.task import Task
from ..models.template import Template


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def get_task_by_share_token(self, share_token: str) -> Task | None:
        """根据分享令牌查询任务"""
        ...

    async def list_tasks_for_user(
        self,
        user_id: str,
        course_instance_id: str | None = None,
        status: TaskStatus | None = None,
        limit: int | None = None,
        before: tuple[datetime, str] | None = None,
    ) -> list[Task]:
        """查询用户的任务（按 created_at 倒序）"""
        ...

    async def list_tasks(self, status: TaskStatus | None = None) -> list[Task]:
        """查询任务列表，支持按状态筛选"""
        ...

    async def list_finished_between(self, start: datetime, end: datetime) -> list[Task]:
        """查询 (start, end] 内进入终态的任务"""
        ...

    async def list_created_between(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Task]:
        """查询用户在 [start, end) 内创建的任务"""
        ...

    async def count_by_status(self) -> dict[TaskStatus, int]:
        """各状态任务数"""
        ...

    async def patch_task(
        self,
        task_id: str,
        fields: dict[str, Any],
        expected_status: TaskStatus | None = None,
    ) -> bool:
        """部分更新任务（可选 compare-and-set）"""
        ...

    async def delete_task(self, task_id: str) -> bool:
        """删除任务记录"""
        ...


class ConversationStore(Protocol):
    """Conversation 存储接口

    消息只追加，不修改已有消息。
    """

    async def append_message(
        self,
        conversation_id: str,
        task_id: str,
        user_id: str,
        message: Message,
        now: datetime,
    ) -> None:
        """原子追加消息，会话不存在时创建"""
        ...

    async def get_conversation(self, task_id: str) -> Conversation | None:
        """查询任务的会话记录"""
        ...

    async def delete_for_task(self, task_id: str) -> int:
        """删除任务关联的会话记录"""
        ...


class TemplateStore(Protocol):
    """Template 存储接口"""

    async def create_template(self, template: Template) -> None:
        """插入模板"""
        ...

    async def create_template_if_absent(self, template: Template) -> bool:
        """按 (user_id, name) 幂等插入模板"""
        ...

    async def find_by_owner_and_name(self, user_id: str | None, name: str) -> Template | None:
        """按 (user_id, name) 查询模板"""
        ...

    async def list_templates(self) -> list[Template]:
        """查询所有模板"""
        ...
