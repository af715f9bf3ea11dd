"""对外通知 payload

状态变更时发往外部调度方的单向消息，至少一次投递语义。
"""

from datetime import UTC, datetime

from pydantic import Field

from .base import CamelModel
from .enums import NotificationAction, TaskStatus


class TaskNotification(CamelModel):
    """任务通知"""

    task_id: str
    user_id: str
    course_instance_id: str = ""
    action: NotificationAction
    status: TaskStatus
    progress: int | None = None
    ts: datetime = Field(default_factory=lambda: datetime.now(UTC))
