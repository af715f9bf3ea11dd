"""任务通知 -- 单向、即发即忘的外部调度通知

状态变更后向外部调度方发送 TaskNotification。投递失败只记录日志，
不影响触发它的状态变更。
"""

from typing import Protocol

import structlog

from .models.notification import TaskNotification

log = structlog.get_logger()


class TaskNotifier(Protocol):
    """通知发送接口"""

    async def publish(self, notification: TaskNotification) -> None:
        """发送通知（不得长时间阻塞）"""
        ...


class LoggingNotifier:
    """默认实现：仅记录日志"""

    async def publish(self, notification: TaskNotification) -> None:
        await log.ainfo(
            "task_notification",
            task_id=notification.task_id,
            user_id=notification.user_id,
            action=notification.action,
            status=notification.status,
            progress=notification.progress,
        )


async def publish_safely(notifier: TaskNotifier | None, notification: TaskNotification) -> None:
    """发送通知，吞掉并记录投递异常"""
    if notifier is None:
        return
    try:
        await notifier.publish(notification)
    except Exception as e:
        await log.awarning(
            "task_notification_failed",
            task_id=notification.task_id,
            action=notification.action,
            error_type=type(e).__name__,
            error=str(e),
        )
