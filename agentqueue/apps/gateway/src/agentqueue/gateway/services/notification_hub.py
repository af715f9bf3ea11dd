"""NotificationHub -- 内存中的任务通知广播器

实现 TaskNotifier 接口：publish() 记录日志后扇出给该任务的 SSE 订阅者。
每个订阅者持有一个 asyncio.Queue，写满的队列被直接丢弃，发布方不会阻塞。
"""

import asyncio
from collections import defaultdict

import structlog
from agentqueue.core.models.notification import TaskNotification

log = structlog.get_logger()


class NotificationHub:
    """任务通知广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        # task_id -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, task_id: str) -> asyncio.Queue:
        """订阅指定任务的通知

        Returns:
            asyncio.Queue 实例，新通知会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[task_id].add(queue)
        return queue

    async def unsubscribe(self, task_id: str, queue: asyncio.Queue) -> None:
        """取消订阅"""
        self._subscribers[task_id].discard(queue)
        if not self._subscribers[task_id]:
            del self._subscribers[task_id]

    def subscriber_count(self, task_id: str) -> int:
        return len(self._subscribers.get(task_id, ()))

    async def publish(self, notification: TaskNotification) -> None:
        """记录通知并广播给订阅者"""
        await log.ainfo(
            "task_notification",
            task_id=notification.task_id,
            action=notification.action,
            status=notification.status,
            progress=notification.progress,
        )

        task_id = notification.task_id
        dead_queues = []
        for queue in self._subscribers.get(task_id, set()):
            try:
                queue.put_nowait(notification)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列
        for q in dead_queues:
            self._subscribers[task_id].discard(q)
        if task_id in self._subscribers and not self._subscribers[task_id]:
            del self._subscribers[task_id]
