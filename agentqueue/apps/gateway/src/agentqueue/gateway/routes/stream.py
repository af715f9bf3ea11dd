"""SSE 通知流路由

GET /api/agents/tasks/{task_id}/stream: 推送指定任务的状态通知。
连接时先推送一条当前状态快照，之后推送实时通知；任务进入终态时携带 final: true 并结束。
"""

import asyncio
import json

from agentqueue.core.config import SSE_HEARTBEAT_INTERVAL
from agentqueue.core.lifecycle import get_owned_task
from agentqueue.core.models import TERMINAL_STATES, NotificationAction, Task, TaskNotification
from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from ..deps import get_notification_hub, get_requester_id, get_store_group

router = APIRouter(prefix="/api/agents")


def _notification_to_sse(notification: TaskNotification) -> dict:
    """将 TaskNotification 转换为 SSE 事件"""
    is_final = (
        notification.action == NotificationAction.STATUS_CHANGED
        and notification.status in TERMINAL_STATES
    )
    data = notification.to_wire()
    data["final"] = is_final
    return {
        "event": notification.action.value,
        "data": json.dumps(data, ensure_ascii=False),
    }


def _snapshot(task: Task) -> TaskNotification:
    """当前状态快照，以 status_changed 形式推送"""
    return TaskNotification(
        task_id=task.task_id,
        user_id=task.user_id,
        course_instance_id=task.course_instance_id,
        action=NotificationAction.STATUS_CHANGED,
        status=task.status,
        progress=task.progress,
    )


@router.get("/tasks/{task_id}/stream")
async def stream_task_notifications(
    task_id: str,
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
    hub=Depends(get_notification_hub),
):
    """SSE 通知流端点

    1. 推送当前状态快照
    2. 任务已在终态时立即结束
    3. 注册到 NotificationHub，实时推送新通知
    4. 心跳保活
    """
    task = await get_owned_task(store_group.task_store, task_id, user_id)

    async def event_generator():
        if task.status in TERMINAL_STATES:
            yield _notification_to_sse(_snapshot(task))
            return

        # 先订阅再读取快照，避免两者之间的通知丢失
        queue = await hub.subscribe(task_id)
        try:
            current = await store_group.task_store.get_task(task_id) or task
            snapshot = _notification_to_sse(_snapshot(current))
            yield snapshot
            if json.loads(snapshot["data"])["final"]:
                return

            while True:
                try:
                    notification = await asyncio.wait_for(
                        queue.get(), timeout=SSE_HEARTBEAT_INTERVAL
                    )
                    event = _notification_to_sse(notification)
                    yield event
                    if json.loads(event["data"])["final"]:
                        return
                except TimeoutError:
                    # 心跳保活
                    yield {"comment": "heartbeat"}
        finally:
            await hub.unsubscribe(task_id, queue)

    return EventSourceResponse(event_generator())
