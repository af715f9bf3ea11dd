"""会话消息路由

POST /api/agents/tasks/{task_id}/messages: 追加消息，返回完整消息列表
GET  /api/agents/tasks/{task_id}/messages: 查询消息列表
"""

from agentqueue.core.conversations import ConversationManager
from agentqueue.core.models import CamelModel, MessageRole
from fastapi import APIRouter, Depends
from pydantic import Field

from ..deps import get_notification_hub, get_requester_id, get_store_group

router = APIRouter(prefix="/api/agents")


class AppendMessageRequest(CamelModel):
    """追加消息请求体"""

    role: MessageRole = Field(default=MessageRole.USER, description="消息角色")
    content: str = Field(description="文本内容")


def _manager(store_group, hub=None) -> ConversationManager:
    return ConversationManager(
        store_group.task_store,
        store_group.conversation_store,
        notifier=hub,
    )


@router.post("/tasks/{task_id}/messages")
async def append_message(
    task_id: str,
    body: AppendMessageRequest,
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
    hub=Depends(get_notification_hub),
):
    """追加一条消息"""
    messages = await _manager(store_group, hub).append_message(
        task_id, user_id, body.role, body.content
    )
    return {"success": True, "data": [m.to_wire() for m in messages]}


@router.get("/tasks/{task_id}/messages")
async def get_messages(
    task_id: str,
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
):
    """查询任务会话消息（按追加顺序）"""
    messages = await _manager(store_group).get_messages(task_id, requester_id=user_id)
    return {"success": True, "data": [m.to_wire() for m in messages]}
