"""分享与模板路由

POST /api/agents/tasks/{task_id}/share: 分享已完成任务
GET  /api/agents/shared/{share_token}: 通过令牌读取分享的任务
GET  /api/agents/templates: 查询可见模板
POST /api/agents/templates: 创建用户模板（201）
"""

from typing import Any

from agentqueue.core.models import AgentType, CamelModel, ShareSettings
from agentqueue.core.sharing import SharingManager
from agentqueue.core.templates import TemplateManager
from fastapi import APIRouter, Depends, Query
from pydantic import Field
from starlette.responses import JSONResponse

from ..deps import get_optional_requester_id, get_requester_id, get_store_group

router = APIRouter(prefix="/api/agents")


class CreateTemplateRequest(CamelModel):
    """创建模板请求体"""

    name: str = Field(min_length=1, description="显示名称")
    agent_type: AgentType = Field(description="Agent 类型")
    description: str = Field(default="", description="描述")
    config: dict[str, Any] = Field(default_factory=dict, description="不透明配置")
    is_public: bool = Field(default=False, description="是否公开")


@router.post("/tasks/{task_id}/share")
async def share_task(
    task_id: str,
    body: ShareSettings,
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
):
    """分享任务，公开分享时派生公开模板"""
    manager = SharingManager(store_group.task_store, store_group.template_store)
    result = await manager.share(task_id, user_id, body)
    return {"success": True, **result.to_wire()}


@router.get("/shared/{share_token}")
async def get_shared_task(
    share_token: str,
    user_id: str | None = Depends(get_optional_requester_id),
    store_group=Depends(get_store_group),
):
    """通过分享令牌读取任务"""
    manager = SharingManager(store_group.task_store, store_group.template_store)
    task = await manager.resolve_share(share_token, requester_id=user_id)
    return {"success": True, "data": task.to_wire()}


@router.get("/templates")
async def list_templates(
    agent_type: AgentType | None = Query(default=None, alias="agentType"),
    is_public: bool | None = Query(default=None, alias="isPublic"),
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
):
    """查询公开模板与请求者自己的模板"""
    templates = await TemplateManager(store_group.template_store).list_templates(
        user_id=user_id,
        agent_type=agent_type,
        is_public=is_public,
    )
    return {"success": True, "data": [t.to_wire() for t in templates]}


@router.post("/templates")
async def create_template(
    body: CreateTemplateRequest,
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
):
    """创建用户模板，同名冲突返回 409"""
    template = await TemplateManager(store_group.template_store).create_template(
        user_id=user_id,
        name=body.name,
        agent_type=body.agent_type,
        description=body.description,
        config=body.config,
        is_public=body.is_public,
    )
    return JSONResponse(
        status_code=201,
        content={"success": True, "data": template.to_wire()},
    )
