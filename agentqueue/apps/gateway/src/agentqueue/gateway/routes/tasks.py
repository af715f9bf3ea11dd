"""任务路由 -- 创建、查询、状态上报、删除、取消

POST   /api/agents/tasks: 提交任务（201）
GET    /api/agents/tasks: 任务列表，支持 courseInstanceId / status / limit / cursor
GET    /api/agents/tasks/{task_id}: 任务详情（含会话消息）
PUT    /api/agents/tasks/{task_id}/status: Worker 状态上报（不校验所有者）
DELETE /api/agents/tasks/{task_id}: 删除任务及其会话
POST   /api/agents/tasks/{task_id}/cancel: 取消非终态任务
"""

from typing import Any

from agentqueue.core.config import (
    DEFAULT_LIST_LIMIT,
    MAX_FILE_SIZE_BYTES,
    MAX_LIST_LIMIT,
    MAX_TOTAL_FILE_SIZE_BYTES,
    SUPPORTED_MIME_TYPES,
)
from agentqueue.core.lifecycle import TaskLifecycleManager
from agentqueue.core.models import AgentType, CamelModel, TaskFile, TaskStatus, TaskStatusUpdate
from fastapi import APIRouter, Depends, Query
from pydantic import Field, field_validator
from starlette.responses import JSONResponse

from ..deps import get_notification_hub, get_requester_id, get_store_group

router = APIRouter(prefix="/api/agents")


class CreateTaskRequest(CamelModel):
    """任务提交请求体"""

    agent_type: AgentType = Field(description="Agent 类型")
    course_instance_id: str = Field(min_length=1, description="课程/上下文 ID")
    task_name: str | None = Field(default=None, description="任务名称，缺省自动生成")
    config: dict[str, Any] = Field(default_factory=dict, description="不透明配置")
    files: list[TaskFile] = Field(description="文件引用，至少一个")

    @field_validator("files")
    @classmethod
    def _check_files(cls, files: list[TaskFile]) -> list[TaskFile]:
        if not files:
            raise ValueError("At least one file is required")
        for f in files:
            if f.file_size > MAX_FILE_SIZE_BYTES:
                raise ValueError(
                    f"File {f.file_name or f.file_id} exceeds the "
                    f"{MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB limit"
                )
            if f.mime_type and f.mime_type not in SUPPORTED_MIME_TYPES:
                raise ValueError(f"Unsupported file type: {f.mime_type}")
        total = sum(f.file_size for f in files)
        if total > MAX_TOTAL_FILE_SIZE_BYTES:
            raise ValueError(
                f"Total file size exceeds the "
                f"{MAX_TOTAL_FILE_SIZE_BYTES // (1024 * 1024)}MB limit"
            )
        return files


def _manager(store_group, hub) -> TaskLifecycleManager:
    return TaskLifecycleManager(
        store_group.task_store,
        store_group.conversation_store,
        notifier=hub,
    )


@router.post("/tasks")
async def create_task(
    body: CreateTaskRequest,
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
    hub=Depends(get_notification_hub),
):
    """提交任务，初始状态 queued"""
    task = await _manager(store_group, hub).create(
        user_id=user_id,
        course_instance_id=body.course_instance_id,
        agent_type=body.agent_type,
        task_name=body.task_name,
        config=body.config,
        files=body.files,
    )
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "taskId": task.task_id,
            "message": "Task created successfully",
            "data": task.to_wire(),
        },
    )


@router.get("/tasks")
async def list_tasks(
    course_instance_id: str | None = Query(default=None, alias="courseInstanceId"),
    status: TaskStatus | None = Query(default=None, description="按状态筛选"),
    limit: int = Query(default=DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT),
    cursor: str | None = Query(default=None, description="上一页最后一个 taskId"),
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
):
    """查询请求者的任务，按 createdAt 倒序"""
    page = await _manager(store_group, None).list_tasks(
        user_id,
        course_instance_id=course_instance_id,
        status=status,
        limit=limit,
        cursor=cursor,
    )
    wire = page.to_wire()
    return {
        "success": True,
        "data": wire["tasks"],
        "hasMore": wire["hasMore"],
        "nextCursor": wire["nextCursor"],
    }


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: str,
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
):
    """查询任务详情，包含会话消息"""
    detail = await _manager(store_group, None).get(task_id, user_id)
    return {"success": True, "data": detail.to_wire()}


@router.put("/tasks/{task_id}/status")
async def update_task_status(
    task_id: str,
    body: TaskStatusUpdate,
    store_group=Depends(get_store_group),
    hub=Depends(get_notification_hub),
):
    """Worker 上报状态、进度、结果或错误"""
    task = await _manager(store_group, hub).update_status(task_id, body)
    return {
        "success": True,
        "message": "Task status updated",
        "task": task.to_wire(),
    }


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
):
    """删除任务及其会话"""
    await _manager(store_group, None).delete(task_id, user_id)
    return {"success": True, "message": "Task and related conversations deleted"}


@router.post("/tasks/{task_id}/cancel")
async def cancel_task(
    task_id: str,
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
    hub=Depends(get_notification_hub),
):
    """取消非终态任务

    - 200: 取消成功，任务变为 failed
    - 404: 任务不存在
    - 409: 任务已在终态
    """
    task = await _manager(store_group, hub).cancel(task_id, user_id)
    return {
        "success": True,
        "message": "Task cancelled successfully",
        "task": task.to_wire(),
    }
