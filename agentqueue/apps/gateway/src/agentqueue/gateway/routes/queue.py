"""队列监控路由

GET /api/agents/queue/dashboard: Dashboard 快照（health + hourly/daily stats）
GET /api/agents/queue/status: 各状态任务数
GET /api/agents/usage: 请求者本月用量
"""

from agentqueue.core.monitor import QueueMonitor
from fastapi import APIRouter, Depends

from ..deps import get_monitor_config, get_requester_id, get_store_group

router = APIRouter(prefix="/api/agents")


@router.get("/queue/dashboard")
async def queue_dashboard(
    store_group=Depends(get_store_group),
    monitor_config=Depends(get_monitor_config),
):
    """只读 Dashboard 快照"""
    snapshot = await QueueMonitor(store_group.task_store, monitor_config).dashboard()
    return {"success": True, "data": snapshot.to_wire()}


@router.get("/queue/status")
async def queue_status(
    store_group=Depends(get_store_group),
    monitor_config=Depends(get_monitor_config),
):
    """各状态任务数：waiting / active / completed / failed"""
    counts = await QueueMonitor(store_group.task_store, monitor_config).queue_status()
    return {"success": True, "data": counts.to_wire()}


@router.get("/usage")
async def user_usage(
    user_id: str = Depends(get_requester_id),
    store_group=Depends(get_store_group),
    monitor_config=Depends(get_monitor_config),
):
    """请求者自然月用量"""
    usage = await QueueMonitor(store_group.task_store, monitor_config).user_usage(user_id)
    return {"success": True, "data": usage.to_wire()}
