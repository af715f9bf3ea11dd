"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store、通知与请求者

Store 实例通过 app.state 管理，在 lifespan 中初始化/清理。
认证由上游完成，请求者 ID 通过 X-User-Id 请求头传入。
"""

from agentqueue.core.config import MonitorConfig
from agentqueue.core.store import StoreGroup
from fastapi import Header, HTTPException, Request

from .services.notification_hub import NotificationHub


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_notification_hub(request: Request) -> NotificationHub:
    """从 app.state 获取 NotificationHub 实例"""
    return request.app.state.notification_hub


def get_monitor_config(request: Request) -> MonitorConfig:
    """从 app.state 获取健康阈值配置"""
    return request.app.state.monitor_config


def get_requester_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """读取请求者 ID，缺失时返回 401"""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id


def get_optional_requester_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str | None:
    """读取请求者 ID，允许匿名"""
    return x_user_id or None
