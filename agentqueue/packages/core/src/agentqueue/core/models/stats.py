"""统计与健康快照模型

均为查询时派生，不持久化。序列化结构即 Dashboard 对外契约。
"""

from datetime import datetime

from pydantic import Field

from .base import CamelModel
from .enums import HealthStatus


class WindowStats(CamelModel):
    """单个时间窗口内终态任务的聚合"""

    total: int = 0
    successful: int = 0
    failed: int = 0
    by_agent_type: dict[str, int] = Field(default_factory=dict)
    by_user: dict[str, int] = Field(default_factory=dict)
    average_tokens: int = 0
    total_cost: float = 0.0


class HealthMetrics(CamelModel):
    """队列健康指标"""

    processed: int = 0
    failed: int = 0
    active: int = 0
    waiting: int = 0
    delayed: int = 0
    average_processing_time: float = 0.0


class QueueHealth(CamelModel):
    """健康快照"""

    status: HealthStatus = HealthStatus.HEALTHY
    metrics: HealthMetrics = Field(default_factory=HealthMetrics)
    warnings: list[str] = Field(default_factory=list)
    timestamp: datetime


class DashboardStats(CamelModel):
    hourly: WindowStats
    daily: WindowStats


class DashboardSnapshot(CamelModel):
    """Dashboard 只读快照：health + hourly/daily stats"""

    health: QueueHealth
    stats: DashboardStats
    timestamp: datetime


class QueueStatusCounts(CamelModel):
    """各状态任务数"""

    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0


class UserUsage(CamelModel):
    """用户自然月用量汇总"""

    user_id: str
    tasks_this_month: int = 0
    tokens_used: int = 0
    total_cost: float = 0.0
    reset_date: datetime
