"""AgentQueue Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .base import CamelModel
from .conversation import Conversation, Message
from .enums import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    AgentType,
    HealthStatus,
    MessageRole,
    NotificationAction,
    StatsWindow,
    TaskStatus,
    validate_transition,
)
from .notification import TaskNotification
from .stats import (
    DashboardSnapshot,
    DashboardStats,
    HealthMetrics,
    QueueHealth,
    QueueStatusCounts,
    UserUsage,
    WindowStats,
)
from .task import (
    ShareSettings,
    Task,
    TaskDetail,
    TaskFile,
    TaskPage,
    TaskResult,
    TaskStatusUpdate,
    TaskUsage,
)
from .template import ShareResult, Template

__all__ = [
    "CamelModel",
    # 枚举
    "TaskStatus",
    "AgentType",
    "MessageRole",
    "HealthStatus",
    "StatsWindow",
    "NotificationAction",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # Task
    "Task",
    "TaskDetail",
    "TaskFile",
    "TaskPage",
    "TaskResult",
    "TaskUsage",
    "TaskStatusUpdate",
    "ShareSettings",
    # Conversation
    "Conversation",
    "Message",
    # Template
    "Template",
    "ShareResult",
    # Stats
    "WindowStats",
    "HealthMetrics",
    "QueueHealth",
    "DashboardStats",
    "DashboardSnapshot",
    "QueueStatusCounts",
    "UserUsage",
    # Notification
    "TaskNotification",
]
