"""枚举定义 -- Agent 任务队列

包含 TaskStatus 状态机、AgentType、MessageRole、HealthStatus、StatsWindow、
NotificationAction 枚举，以及 VALID_TRANSITIONS 合法流转映射和
TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    # 活跃状态
    QUEUED = "queued"
    PROCESSING = "processing"

    # 终态
    COMPLETED = "completed"
    FAILED = "failed"


class AgentType(StrEnum):
    """Agent 类型"""

    NOTE_TAKER = "note-taker"
    RESEARCHER = "researcher"
    STUDY_BUDDY = "study-buddy"
    ASSIGNMENT = "assignment"


# 合法状态流转：活跃状态允许自环（进度上报），终态不可再流转
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.QUEUED: {
        TaskStatus.QUEUED,
        TaskStatus.PROCESSING,
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
    },
    TaskStatus.PROCESSING: {
        TaskStatus.PROCESSING,
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
    },
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
}


class MessageRole(StrEnum):
    """会话消息角色"""

    USER = "user"
    ASSISTANT = "assistant"


class HealthStatus(StrEnum):
    """队列健康状态，按严重程度递增"""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class StatsWindow(StrEnum):
    """统计时间窗口"""

    HOURLY = "hourly"
    DAILY = "daily"


class NotificationAction(StrEnum):
    """对外通知动作"""

    PROCESS_TASK = "process_task"
    PROCESS_FOLLOWUP = "process_followup"
    STATUS_CHANGED = "status_changed"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
