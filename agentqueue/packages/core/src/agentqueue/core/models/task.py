"""Task Domain Model

agent_tasks 表的一行即一个 Task。
状态字段与 result/usage/error/completed_at 之间的约束由 TaskLifecycleManager 维护：
- result、usage、completed_at 仅在 completed 时存在
- error 仅在 failed 时存在
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field

from .base import CamelModel
from .conversation import Message
from .enums import AgentType, TaskStatus


class TaskFile(CamelModel):
    """任务引用的外部文件"""

    file_id: str = Field(min_length=1, description="外部文件 ID")
    file_name: str = Field(default="", description="文件名")
    file_size: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("fileSize", "size", "file_size"),
        description="文件大小（字节）",
    )
    mime_type: str = Field(default="", description="MIME 类型")


class TaskResult(CamelModel):
    """任务产出"""

    content: str = Field(description="产出内容")
    format: str = Field(default="markdown", description="内容格式")
    metadata: dict[str, Any] = Field(default_factory=dict, description="不透明元数据")


class TaskUsage(CamelModel):
    """任务用量遥测"""

    tokens_used: int = Field(default=0, ge=0, description="Token 用量")
    processing_time: float = Field(default=0, ge=0, description="处理耗时（毫秒）")
    cost: float = Field(default=0.0, ge=0, description="USD 成本")


class ShareSettings(CamelModel):
    """分享设置 -- 仅挂载在 completed 任务上"""

    is_public: bool = Field(description="是否公开")
    allow_comments: bool | None = Field(default=None, description="是否允许评论")
    expires_at: datetime | None = Field(default=None, description="过期时间")
    shared_with: list[str] | None = Field(default=None, description="指定接收者 ID 列表")
    share_token: str = Field(default="", description="分享令牌")
    shared_by: str = Field(default="", description="分享者 ID")
    created_at: datetime | None = Field(default=None, description="分享时间")


class Task(CamelModel):
    """Task 数据模型"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    user_id: str = Field(description="所有者 ID，创建后不可变")
    course_instance_id: str = Field(description="课程/上下文 ID")
    task_name: str = Field(description="任务名称")
    agent_type: AgentType = Field(description="Agent 类型")
    status: TaskStatus = Field(default=TaskStatus.QUEUED, description="当前状态")
    config: dict[str, Any] = Field(default_factory=dict, description="不透明配置")
    files: list[TaskFile] = Field(default_factory=list, description="文件引用列表")
    progress: int | None = Field(default=None, ge=0, le=100, description="进度 0-100")
    result: TaskResult | None = Field(default=None, description="产出，仅 completed")
    usage: TaskUsage | None = Field(default=None, description="用量，仅 completed")
    error: str | None = Field(default=None, description="错误信息，仅 failed")
    completed_at: datetime | None = Field(default=None, description="完成时间，仅 completed")
    finished_at: datetime | None = Field(
        default=None,
        description="进入终态（completed/failed）的时间，用于窗口统计",
    )
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    share_settings: ShareSettings | None = Field(default=None, description="分享设置")


class TaskDetail(Task):
    """任务详情 -- Task 附带会话消息"""

    conversation: list[Message] = Field(default_factory=list, description="会话消息")


class TaskPage(CamelModel):
    """任务列表分页结果"""

    tasks: list[Task] = Field(default_factory=list)
    has_more: bool = Field(default=False)
    next_cursor: str | None = Field(default=None, description="下一页游标（最后一条的 task_id）")


class TaskStatusUpdate(CamelModel):
    """Worker 上报的部分更新，未提供的字段保持不变"""

    status: TaskStatus | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    result: TaskResult | None = None
    error: str | None = None
    usage: TaskUsage | None = None
