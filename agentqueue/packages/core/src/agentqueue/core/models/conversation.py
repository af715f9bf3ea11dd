"""Conversation Domain Model

每个 Task 至多一条会话记录，消息按追加顺序排列，追加后不可修改。
"""

from datetime import UTC, datetime

from pydantic import Field

from .base import CamelModel
from .enums import MessageRole


class Message(CamelModel):
    """会话消息"""

    role: MessageRole = Field(description="消息角色")
    content: str = Field(description="文本内容")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="服务端写入时间",
    )


class Conversation(CamelModel):
    """Conversation 数据模型 -- 首次追加消息时惰性创建"""

    conversation_id: str = Field(description="唯一标识，ULID 格式")
    task_id: str = Field(description="关联的 Task ID")
    user_id: str = Field(description="所有者 ID（冗余自 Task）")
    messages: list[Message] = Field(default_factory=list, description="有序消息列表")
    context: str | None = Field(default=None, description="可选上下文文本")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
