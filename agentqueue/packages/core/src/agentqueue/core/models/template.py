"""Template Domain Model

可复用的 Agent 配置。user_id 为 None 表示系统模板。
"""

from datetime import datetime
from typing import Any

from pydantic import Field

from .base import CamelModel


class Template(CamelModel):
    """Template 数据模型"""

    template_id: str = Field(description="唯一标识")
    user_id: str | None = Field(default=None, description="所有者 ID，None 为系统模板")
    name: str = Field(description="显示名称")
    agent_type: str = Field(description="Agent 类型")
    description: str = Field(default="", description="描述")
    config: dict[str, Any] = Field(default_factory=dict, description="不透明配置")
    is_public: bool = Field(default=False, description="是否公开")
    created_at: datetime | None = Field(default=None, description="创建时间")


class ShareResult(CamelModel):
    """分享结果"""

    share_token: str
    share_url: str
