"""TemplateManager -- 模板查询与创建

可见范围：所有公开模板 + 请求者自己的模板。
按 Agent 类型查询且没有任何匹配时，返回该类型的内置默认模板。
"""

from datetime import UTC, datetime
from typing import Any

import aiosqlite
import structlog
from ulid import ULID

from .exceptions import InvalidStateError, PayloadValidationError, UnauthorizedError
from .lifecycle import parse_agent_type
from .models.enums import AgentType
from .models.template import Template
from .store.protocols import TemplateStore

log = structlog.get_logger()

# 内置默认模板（系统模板，不落库）
DEFAULT_TEMPLATES: dict[AgentType, list[dict[str, Any]]] = {
    AgentType.NOTE_TAKER: [
        {
            "name": "Bullet Notes",
            "description": "Concise bullet-point notes with a moderate summary",
            "config": {
                "noteStyle": "bullet",
                "summaryLength": "moderate",
                "includeFormulas": True,
                "includeDiagramReferences": True,
            },
        },
        {
            "name": "Detailed Outline",
            "description": "Hierarchical outline with a detailed summary",
            "config": {
                "noteStyle": "outline",
                "summaryLength": "detailed",
                "includeFormulas": True,
                "includeDiagramReferences": False,
            },
        },
    ],
    AgentType.RESEARCHER: [
        {
            "name": "Standard Research",
            "description": "Standard-depth research report with citations",
            "config": {"researchDepth": "standard", "includeCitations": True},
        },
        {
            "name": "Deep Dive",
            "description": "In-depth research report with citations",
            "config": {"researchDepth": "deep", "includeCitations": True},
        },
    ],
    AgentType.STUDY_BUDDY: [
        {
            "name": "Quiz Practice",
            "description": "Practice questions generated from the course material",
            "config": {"mode": "quiz", "questionCount": 10},
        },
    ],
    AgentType.ASSIGNMENT: [
        {
            "name": "Assignment Helper",
            "description": "Step-by-step guidance for an assignment",
            "config": {"mode": "guided", "showSolutions": False},
        },
    ],
}


def default_templates(agent_type: AgentType) -> list[Template]:
    """构造指定类型的内置默认模板"""
    return [
        Template(
            template_id=f"default-{agent_type.value}-{index}",
            user_id=None,
            name=entry["name"],
            agent_type=agent_type.value,
            description=entry["description"],
            config=dict(entry["config"]),
            is_public=True,
        )
        for index, entry in enumerate(DEFAULT_TEMPLATES.get(agent_type, []), start=1)
    ]


class TemplateManager:
    """模板管理"""

    def __init__(self, template_store: TemplateStore) -> None:
        self._templates = template_store

    async def list_templates(
        self,
        user_id: str | None = None,
        agent_type: str | AgentType | None = None,
        is_public: bool | None = None,
    ) -> list[Template]:
        """查询可见模板：公开优先，再按创建时间倒序

        Args:
            user_id: 请求者 ID，为空时只返回公开模板
            agent_type: 可选类型筛选
            is_public: 可选公开/私有筛选
        """
        agent = parse_agent_type(agent_type) if agent_type else None

        templates = [
            t
            for t in await self._templates.list_templates()
            if t.is_public or (user_id and t.user_id == user_id)
        ]
        if agent is not None:
            templates = [t for t in templates if t.agent_type == agent.value]
        if is_public is not None:
            templates = [t for t in templates if t.is_public == is_public]

        if not templates and agent is not None and is_public is not False:
            return default_templates(agent)
        return templates

    async def create_template(
        self,
        user_id: str,
        name: str,
        agent_type: str | AgentType,
        description: str = "",
        config: dict[str, Any] | None = None,
        is_public: bool = False,
    ) -> Template:
        """创建用户模板

        Raises:
            UnauthorizedError: user_id 为空
            PayloadValidationError: 名称为空或类型非法
            InvalidStateError: 同一用户下已存在同名模板
        """
        if not user_id:
            raise UnauthorizedError("User id is required")
        if not name or not name.strip():
            raise PayloadValidationError("Template name is required")
        agent = parse_agent_type(agent_type)

        template = Template(
            template_id=str(ULID()),
            user_id=user_id,
            name=name.strip(),
            agent_type=agent.value,
            description=description,
            config=config or {},
            is_public=is_public,
            created_at=datetime.now(UTC),
        )
        try:
            await self._templates.create_template(template)
        except aiosqlite.IntegrityError:
            raise InvalidStateError(f"Template '{template.name}' already exists") from None

        await log.ainfo(
            "template_created",
            template_id=template.template_id,
            user_id=user_id,
            agent_type=agent,
        )
        return template
