"""SharingManager -- 分享已完成任务，并按需派生公开模板

分享流程：
1. 读取任务，校验存在与所有者
2. 仅 completed 任务可分享
3. 生成不可猜测的分享令牌
4. 将 ShareSettings（令牌、分享者、分享时间）写回任务
5. 公开分享且任务带配置时，以 (owner, 派生名) 幂等写入公开模板
6. 返回令牌与分享路径
"""

import secrets
from datetime import UTC, datetime

import structlog
from ulid import ULID

from .config import SHARE_URL_PREFIX
from .exceptions import InvalidStateError, NotFoundError, UnauthorizedError
from .lifecycle import get_owned_task
from .models.enums import TaskStatus
from .models.task import ShareSettings, Task
from .models.template import ShareResult, Template
from .store.protocols import TaskStore, TemplateStore

log = structlog.get_logger()

SHARE_TOKEN_PREFIX = "share_"


def generate_share_token() -> str:
    return SHARE_TOKEN_PREFIX + secrets.token_urlsafe(24)


def derived_template_name(task_name: str) -> str:
    """由任务名派生的模板名"""
    return f"{task_name} (Shared by User)"


class SharingManager:
    """分享与模板派生"""

    def __init__(self, task_store: TaskStore, template_store: TemplateStore) -> None:
        self._tasks = task_store
        self._templates = template_store

    async def share(
        self, task_id: str, requester_id: str, settings: ShareSettings
    ) -> ShareResult:
        """分享任务

        Raises:
            TaskNotFoundError / UnauthorizedError: 任务不存在或非所有者
            InvalidStateError: 任务未完成
        """
        task = await get_owned_task(self._tasks, task_id, requester_id)
        if task.status != TaskStatus.COMPLETED:
            raise InvalidStateError("Only completed tasks can be shared")

        now = datetime.now(UTC)
        token = generate_share_token()
        share_settings = settings.model_copy(
            update={"share_token": token, "shared_by": requester_id, "created_at": now}
        )
        applied = await self._tasks.patch_task(
            task_id,
            {
                "share_settings": share_settings,
                "share_token": token,
                "updated_at": now,
            },
            expected_status=TaskStatus.COMPLETED,
        )
        if not applied:
            # completed 为终态，只可能是并发删除
            raise NotFoundError(f"Task with id {task_id} does not exist")

        await log.ainfo(
            "task_shared",
            task_id=task_id,
            user_id=requester_id,
            is_public=share_settings.is_public,
        )

        if share_settings.is_public and task.config:
            await self._derive_template(task, requester_id, now)

        return ShareResult(share_token=token, share_url=f"{SHARE_URL_PREFIX}{token}")

    async def resolve_share(self, share_token: str, requester_id: str | None = None) -> Task:
        """通过分享令牌读取任务

        Raises:
            NotFoundError: 令牌不存在或已过期
            UnauthorizedError: 非公开分享且请求者不在 shared_with 中
        """
        task = await self._tasks.get_task_by_share_token(share_token)
        if task is None or task.share_settings is None:
            raise NotFoundError("Shared task not found")

        settings = task.share_settings
        expires_at = settings.expires_at
        if expires_at is not None:
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=UTC)
            if expires_at <= datetime.now(UTC):
                raise NotFoundError("Share link has expired")

        if not settings.is_public and settings.shared_with:
            allowed = requester_id is not None and (
                requester_id == task.user_id or requester_id in settings.shared_with
            )
            if not allowed:
                raise UnauthorizedError("Not authorized to view this shared task")

        return task

    async def _derive_template(self, task: Task, owner_id: str, now: datetime) -> None:
        name = derived_template_name(task.task_name)
        existing = await self._templates.find_by_owner_and_name(owner_id, name)
        if existing is not None:
            return

        template = Template(
            template_id=str(ULID()),
            user_id=owner_id,
            name=name,
            agent_type=task.agent_type.value,
            description=f"Template derived from shared task '{task.task_name}'",
            config=task.config,
            is_public=True,
            created_at=now,
        )
        # 并发分享时两方都可能未查到，唯一索引保证只写入一条
        inserted = await self._templates.create_template_if_absent(template)
        if inserted:
            await log.ainfo(
                "template_derived",
                task_id=task.task_id,
                template_id=template.template_id,
                name=name,
            )
