"""TemplateStore 单元测试

测试内容：
1. (user_id, name) 唯一约束
2. 幂等插入
3. 系统模板（user_id 为空）不受唯一约束限制
4. 排序：公开优先，再按创建时间倒序
"""

from datetime import UTC, datetime, timedelta

import aiosqlite
import pytest
from agentqueue.core.models import Template

T0 = datetime(2026, 5, 1, 9, 0, tzinfo=UTC)


def _template(template_id: str, **overrides) -> Template:
    data = {
        "template_id": template_id,
        "user_id": "user-1",
        "name": "My Notes",
        "agent_type": "note-taker",
        "config": {"noteStyle": "bullet"},
        "created_at": T0,
    }
    data.update(overrides)
    return Template(**data)


class TestTemplateStore:
    """模板存储"""

    async def test_insert_if_absent_is_idempotent(self, stores):
        assert await stores.template_store.create_template_if_absent(_template("a")) is True
        assert await stores.template_store.create_template_if_absent(_template("b")) is False

        templates = await stores.template_store.list_templates()
        assert [t.template_id for t in templates] == ["a"]

    async def test_duplicate_insert_raises(self, stores):
        await stores.template_store.create_template(_template("a"))
        with pytest.raises(aiosqlite.IntegrityError):
            await stores.template_store.create_template(_template("b"))

    async def test_same_name_different_owner(self, stores):
        await stores.template_store.create_template(_template("a"))
        await stores.template_store.create_template(_template("b", user_id="user-2"))
        assert len(await stores.template_store.list_templates()) == 2

    async def test_system_templates_not_deduplicated(self, stores):
        await stores.template_store.create_template(_template("a", user_id=None))
        await stores.template_store.create_template(_template("b", user_id=None))
        assert len(await stores.template_store.list_templates()) == 2

    async def test_find_by_owner_and_name(self, stores):
        await stores.template_store.create_template(_template("a", config={"k": 1}))
        found = await stores.template_store.find_by_owner_and_name("user-1", "My Notes")
        assert found is not None
        assert found.config == {"k": 1}
        assert await stores.template_store.find_by_owner_and_name("user-2", "My Notes") is None

    async def test_public_first_then_newest(self, stores):
        await stores.template_store.create_template(
            _template("old-private", name="p1", created_at=T0)
        )
        await stores.template_store.create_template(
            _template("new-private", name="p2", created_at=T0 + timedelta(hours=1))
        )
        await stores.template_store.create_template(
            _template("public", name="pub", is_public=True, created_at=T0)
        )
        templates = await stores.template_store.list_templates()
        assert [t.template_id for t in templates] == ["public", "new-private", "old-private"]
        assert templates[0].is_public is True
