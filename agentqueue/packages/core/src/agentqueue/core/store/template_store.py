"""TemplateStore SQLite 实现

(user_id, name) 在用户模板范围内唯一，派生模板通过 INSERT OR IGNORE 幂等写入。
"""

import json

import aiosqlite

from ..models.template import Template
from .sqlite_init import from_db_ts, to_db_ts

_COLUMNS = "template_id, user_id, name, agent_type, description, config, is_public, created_at"


class SqliteTemplateStore:
    """TemplateStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_template(self, template: Template) -> None:
        """插入模板；(user_id, name) 冲突时抛出 aiosqlite.IntegrityError"""
        await self._conn.execute(
            f"INSERT INTO agent_templates ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            self._template_params(template),
        )
        await self._conn.commit()

    async def create_template_if_absent(self, template: Template) -> bool:
        """按 (user_id, name) 幂等插入模板

        Returns:
            True 如果新插入，False 如果已存在同名模板
        """
        cursor = await self._conn.execute(
            f"INSERT OR IGNORE INTO agent_templates ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            self._template_params(template),
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    async def find_by_owner_and_name(self, user_id: str | None, name: str) -> Template | None:
        """按 (user_id, name) 查询模板"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM agent_templates WHERE user_id IS ? AND name = ?",
            (user_id, name),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_template(row)

    async def list_templates(self) -> list[Template]:
        """查询所有模板：公开优先，再按 created_at 倒序"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM agent_templates "
            "ORDER BY is_public DESC, created_at DESC, template_id DESC"
        )
        rows = await cursor.fetchall()
        return [self._row_to_template(row) for row in rows]

    @staticmethod
    def _template_params(template: Template) -> tuple:
        return (
            template.template_id,
            template.user_id,
            template.name,
            template.agent_type,
            template.description,
            json.dumps(template.config, ensure_ascii=False),
            1 if template.is_public else 0,
            to_db_ts(template.created_at) if template.created_at else "",
        )

    @staticmethod
    def _row_to_template(row: aiosqlite.Row) -> Template:
        """将数据库行转换为 Template 模型"""
        return Template(
            template_id=row[0],
            user_id=row[1],
            name=row[2],
            agent_type=row[3],
            description=row[4],
            config=json.loads(row[5]) if row[5] else {},
            is_public=bool(row[6]),
            created_at=from_db_ts(row[7]) if row[7] else None,
        )
