"""ConversationStore SQLite 实现

每个任务一条会话记录，messages 列为 JSON 数组。
追加消息使用单条 UPSERT + json_insert 完成，并发追加不会互相覆盖。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.conversation import Conversation, Message
from .sqlite_init import from_db_ts, to_db_ts

_COLUMNS = "conversation_id, task_id, user_id, messages, context, created_at, updated_at"


class SqliteConversationStore:
    """ConversationStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_message(
        self,
        conversation_id: str,
        task_id: str,
        user_id: str,
        message: Message,
        now: datetime,
    ) -> None:
        """追加消息；会话不存在时以 conversation_id 创建

        注意：conversation_id 仅在首次创建时生效。
        """
        message_json = message.model_dump_json()
        ts = to_db_ts(now)
        try:
            await self._conn.execute(
                f"""
                INSERT INTO agent_conversations ({_COLUMNS})
                VALUES (?, ?, ?, json_array(json(?)), NULL, ?, ?)
                ON CONFLICT(task_id) DO UPDATE SET
                    messages = json_insert(agent_conversations.messages, '$[#]', json(?)),
                    updated_at = excluded.updated_at
                """,
                (conversation_id, task_id, user_id, message_json, ts, ts, message_json),
            )
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise

    async def get_conversation(self, task_id: str) -> Conversation | None:
        """查询任务的会话记录"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM agent_conversations WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_conversation(row)

    async def delete_for_task(self, task_id: str) -> int:
        """删除任务关联的所有会话记录

        Returns:
            删除的记录数
        """
        cursor = await self._conn.execute(
            "DELETE FROM agent_conversations WHERE task_id = ?",
            (task_id,),
        )
        await self._conn.commit()
        return cursor.rowcount

    @staticmethod
    def _row_to_conversation(row: aiosqlite.Row) -> Conversation:
        """将数据库行转换为 Conversation 模型"""
        messages_data = json.loads(row[3]) if row[3] else []
        return Conversation(
            conversation_id=row[0],
            task_id=row[1],
            user_id=row[2],
            messages=[Message(**m) for m in messages_data],
            context=row[4],
            created_at=from_db_ts(row[5]),
            updated_at=from_db_ts(row[6]),
        )
