"""TaskStore SQLite 实现

单条记录粒度的原子读写：每个写操作独立提交。
状态字段之间的约束由 TaskLifecycleManager 保证，此处仅提供数据库操作。
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any

import aiosqlite
from pydantic import BaseModel

from ..models.enums import TaskStatus
from ..models.task import ShareSettings, Task, TaskFile, TaskResult, TaskUsage
from .sqlite_init import from_db_ts, to_db_ts

_COLUMNS = (
    "task_id, user_id, course_instance_id, task_name, agent_type, status, "
    "config, files, progress, result, usage, error, completed_at, finished_at, "
    "created_at, updated_at, share_settings"
)

# 允许 patch 的列；task_id / user_id / created_at 不可变
_PATCHABLE_COLUMNS = frozenset(
    {
        "status",
        "progress",
        "result",
        "usage",
        "error",
        "completed_at",
        "finished_at",
        "updated_at",
        "share_settings",
        "share_token",
    }
)


def _encode(value: Any) -> Any:
    """将 Python 值编码为 SQLite 列值"""
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_db_ts(value)
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, dict | list):
        return json.dumps(value, ensure_ascii=False)
    return value


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            f"""
            INSERT INTO agent_tasks ({_COLUMNS}, share_token)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.user_id,
                task.course_instance_id,
                task.task_name,
                task.agent_type.value,
                task.status.value,
                json.dumps(task.config, ensure_ascii=False),
                json.dumps([f.model_dump() for f in task.files], ensure_ascii=False),
                task.progress,
                _encode(task.result),
                _encode(task.usage),
                task.error,
                _encode(task.completed_at),
                _encode(task.finished_at),
                to_db_ts(task.created_at),
                to_db_ts(task.updated_at),
                _encode(task.share_settings),
                task.share_settings.share_token if task.share_settings else None,
            ),
        )
        await self._conn.commit()

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM agent_tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def get_task_by_share_token(self, share_token: str) -> Task | None:
        """根据分享令牌查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM agent_tasks WHERE share_token = ?",
            (share_token,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks_for_user(
        self,
        user_id: str,
        course_instance_id: str | None = None,
        status: TaskStatus | None = None,
        limit: int | None = None,
        before: tuple[datetime, str] | None = None,
    ) -> list[Task]:
        """查询用户的任务：先筛选，再按 created_at 倒序，最后截断

        Args:
            user_id: 所有者 ID
            course_instance_id: 可选课程筛选
            status: 可选状态筛选
            limit: 最多返回条数，None 不限
            before: (created_at, task_id) 游标，仅返回排在其后的任务
        """
        clauses = ["user_id = ?"]
        params: list[Any] = [user_id]
        if course_instance_id:
            clauses.append("course_instance_id = ?")
            params.append(course_instance_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if before is not None:
            clauses.append("(created_at, task_id) < (?, ?)")
            params.extend([to_db_ts(before[0]), before[1]])

        sql = (
            f"SELECT {_COLUMNS} FROM agent_tasks WHERE {' AND '.join(clauses)} "
            "ORDER BY created_at DESC, task_id DESC"
        )
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_tasks(self, status: TaskStatus | None = None) -> list[Task]:
        """查询任务列表，支持按状态筛选，按 created_at 倒序"""
        if status:
            cursor = await self._conn.execute(
                f"SELECT {_COLUMNS} FROM agent_tasks WHERE status = ? "
                "ORDER BY created_at DESC, task_id DESC",
                (status.value,),
            )
        else:
            cursor = await self._conn.execute(
                f"SELECT {_COLUMNS} FROM agent_tasks ORDER BY created_at DESC, task_id DESC"
            )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_finished_between(self, start: datetime, end: datetime) -> list[Task]:
        """查询 finished_at 落在 (start, end] 内的终态任务"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM agent_tasks
            WHERE finished_at IS NOT NULL AND finished_at > ? AND finished_at <= ?
            ORDER BY finished_at ASC, task_id ASC
            """,
            (to_db_ts(start), to_db_ts(end)),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_created_between(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Task]:
        """查询用户在 [start, end) 内创建的任务"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM agent_tasks
            WHERE user_id = ? AND created_at >= ? AND created_at < ?
            ORDER BY created_at ASC, task_id ASC
            """,
            (user_id, to_db_ts(start), to_db_ts(end)),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def count_by_status(self) -> dict[TaskStatus, int]:
        """各状态任务数（单条查询）"""
        cursor = await self._conn.execute(
            "SELECT status, COUNT(*) FROM agent_tasks GROUP BY status"
        )
        rows = await cursor.fetchall()
        counts = {status: 0 for status in TaskStatus}
        for row in rows:
            counts[TaskStatus(row[0])] = row[1]
        return counts

    async def patch_task(
        self,
        task_id: str,
        fields: dict[str, Any],
        expected_status: TaskStatus | None = None,
    ) -> bool:
        """部分更新任务，仅写入 fields 中给出的列

        Args:
            task_id: 任务 ID
            fields: 列名 -> 新值
            expected_status: 若给出，仅当当前状态等于该值时才写入（compare-and-set）

        Returns:
            True 如果有记录被更新
        """
        unknown = set(fields) - _PATCHABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns are not patchable: {sorted(unknown)}")
        if not fields:
            return False

        assignments = ", ".join(f"{name} = ?" for name in fields)
        params: list[Any] = [_encode(value) for value in fields.values()]
        sql = f"UPDATE agent_tasks SET {assignments} WHERE task_id = ?"
        params.append(task_id)
        if expected_status is not None:
            sql += " AND status = ?"
            params.append(expected_status.value)

        cursor = await self._conn.execute(sql, params)
        await self._conn.commit()
        return cursor.rowcount > 0

    async def delete_task(self, task_id: str) -> bool:
        """删除任务记录"""
        cursor = await self._conn.execute(
            "DELETE FROM agent_tasks WHERE task_id = ?",
            (task_id,),
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        files_data = json.loads(row[7]) if row[7] else []
        return Task(
            task_id=row[0],
            user_id=row[1],
            course_instance_id=row[2],
            task_name=row[3],
            agent_type=row[4],
            status=row[5],
            config=json.loads(row[6]) if row[6] else {},
            files=[TaskFile(**f) for f in files_data],
            progress=row[8],
            result=TaskResult.model_validate_json(row[9]) if row[9] else None,
            usage=TaskUsage.model_validate_json(row[10]) if row[10] else None,
            error=row[11],
            completed_at=from_db_ts(row[12]),
            finished_at=from_db_ts(row[13]),
            created_at=from_db_ts(row[14]),
            updated_at=from_db_ts(row[15]),
            share_settings=(
                ShareSettings.model_validate_json(row[16]) if row[16] else None
            ),
        )
