"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

from datetime import UTC, datetime

import aiosqlite

# agent_tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS agent_tasks (
    task_id             TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    course_instance_id  TEXT NOT NULL DEFAULT '',
    task_name           TEXT NOT NULL DEFAULT '',
    agent_type          TEXT NOT NULL,
    status              TEXT NOT NULL DEFAULT 'queued',
    config              TEXT NOT NULL DEFAULT '{}',
    files               TEXT NOT NULL DEFAULT '[]',
    progress            INTEGER,
    result              TEXT,
    usage               TEXT,
    error               TEXT,
    completed_at        TEXT,
    finished_at         TEXT,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    share_settings      TEXT,
    share_token         TEXT
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_created ON agent_tasks(user_id, created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_course ON agent_tasks(course_instance_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON agent_tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_finished_at ON agent_tasks(finished_at);",
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_share_token "
        "ON agent_tasks(share_token) WHERE share_token IS NOT NULL;"
    ),
]

# agent_conversations 表 DDL（每个任务至多一条）
_CONVERSATIONS_DDL = """
CREATE TABLE IF NOT EXISTS agent_conversations (
    conversation_id TEXT PRIMARY KEY,
    task_id         TEXT NOT NULL UNIQUE,
    user_id         TEXT NOT NULL,
    messages        TEXT NOT NULL DEFAULT '[]',
    context         TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,

    FOREIGN KEY (task_id) REFERENCES agent_tasks(task_id)
);
"""

_CONVERSATIONS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_conversations_user_id ON agent_conversations(user_id);",
]

# agent_templates 表 DDL
_TEMPLATES_DDL = """
CREATE TABLE IF NOT EXISTS agent_templates (
    template_id  TEXT PRIMARY KEY,
    user_id      TEXT,
    name         TEXT NOT NULL,
    agent_type   TEXT NOT NULL,
    description  TEXT NOT NULL DEFAULT '',
    config       TEXT NOT NULL DEFAULT '{}',
    is_public    INTEGER NOT NULL DEFAULT 0,
    created_at   TEXT NOT NULL
);
"""

_TEMPLATES_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_templates_user_type ON agent_templates(user_id, agent_type);",
    "CREATE INDEX IF NOT EXISTS idx_templates_public_type ON agent_templates(is_public, agent_type);",
    # (owner, name) 去重约束，系统模板（user_id 为 NULL）不受限
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_templates_owner_name "
        "ON agent_templates(user_id, name) WHERE user_id IS NOT NULL;"
    ),
]


def to_db_ts(value: datetime) -> str:
    """时间戳统一为 UTC + 微秒精度的 ISO-8601 字符串，保证字典序即时间序"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_db_ts(value: str | None) -> datetime | None:
    """解析 to_db_ts 写入的时间戳"""
    if value is None:
        return None
    return datetime.fromisoformat(value)


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_TASKS_DDL)
    await conn.execute(_CONVERSATIONS_DDL)
    await conn.execute(_TEMPLATES_DDL)

    # 创建索引
    for idx_sql in _TASKS_INDEXES + _CONVERSATIONS_INDEXES + _TEMPLATES_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
