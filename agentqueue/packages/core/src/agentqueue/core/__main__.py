"""CLI 入口模块 -- python -m agentqueue.core <command>

支持的命令：
  init-db    初始化数据库（建表 + 索引）
  dashboard  输出当前 Dashboard 快照 JSON
"""

import asyncio
import json
import sys

from .config import get_db_path, load_monitor_config

_COMMANDS = {
    "init-db": "初始化数据库（建表 + 索引）",
    "dashboard": "输出当前 Dashboard 快照 JSON",
}


def _print_usage() -> None:
    print("用法: python -m agentqueue.core <command>")
    print("命令:")
    for name, desc in _COMMANDS.items():
        print(f"  {name:<10} {desc}")


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        _print_usage()
        sys.exit(1)

    command = sys.argv[1]

    if command == "init-db":
        asyncio.run(init_database())
    elif command == "dashboard":
        asyncio.run(print_dashboard())
    else:
        print(f"未知命令: {command}")
        print(f"可用命令: {', '.join(_COMMANDS)}")
        sys.exit(1)


async def init_database() -> None:
    """创建数据库文件并初始化表结构"""
    from .store import create_store_group, verify_wal_mode

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        wal = await verify_wal_mode(store_group.conn)
        print(f"初始化完成，WAL 模式: {'已启用' if wal else '未启用'}")
    finally:
        await store_group.conn.close()


async def print_dashboard() -> None:
    """计算并输出 Dashboard 快照"""
    from .monitor import QueueMonitor
    from .store import create_store_group

    store_group = await create_store_group(get_db_path())
    try:
        monitor = QueueMonitor(store_group.task_store, load_monitor_config())
        snapshot = await monitor.dashboard()
        print(json.dumps(snapshot.to_wire(), indent=2, ensure_ascii=False))
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
