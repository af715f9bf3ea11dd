"""配置模块 -- 可通过环境变量覆盖

包含数据库路径、列表分页、文件校验限制等常量，
以及队列健康阈值 MonitorConfig 的加载。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("AGENTQUEUE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "AGENTQUEUE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "agentqueue.db"),
    )


# 任务列表默认/最大分页大小
DEFAULT_LIST_LIMIT: int = 20
MAX_LIST_LIMIT: int = 100

# 提交文件限制
MAX_FILE_SIZE_BYTES: int = int(
    os.environ.get("AGENTQUEUE_MAX_FILE_SIZE_BYTES", str(50 * 1024 * 1024))
)
MAX_TOTAL_FILE_SIZE_BYTES: int = int(
    os.environ.get("AGENTQUEUE_MAX_TOTAL_FILE_SIZE_BYTES", str(200 * 1024 * 1024))
)

SUPPORTED_MIME_TYPES: frozenset[str] = frozenset(
    {
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
        "text/markdown",
        "image/png",
        "image/jpeg",
        "image/jpg",
    }
)

# 分享链接前缀（前端拼接完整 URL）
SHARE_URL_PREFIX: str = "/shared/"

# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = 15

# 统计窗口长度（秒）
HOURLY_WINDOW_S: int = 3600
DAILY_WINDOW_S: int = 86400


class MonitorConfig(BaseModel):
    """队列健康阈值

    环境变量:
        AGENTQUEUE_HEALTH_FAILURE_RATE_DEGRADED: 失败率降级阈值（默认 0.1）
        AGENTQUEUE_HEALTH_FAILURE_RATE_UNHEALTHY: 失败率不健康阈值（默认 0.5）
        AGENTQUEUE_HEALTH_BACKLOG_DEGRADED: 排队数降级阈值（默认 100）
        AGENTQUEUE_HEALTH_BACKLOG_UNHEALTHY: 排队数不健康阈值（默认 1000）
        AGENTQUEUE_HEALTH_DELAYED_AFTER_S: 排队超过该秒数计为 delayed（默认不启用）
        AGENTQUEUE_HEALTH_DELAYED_DEGRADED: delayed 数降级阈值（默认 0）
        AGENTQUEUE_HEALTH_SLOW_PROCESSING_MS: 平均处理耗时降级阈值（默认 300000）
        AGENTQUEUE_HEALTH_PROCESSING_WINDOW_S: 平均处理耗时统计窗口（默认 86400）
    """

    failure_rate_degraded: float = Field(default=0.1, ge=0, le=1)
    failure_rate_unhealthy: float = Field(default=0.5, ge=0, le=1)
    backlog_degraded: int = Field(default=100, ge=0)
    backlog_unhealthy: int = Field(default=1000, ge=0)
    delayed_after_s: int | None = Field(default=None, ge=1)
    delayed_degraded: int = Field(default=0, ge=0)
    slow_processing_ms: float = Field(default=300000, gt=0)
    processing_time_window_s: int = Field(default=DAILY_WINDOW_S, ge=1)


_MONITOR_ENV: dict[str, tuple[str, type]] = {
    "AGENTQUEUE_HEALTH_FAILURE_RATE_DEGRADED": ("failure_rate_degraded", float),
    "AGENTQUEUE_HEALTH_FAILURE_RATE_UNHEALTHY": ("failure_rate_unhealthy", float),
    "AGENTQUEUE_HEALTH_BACKLOG_DEGRADED": ("backlog_degraded", int),
    "AGENTQUEUE_HEALTH_BACKLOG_UNHEALTHY": ("backlog_unhealthy", int),
    "AGENTQUEUE_HEALTH_DELAYED_AFTER_S": ("delayed_after_s", int),
    "AGENTQUEUE_HEALTH_DELAYED_DEGRADED": ("delayed_degraded", int),
    "AGENTQUEUE_HEALTH_SLOW_PROCESSING_MS": ("slow_processing_ms", float),
    "AGENTQUEUE_HEALTH_PROCESSING_WINDOW_S": ("processing_time_window_s", int),
}


def load_monitor_config() -> MonitorConfig:
    """从环境变量加载健康阈值

    无法解析或超出取值范围的值记录 warning 并回退到默认值，不阻塞启动。

    Returns:
        MonitorConfig 实例
    """
    kwargs: dict = {}
    sources: dict[str, tuple[str, str]] = {}

    for env_var, (field_name, caster) in _MONITOR_ENV.items():
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            kwargs[field_name] = caster(val)
            sources[field_name] = (env_var, val)
        except ValueError:
            _warn_invalid(env_var, val, field_name)

    try:
        return MonitorConfig(**kwargs)
    except ValidationError as e:
        # 丢弃越界字段后重试，其余覆盖值仍然生效
        for field_name in {err["loc"][0] for err in e.errors() if err["loc"]}:
            if field_name in kwargs:
                env_var, val = sources[field_name]
                _warn_invalid(env_var, val, field_name)
                kwargs.pop(field_name)
        return MonitorConfig(**kwargs)


def _warn_invalid(env_var: str, value: str, field_name: str) -> None:
    log.warning(
        "invalid_monitor_config",
        env_var=env_var,
        value=value,
        fallback=MonitorConfig.model_fields[field_name].default,
    )
