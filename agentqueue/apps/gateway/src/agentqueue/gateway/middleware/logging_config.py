"""structlog 日志配置

AGENTQUEUE_LOG_FORMAT: "dev"（默认，彩色控制台）或 "json"（每行一个 JSON 对象）
AGENTQUEUE_LOG_LEVEL:  根日志级别，默认 INFO
"""

import logging
import os

import structlog

# 请求日志由 LoggingMiddleware 输出，关闭 uvicorn 自带的 access 日志
_QUIET_LOGGERS = ("uvicorn.access",)


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging() -> None:
    """让 structlog 与标准库 logging 共用同一条处理链和输出"""
    log_format = os.environ.get("AGENTQUEUE_LOG_FORMAT", "dev")
    log_level = os.environ.get("AGENTQUEUE_LOG_LEVEL", "INFO").upper()

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format),
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, log_level, logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
