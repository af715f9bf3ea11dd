"""LoggingMiddleware -- 每个请求一条开始日志和一条完成日志

request_id 优先沿用上游传入的 X-Request-ID，否则生成 ULID；
连同请求者 ID 一起绑定到 structlog contextvars，并回写到响应头。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"

log = structlog.get_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(ULID())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            user_id=request.headers.get("x-user-id"),
        )
        await log.ainfo("request_started")

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        # 5xx 单独以 warning 级别记录，便于告警过滤
        if response.status_code >= 500:
            await log.awarning(
                "request_failed", status_code=response.status_code, duration_ms=duration_ms
            )
        else:
            await log.ainfo(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
