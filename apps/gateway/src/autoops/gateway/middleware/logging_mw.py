"""LoggingMiddleware -- 请求级日志

每个请求绑定 request_id（沿用调用方的 X-Request-ID，否则生成 ULID）；
路径带 run_id 时同时绑定 run_id，并在响应头 X-Trace-ID 返回 trace-<run_id>，
调用方可据此对齐 RunEvent.trace_id。
健康探针只记 debug，5xx 记 warning。
"""

import logging
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

from .trace_mw import extract_run_id

HEALTH_PATHS = frozenset({"/health", "/ready"})

# 调用方传入的 request_id 过长时丢弃
MAX_REQUEST_ID_LENGTH = 64


def resolve_request_id(header_value: str | None) -> str:
    if header_value and len(header_value) <= MAX_REQUEST_ID_LENGTH:
        return header_value
    return str(ULID())


def completion_level(path: str, status_code: int) -> int:
    """请求结束日志的级别"""
    if status_code >= 500:
        return logging.WARNING
    if path in HEALTH_PATHS:
        return logging.DEBUG
    return logging.INFO


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        request_id = resolve_request_id(request.headers.get("x-request-id"))
        run_id = extract_run_id(path)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
        )
        if run_id:
            structlog.contextvars.bind_contextvars(run_id=run_id)

        log = structlog.get_logger()
        health_check = path in HEALTH_PATHS
        if not health_check:
            await log.ainfo("request_started")
        started = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            await log.aexception(
                "request_errored", duration_ms=int((time.monotonic() - started) * 1000)
            )
            raise

        await log.alog(
            completion_level(path, response.status_code),
            "request_completed",
            status_code=response.status_code,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

        response.headers["X-Request-ID"] = request_id
        if run_id:
            response.headers["X-Trace-ID"] = f"trace-{run_id}"
        return response
