"""TraceMiddleware -- Run 级追踪

从 /api/runs/{run_id} 与 /api/stream/run/{run_id} 路径提取 run_id，
绑定 trace_id=trace-<run_id>，与 RunEvent.trace_id 一致。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ULID 长度
RUN_ID_LENGTH = 26


def extract_run_id(path: str) -> str | None:
    parts = path.split("/")
    for i, part in enumerate(parts):
        if part in ("runs", "run") and i + 1 < len(parts):
            candidate = parts[i + 1]
            # 排除 /api/runs/statistics 等子路由
            if len(candidate) == RUN_ID_LENGTH:
                return candidate
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """Run 级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if "/runs/" in path or "/run/" in path:
            run_id = extract_run_id(path)
            if run_id:
                structlog.contextvars.bind_contextvars(trace_id=f"trace-{run_id}")

        return await call_next(request)
