"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，确认流水线组件与 Store 已初始化。
"""

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()

PIPELINE_COMPONENTS = ("router", "gate", "estimator", "planner")


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查

    检查项：
    1. 流水线组件（router / gate / estimator / planner）
    2. run_store: 当前保存的 Run 数量
    3. sse_hub: 事件广播器
    """
    checks: dict[str, str | int] = {}
    all_ok = True

    services = getattr(request.app.state, "services", None)
    for name in PIPELINE_COMPONENTS:
        if services is not None and getattr(services, name, None) is not None:
            checks[name] = "ok"
        else:
            checks[name] = "error: not initialized"
            all_ok = False

    store_group = getattr(request.app.state, "store_group", None)
    if store_group is not None:
        checks["run_store_size"] = len(store_group.run_store)
    else:
        checks["run_store_size"] = "error: not initialized"
        all_ok = False

    if getattr(request.app.state, "sse_hub", None) is not None:
        checks["sse_hub"] = "ok"
    else:
        checks["sse_hub"] = "error: not initialized"
        all_ok = False

    if not all_ok:
        log.warning("readiness_check_failed", checks=checks)

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
