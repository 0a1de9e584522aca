"""FastAPI 应用主文件

app 创建 + lifespan 管理：Store / SSEHub / PipelineServices 初始化 + 路由注册。
"""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from autoops.core.store import create_store_group
from autoops.pipeline import (
    OutcomeDecider,
    PipelineConfig,
    ProbabilisticOutcome,
    build_services,
    load_pipeline_config,
)
from fastapi import FastAPI

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import goal, health, intent, runs, safety, stream
from .services.run_service import RunService
from .services.sse_hub import SSEHub

log = structlog.get_logger()


def build_decider() -> OutcomeDecider | None:
    """AUTOOPS_SIMULATED_SUCCESS_RATE 设置时使用概率判定，否则全部成功"""
    raw = os.environ.get("AUTOOPS_SIMULATED_SUCCESS_RATE")
    if not raw:
        return None
    try:
        return ProbabilisticOutcome(success_rate=float(raw))
    except ValueError:
        log.warning("invalid_simulated_success_rate", value=raw, fallback="always_succeed")
        return None


def init_app_state(
    app: FastAPI,
    config: PipelineConfig | None = None,
    decider: OutcomeDecider | None = None,
) -> None:
    """在 app.state 上创建共享组件"""
    store_group = create_store_group()
    app.state.store_group = store_group
    app.state.sse_hub = SSEHub(store_group.event_store)
    app.state.services = build_services(
        config or load_pipeline_config(),
        history=store_group.run_store,
        memory=store_group.run_store,
    )
    app.state.decider = decider


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化组件，关闭时取消后台 Run"""
    init_app_state(app, decider=build_decider())
    config = app.state.services.config
    log.info(
        "pipeline_services_initialized",
        parallel_execution=config.executor.parallel_execution,
        max_concurrency=config.executor.max_concurrency,
        time_scale=config.executor.time_scale,
        run_timeout_s=config.orchestrator.run_timeout_s,
    )

    yield

    await RunService.cancel_background()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="AutoOps Gateway",
        version="0.1.0",
        description="AutoOps Goal 编排流水线 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()
    setup_logfire(app)

    app.include_router(goal.router, tags=["goal"])
    app.include_router(runs.router, tags=["runs"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(intent.router, tags=["intent"])
    app.include_router(safety.router, tags=["safety"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
