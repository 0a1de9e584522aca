"""apps/gateway 测试配置 -- FastAPI app + httpx AsyncClient fixture"""

import os
from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from gateway_helpers import CICD_CONTEXT, CICD_GOAL


@pytest_asyncio.fixture
async def app():
    """创建测试用 FastAPI app 实例（零等待执行）"""
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from autoops.gateway.main import create_app, init_app_state
    from autoops.pipeline import ExecutorConfig, PipelineConfig

    application = create_app()
    # 手动初始化（ASGITransport 不触发 lifespan）
    init_app_state(application, PipelineConfig(executor=ExecutorConfig(time_scale=0.0)))
    yield application

    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def completed_run(client: AsyncClient) -> dict:
    """同步执行一次 CI/CD Run，返回 RunOutcome JSON"""
    resp = await client.post(
        "/api/goal",
        json={"goal": CICD_GOAL, "context": CICD_CONTEXT, "wait": True},
    )
    assert resp.status_code == 200
    return resp.json()
