"""集成测试共享 fixture"""

import os
from collections.abc import AsyncGenerator

import pytest_asyncio
from autoops.pipeline import ExecutorConfig, PipelineConfig
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture
async def integration_app():
    """集成测试用 FastAPI app（零等待执行）"""
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from autoops.gateway.main import create_app, init_app_state

    app = create_app()
    init_app_state(app, PipelineConfig(executor=ExecutorConfig(time_scale=0.0)))

    yield app

    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
