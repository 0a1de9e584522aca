"""SC-2 任务失败集成测试

单个任务失败时：后续任务跳过、Run 仍以 completed 收尾，并附带失败分析与恢复计划。
"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from autoops.pipeline import ExecutorConfig, PipelineConfig, ScriptedOutcome
from httpx import ASGITransport, AsyncClient

GOAL = "Build a data pipeline that loads nightly sales exports into the warehouse"
CONTEXT = "Source files land in S3; the warehouse is Postgres"
FAILING_STEP = "Transform and validate data"


@pytest_asyncio.fixture
async def failing_client() -> AsyncGenerator[AsyncClient, None]:
    """指定步骤始终失败的 app"""
    from autoops.gateway.main import create_app, init_app_state

    app = create_app()
    init_app_state(
        app,
        PipelineConfig(executor=ExecutorConfig(time_scale=0.0)),
        decider=ScriptedOutcome([FAILING_STEP]),
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class TestSC2TaskFailure:
    """SC-2: 任务失败与失败分析"""

    async def test_failed_task_is_analyzed(self, failing_client: AsyncClient):
        resp = await failing_client.post(
            "/api/goal", json={"goal": GOAL, "context": CONTEXT, "wait": True}
        )
        assert resp.status_code == 200
        data = resp.json()

        statuses = {t["title"]: t["status"] for t in data["tasks"]}
        assert statuses[FAILING_STEP] == "failed"
        assert statuses["Load data to destination"] == "skipped"
        assert statuses["Verify data integrity"] == "skipped"
        assert statuses["Analyze data requirements and sources"] == "completed"

        assert data["status"] == "completed"
        assert data["summary"]["failed"] == 1
        assert data["summary"]["skipped"] == 2

        analysis = data["failure_analysis"]
        assert analysis["total_failures"] == 1
        record = analysis["records"][0]
        assert record["task_title"] == FAILING_STEP
        assert record["recovery_plan"] is not None
        assert data["reflection"]["success_rate"] == 0.5

    async def test_failure_visible_in_run_list(self, failing_client: AsyncClient):
        await failing_client.post(
            "/api/goal", json={"goal": GOAL, "context": CONTEXT, "wait": True}
        )
        runs = (await failing_client.get("/api/runs")).json()["runs"]
        assert runs[0]["failed"] == 1
        assert runs[0]["status"] == "completed"
