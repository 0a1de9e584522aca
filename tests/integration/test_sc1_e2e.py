"""SC-1 端到端集成测试

POST /api/goal -> 后台 Run -> 事件落盘 -> SSE 回放 -> Run 详情完整链路
"""

import asyncio
import json

from httpx import AsyncClient

GOAL = "Create a CI/CD pipeline for a Node.js application with automated testing and deployment"
CONTEXT = "Deploy to AWS using GitHub Actions"


class TestSC1EndToEnd:
    """SC-1: Goal 受理到 Run 完成全链路"""

    async def test_goal_to_completed_run(self, client: AsyncClient):
        """提交 goal -> 后台执行 -> 查询详情 -> SSE 回放"""
        # 1. 提交 goal
        resp = await client.post(
            "/api/goal",
            json={
                "goal": GOAL,
                "context": CONTEXT,
                "options": {"enable_optimization": True},
            },
        )
        assert resp.status_code == 201
        run_id = resp.json()["run_id"]

        # 2. 等待后台 Run 结束
        detail = None
        for _ in range(200):
            resp = await client.get(f"/api/runs/{run_id}")
            if resp.status_code == 200:
                detail = resp.json()
                break
            await asyncio.sleep(0.01)
        assert detail is not None

        # 3. 验证阶段与产出
        assert detail["status"] == "completed"
        assert [p["phase"] for p in detail["phases"]] == [
            "accepted",
            "classifying",
            "validating_safety",
            "assessing_confidence",
            "planning",
            "executing",
            "reflecting",
            "optimizing",
            "complete",
        ]
        assert detail["optimization"]["optimizations"]
        assert detail["failure_analysis"] is None

        # 4. SSE 回放与 Run 详情一致
        events = []
        async with client.stream("GET", f"/api/stream/run/{run_id}") as response:
            assert response.status_code == 200
            async for line in response.aiter_lines():
                if line.startswith("data:"):
                    events.append(json.loads(line[len("data:") :].strip()))

        assert events[0]["type"] == "RUN_STARTED"
        assert events[-1]["final"] is True
        assert events[-1]["payload"]["completed"] == detail["summary"]["completed"]
        phase_events = [e["payload"]["to_phase"] for e in events if e["type"] == "PHASE_CHANGED"]
        assert phase_events == [p["phase"] for p in detail["phases"]][1:]

    async def test_run_listed_after_completion(self, client: AsyncClient):
        resp = await client.post(
            "/api/goal", json={"goal": GOAL, "context": CONTEXT, "wait": True}
        )
        run_id = resp.json()["run_id"]

        runs = (await client.get("/api/runs")).json()["runs"]
        assert [r["run_id"] for r in runs] == [run_id]
        assert (await client.get("/ready")).json()["checks"]["run_store_size"] == 1
