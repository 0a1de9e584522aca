"""Run 查询 API 测试"""

from httpx import AsyncClient


class TestRunQueries:
    """Run 列表与详情"""

    async def test_list_runs_newest_first(self, client: AsyncClient, completed_run: dict):
        await client.post("/api/goal", json={"goal": "delete all production data", "wait": True})

        resp = await client.get("/api/runs")
        assert resp.status_code == 200
        runs = resp.json()["runs"]
        assert [r["status"] for r in runs] == ["blocked", "completed"]

        summary = runs[1]
        assert summary["run_id"] == completed_run["run_id"]
        assert summary["completed"] == 6
        assert summary["overall_score"] == completed_run["reflection"]["overall_score"]
        assert summary["error_kind"] is None
        assert runs[0]["error_kind"] == "safety_blocked"
        assert runs[0]["overall_score"] is None

    async def test_filter_by_status(self, client: AsyncClient, completed_run: dict):
        await client.post("/api/goal", json={"goal": "delete all production data", "wait": True})

        resp = await client.get("/api/runs", params={"status": "completed"})
        runs = resp.json()["runs"]
        assert [r["run_id"] for r in runs] == [completed_run["run_id"]]

    async def test_goal_preview_truncated(self, client: AsyncClient):
        goal = "Deploy the billing service " + "with care " * 20
        await client.post(
            "/api/goal",
            json={"goal": goal, "options": {"skip_execution": True}, "wait": True},
        )
        runs = (await client.get("/api/runs")).json()["runs"]
        assert len(runs[0]["goal"]) == 100

    async def test_get_run_detail(self, client: AsyncClient, completed_run: dict):
        resp = await client.get(f"/api/runs/{completed_run['run_id']}")
        assert resp.status_code == 200
        detail = resp.json()
        assert detail == completed_run
        assert [p["phase"] for p in detail["phases"]][0] == "accepted"
        assert detail["logs"]

    async def test_get_run_not_found(self, client: AsyncClient):
        resp = await client.get("/api/runs/01JNONEXISTENT0000000000000")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "RUN_NOT_FOUND"


class TestRunStatistics:
    """Run 统计"""

    async def test_empty_statistics(self, client: AsyncClient):
        resp = await client.get("/api/runs/statistics")
        assert resp.status_code == 200
        assert resp.json() == {"total_runs": 0, "average_score": 0.0}

    async def test_statistics_by_status(self, client: AsyncClient, completed_run: dict):
        await client.post("/api/goal", json={"goal": "delete all production data", "wait": True})

        stats = (await client.get("/api/runs/statistics")).json()
        assert stats["total_runs"] == 2
        assert stats["completed"] == 1
        assert stats["blocked"] == 1
        assert stats["average_score"] == completed_run["reflection"]["overall_score"]
