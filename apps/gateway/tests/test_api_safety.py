"""安全校验 API 测试"""

from httpx import AsyncClient


async def _validate(client: AsyncClient, goal: str, context: str | None = None) -> dict:
    resp = await client.post("/api/safety/validate", json={"goal": goal, "context": context})
    assert resp.status_code == 200
    return resp.json()


class TestSafetyValidate:
    """单独校验"""

    async def test_destructive_goal_blocked(self, client: AsyncClient):
        result = await _validate(client, "delete all production data")
        assert result["safety_level"] == "blocked"
        assert result["is_approved"] is False
        assert result["decision"] == "blocked"
        assert any(
            v["category"] == "destructive" and v["severity"] == "critical"
            for v in result["violations"]
        )

    async def test_ambiguous_goal_needs_clarification(self, client: AsyncClient):
        result = await _validate(client, "Make it better")
        assert result["safety_level"] == "caution"
        assert result["decision"] == "clarification_required"
        assert result["clarifications_needed"]

    async def test_empty_goal_rejected(self, client: AsyncClient):
        resp = await client.post("/api/safety/validate", json={"goal": ""})
        assert resp.status_code == 422


class TestSafetyOverride:
    """人工放行"""

    async def test_override_unknown_validation(self, client: AsyncClient):
        resp = await client.post(
            "/api/safety/01JNONEXISTENT0000000000000/override", json={"reason": "ok"}
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "VALIDATION_NOT_FOUND"

    async def test_override_refused_for_critical(self, client: AsyncClient):
        result = await _validate(client, "delete all production data")
        resp = await client.post(
            f"/api/safety/{result['validation_id']}/override", json={"reason": "I insist"}
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "OVERRIDE_REFUSED"

    async def test_override_approved(self, client: AsyncClient):
        result = await _validate(client, "Make it better")
        resp = await client.post(
            f"/api/safety/{result['validation_id']}/override", json={"reason": "reviewed"}
        )
        assert resp.status_code == 200
        assert resp.json() == {"validation_id": result["validation_id"], "approved": True}


class TestSafetyStatistics:
    """统计"""

    async def test_statistics(self, client: AsyncClient):
        await _validate(client, "delete all production data")
        await _validate(client, "Make it better")

        resp = await client.get("/api/safety/statistics")
        assert resp.status_code == 200
        stats = resp.json()
        assert stats["total_validations"] == 2
        assert stats["blocked"] == 1
        assert stats["clarification_required"] == 1
        assert stats["violations_by_category"]["destructive"] >= 1
