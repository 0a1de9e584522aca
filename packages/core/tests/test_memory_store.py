"""内存 Store 单元测试

测试内容：
1. RunStore 保存、查询、按完成时间倒序列表
2. 容量上限与淘汰回调
3. recent_runs 只统计进入执行的 Run
4. EventStore 按 run_seq 排序与断线续传
"""

from datetime import UTC, datetime

from autoops.core.models import EventType, RunEvent, RunStatus
from autoops.core.store import InMemoryEventStore, InMemoryRunStore


def _event(run_id: str, seq: int, event_id: str | None = None) -> RunEvent:
    return RunEvent(
        event_id=event_id or f"{run_id}-evt-{seq}",
        run_id=run_id,
        run_seq=seq,
        ts=datetime.now(UTC),
        type=EventType.PHASE_CHANGED,
        trace_id=f"trace-{run_id}",
    )


class TestRunStore:
    """RunStore 基本操作"""

    async def test_save_and_get(self, make_outcome):
        store = InMemoryRunStore()
        outcome = make_outcome("run-1")
        await store.save_run(outcome)

        assert await store.get_run("run-1") == outcome
        assert await store.get_run("missing") is None
        assert len(store) == 1

    async def test_list_newest_first(self, make_outcome):
        store = InMemoryRunStore()
        await store.save_run(make_outcome("run-old", offset=0))
        await store.save_run(make_outcome("run-new", offset=10))
        await store.save_run(make_outcome("run-mid", offset=5))

        runs = await store.list_runs()
        assert [r.run_id for r in runs] == ["run-new", "run-mid", "run-old"]

    async def test_list_filter_by_status(self, make_outcome):
        store = InMemoryRunStore()
        await store.save_run(make_outcome("run-ok"))
        await store.save_run(make_outcome("run-blocked", status=RunStatus.BLOCKED, score=None))

        blocked = await store.list_runs(status="blocked")
        assert [r.run_id for r in blocked] == ["run-blocked"]

    async def test_save_same_run_replaces(self, make_outcome):
        store = InMemoryRunStore()
        await store.save_run(make_outcome("run-1", score=10))
        await store.save_run(make_outcome("run-1", score=90))
        assert len(store) == 1
        assert (await store.get_run("run-1")).reflection.overall_score == 90


class TestEviction:
    """容量上限"""

    async def test_oldest_evicted(self, make_outcome):
        evicted: list[str] = []
        store = InMemoryRunStore(history_limit=2, on_evict=evicted.append)
        for i in range(3):
            await store.save_run(make_outcome(f"run-{i}", offset=i))

        assert evicted == ["run-0"]
        assert await store.get_run("run-0") is None
        assert len(store) == 2

    async def test_store_group_discards_events(self, store_group, make_outcome):
        await store_group.event_store.append_event(_event("run-0", 1))
        for i in range(4):
            await store_group.run_store.save_run(make_outcome(f"run-{i}", offset=i))

        assert store_group.event_store.has_run("run-0") is False
        assert await store_group.event_store.get_events_for_run("run-0") == []


class TestHistory:
    """历史记录与统计"""

    async def test_recent_runs_excludes_gated_runs(self, make_outcome):
        store = InMemoryRunStore()
        await store.save_run(make_outcome("run-ok", score=90))
        await store.save_run(make_outcome("run-fail", status=RunStatus.FAILED, score=None))
        await store.save_run(make_outcome("run-blocked", status=RunStatus.BLOCKED, score=None))
        await store.save_run(
            make_outcome("run-clarify", status=RunStatus.CLARIFICATION_REQUIRED, score=None)
        )
        await store.save_run(make_outcome("run-rejected", status=RunStatus.REJECTED, score=None))

        records = await store.recent_runs()
        assert [(r.success, r.score) for r in records] == [(True, 90.0), (False, 0.0)]

    async def test_recent_runs_excludes_completed_runs_without_execution(self, make_outcome):
        store = InMemoryRunStore()
        await store.save_run(make_outcome("run-query", score=None, executed=False))
        await store.save_run(make_outcome("run-plan-only", score=None, executed=False))
        await store.save_run(make_outcome("run-executed", score=75))

        records = await store.recent_runs()
        assert [(r.success, r.score) for r in records] == [(True, 75.0)]

    async def test_recent_runs_limit_keeps_latest(self, make_outcome):
        store = InMemoryRunStore()
        for i in range(5):
            await store.save_run(make_outcome(f"run-{i}", score=i * 10))

        records = await store.recent_runs(limit=2)
        assert [r.score for r in records] == [30.0, 40.0]

    async def test_statistics(self, make_outcome):
        store = InMemoryRunStore()
        await store.save_run(make_outcome("run-a", score=80))
        await store.save_run(make_outcome("run-b", score=60))
        await store.save_run(make_outcome("run-c", status=RunStatus.BLOCKED, score=None))

        stats = store.statistics()
        assert stats["total_runs"] == 3
        assert stats["completed"] == 2
        assert stats["blocked"] == 1
        assert stats["average_score"] == 70.0

    async def test_statistics_empty(self):
        assert InMemoryRunStore().statistics() == {"total_runs": 0, "average_score": 0.0}


class TestEventStore:
    """EventStore"""

    async def test_events_sorted_by_seq(self):
        store = InMemoryEventStore()
        for seq in (2, 1, 3):
            await store.append_event(_event("run-1", seq))

        events = await store.get_events_for_run("run-1")
        assert [e.run_seq for e in events] == [1, 2, 3]
        assert store.has_run("run-1")
        assert not store.has_run("run-2")

    async def test_events_after(self):
        store = InMemoryEventStore()
        for seq in (1, 2, 3):
            await store.append_event(_event("run-1", seq))

        after = await store.get_events_after("run-1", "run-1-evt-1")
        assert [e.run_seq for e in after] == [2, 3]
        assert await store.get_events_after("run-1", "run-1-evt-3") == []

    async def test_unknown_event_id_returns_all(self):
        store = InMemoryEventStore()
        for seq in (1, 2):
            await store.append_event(_event("run-1", seq))

        after = await store.get_events_after("run-1", "nope")
        assert [e.run_seq for e in after] == [1, 2]
