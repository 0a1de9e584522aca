"""进程内 Store 实现

只在进程生命周期内保存数据，重启后丢失。
RunStore 有容量上限，超出时淘汰最早的记录；EventStore 随 Run 一起淘汰。
"""

import asyncio
from collections import OrderedDict, defaultdict
from collections.abc import Callable

from ..config import RUN_HISTORY_LIMIT
from ..models.enums import RunPhase
from ..models.event import RunEvent
from ..models.run import RunOutcome, RunRecord


def _reached_execution(outcome: RunOutcome) -> bool:
    return any(p.phase == RunPhase.EXECUTING for p in outcome.phases)


class InMemoryRunStore:
    """RunStore 的内存实现"""

    def __init__(
        self,
        history_limit: int = RUN_HISTORY_LIMIT,
        on_evict: Callable[[str], None] | None = None,
    ) -> None:
        self._history_limit = history_limit
        self._on_evict = on_evict
        # run_id -> RunOutcome，插入顺序即完成顺序
        self._runs: OrderedDict[str, RunOutcome] = OrderedDict()
        self._lock = asyncio.Lock()

    async def save_run(self, outcome: RunOutcome) -> None:
        """保存 Run，超出容量时淘汰最早的记录"""
        async with self._lock:
            self._runs.pop(outcome.run_id, None)
            self._runs[outcome.run_id] = outcome
            while len(self._runs) > self._history_limit:
                evicted, _ = self._runs.popitem(last=False)
                if self._on_evict:
                    self._on_evict(evicted)

    async def get_run(self, run_id: str) -> RunOutcome | None:
        """根据 run_id 查询 Run"""
        return self._runs.get(run_id)

    async def list_runs(self, status: str | None = None) -> list[RunOutcome]:
        """查询 Run 列表，按完成时间倒序"""
        runs = list(self._runs.values())
        if status:
            runs = [r for r in runs if r.status == status]
        return sorted(runs, key=lambda r: r.completed_at, reverse=True)

    async def recent_runs(self, limit: int = 50) -> list[RunRecord]:
        """按时间正序返回最近的 Run 记录

        只统计真正进入执行阶段的 Run。被阻断、等待澄清、信息查询
        以及 skip_execution 的 Run 都不计入成功率。
        """
        records = [
            RunRecord(
                goal=r.goal,
                success=r.success,
                score=float(r.reflection.overall_score) if r.reflection else 0.0,
            )
            for r in self._runs.values()
            if _reached_execution(r)
        ]
        return records[-limit:]

    def __len__(self) -> int:
        return len(self._runs)

    def statistics(self) -> dict[str, int | float]:
        """Run 统计"""
        runs = list(self._runs.values())
        by_status: dict[str, int] = defaultdict(int)
        for r in runs:
            by_status[str(r.status)] += 1
        scored = [r.reflection.overall_score for r in runs if r.reflection]
        return {
            "total_runs": len(runs),
            **by_status,
            "average_score": sum(scored) / len(scored) if scored else 0.0,
        }


class InMemoryEventStore:
    """EventStore 的内存实现"""

    def __init__(self) -> None:
        self._events: dict[str, list[RunEvent]] = defaultdict(list)

    async def append_event(self, event: RunEvent) -> None:
        """追加事件（append-only）"""
        self._events[event.run_id].append(event)

    async def get_events_for_run(self, run_id: str) -> list[RunEvent]:
        """查询 Run 的全部事件，按 run_seq 正序"""
        return sorted(self._events.get(run_id, []), key=lambda e: e.run_seq)

    async def get_events_after(self, run_id: str, after_event_id: str) -> list[RunEvent]:
        """查询指定事件之后的事件"""
        events = await self.get_events_for_run(run_id)
        for i, event in enumerate(events):
            if event.event_id == after_event_id:
                return events[i + 1 :]
        # 未知 event_id：退化为全量推送
        return events

    def has_run(self, run_id: str) -> bool:
        return run_id in self._events

    def discard_run(self, run_id: str) -> None:
        self._events.pop(run_id, None)
