"""Store Protocol 接口定义

核心流水线只通过以下窄接口消费外部协作者，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from typing import Protocol

from ..models.event import RunEvent
from ..models.run import RunOutcome, RunRecord


class HistoricalRunReader(Protocol):
    """历史 Run 读取接口 -- 仅供 ConfidenceEstimator 使用"""

    async def recent_runs(self, limit: int = 50) -> list[RunRecord]:
        """按时间正序返回最近的 Run 记录"""
        ...


class RunMemorySink(Protocol):
    """已完成 Run 的写入接口（fire-and-forget，核心不回读）"""

    async def save_run(self, outcome: RunOutcome) -> None:
        """保存 Run 最终报告"""
        ...


class RunStore(HistoricalRunReader, RunMemorySink, Protocol):
    """Run 存储接口 -- 供请求处理层查询"""

    async def get_run(self, run_id: str) -> RunOutcome | None:
        """根据 run_id 查询 Run"""
        ...

    async def list_runs(self, status: str | None = None) -> list[RunOutcome]:
        """查询 Run 列表，支持按状态筛选，按完成时间倒序"""
        ...


class EventStore(Protocol):
    """RunEvent 存储接口

    事件 append-only：只允许追加，不允许更新或删除。
    """

    async def append_event(self, event: RunEvent) -> None:
        """追加事件（append-only）"""
        ...

    async def get_events_for_run(self, run_id: str) -> list[RunEvent]:
        """查询 Run 的全部事件，按 run_seq 正序"""
        ...

    async def get_events_after(self, run_id: str, after_event_id: str) -> list[RunEvent]:
        """查询指定事件之后的事件（断线重连用）"""
        ...
