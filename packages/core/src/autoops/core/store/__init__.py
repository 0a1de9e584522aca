"""AutoOps Core Store -- 进程内存储实现

提供工厂函数创建 Store 实例组。
"""

from ..config import RUN_HISTORY_LIMIT
from .memory_store import InMemoryEventStore, InMemoryRunStore
from .protocols import EventStore, HistoricalRunReader, RunMemorySink, RunStore


class StoreGroup:
    """Store 实例组 -- Run 与事件存储"""

    def __init__(self, history_limit: int = RUN_HISTORY_LIMIT) -> None:
        self.event_store = InMemoryEventStore()
        # 淘汰 Run 时一并丢弃其事件历史
        self.run_store = InMemoryRunStore(history_limit, on_evict=self.event_store.discard_run)


def create_store_group(history_limit: int = RUN_HISTORY_LIMIT) -> StoreGroup:
    """创建 Store 实例组

    Args:
        history_limit: 保留的历史 Run 数量

    Returns:
        StoreGroup 实例
    """
    return StoreGroup(history_limit=history_limit)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "InMemoryRunStore",
    "InMemoryEventStore",
    "HistoricalRunReader",
    "RunMemorySink",
    "RunStore",
    "EventStore",
]
