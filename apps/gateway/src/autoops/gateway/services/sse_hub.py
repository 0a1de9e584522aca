"""SSEHub -- 内存中 RunEvent 广播器

实现 EventSink：publish 先写入 EventStore（供迟到订阅者回放），
再广播给该 Run 的所有订阅队列。每个订阅者持有一个 asyncio.Queue。
"""

import asyncio
from collections import defaultdict

import structlog
from autoops.core.models import EventType, RunEvent
from autoops.core.store import EventStore

log = structlog.get_logger()


class SSEHub:
    """SSE 事件广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, event_store: EventStore, queue_maxsize: int = 100) -> None:
        self._event_store = event_store
        # run_id -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize
        # 已受理但尚未发出 RUN_COMPLETED 的 Run
        self._active_runs: set[str] = set()

    def begin_run(self, run_id: str) -> None:
        """登记已受理的 Run，使其在首个事件前即可被订阅"""
        self._active_runs.add(run_id)

    def is_active(self, run_id: str) -> bool:
        return run_id in self._active_runs

    async def publish(self, event: RunEvent) -> None:
        """EventSink 接口：持久化后广播"""
        await self._event_store.append_event(event)
        await self.broadcast(event.run_id, event)
        if event.type == EventType.RUN_COMPLETED:
            self._active_runs.discard(event.run_id)

    async def subscribe(self, run_id: str) -> asyncio.Queue:
        """订阅指定 Run 的事件流

        Returns:
            asyncio.Queue 实例，新事件会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[run_id].add(queue)
        return queue

    async def unsubscribe(self, run_id: str, queue: asyncio.Queue) -> None:
        self._subscribers[run_id].discard(queue)
        if not self._subscribers[run_id]:
            del self._subscribers[run_id]

    async def broadcast(self, run_id: str, event: RunEvent) -> None:
        """向指定 Run 的所有订阅者广播事件，队列已满的订阅者被移除"""
        dead_queues = []
        for queue in self._subscribers.get(run_id, set()):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        for q in dead_queues:
            self._subscribers[run_id].discard(q)
            log.warning("sse_subscriber_dropped", run_id=run_id, reason="queue_full")
        if run_id in self._subscribers and not self._subscribers[run_id]:
            del self._subscribers[run_id]

    def subscriber_count(self, run_id: str) -> int:
        return len(self._subscribers.get(run_id, set()))
