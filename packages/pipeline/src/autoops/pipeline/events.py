"""RunEvent 发射

每个 Run 一个 RunEventEmitter，负责分配 run_seq 与 trace_id；
事件发布到可选的 EventSink（请求处理层的 SSEHub 实现该接口）。
发布失败只记录错误，不影响 Run。
"""

from datetime import UTC, datetime
from typing import Protocol

import structlog
from pydantic import BaseModel
from ulid import ULID

from autoops.core.models import EventType, RunEvent

log = structlog.get_logger()


class EventSink(Protocol):
    """RunEvent 接收端"""

    async def publish(self, event: RunEvent) -> None: ...


class RunEventEmitter:
    """单个 Run 的事件发射器"""

    def __init__(self, run_id: str, sink: EventSink | None = None) -> None:
        self._run_id = run_id
        self._trace_id = f"trace-{run_id}"
        self._sink = sink
        self._seq = 0
        self._events: list[RunEvent] = []

    @property
    def events(self) -> list[RunEvent]:
        return list(self._events)

    async def emit(self, event_type: EventType, payload: BaseModel) -> RunEvent:
        self._seq += 1
        event = RunEvent(
            event_id=str(ULID()),
            run_id=self._run_id,
            run_seq=self._seq,
            ts=datetime.now(UTC),
            type=event_type,
            payload=payload.model_dump(mode="json"),
            trace_id=self._trace_id,
        )
        self._events.append(event)

        if self._sink is not None:
            try:
                await self._sink.publish(event)
            except Exception as e:
                log.error(
                    "event_publish_failed",
                    run_id=self._run_id,
                    event_type=event_type,
                    error_type=type(e).__name__,
                )
        return event
