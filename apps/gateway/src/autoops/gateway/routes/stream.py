"""SSE 事件流路由

GET /api/stream/run/{run_id}: 推送指定 Run 的 RunEvent。
先回放历史事件，再推送实时事件；支持 Last-Event-ID 断线重连与心跳保活。
RUN_COMPLETED 事件携带 final: true，之后连接关闭。
"""

import asyncio
import json

from autoops.core.config import SSE_HEARTBEAT_INTERVAL
from autoops.core.models import EventType, RunEvent
from autoops.core.store import StoreGroup
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from ..deps import get_sse_hub, get_store_group
from ..services.sse_hub import SSEHub

router = APIRouter()


def _event_to_sse_data(event: RunEvent) -> dict:
    """将 RunEvent 转换为 SSE data JSON"""
    return {
        "event_id": event.event_id,
        "run_id": event.run_id,
        "seq": event.run_seq,
        "ts": event.ts.isoformat(),
        "type": event.type,
        "payload": event.payload,
        "trace_id": event.trace_id,
        "final": event.type == EventType.RUN_COMPLETED,
    }


def _to_sse(event: RunEvent) -> dict:
    return {
        "id": event.event_id,
        "event": event.type,
        "data": json.dumps(_event_to_sse_data(event), ensure_ascii=False),
    }


@router.get("/api/stream/run/{run_id}")
async def stream_run_events(
    run_id: str,
    request: Request,
    store_group: StoreGroup = Depends(get_store_group),
    sse_hub: SSEHub = Depends(get_sse_hub),
):
    """SSE 事件流端点"""
    known = (
        sse_hub.is_active(run_id)
        or store_group.event_store.has_run(run_id)
        or await store_group.run_store.get_run(run_id) is not None
    )
    if not known:
        return JSONResponse(
            status_code=404,
            content={
                "error": {
                    "code": "RUN_NOT_FOUND",
                    "message": f"Run with id {run_id} does not exist",
                }
            },
        )

    last_event_id = request.headers.get("last-event-id")

    async def event_generator():
        # 先订阅再读历史；实时事件按 run_seq 去重
        queue = await sse_hub.subscribe(run_id)
        try:
            if last_event_id:
                history = await store_group.event_store.get_events_after(run_id, last_event_id)
            else:
                history = await store_group.event_store.get_events_for_run(run_id)

            last_seq = 0
            for event in history:
                yield _to_sse(event)
                last_seq = event.run_seq
                if event.type == EventType.RUN_COMPLETED:
                    return

            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=SSE_HEARTBEAT_INTERVAL)
                except TimeoutError:
                    yield {"comment": "heartbeat"}
                    continue

                if event.run_seq <= last_seq:
                    continue
                yield _to_sse(event)
                last_seq = event.run_seq
                if event.type == EventType.RUN_COMPLETED:
                    return
        finally:
            await sse_hub.unsubscribe(run_id, queue)

    return EventSourceResponse(event_generator())
