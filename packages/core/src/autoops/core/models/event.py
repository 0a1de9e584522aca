"""RunEvent Domain Model 与各事件 payload

事件流 append-only；event_id 使用 ULID 格式，时间有序；
run_seq 同一 run 内严格单调递增。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import EventType, RunPhase, RunStatus, TaskStatus


class RunEvent(BaseModel):
    """RunEvent 数据模型"""

    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    run_id: str = Field(description="关联的 Run ID")
    run_seq: int = Field(description="Run 内序号，严格单调递增")
    ts: datetime = Field(description="事件时间戳")
    type: EventType = Field(description="事件类型")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")
    trace_id: str = Field(description="追踪标识，同一 run 共享")


class RunStartedPayload(BaseModel):
    """RUN_STARTED 事件 payload"""

    goal_preview: str = Field(description="目标预览（截断到 200 字符）")
    goal_length: int


class PhaseChangedPayload(BaseModel):
    """PHASE_CHANGED 事件 payload"""

    from_phase: RunPhase
    to_phase: RunPhase
    duration_ms: int = Field(default=0, description="上一阶段耗时（毫秒）")


class TaskEventPayload(BaseModel):
    """TASK_STARTED / TASK_COMPLETED / TASK_FAILED / TASK_SKIPPED 事件 payload"""

    task_id: str
    title: str
    status: TaskStatus
    error: str | None = None
    error_kind: str | None = None
    attempt: int = 1


class TaskProgressPayload(BaseModel):
    """TASK_PROGRESS 事件 payload"""

    task_id: str
    progress: float = Field(ge=0.0, le=100.0, description="进度百分比")


class RunCompletedPayload(BaseModel):
    """RUN_COMPLETED 事件 payload"""

    status: RunStatus
    final_phase: RunPhase
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    error_kind: str | None = None
