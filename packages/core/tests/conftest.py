"""packages/core 测试配置 -- 核心层 fixture"""

from datetime import UTC, datetime, timedelta

import pytest
from autoops.core.models import (
    ExecutionSummary,
    PhaseRecord,
    Reflection,
    RunOutcome,
    RunPhase,
    RunStatus,
)
from autoops.core.store import StoreGroup, create_store_group


@pytest.fixture
def store_group() -> StoreGroup:
    """容量为 3 的 Store 实例组，便于测试淘汰"""
    return create_store_group(history_limit=3)


@pytest.fixture
def make_outcome():
    """构造 RunOutcome 的工厂，completed_at 按 offset 秒递增"""
    base = datetime(2026, 1, 1, tzinfo=UTC)

    def _make(
        run_id: str,
        status: RunStatus = RunStatus.COMPLETED,
        offset: int = 0,
        score: int | None = 80,
        failed: int = 0,
        goal: str = "Deploy the billing service",
        executed: bool | None = None,
    ) -> RunOutcome:
        final_phase = RunPhase.COMPLETE if status == RunStatus.COMPLETED else RunPhase.FAILED
        if executed is None:
            executed = status in (RunStatus.COMPLETED, RunStatus.FAILED)
        started_at = base + timedelta(seconds=offset)
        phases = [PhaseRecord(phase=RunPhase.CLASSIFYING, started_at=started_at)]
        if executed:
            phases.append(PhaseRecord(phase=RunPhase.EXECUTING, started_at=started_at))
        return RunOutcome(
            run_id=run_id,
            goal=goal,
            status=status,
            final_phase=final_phase,
            started_at=started_at,
            phases=phases,
            completed_at=base + timedelta(seconds=offset, milliseconds=500),
            summary=ExecutionSummary(total=2, completed=2 - failed, failed=failed),
            reflection=(
                Reflection(summary="ok", success_rate=1.0, overall_score=score)
                if score is not None
                else None
            ),
        )

    return _make
