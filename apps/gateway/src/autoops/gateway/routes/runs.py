"""Run 查询路由

GET /api/runs: Run 摘要列表，支持 status 筛选，按完成时间倒序。
GET /api/runs/statistics: Run 统计。
GET /api/runs/{run_id}: 完整 RunOutcome。
"""

from autoops.core.store import StoreGroup
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from starlette.responses import JSONResponse

from ..deps import get_run_service, get_store_group
from ..services.run_service import RunService

router = APIRouter()


class RunSummary(BaseModel):
    """Run 摘要（列表项）"""

    run_id: str
    goal: str
    status: str
    final_phase: str
    started_at: str
    completed_at: str
    duration_ms: int
    completed: int
    failed: int
    skipped: int
    overall_score: int | None
    error_kind: str | None


class RunListResponse(BaseModel):
    """Run 列表响应"""

    runs: list[RunSummary]


@router.get("/api/runs", response_model=RunListResponse)
async def list_runs(
    status: str | None = Query(default=None, description="按状态筛选"),
    service: RunService = Depends(get_run_service),
):
    """查询 Run 列表"""
    runs = await service.list_runs(status)

    return RunListResponse(
        runs=[
            RunSummary(
                run_id=r.run_id,
                goal=r.goal[:100],
                status=r.status.value,
                final_phase=r.final_phase.value,
                started_at=r.started_at.isoformat(),
                completed_at=r.completed_at.isoformat(),
                duration_ms=r.duration_ms,
                completed=r.summary.completed,
                failed=r.summary.failed,
                skipped=r.summary.skipped,
                overall_score=r.reflection.overall_score if r.reflection else None,
                error_kind=r.error.kind if r.error else None,
            )
            for r in runs
        ]
    )


@router.get("/api/runs/statistics")
async def run_statistics(store_group: StoreGroup = Depends(get_store_group)):
    """Run 统计：按状态计数与平均复盘得分"""
    return store_group.run_store.statistics()


@router.get("/api/runs/{run_id}")
async def get_run(
    run_id: str,
    service: RunService = Depends(get_run_service),
):
    """查询 Run 详情"""
    outcome = await service.get_run(run_id)
    if outcome is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": {
                    "code": "RUN_NOT_FOUND",
                    "message": f"Run with id {run_id} does not exist",
                }
            },
        )
    return outcome.model_dump(mode="json")
