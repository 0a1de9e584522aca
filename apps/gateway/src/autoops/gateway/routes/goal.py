"""Goal 提交路由

POST /api/goal: 校验 goal 后创建 Run。
- 非法 goal 返回 400 VALIDATION_ERROR
- wait=true 同步执行，返回 200 + 完整 RunOutcome
- 否则返回 201 + run_id，Run 在后台执行
"""

from autoops.core.exceptions import GoalValidationError
from autoops.core.models import RunOptions
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from ..deps import get_run_service
from ..services.run_service import RunService

router = APIRouter()


class GoalRequest(BaseModel):
    """Goal 提交请求体"""

    goal: str = Field(description="目标文本")
    context: str | None = Field(default=None, description="附加上下文")
    constraints: list[str] = Field(default_factory=list, description="约束关键字，如 fast/thorough")
    options: RunOptions = Field(default_factory=RunOptions)
    wait: bool = Field(default=False, description="同步等待 Run 结束")


class GoalAccepted(BaseModel):
    """后台受理响应"""

    run_id: str
    status: str


@router.post("/api/goal")
async def submit_goal(
    body: GoalRequest,
    service: RunService = Depends(get_run_service),
):
    """提交 Goal"""
    try:
        if body.wait:
            outcome = await service.run_goal(
                body.goal, body.context, body.options, body.constraints
            )
            return JSONResponse(status_code=200, content=outcome.model_dump(mode="json"))

        run_id = await service.start_run(
            body.goal, body.context, body.options, body.constraints
        )
    except GoalValidationError as e:
        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": e.message,
                }
            },
        )

    return JSONResponse(
        status_code=201,
        content=GoalAccepted(run_id=run_id, status="ACCEPTED").model_dump(),
    )
