"""安全校验路由

POST /api/safety/validate: 单独校验一个 goal。
POST /api/safety/{validation_id}/override: 人工放行（存在 critical 违规时拒绝）。
GET /api/safety/statistics: 校验统计。
"""

from autoops.pipeline import PipelineServices
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from ..deps import get_services

router = APIRouter()


class SafetyValidateRequest(BaseModel):
    """安全校验请求体"""

    goal: str = Field(min_length=1, description="目标文本")
    context: str | None = Field(default=None, description="附加上下文")


class OverrideRequest(BaseModel):
    """人工放行请求体"""

    reason: str = Field(min_length=1, description="放行理由")


@router.post("/api/safety/validate")
async def validate_goal_safety(
    body: SafetyValidateRequest,
    services: PipelineServices = Depends(get_services),
):
    """校验 goal 并返回 SafetyValidationResult 与决策"""
    result = services.gate.validate(body.goal, body.context)
    return {
        **result.model_dump(mode="json"),
        "decision": services.gate.decision_for(result).value,
    }


@router.get("/api/safety/statistics")
async def safety_statistics(services: PipelineServices = Depends(get_services)):
    """安全校验统计"""
    return services.gate.statistics().model_dump(mode="json")


@router.post("/api/safety/{validation_id}/override")
async def override_validation(
    validation_id: str,
    body: OverrideRequest,
    services: PipelineServices = Depends(get_services),
):
    """人工放行

    - 成功返回 200
    - 未知 validation_id 返回 404
    - 存在 critical 违规返回 409
    """
    gate = services.gate
    if gate.get_validation(validation_id) is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": {
                    "code": "VALIDATION_NOT_FOUND",
                    "message": f"Validation with id {validation_id} does not exist",
                }
            },
        )

    if not gate.approve_with_override(validation_id, body.reason):
        return JSONResponse(
            status_code=409,
            content={
                "error": {
                    "code": "OVERRIDE_REFUSED",
                    "message": "Override refused: critical safety violation present",
                }
            },
        )

    return {"validation_id": validation_id, "approved": True}
