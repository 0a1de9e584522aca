"""意图分类路由

POST /api/intent/classify: 分类输入文本；信息查询附带直接回答。
"""

from autoops.core.models import IntentType
from autoops.pipeline import IntentRouter, PipelineServices
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..deps import get_services

router = APIRouter()


class ClassifyRequest(BaseModel):
    """意图分类请求体"""

    text: str = Field(min_length=1, description="待分类文本")


@router.post("/api/intent/classify")
async def classify_intent(
    body: ClassifyRequest,
    services: PipelineServices = Depends(get_services),
):
    """分类输入意图"""
    classification = services.router.classify(body.text)
    explanation = None
    if classification.intent_type == IntentType.INFORMATION_QUERY:
        explanation = IntentRouter.explain(body.text)
    return {
        "classification": classification.model_dump(mode="json"),
        "explanation": explanation,
    }
