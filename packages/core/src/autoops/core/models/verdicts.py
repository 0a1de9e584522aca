"""门控判定模型 -- 意图分类、安全校验、置信度评估

三类结果一经生成即只读（frozen），由 Orchestrator 汇总进 RunOutcome。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import (
    CautionLevel,
    ConfidenceLevel,
    FactorImpact,
    IntentType,
    SafetyDecision,
    SafetyLevel,
    Severity,
    ViolationCategory,
)

# ============================================================
# 意图分类
# ============================================================


class IntentClassification(BaseModel):
    """IntentRouter 分类结果"""

    model_config = ConfigDict(frozen=True)

    classification_id: str = Field(description="唯一标识，ULID 格式")
    timestamp: datetime
    input: str = Field(description="原始输入")
    intent_type: IntentType
    confidence: float = Field(ge=0.0, le=1.0, description="分类置信度")
    reasoning: str = ""
    suggested_action: str = ""
    keywords: list[str] = Field(default_factory=list, description="命中的关键字")


# ============================================================
# 安全校验
# ============================================================


class SafetyViolation(BaseModel):
    """检测到的风险模式"""

    model_config = ConfigDict(frozen=True)

    category: ViolationCategory
    severity: Severity
    description: str
    matched_pattern: str | None = Field(default=None, description="命中的正则源码")
    recommendation: str


class ClarificationRequest(BaseModel):
    """按类别生成的澄清请求"""

    model_config = ConfigDict(frozen=True)

    category: ViolationCategory
    question: str
    reason: str
    suggestions: list[str] = Field(default_factory=list)
    required: bool


class SafetyValidationResult(BaseModel):
    """SafetyGate.validate() 结果"""

    model_config = ConfigDict(frozen=True)

    validation_id: str = Field(description="唯一标识，ULID 格式")
    timestamp: datetime
    goal: str
    context: str | None = None
    safety_level: SafetyLevel
    is_approved: bool
    violations: list[SafetyViolation] = Field(default_factory=list)
    clarifications_needed: list[ClarificationRequest] = Field(default_factory=list)
    safety_score: int = Field(ge=0, le=100)
    summary: str = ""
    recommendations: list[str] = Field(default_factory=list)


class SafetyDecisionLog(BaseModel):
    """安全决策日志条目（append-only）"""

    model_config = ConfigDict(frozen=True)

    log_id: str
    timestamp: datetime
    validation_id: str
    goal: str
    decision: SafetyDecision
    safety_level: SafetyLevel
    reason: str
    violations: list[SafetyViolation] = Field(default_factory=list)
    applied_override: bool = False
    override_reason: str | None = None


class SafetyStatistics(BaseModel):
    """安全校验统计"""

    total_validations: int = 0
    approved: int = 0
    blocked: int = 0
    clarification_required: int = 0
    average_safety_score: float = 100.0
    violations_by_category: dict[str, int] = Field(default_factory=dict)


# ============================================================
# 置信度评估
# ============================================================


class GoalClarityScore(BaseModel):
    """目标清晰度子分"""

    model_config = ConfigDict(frozen=True)

    specificity: float
    actionability: float
    measurability: float
    context_richness: float
    overall: float


class HistoricalScore(BaseModel):
    """历史表现子分"""

    model_config = ConfigDict(frozen=True)

    similar_goal_success_rate: float
    workflow_success_rate: float
    recent_trend: float
    data_points: int
    overall: float


class ComplexityScore(BaseModel):
    """复杂度子分（越复杂 overall 越低）"""

    model_config = ConfigDict(frozen=True)

    task_count: int
    estimated_duration: int
    priority_mix: float
    dependency_depth: float
    risk_level: float
    overall: float


class ConfidenceFactor(BaseModel):
    """影响置信度的命名因子"""

    model_config = ConfigDict(frozen=True)

    name: str
    value: float
    weight: float
    impact: FactorImpact
    description: str


class ExecutionRecommendation(BaseModel):
    """执行建议"""

    model_config = ConfigDict(frozen=True)

    proceed_with_execution: bool
    caution_level: CautionLevel
    suggested_approach: str
    additional_validation: list[str] = Field(default_factory=list)
    risk_mitigation: list[str] = Field(default_factory=list)


class ConfidenceAssessment(BaseModel):
    """ConfidenceEstimator.assess() 结果"""

    model_config = ConfigDict(frozen=True)

    assessment_id: str
    timestamp: datetime
    goal: str
    goal_clarity: GoalClarityScore
    historical: HistoricalScore
    complexity: ComplexityScore
    overall_confidence: float = Field(ge=0.0, le=1.0)
    confidence_level: ConfidenceLevel
    execution_recommendation: ExecutionRecommendation
    factors: list[ConfidenceFactor] = Field(default_factory=list)
