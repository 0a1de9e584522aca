"""ExecutionRun 相关模型 -- 阶段时间线、日志、执行摘要、复盘、失败分析与 RunOutcome

RunOutcome 是一次 Run 到达终态后的不可变快照。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import (
    ClarificationPolicy,
    FailureType,
    LogLevel,
    RecoveryStrategy,
    RunPhase,
    RunStatus,
    Severity,
)
from .task import Task, TaskPlan
from .verdicts import ConfidenceAssessment, IntentClassification, SafetyValidationResult


class RunOptions(BaseModel):
    """process_goal 调用选项"""

    skip_execution: bool = Field(default=False, description="只规划不执行")
    skip_reflection: bool = Field(default=False, description="跳过复盘")
    enable_optimization: bool = Field(default=False, description="生成优化建议")
    verbose_logging: bool = Field(default=False, description="保留 debug 级别日志")
    parallel_execution: bool = Field(default=False, description="有界并行执行")
    clarification_policy: ClarificationPolicy = Field(
        default=ClarificationPolicy.ABORT,
        description="需要澄清时中止或继续",
    )


class LogEntry(BaseModel):
    """RunLog 条目（append-only）"""

    model_config = ConfigDict(frozen=True)

    log_id: str
    timestamp: datetime
    phase: RunPhase
    level: LogLevel
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class PhaseRecord(BaseModel):
    """阶段时间线条目"""

    phase: RunPhase
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: int = 0


class RunError(BaseModel):
    """返回给调用方的错误描述"""

    kind: str = Field(description="机器可读的错误类别")
    message: str = Field(description="人类可读的错误信息")
    details: dict[str, Any] = Field(default_factory=dict)


class ExecutionSummary(BaseModel):
    """执行阶段摘要"""

    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    total_duration_ms: int = 0
    errors: list[str] = Field(default_factory=list)


# ============================================================
# 复盘与优化
# ============================================================


class Reflection(BaseModel):
    """执行结果复盘"""

    summary: str
    success_rate: float
    insights: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    lessons_learned: list[str] = Field(default_factory=list)
    overall_score: int = Field(ge=0, le=100)


class Optimization(BaseModel):
    """单条优化建议"""

    optimization_id: str
    type: str = Field(description="workflow/task/timing/resource/process")
    title: str
    description: str
    impact: str
    effort: str
    priority: int = Field(ge=1, le=10)
    based_on: str
    confidence: float


class OptimizationResult(BaseModel):
    """优化阶段结果"""

    optimizations: list[Optimization] = Field(default_factory=list)
    process_suggestions: list[str] = Field(default_factory=list)


# ============================================================
# 失败分析
# ============================================================


class RecoveryStep(BaseModel):
    """恢复步骤"""

    order: int
    action: str
    description: str
    automated: bool


class RecoveryPlan(BaseModel):
    """失败任务的恢复计划"""

    strategy: RecoveryStrategy
    steps: list[RecoveryStep] = Field(default_factory=list)
    estimated_time: int = Field(description="预估恢复耗时（分钟）")
    confidence: float
    alternative_tasks: list[str] = Field(default_factory=list)


class FailureRecord(BaseModel):
    """单个任务的失败记录"""

    task_id: str
    task_title: str
    error: str
    error_type: FailureType
    severity: Severity
    retry_attempted: bool = False
    retry_succeeded: bool = False
    recovery_plan: RecoveryPlan | None = None
    explanation: str = ""


class FailureAnalysis(BaseModel):
    """一次 Run 的失败分析"""

    total_failures: int = 0
    failures_by_type: dict[str, int] = Field(default_factory=dict)
    failures_by_severity: dict[str, int] = Field(default_factory=dict)
    retries_attempted: int = 0
    retries_succeeded: int = 0
    recovery_rate: float = 0.0
    plain_language_summary: str = ""
    root_causes: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    records: list[FailureRecord] = Field(default_factory=list)


# ============================================================
# 汇总
# ============================================================


class RunOutcome(BaseModel):
    """一次 Run 的最终报告"""

    model_config = ConfigDict(frozen=True)

    run_id: str
    goal: str
    context: str | None = None
    status: RunStatus
    final_phase: RunPhase
    started_at: datetime
    completed_at: datetime
    duration_ms: int = 0
    intent: IntentClassification | None = None
    explanation: str | None = Field(default=None, description="信息查询的直接回答")
    safety: SafetyValidationResult | None = None
    confidence: ConfidenceAssessment | None = None
    plan: TaskPlan | None = None
    tasks: list[Task] = Field(default_factory=list)
    phases: list[PhaseRecord] = Field(default_factory=list)
    summary: ExecutionSummary = Field(default_factory=ExecutionSummary)
    reflection: Reflection | None = None
    optimization: OptimizationResult | None = None
    failure_analysis: FailureAnalysis | None = None
    error: RunError | None = None
    logs: list[LogEntry] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED and self.summary.failed == 0


class RunRecord(BaseModel):
    """历史 Run 的精简记录 -- ConfidenceEstimator 的唯一历史输入"""

    model_config = ConfigDict(frozen=True)

    goal: str
    success: bool
    score: float = Field(description="0-100 复盘得分")
