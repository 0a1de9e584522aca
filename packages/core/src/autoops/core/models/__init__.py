"""AutoOps Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    PHASE_TERMINAL_STATES,
    PRIORITY_ORDER,
    TASK_TERMINAL_STATES,
    VALID_PHASE_TRANSITIONS,
    VALID_TASK_TRANSITIONS,
    CautionLevel,
    ClarificationPolicy,
    ConfidenceLevel,
    EventType,
    FactorImpact,
    FailureType,
    IntentType,
    LogLevel,
    RecoveryStrategy,
    RunPhase,
    RunStatus,
    SafetyDecision,
    SafetyLevel,
    Severity,
    TaskPriority,
    TaskStatus,
    ViolationCategory,
    validate_phase_transition,
    validate_task_transition,
)
from .event import (
    PhaseChangedPayload,
    RunCompletedPayload,
    RunEvent,
    RunStartedPayload,
    TaskEventPayload,
    TaskProgressPayload,
)
from .run import (
    ExecutionSummary,
    FailureAnalysis,
    FailureRecord,
    LogEntry,
    Optimization,
    OptimizationResult,
    PhaseRecord,
    RecoveryPlan,
    RecoveryStep,
    Reflection,
    RunError,
    RunOptions,
    RunOutcome,
    RunRecord,
)
from .task import (
    Goal,
    InvalidTaskTransition,
    PlanValidation,
    Task,
    TaskPlan,
    TaskResult,
    TaskSpec,
)
from .verdicts import (
    ClarificationRequest,
    ComplexityScore,
    ConfidenceAssessment,
    ConfidenceFactor,
    ExecutionRecommendation,
    GoalClarityScore,
    HistoricalScore,
    IntentClassification,
    SafetyDecisionLog,
    SafetyStatistics,
    SafetyValidationResult,
    SafetyViolation,
)

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "RunPhase",
    "RunStatus",
    "IntentType",
    "SafetyLevel",
    "ViolationCategory",
    "Severity",
    "SafetyDecision",
    "ConfidenceLevel",
    "CautionLevel",
    "FactorImpact",
    "LogLevel",
    "EventType",
    "FailureType",
    "RecoveryStrategy",
    "ClarificationPolicy",
    # 状态机
    "VALID_TASK_TRANSITIONS",
    "TASK_TERMINAL_STATES",
    "VALID_PHASE_TRANSITIONS",
    "PHASE_TERMINAL_STATES",
    "PRIORITY_ORDER",
    "validate_task_transition",
    "validate_phase_transition",
    # Goal / Task
    "Goal",
    "Task",
    "TaskResult",
    "TaskSpec",
    "TaskPlan",
    "PlanValidation",
    "InvalidTaskTransition",
    # 判定
    "IntentClassification",
    "SafetyViolation",
    "ClarificationRequest",
    "SafetyValidationResult",
    "SafetyDecisionLog",
    "SafetyStatistics",
    "GoalClarityScore",
    "HistoricalScore",
    "ComplexityScore",
    "ConfidenceFactor",
    "ExecutionRecommendation",
    "ConfidenceAssessment",
    # Run
    "RunOptions",
    "LogEntry",
    "PhaseRecord",
    "RunError",
    "ExecutionSummary",
    "Reflection",
    "Optimization",
    "OptimizationResult",
    "RecoveryStep",
    "RecoveryPlan",
    "FailureRecord",
    "FailureAnalysis",
    "RunOutcome",
    "RunRecord",
    # Event
    "RunEvent",
    "RunStartedPayload",
    "PhaseChangedPayload",
    "TaskEventPayload",
    "TaskProgressPayload",
    "RunCompletedPayload",
]
