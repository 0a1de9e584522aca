"""枚举定义 -- Goal 编排流水线的全部状态与分类

包含 TaskStatus 状态机、RunPhase 阶段机、意图/安全/置信度分类枚举，
以及 VALID_TASK_TRANSITIONS / VALID_PHASE_TRANSITIONS 合法流转映射和终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"

    # 终态
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


# 合法 Task 状态流转
# PENDING -> FAILED 仅用于依赖未满足时的快速失败
VALID_TASK_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {
        TaskStatus.IN_PROGRESS,
        TaskStatus.SKIPPED,
        TaskStatus.FAILED,
    },
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
    TaskStatus.SKIPPED: set(),
}

TASK_TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
    TaskStatus.SKIPPED,
}


class TaskPriority(StrEnum):
    """Task 优先级"""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# 排序权重：high 最先
PRIORITY_ORDER: dict[TaskPriority, int] = {
    TaskPriority.HIGH: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.LOW: 2,
}


class RunPhase(StrEnum):
    """ExecutionRun 阶段机"""

    ACCEPTED = "accepted"
    CLASSIFYING = "classifying"
    VALIDATING_SAFETY = "validating_safety"
    ASSESSING_CONFIDENCE = "assessing_confidence"
    PLANNING = "planning"
    EXECUTING = "executing"
    REFLECTING = "reflecting"
    OPTIMIZING = "optimizing"

    # 终态
    COMPLETE = "complete"
    FAILED = "failed"


# 阶段只能前进，不能回退；任何非终态都可直接进入终态
_PHASE_SEQUENCE: list[RunPhase] = [
    RunPhase.ACCEPTED,
    RunPhase.CLASSIFYING,
    RunPhase.VALIDATING_SAFETY,
    RunPhase.ASSESSING_CONFIDENCE,
    RunPhase.PLANNING,
    RunPhase.EXECUTING,
    RunPhase.REFLECTING,
    RunPhase.OPTIMIZING,
]

VALID_PHASE_TRANSITIONS: dict[RunPhase, set[RunPhase]] = {
    phase: {*_PHASE_SEQUENCE[i + 1 :], RunPhase.COMPLETE, RunPhase.FAILED}
    for i, phase in enumerate(_PHASE_SEQUENCE)
}
VALID_PHASE_TRANSITIONS[RunPhase.COMPLETE] = set()
VALID_PHASE_TRANSITIONS[RunPhase.FAILED] = set()

PHASE_TERMINAL_STATES: set[RunPhase] = {RunPhase.COMPLETE, RunPhase.FAILED}


class RunStatus(StrEnum):
    """Run 最终结论"""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"
    CLARIFICATION_REQUIRED = "clarification_required"
    REJECTED = "rejected"


class IntentType(StrEnum):
    """输入意图分类"""

    EXECUTION_GOAL = "EXECUTION_GOAL"
    INFORMATION_QUERY = "INFORMATION_QUERY"
    AMBIGUOUS = "AMBIGUOUS"


class SafetyLevel(StrEnum):
    """安全等级"""

    SAFE = "safe"
    CAUTION = "caution"
    WARNING = "warning"
    BLOCKED = "blocked"


class ViolationCategory(StrEnum):
    """安全违规类别"""

    AMBIGUITY = "ambiguity"
    SCOPE = "scope"
    SECURITY = "security"
    RESOURCE = "resource"
    COMPLIANCE = "compliance"
    DESTRUCTIVE = "destructive"
    EXTERNAL = "external"


class Severity(StrEnum):
    """违规 / 失败严重度"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SafetyDecision(StrEnum):
    """安全决策日志标签"""

    APPROVED = "approved"
    CLARIFICATION_REQUIRED = "clarification_required"
    MODIFIED = "modified"
    BLOCKED = "blocked"


class ConfidenceLevel(StrEnum):
    """置信度档位"""

    VERY_HIGH = "very-high"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very-low"


class CautionLevel(StrEnum):
    """执行谨慎程度"""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FactorImpact(StrEnum):
    """置信度因子影响方向"""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class LogLevel(StrEnum):
    """RunLog 级别"""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class EventType(StrEnum):
    """Run 事件类型"""

    RUN_STARTED = "RUN_STARTED"
    PHASE_CHANGED = "PHASE_CHANGED"
    TASK_STARTED = "TASK_STARTED"
    TASK_PROGRESS = "TASK_PROGRESS"
    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_FAILED = "TASK_FAILED"
    TASK_SKIPPED = "TASK_SKIPPED"
    RUN_COMPLETED = "RUN_COMPLETED"


class FailureType(StrEnum):
    """失败原因分类"""

    TIMEOUT = "timeout"
    CONNECTION = "connection"
    VALIDATION = "validation"
    RESOURCE = "resource"
    PERMISSION = "permission"
    DEPENDENCY = "dependency"
    UNKNOWN = "unknown"


class RecoveryStrategy(StrEnum):
    """失败恢复策略"""

    RETRY = "retry"
    SKIP = "skip"
    FALLBACK = "fallback"
    MANUAL_INTERVENTION = "manual-intervention"
    ROLLBACK = "rollback"
    PARTIAL_COMPLETION = "partial-completion"


class ClarificationPolicy(StrEnum):
    """遇到 ClarificationRequired 时的继续方式"""

    ABORT = "abort"
    PROCEED = "proceed"


def validate_task_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证 Task 状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TASK_TRANSITIONS.get(from_status, set())
    return to_status in allowed


def validate_phase_transition(from_phase: RunPhase, to_phase: RunPhase) -> bool:
    """验证 Run 阶段流转是否合法（只进不退）"""
    allowed = VALID_PHASE_TRANSITIONS.get(from_phase, set())
    return to_phase in allowed
