"""Pipeline 异常体系

每个异常携带机器可读的 kind 与人类可读的 message，
由 Orchestrator 在边界处转换为 RunError 返回给调用方。
"""

from typing import Any


class PipelineError(Exception):
    """Pipeline 基础异常"""

    kind: str = "pipeline_error"

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试或调整输入恢复
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable

    def details(self) -> dict[str, Any]:
        """附加到 RunError.details 的结构化信息"""
        return {}


class GoalValidationError(PipelineError):
    """Goal 格式非法（空、过短、过长）

    在任何阶段开始前抛出，不重试。
    """

    kind = "validation_error"

    def __init__(self, message: str, field: str = "goal") -> None:
        super().__init__(message, recoverable=False)
        self.field = field

    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class SafetyBlockedError(PipelineError):
    """安全校验阻断：blocked 等级或存在 critical 违规

    Run 在安全阶段后终止，不生成计划。
    """

    kind = "safety_blocked"

    def __init__(self, validation: Any) -> None:
        super().__init__(
            f"Goal blocked by safety validation: {validation.summary}",
            recoverable=False,
        )
        self.validation = validation

    def details(self) -> dict[str, Any]:
        return {
            "validation_id": self.validation.validation_id,
            "safety_level": str(self.validation.safety_level),
            "safety_score": self.validation.safety_score,
        }


class ClarificationRequiredError(PipelineError):
    """目标需要更多细节，但未被禁止

    调用方通过 clarification_policy 决定中止或继续。
    """

    kind = "clarification_required"

    def __init__(self, source: str, message: str, questions: list[str] | None = None) -> None:
        """
        Args:
            source: 触发来源（intent / safety / confidence）
            message: 错误描述
            questions: 需要用户回答的问题
        """
        super().__init__(message, recoverable=True)
        self.source = source
        self.questions = questions or []

    def details(self) -> dict[str, Any]:
        return {"source": self.source, "questions": self.questions}


class PlanningError(PipelineError):
    """任务图非法：存在环路或悬空依赖

    Run 在规划阶段后终止，不执行任何任务。
    """

    kind = "planning_error"

    def __init__(self, issues: list[str], cycle: list[str] | None = None) -> None:
        super().__init__(
            "Task plan failed validation: " + "; ".join(issues),
            recoverable=False,
        )
        self.issues = issues
        self.cycle = cycle

    def details(self) -> dict[str, Any]:
        return {"issues": self.issues, "cycle": self.cycle}


class TaskFailure(PipelineError):
    """单个任务执行失败

    只影响该任务及其下游，不终止 Run。
    """

    kind = "task_failure"

    def __init__(self, task_id: str, message: str, error_kind: str | None = None) -> None:
        super().__init__(message, recoverable=True)
        self.task_id = task_id
        self.error_kind = error_kind or self.kind

    def details(self) -> dict[str, Any]:
        return {"task_id": self.task_id, "error_kind": self.error_kind}


class RunTimeoutError(PipelineError, TimeoutError):
    """Run 超出允许时长

    所有进行中的任务被终结为 failed。
    """

    kind = "timeout"

    def __init__(self, timeout_s: float, phase: str | None = None) -> None:
        super().__init__(f"Run timed out after {timeout_s}s", recoverable=True)
        self.timeout_s = timeout_s
        self.phase = phase

    def details(self) -> dict[str, Any]:
        return {"timeout_s": self.timeout_s, "phase": self.phase}
