"""FailureHandler -- 失败分类、恢复计划与通俗解释

对一次 Run 中出现过失败尝试的任务做分析：
- 按错误文本分类（timeout / connection / validation / ...）
- 评估严重程度并选择恢复策略
- 生成面向用户的通俗解释与整体建议
"""

from collections.abc import Sequence

import structlog

from autoops.core.models import (
    FailureAnalysis,
    FailureRecord,
    FailureType,
    RecoveryPlan,
    RecoveryStep,
    RecoveryStrategy,
    Severity,
    Task,
    TaskPriority,
    TaskStatus,
)

from .scoring import clamp, round2

log = structlog.get_logger()

# 按顺序匹配，首个命中即返回
CLASSIFICATION_RULES: tuple[tuple[FailureType, tuple[str, ...]], ...] = (
    (FailureType.TIMEOUT, ("timeout", "timed out")),
    (FailureType.CONNECTION, ("connection", "network", "unreachable")),
    (FailureType.VALIDATION, ("validation", "invalid", "format")),
    (FailureType.RESOURCE, ("resource", "memory", "disk")),
    (FailureType.PERMISSION, ("permission", "denied", "unauthorized")),
    (FailureType.DEPENDENCY, ("dependency", "not found", "missing")),
)

# 执行器给出的 error_kind 优先于文本匹配
ERROR_KIND_TYPES: dict[str, FailureType] = {
    "timeout": FailureType.TIMEOUT,
    "dependency": FailureType.DEPENDENCY,
}

STRATEGY_BY_TYPE: dict[FailureType, RecoveryStrategy] = {
    FailureType.TIMEOUT: RecoveryStrategy.RETRY,
    FailureType.CONNECTION: RecoveryStrategy.RETRY,
    FailureType.VALIDATION: RecoveryStrategy.FALLBACK,
    FailureType.RESOURCE: RecoveryStrategy.PARTIAL_COMPLETION,
    FailureType.PERMISSION: RecoveryStrategy.MANUAL_INTERVENTION,
    FailureType.DEPENDENCY: RecoveryStrategy.ROLLBACK,
}

# 已重试仍失败时按严重程度选择
STRATEGY_AFTER_RETRY: dict[Severity, RecoveryStrategy] = {
    Severity.LOW: RecoveryStrategy.SKIP,
    Severity.MEDIUM: RecoveryStrategy.FALLBACK,
    Severity.HIGH: RecoveryStrategy.PARTIAL_COMPLETION,
    Severity.CRITICAL: RecoveryStrategy.MANUAL_INTERVENTION,
}

# (action, description, automated)
RECOVERY_STEPS: dict[RecoveryStrategy, tuple[tuple[str, str, bool], ...]] = {
    RecoveryStrategy.RETRY: (
        ("Wait", "Wait for transient issue to resolve", True),
        ("Retry", "Attempt task execution again", True),
        ("Verify", "Verify task completion", True),
    ),
    RecoveryStrategy.SKIP: (
        ("Log", "Log failure for later review", True),
        ("Skip", "Skip non-critical task and continue", True),
        ("Notify", "Add to execution report", True),
    ),
    RecoveryStrategy.FALLBACK: (
        ("Analyze", "Identify fallback approach", True),
        ("Substitute", "Use alternative method", True),
        ("Validate", "Ensure fallback meets requirements", True),
    ),
    RecoveryStrategy.PARTIAL_COMPLETION: (
        ("Assess", "Determine what can be completed", True),
        ("Execute", "Complete available portions", True),
        ("Document", "Record incomplete items", True),
        ("Schedule", "Plan for remaining work", False),
    ),
    RecoveryStrategy.MANUAL_INTERVENTION: (
        ("Alert", "Notify administrator of critical failure", True),
        ("Pause", "Pause workflow execution", True),
        ("Investigate", "Manual investigation required", False),
        ("Resolve", "Apply manual fix", False),
        ("Resume", "Resume workflow after resolution", False),
    ),
    RecoveryStrategy.ROLLBACK: (
        ("Stop", "Halt current execution", True),
        ("Revert", "Undo completed changes", True),
        ("Restore", "Restore previous state", True),
        ("Report", "Generate failure report", True),
    ),
}

BASE_RECOVERY_MINUTES: dict[RecoveryStrategy, int] = {
    RecoveryStrategy.RETRY: 5,
    RecoveryStrategy.SKIP: 1,
    RecoveryStrategy.FALLBACK: 10,
    RecoveryStrategy.PARTIAL_COMPLETION: 15,
    RecoveryStrategy.MANUAL_INTERVENTION: 60,
    RecoveryStrategy.ROLLBACK: 20,
}
MANUAL_STEP_MINUTES = 10

BASE_RECOVERY_CONFIDENCE: dict[RecoveryStrategy, float] = {
    RecoveryStrategy.RETRY: 0.7,
    RecoveryStrategy.SKIP: 0.95,
    RecoveryStrategy.FALLBACK: 0.75,
    RecoveryStrategy.PARTIAL_COMPLETION: 0.8,
    RecoveryStrategy.MANUAL_INTERVENTION: 0.6,
    RecoveryStrategy.ROLLBACK: 0.85,
}

ALTERNATIVES: dict[FailureType, tuple[str, ...]] = {
    FailureType.TIMEOUT: (
        "Increase timeout limits", "Break into smaller subtasks", "Use async processing",
    ),
    FailureType.CONNECTION: (
        "Check network connectivity", "Use offline fallback", "Queue for later execution",
    ),
    FailureType.VALIDATION: (
        "Review input data format", "Apply data transformation", "Use lenient validation mode",
    ),
    FailureType.RESOURCE: (
        "Free up system resources", "Scale up infrastructure", "Use resource pooling",
    ),
    FailureType.PERMISSION: (
        "Request elevated permissions", "Use service account", "Contact administrator",
    ),
    FailureType.DEPENDENCY: (
        "Install missing dependencies", "Update dependency versions", "Use alternative library",
    ),
    FailureType.UNKNOWN: (
        "Review task configuration", "Check system logs", "Contact support",
    ),
}

EXPLANATIONS: dict[FailureType, str] = {
    FailureType.TIMEOUT: (
        'The task "{title}" took too long to complete and was stopped. This usually happens '
        "when the operation is processing too much data or waiting for a slow external service."
    ),
    FailureType.CONNECTION: (
        'The task "{title}" couldn\'t connect to a required service. This might be due to '
        "network issues, the service being down, or incorrect connection settings."
    ),
    FailureType.VALIDATION: (
        'The task "{title}" received data that didn\'t match the expected format. The input '
        "needs to be checked and corrected before the task can succeed."
    ),
    FailureType.RESOURCE: (
        'The task "{title}" ran out of available resources (like memory or disk space). The '
        "system needs more capacity or the task should be optimized to use fewer resources."
    ),
    FailureType.PERMISSION: (
        'The task "{title}" doesn\'t have the necessary permissions to complete. Access rights '
        "need to be granted before this task can run."
    ),
    FailureType.DEPENDENCY: (
        'The task "{title}" is missing something it needs to work properly. A required '
        "component or service wasn't available when the task ran."
    ),
    FailureType.UNKNOWN: (
        'The task "{title}" failed for an unexpected reason. Further investigation is needed '
        "to understand what went wrong."
    ),
}

STRATEGY_EXPLANATIONS: dict[RecoveryStrategy, str] = {
    RecoveryStrategy.RETRY: "The system will automatically try again.",
    RecoveryStrategy.SKIP: "This task has been skipped to allow the workflow to continue.",
    RecoveryStrategy.FALLBACK: "An alternative approach will be used instead.",
    RecoveryStrategy.PARTIAL_COMPLETION: (
        "The task will be completed partially, with remaining work scheduled for later."
    ),
    RecoveryStrategy.MANUAL_INTERVENTION: "This requires manual attention to resolve.",
    RecoveryStrategy.ROLLBACK: "Changes are being rolled back to a safe state.",
}

GROUP_EXPLANATIONS: dict[FailureType, str] = {
    FailureType.TIMEOUT: "{count} task(s) timed out ({names}) - operations took too long",
    FailureType.CONNECTION: (
        "{count} task(s) had connection issues ({names}) - network or service problems"
    ),
    FailureType.VALIDATION: "{count} task(s) failed validation ({names}) - data format issues",
    FailureType.RESOURCE: (
        "{count} task(s) ran out of resources ({names}) - capacity limits reached"
    ),
    FailureType.PERMISSION: "{count} task(s) lacked permissions ({names}) - access denied",
    FailureType.DEPENDENCY: (
        "{count} task(s) had missing dependencies ({names}) - required components unavailable"
    ),
    FailureType.UNKNOWN: "{count} task(s) failed unexpectedly ({names}) - investigation needed",
}

ROOT_CAUSES: dict[FailureType, str] = {
    FailureType.TIMEOUT: "System performance issues causing frequent timeouts",
    FailureType.CONNECTION: "Network instability or external service issues",
    FailureType.VALIDATION: "Data quality problems in input sources",
}
ROOT_CAUSE_SHARE = 0.3


class FailureHandler:
    """失败分析器（无状态，每次 analyze 独立）"""

    @staticmethod
    def classify_error(error: str, error_kind: str | None = None) -> FailureType:
        if error_kind in ERROR_KIND_TYPES:
            return ERROR_KIND_TYPES[error_kind]
        lowered = error.lower()
        for failure_type, needles in CLASSIFICATION_RULES:
            if any(n in lowered for n in needles):
                return failure_type
        return FailureType.UNKNOWN

    @staticmethod
    def assess_severity(task: Task, failure_type: FailureType) -> Severity:
        if task.priority == TaskPriority.HIGH:
            return Severity.HIGH
        if failure_type in (FailureType.PERMISSION, FailureType.DEPENDENCY):
            return Severity.HIGH
        if failure_type in (FailureType.VALIDATION, FailureType.RESOURCE):
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def select_strategy(record: FailureRecord) -> RecoveryStrategy:
        if record.retry_attempted and not record.retry_succeeded:
            return STRATEGY_AFTER_RETRY[record.severity]
        if record.error_type in STRATEGY_BY_TYPE:
            return STRATEGY_BY_TYPE[record.error_type]
        if record.severity == Severity.CRITICAL:
            return RecoveryStrategy.MANUAL_INTERVENTION
        return RecoveryStrategy.SKIP

    def recovery_plan(self, record: FailureRecord) -> RecoveryPlan:
        strategy = self.select_strategy(record)
        steps = [
            RecoveryStep(order=i, action=action, description=description, automated=automated)
            for i, (action, description, automated) in enumerate(RECOVERY_STEPS[strategy], start=1)
        ]
        manual_steps = sum(1 for s in steps if not s.automated)

        confidence = BASE_RECOVERY_CONFIDENCE[strategy]
        if record.severity == Severity.CRITICAL:
            confidence *= 0.8
        if record.severity == Severity.LOW:
            confidence *= 1.1
        if record.error_type in (FailureType.TIMEOUT, FailureType.CONNECTION):
            confidence *= 1.1
        if record.error_type == FailureType.UNKNOWN:
            confidence *= 0.8

        return RecoveryPlan(
            strategy=strategy,
            steps=steps,
            estimated_time=BASE_RECOVERY_MINUTES[strategy] + manual_steps * MANUAL_STEP_MINUTES,
            confidence=round2(clamp(confidence, 0.3, 0.95)),
            alternative_tasks=list(ALTERNATIVES[record.error_type]),
        )

    @staticmethod
    def explain(record: FailureRecord) -> str:
        explanation = EXPLANATIONS[record.error_type].format(title=record.task_title)
        if record.recovery_plan is not None:
            explanation += " " + STRATEGY_EXPLANATIONS[record.recovery_plan.strategy]
        return explanation

    @staticmethod
    def explain_all(records: Sequence[FailureRecord]) -> str:
        if not records:
            return "All tasks completed successfully with no failures."
        if len(records) == 1:
            return records[0].explanation

        by_type: dict[FailureType, list[FailureRecord]] = {}
        for record in records:
            by_type.setdefault(record.error_type, []).append(record)

        parts = [f"{len(records)} tasks encountered issues:"]
        for failure_type, group in by_type.items():
            names = ", ".join(f'"{r.task_title}"' for r in group)
            parts.append(GROUP_EXPLANATIONS[failure_type].format(count=len(group), names=names))

        with_recovery = sum(1 for r in records if r.recovery_plan is not None)
        if with_recovery:
            parts.append(f"Recovery plans have been generated for {with_recovery} failure(s).")
        return "\n\n".join(parts)

    def record_for(self, task: Task) -> FailureRecord | None:
        """为出现过失败尝试的任务生成记录；从未失败的任务返回 None"""
        failed_attempts = [a for a in task.attempts if not a.success]
        if not failed_attempts:
            return None

        last_failure = failed_attempts[-1]
        error = last_failure.error or "Unknown error"
        failure_type = self.classify_error(error, last_failure.error_kind)
        record = FailureRecord(
            task_id=task.task_id,
            task_title=task.title,
            error=error,
            error_type=failure_type,
            severity=self.assess_severity(task, failure_type),
            retry_attempted=len(task.attempts) > 1,
            retry_succeeded=task.status == TaskStatus.COMPLETED,
        )
        if task.status == TaskStatus.FAILED:
            record.recovery_plan = self.recovery_plan(record)
        record.explanation = self.explain(record)
        return record

    def analyze(self, tasks: Sequence[Task]) -> FailureAnalysis:
        records = [r for r in (self.record_for(t) for t in tasks) if r is not None]

        by_type: dict[str, int] = {}
        by_severity: dict[str, int] = {}
        for record in records:
            by_type[record.error_type.value] = by_type.get(record.error_type.value, 0) + 1
            by_severity[record.severity.value] = by_severity.get(record.severity.value, 0) + 1

        retries_attempted = sum(1 for r in records if r.retry_attempted)
        retries_succeeded = sum(1 for r in records if r.retry_succeeded)
        recovery_rate = retries_succeeded / retries_attempted if retries_attempted else 0.0

        root_causes = [
            cause
            for failure_type, cause in ROOT_CAUSES.items()
            if by_type.get(failure_type.value, 0) > len(records) * ROOT_CAUSE_SHARE
        ]

        recommendations: list[str] = []
        if by_type.get(FailureType.TIMEOUT.value):
            recommendations.append(
                "Consider increasing timeout limits or optimizing slow operations"
            )
        if by_type.get(FailureType.CONNECTION.value):
            recommendations.append("Implement connection retry logic and circuit breakers")
        if retries_attempted and recovery_rate < 0.5:
            recommendations.append("Improve retry strategies or add fallback mechanisms")

        analysis = FailureAnalysis(
            total_failures=len(records),
            failures_by_type=by_type,
            failures_by_severity=by_severity,
            retries_attempted=retries_attempted,
            retries_succeeded=retries_succeeded,
            recovery_rate=round2(recovery_rate),
            plain_language_summary=self.explain_all(records),
            root_causes=root_causes or ["No clear patterns identified"],
            recommendations=recommendations or ["Continue monitoring for patterns"],
            records=records,
        )
        log.info(
            "failures_analyzed",
            total_failures=analysis.total_failures,
            failures_by_type=by_type,
            recovery_rate=analysis.recovery_rate,
        )
        return analysis
