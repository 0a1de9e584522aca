"""FailureHandler 单元测试"""

import pytest
from autoops.core.models import (
    FailureType,
    RecoveryStrategy,
    Severity,
    TaskPriority,
    TaskStatus,
)
from autoops.pipeline import FailureHandler

from pipeline_helpers import failed_attempt, finished_task, make_task, ok_attempt


class TestClassification:
    """错误分类与严重程度"""

    @pytest.mark.parametrize(
        "error,error_kind,expected",
        [
            ("Task timed out after 60s", "timeout", FailureType.TIMEOUT),
            ("Network connection lost during operation", "injected", FailureType.CONNECTION),
            ("Input validation failed", None, FailureType.VALIDATION),
            ("Resource limits exceeded", None, FailureType.RESOURCE),
            ("Operation not permitted: permission denied", None, FailureType.PERMISSION),
            ("Dependencies not satisfied", "dependency", FailureType.DEPENDENCY),
            ("Simulated task failure for demonstration", "task_failure", FailureType.UNKNOWN),
        ],
    )
    def test_classify_error(self, error: str, error_kind: str | None, expected: FailureType):
        assert FailureHandler.classify_error(error, error_kind) == expected

    def test_error_kind_wins_over_text(self):
        assert FailureHandler.classify_error("Run timed out", "dependency") == FailureType.DEPENDENCY

    @pytest.mark.parametrize(
        "priority,failure_type,expected",
        [
            (TaskPriority.HIGH, FailureType.TIMEOUT, Severity.HIGH),
            (TaskPriority.MEDIUM, FailureType.PERMISSION, Severity.HIGH),
            (TaskPriority.MEDIUM, FailureType.VALIDATION, Severity.MEDIUM),
            (TaskPriority.LOW, FailureType.TIMEOUT, Severity.LOW),
        ],
    )
    def test_assess_severity(self, priority, failure_type, expected):
        task = make_task("Step", priority=priority)
        assert FailureHandler.assess_severity(task, failure_type) == expected


class TestRecovery:
    """恢复计划"""

    def test_timeout_retry_plan(self):
        task = finished_task(
            "Fetch report",
            TaskStatus.FAILED,
            [failed_attempt("Task timed out after 60s", "timeout")],
        )
        record = FailureHandler().record_for(task)

        assert record.error_type == FailureType.TIMEOUT
        assert record.severity == Severity.LOW
        plan = record.recovery_plan
        assert plan.strategy == RecoveryStrategy.RETRY
        assert [s.order for s in plan.steps] == [1, 2, 3]
        assert plan.estimated_time == 5
        assert plan.confidence == 0.85
        assert "Increase timeout limits" in plan.alternative_tasks
        assert "The system will automatically try again." in record.explanation

    def test_permission_needs_manual_intervention(self):
        task = finished_task(
            "Grant access",
            TaskStatus.FAILED,
            [failed_attempt("Insufficient permissions to perform operation", "injected")],
        )
        plan = FailureHandler().record_for(task).recovery_plan
        assert plan.strategy == RecoveryStrategy.MANUAL_INTERVENTION
        assert plan.estimated_time == 90
        assert sum(1 for s in plan.steps if not s.automated) == 3

    def test_exhausted_retry_uses_severity(self):
        task = finished_task(
            "Broken",
            TaskStatus.FAILED,
            [
                failed_attempt("Simulated task failure for demonstration", "task_failure"),
                failed_attempt("Simulated task failure for demonstration", "task_failure", 2),
            ],
        )
        record = FailureHandler().record_for(task)
        assert record.retry_attempted is True
        assert record.retry_succeeded is False
        assert record.recovery_plan.strategy == RecoveryStrategy.SKIP
        assert record.recovery_plan.confidence == 0.84

    def test_recovered_task_has_no_plan(self):
        task = finished_task(
            "Flaky",
            TaskStatus.COMPLETED,
            [failed_attempt("Network connection lost"), ok_attempt(2)],
        )
        record = FailureHandler().record_for(task)
        assert record.retry_succeeded is True
        assert record.recovery_plan is None

    def test_clean_task_has_no_record(self):
        task = finished_task("Clean", TaskStatus.COMPLETED, [ok_attempt()])
        assert FailureHandler().record_for(task) is None


class TestAnalyze:
    """整体失败分析"""

    def test_no_failures(self):
        analysis = FailureHandler().analyze(
            [finished_task("Clean", TaskStatus.COMPLETED, [ok_attempt()])]
        )
        assert analysis.total_failures == 0
        assert analysis.plain_language_summary == (
            "All tasks completed successfully with no failures."
        )
        assert analysis.root_causes == ["No clear patterns identified"]
        assert analysis.recommendations == ["Continue monitoring for patterns"]

    def test_grouped_timeouts(self):
        tasks = [
            finished_task(
                name, TaskStatus.FAILED, [failed_attempt("Task timed out after 60s", "timeout")]
            )
            for name in ("Fetch", "Parse")
        ]
        tasks.append(finished_task("Clean", TaskStatus.COMPLETED, [ok_attempt()]))
        analysis = FailureHandler().analyze(tasks)

        assert analysis.total_failures == 2
        assert analysis.failures_by_type == {"timeout": 2}
        assert analysis.root_causes == ["System performance issues causing frequent timeouts"]
        assert analysis.recommendations[0].startswith("Consider increasing timeout limits")
        assert analysis.plain_language_summary.startswith("2 tasks encountered issues:")
        assert '2 task(s) timed out ("Fetch", "Parse")' in analysis.plain_language_summary

    def test_recovery_rate(self):
        tasks = [
            finished_task(
                "Flaky",
                TaskStatus.COMPLETED,
                [failed_attempt("Network connection lost"), ok_attempt(2)],
            ),
            finished_task(
                "Broken",
                TaskStatus.FAILED,
                [failed_attempt("Network connection lost"), failed_attempt("Network down", None, 2)],
            ),
        ]
        analysis = FailureHandler().analyze(tasks)
        assert analysis.retries_attempted == 2
        assert analysis.retries_succeeded == 1
        assert analysis.recovery_rate == 0.5
        assert "Implement connection retry logic and circuit breakers" in analysis.recommendations
