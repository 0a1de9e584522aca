"""复盘与优化建议测试"""

from autoops.core.models import RunRecord, TaskPlan, TaskPriority, TaskStatus
from autoops.pipeline import reflect, suggest_optimizations
from autoops.pipeline.optimizer import categorize_improvement
from autoops.pipeline.reflection import overall_score, success_rate

from pipeline_helpers import failed_attempt, finished_task, make_task, ok_attempt


def _completed(title: str, priority: TaskPriority = TaskPriority.MEDIUM, **kwargs):
    return finished_task(title, TaskStatus.COMPLETED, [ok_attempt()], priority=priority, **kwargs)


class TestReflect:
    """复盘"""

    def test_all_completed(self):
        tasks = [
            _completed("Analyze", TaskPriority.HIGH),
            *[_completed(f"Step {i}") for i in range(4)],
            _completed("Document", TaskPriority.HIGH),
        ]
        reflection = reflect(tasks, 0.5, "Create a CI/CD pipeline")

        assert reflection.success_rate == 1.0
        assert reflection.overall_score == 95
        assert reflection.insights[0].startswith("Excellent execution")
        assert "6/6 tasks successful (100%)" in reflection.summary
        assert (
            "Critical path tasks executed successfully - priority system is effective."
            in reflection.lessons_learned
        )

    def test_partial_failure(self):
        tasks = [
            _completed("Analyze", TaskPriority.HIGH),
            _completed("Design"),
            _completed("Review"),
            finished_task(
                "Implement core",
                TaskStatus.FAILED,
                [failed_attempt("Simulated task failure for demonstration")],
                priority=TaskPriority.LOW,
            ),
        ]
        reflection = reflect(tasks, 1.0, "Ship it")

        assert reflection.success_rate == 0.75
        assert reflection.overall_score == 73
        assert "1 task(s) failed. " in reflection.summary
        assert any("Execution-phase tasks" in i for i in reflection.insights)
        assert reflection.improvements[0].startswith("Implement retry logic")
        assert len(reflection.improvements) <= 5
        assert len(reflection.lessons_learned) <= 5

    def test_time_bonus(self):
        tasks = [_completed("A", estimated_duration=10)]
        assert overall_score(tasks, 5) == 85
        assert overall_score(tasks, 11) == 80
        assert overall_score(tasks, 100) == 75

    def test_empty_tasks(self):
        assert success_rate([]) == 0.0
        assert reflect([], 0.0, "Nothing to do").overall_score == 5

    def test_score_capped(self):
        tasks = [_completed(f"T{i}", TaskPriority.HIGH) for i in range(10)]
        assert overall_score(tasks, 0.1) == 100


class TestOptimizations:
    """优化建议"""

    def test_improvements_become_optimizations(self):
        tasks = [_completed("A")]
        reflection = reflect(tasks, 0.1, "Tidy the runbook")
        result = suggest_optimizations(None, tasks, reflection, goal="Tidy the runbook")

        assert len(result.optimizations) == len(reflection.improvements)
        assert all(o.title == "Reflection-Based Improvement" for o in result.optimizations)
        assert result.process_suggestions[-2:] == [
            "Regularly review and update workflow definitions",
            "Document and share learnings across similar goals",
        ]

    def test_recurring_failures_ranked_first(self):
        history = [
            RunRecord(goal="deploy docker stack", success=False, score=20),
            RunRecord(goal="deploy docker stack", success=False, score=20),
            RunRecord(goal="deploy docker stack", success=False, score=20),
            RunRecord(goal="deploy docker stack", success=True, score=90),
        ]
        tasks = [_completed("A")]
        reflection = reflect(tasks, 0.1, "deploy docker service")
        result = suggest_optimizations(
            None, tasks, reflection, history=history, goal="deploy docker service"
        )

        first = result.optimizations[0]
        assert first.title == "Address Recurring Failures"
        assert first.priority == 8
        assert first.confidence == 0.75
        assert [o.priority for o in result.optimizations] == sorted(
            (o.priority for o in result.optimizations), reverse=True
        )

    def test_parallelization_suggested(self):
        tasks = [make_task(f"T{i}") for i in range(7)]
        plan = TaskPlan(plan_id="plan", goal_id="goal", tasks=tasks)
        result = suggest_optimizations(plan, tasks, None)
        assert [o.title for o in result.optimizations] == ["Enable Task Parallelization"]
        assert result.optimizations[0].description.startswith("7 tasks have no dependencies")

    def test_at_most_eight(self):
        history = [RunRecord(goal="deploy redis", success=False, score=0) for _ in range(5)]
        tasks = [make_task(f"T{i}") for i in range(7)]
        plan = TaskPlan(plan_id="plan", goal_id="goal", tasks=tasks)
        failed = [
            finished_task("Implement", TaskStatus.FAILED, [failed_attempt("boom")]),
            *[_completed(f"T{i}", estimated_duration=60) for i in range(3)],
        ]
        reflection = reflect(failed, 0.1, "deploy redis")
        result = suggest_optimizations(plan, failed, reflection, history=history, goal="deploy redis")
        assert len(result.optimizations) <= 8

    def test_categorize_improvement(self):
        assert categorize_improvement("Add checkpoints for long workflows") == "workflow"
        assert categorize_improvement("Implement retry logic for failed tasks") == "task"
        assert categorize_improvement("Reduce timeout") == "timing"
        assert categorize_improvement("Cap memory usage") == "resource"
        assert categorize_improvement("Hold a retro") == "process"
