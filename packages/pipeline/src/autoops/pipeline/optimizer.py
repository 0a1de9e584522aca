"""优化建议

来源：
- 复盘给出的改进项
- 历史中相似目标的反复失败（失败率 > 30%）以及本次 Run 的失败
- 可并行化的任务结构（任务 > 6 且无依赖任务 > 2）
按 priority 降序，最多保留 8 条。
"""

from collections.abc import Sequence

import structlog
from ulid import ULID

from autoops.core.models import (
    Optimization,
    OptimizationResult,
    Reflection,
    RunRecord,
    Task,
    TaskPlan,
    TaskStatus,
)

from .confidence import extract_keywords
from .scoring import round2

log = structlog.get_logger()

MAX_OPTIMIZATIONS = 8
FAILURE_SIGNIFICANCE = 0.3
MIN_SIMILAR_RUNS = 3


def categorize_improvement(improvement: str) -> str:
    lowered = improvement.lower()
    if "workflow" in lowered:
        return "workflow"
    if "task" in lowered or "parallel" in lowered:
        return "task"
    if "time" in lowered or "duration" in lowered or "timeout" in lowered:
        return "timing"
    if "resource" in lowered or "memory" in lowered or "cpu" in lowered:
        return "resource"
    return "process"


def _optimization(**fields) -> Optimization:
    return Optimization(optimization_id=str(ULID()), **fields)


def _failure_patterns(
    goal: str,
    tasks: Sequence[Task],
    history: Sequence[RunRecord],
) -> list[tuple[str, int, float]]:
    """返回 (描述, 出现次数, 显著性) 列表"""
    patterns: list[tuple[str, int, float]] = []

    keywords = set(extract_keywords(goal))
    similar = [r for r in history if keywords & set(extract_keywords(r.goal))]
    failed_similar = [r for r in similar if not r.success]
    if len(similar) >= MIN_SIMILAR_RUNS and failed_similar:
        patterns.append(
            (
                f"Recurring failure across {len(failed_similar)} similar runs",
                len(failed_similar),
                len(failed_similar) / len(similar),
            )
        )

    failed_tasks = [t for t in tasks if t.status == TaskStatus.FAILED]
    if tasks and failed_tasks:
        patterns.append(
            (
                f"Current run had {len(failed_tasks)} failed tasks",
                1,
                len(failed_tasks) / len(tasks),
            )
        )
    return patterns


def suggest_optimizations(
    plan: TaskPlan | None,
    tasks: Sequence[Task],
    reflection: Reflection | None,
    history: Sequence[RunRecord] = (),
    goal: str = "",
) -> OptimizationResult:
    """生成优化建议与流程建议"""
    optimizations: list[Optimization] = []
    patterns = _failure_patterns(goal, tasks, history)

    for description, frequency, significance in patterns:
        if significance > FAILURE_SIGNIFICANCE:
            optimizations.append(
                _optimization(
                    type="process",
                    title="Address Recurring Failures",
                    description=f"Implement safeguards for: {description}",
                    impact="high",
                    effort="medium",
                    priority=8,
                    based_on=f"Pattern detected in {frequency} occurrences",
                    confidence=round2(significance),
                )
            )

    if reflection is not None:
        for improvement in reflection.improvements:
            optimizations.append(
                _optimization(
                    type=categorize_improvement(improvement),
                    title="Reflection-Based Improvement",
                    description=improvement,
                    impact="medium",
                    effort="low",
                    priority=5,
                    based_on="Current run reflection analysis",
                    confidence=0.8,
                )
            )

    if plan is not None and len(plan.tasks) > 6:
        independent = [t for t in plan.tasks if not t.dependencies]
        if len(independent) > 2:
            optimizations.append(
                _optimization(
                    type="task",
                    title="Enable Task Parallelization",
                    description=(
                        f"{len(independent)} tasks have no dependencies "
                        "and could run in parallel."
                    ),
                    impact="high",
                    effort="medium",
                    priority=7,
                    based_on="Task dependency analysis",
                    confidence=0.85,
                )
            )

    optimizations.sort(key=lambda o: o.priority, reverse=True)
    optimizations = optimizations[:MAX_OPTIMIZATIONS]

    suggestions: list[str] = []
    if len(patterns) > 2:
        suggestions.append("Implement automated health checks before task execution")
    if reflection is not None:
        if reflection.overall_score < 70:
            suggestions.append(
                "Consider breaking down complex goals into smaller, focused objectives"
            )
        if reflection.success_rate < 0.8:
            suggestions.append("Add pre-execution validation to catch issues early")
    suggestions.append("Regularly review and update workflow definitions")
    suggestions.append("Document and share learnings across similar goals")

    log.info(
        "optimizations_suggested",
        optimization_count=len(optimizations),
        pattern_count=len(patterns),
    )
    return OptimizationResult(optimizations=optimizations, process_suggestions=suggestions)
