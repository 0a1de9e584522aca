"""执行结果复盘

overall_score 组成：
- 成功率 × 70
- 时间奖励：早于预估 +15，预估 1.2 倍以内 +10，否则 +5
- 每个完成的 high 优先级任务 +5
上限 100。
"""

from collections.abc import Sequence

import structlog

from autoops.core.models import Reflection, Task, TaskPriority, TaskStatus

log = structlog.get_logger()

MAX_IMPROVEMENTS = 5
MAX_LESSONS = 5


def success_rate(tasks: Sequence[Task]) -> float:
    if not tasks:
        return 0.0
    return sum(1 for t in tasks if t.status == TaskStatus.COMPLETED) / len(tasks)


def overall_score(tasks: Sequence[Task], total_duration_s: float) -> int:
    score = success_rate(tasks) * 70

    estimated_total = sum(t.estimated_duration for t in tasks)
    if total_duration_s < estimated_total:
        score += 15
    elif total_duration_s < estimated_total * 1.2:
        score += 10
    else:
        score += 5

    high_completed = sum(
        1 for t in tasks if t.priority == TaskPriority.HIGH and t.status == TaskStatus.COMPLETED
    )
    score += high_completed * 5

    return min(int(score + 0.5), 100)


def _insights(tasks: Sequence[Task], rate: float) -> list[str]:
    insights: list[str] = []
    if rate >= 0.9:
        insights.append("Excellent execution with high success rate across all tasks.")
    elif rate >= 0.7:
        insights.append("Good overall performance with room for improvement in some areas.")
    else:
        insights.append("Several tasks encountered issues that require attention.")

    failed = [t for t in tasks if t.status == TaskStatus.FAILED]
    if failed:
        insights.append(f"{len(failed)} task(s) failed and may need retry or redesign.")
        titles = [t.title.lower() for t in failed]
        if any("implement" in t or "execute" in t for t in titles):
            insights.append(
                "Execution-phase tasks showed higher failure rate - "
                "consider breaking into smaller steps."
            )

    over_time = [
        t for t in tasks
        if t.actual_duration and t.actual_duration > t.estimated_duration * 1.5
    ]
    if over_time:
        insights.append(f"{len(over_time)} task(s) took significantly longer than estimated.")

    with_deps = [t for t in tasks if t.dependencies]
    if tasks and len(with_deps) > len(tasks) * 0.8:
        insights.append(
            "High task interdependency detected - consider parallelization opportunities."
        )
    return insights


def _improvements(tasks: Sequence[Task]) -> list[str]:
    improvements: list[str] = []
    if any(t.status == TaskStatus.FAILED for t in tasks):
        improvements.append("Implement retry logic with exponential backoff for failed tasks.")
        improvements.append("Add pre-execution validation checks to catch issues early.")
    if any(t.estimated_duration > 30 for t in tasks):
        improvements.append("Break down long-running tasks into smaller, more manageable units.")
    improvements.append(
        "Consider adding checkpoints for long workflows to enable resume capability."
    )
    improvements.append(
        "Implement parallel execution for independent tasks to reduce total duration."
    )
    return improvements[:MAX_IMPROVEMENTS]


def _lessons(tasks: Sequence[Task]) -> list[str]:
    lessons: list[str] = []

    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
    fast = [
        t for t in completed
        if t.actual_duration is not None and t.actual_duration < t.estimated_duration
    ]
    if len(fast) > len(completed) / 2:
        lessons.append(
            "Task duration estimates were conservative - consider adjusting for future planning."
        )

    if max((len(t.dependencies) for t in tasks), default=0) > 2:
        lessons.append(
            "Complex dependency chains can create bottlenecks - "
            "design for parallelism when possible."
        )

    high = [t for t in tasks if t.priority == TaskPriority.HIGH]
    if all(t.status == TaskStatus.COMPLETED for t in high):
        lessons.append(
            "Critical path tasks executed successfully - priority system is effective."
        )

    lessons.append("Continuous monitoring during execution enables faster issue detection.")
    lessons.append("Structured task decomposition improves overall workflow reliability.")
    return lessons[:MAX_LESSONS]


def reflect(tasks: Sequence[Task], total_duration_s: float, goal: str) -> Reflection:
    """对执行结果复盘

    Args:
        tasks: 终态任务
        total_duration_s: 执行阶段实际耗时（秒）
        goal: 目标文本
    """
    rate = success_rate(tasks)
    completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
    failed = sum(1 for t in tasks if t.status == TaskStatus.FAILED)

    summary = (
        f'Workflow for "{goal[:50]}..." completed. '
        f"{completed}/{len(tasks)} tasks successful ({rate * 100:.0f}%). "
    )
    if failed:
        summary += f"{failed} task(s) failed. "
    summary += f"Total execution time: {total_duration_s:.2f}s."

    reflection = Reflection(
        summary=summary,
        success_rate=rate,
        insights=_insights(tasks, rate),
        improvements=_improvements(tasks),
        lessons_learned=_lessons(tasks),
        overall_score=overall_score(tasks, total_duration_s),
    )
    log.info(
        "run_reflected",
        success_rate=rate,
        overall_score=reflection.overall_score,
    )
    return reflection
