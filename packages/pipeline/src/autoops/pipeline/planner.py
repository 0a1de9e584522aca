"""TaskPlanner -- 目标分解、DAG 校验与拓扑排序

分解通过可替换的 DecompositionStrategy 完成：
- TemplateDecomposer: 按关键字选择领域模板，生成 6 步线性链
- ExplicitDecomposer: 调用方给定任意 DAG（TaskSpec 列表）

校验覆盖悬空依赖与环路；校验失败抛出 PlanningError，不会执行任何任务。
"""

from collections.abc import Iterator, Sequence
from typing import Protocol

import structlog
from ulid import ULID

from autoops.core.exceptions import PlanningError
from autoops.core.models import (
    PRIORITY_ORDER,
    Goal,
    PlanValidation,
    Task,
    TaskPlan,
    TaskPriority,
    TaskSpec,
)

log = structlog.get_logger()

# 模板按声明顺序匹配，default 兜底
TEMPLATES: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "data": (
        ("data", "analytics", "pipeline", "etl", "database", "query"),
        (
            "Analyze data requirements and sources",
            "Design data schema and structure",
            "Implement data extraction logic",
            "Transform and validate data",
            "Load data to destination",
            "Verify data integrity",
        ),
    ),
    "automation": (
        ("automate", "workflow", "ci/cd", "deploy", "build", "test"),
        (
            "Define automation requirements",
            "Set up environment configuration",
            "Create automation scripts",
            "Implement error handling",
            "Test automation workflow",
            "Document and deploy",
        ),
    ),
    "analysis": (
        ("analyze", "insight", "report", "feedback", "review", "assess"),
        (
            "Gather data for analysis",
            "Clean and preprocess data",
            "Perform statistical analysis",
            "Generate visualizations",
            "Extract key insights",
            "Create summary report",
        ),
    ),
    "integration": (
        ("integrate", "connect", "api", "sync", "merge", "combine"),
        (
            "Identify integration points",
            "Review API documentation",
            "Implement authentication",
            "Build integration logic",
            "Handle error cases",
            "Test end-to-end flow",
        ),
    ),
    "default": (
        (),
        (
            "Analyze requirements",
            "Plan implementation approach",
            "Execute core logic",
            "Validate results",
            "Optimize and refine",
            "Complete and document",
        ),
    ),
}

COMPLEX_STEP_KEYWORDS: tuple[str, ...] = ("analyze", "implement", "design", "test")
COMPLEX_STEP_DURATION = 30
SIMPLE_STEP_DURATION = 15

FAST_FACTOR = 0.7
THOROUGH_FACTOR = 1.5


def detect_template(description: str) -> str:
    lowered = description.lower()
    for name, (keywords, _) in TEMPLATES.items():
        if any(k in lowered for k in keywords):
            return name
    return "default"


def step_priority(index: int, total: int) -> TaskPriority:
    if index == 0 or index == total - 1:
        return TaskPriority.HIGH
    if index < total / 2:
        return TaskPriority.MEDIUM
    return TaskPriority.LOW


def step_duration(title: str) -> int:
    lowered = title.lower()
    if any(k in lowered for k in COMPLEX_STEP_KEYWORDS):
        return COMPLEX_STEP_DURATION
    return SIMPLE_STEP_DURATION


def reasoning_summary(description: str, template: str) -> str:
    """分解思路摘要：上下文要点数决定是否需要分阶段推进"""
    points: list[str] = []
    if "data" in description:
        points.append("data processing is involved")
    if "user" in description:
        points.append("a user-facing component is involved")
    if "api" in description.lower():
        points.append("API integration is required")
    if "test" in description:
        points.append("testing considerations are needed")

    if len(points) > 2:
        decision = "Complex task requiring structured approach with multiple phases"
    else:
        decision = "Straightforward task that can be executed with standard methodology"

    detail = "; ".join(points) if points else "general purpose task"
    return f"{decision} (template: {template}; {detail})"


class DecompositionStrategy(Protocol):
    """目标分解策略"""

    def template_for(self, goal: Goal) -> str: ...

    def decompose(self, goal: Goal) -> list[Task]: ...


class TemplateDecomposer:
    """按领域模板分解为线性任务链，任务 i 依赖任务 i-1"""

    def template_for(self, goal: Goal) -> str:
        return detect_template(goal.description)

    def decompose(self, goal: Goal) -> list[Task]:
        _, titles = TEMPLATES[self.template_for(goal)]
        preview = " ".join(goal.description.split(" ")[:5])

        tasks: list[Task] = []
        for index, title in enumerate(titles):
            tasks.append(
                Task(
                    task_id=str(ULID()),
                    title=title,
                    description=f"{title} for: {preview}...",
                    type=self.template_for(goal),
                    priority=step_priority(index, len(titles)),
                    dependencies=[tasks[-1].task_id] if tasks else [],
                    estimated_duration=step_duration(title),
                )
            )
        return tasks


class ExplicitDecomposer:
    """使用调用方给定的 TaskSpec 构造任意 DAG

    未知的依赖 key 原样保留，交给 validate() 报告。
    """

    def __init__(self, specs: Sequence[TaskSpec]) -> None:
        self._specs = list(specs)

    def template_for(self, goal: Goal) -> str:
        return "explicit"

    def decompose(self, goal: Goal) -> list[Task]:
        ids = {spec.key: str(ULID()) for spec in self._specs}
        return [
            Task(
                task_id=ids[spec.key],
                title=spec.title,
                description=spec.description,
                type=spec.type,
                priority=spec.priority,
                dependencies=list(dict.fromkeys(ids.get(dep, dep) for dep in spec.dependencies)),
                estimated_duration=spec.estimated_duration,
            )
            for spec in self._specs
        ]


class TaskPlanner:
    """任务规划器"""

    def __init__(self, strategy: DecompositionStrategy | None = None) -> None:
        self._strategy = strategy or TemplateDecomposer()

    def plan(self, goal: Goal) -> TaskPlan:
        """分解 + 校验 + 约束 + 排序，校验失败抛出 PlanningError"""
        return self.build_plan(goal, self.decompose(goal))

    def decompose(self, goal: Goal) -> list[Task]:
        """只分解不校验，返回草稿任务（置信度评估使用）"""
        return self._strategy.decompose(goal)

    def build_plan(self, goal: Goal, tasks: list[Task]) -> TaskPlan:
        """校验并排序已有的草稿任务

        Raises:
            PlanningError: 存在悬空依赖或环路
        """
        validation = self.validate(tasks)
        if not validation.valid:
            log.error(
                "plan_validation_failed",
                goal_id=goal.goal_id,
                issues=validation.issues,
                cycle=validation.cycle,
            )
            raise PlanningError(validation.issues, validation.cycle)

        constrained = self.apply_constraints(tasks, goal.constraints)
        ordered = self.prioritize(constrained)
        template = self._strategy.template_for(goal)

        plan = TaskPlan(
            plan_id=str(ULID()),
            goal_id=goal.goal_id,
            tasks=ordered,
            reasoning_summary=reasoning_summary(goal.description, template),
            estimated_total_duration=sum(t.estimated_duration for t in ordered),
            template=template,
        )
        log.info(
            "plan_created",
            goal_id=goal.goal_id,
            plan_id=plan.plan_id,
            template=template,
            task_count=len(ordered),
            estimated_total_duration=plan.estimated_total_duration,
        )
        return plan

    @staticmethod
    def validate(tasks: Sequence[Task]) -> PlanValidation:
        """校验悬空依赖与环路，多次调用结果一致"""
        issues: list[str] = []
        by_id = {t.task_id: t for t in tasks}

        for task in tasks:
            for dep in task.dependencies:
                if dep not in by_id:
                    issues.append(f'Task "{task.title}" has unknown dependency: {dep}')

        cycle = find_cycle(tasks)
        if cycle:
            path = " -> ".join(by_id[task_id].title for task_id in cycle)
            issues.append(f"Circular dependency detected: {path}")

        return PlanValidation(valid=not issues, issues=issues, cycle=cycle)

    @staticmethod
    def prioritize(tasks: Sequence[Task]) -> list[Task]:
        """按优先级稳定排序后做后序 DFS，依赖总在被依赖者之前

        显式栈迭代，依赖链深度不受递归上限限制。
        """
        by_id = {t.task_id: t for t in tasks}
        visited: set[str] = set()
        ordered: list[Task] = []

        for root in sorted(tasks, key=lambda t: PRIORITY_ORDER[t.priority]):
            if root.task_id in visited:
                continue
            visited.add(root.task_id)
            stack: list[tuple[Task, Iterator[str]]] = [(root, iter(root.dependencies))]
            while stack:
                task, deps = stack[-1]
                for dep in deps:
                    if dep in by_id and dep not in visited:
                        visited.add(dep)
                        stack.append((by_id[dep], iter(by_id[dep].dependencies)))
                        break
                else:
                    stack.pop()
                    ordered.append(task)
        return ordered

    @staticmethod
    def apply_constraints(tasks: Sequence[Task], constraints: Sequence[str]) -> list[Task]:
        """fast 优先于 thorough，整份计划统一缩放并向下取整"""
        normalized = {c.strip().lower() for c in constraints}
        if "fast" in normalized:
            factor = FAST_FACTOR
        elif "thorough" in normalized:
            factor = THOROUGH_FACTOR
        else:
            return list(tasks)

        return [
            t.model_copy(update={"estimated_duration": int(t.estimated_duration * factor)})
            for t in tasks
        ]


def find_cycle(tasks: Sequence[Task]) -> list[str] | None:
    """迭代 DFS 检测环路，返回首个环路的 task_id 序列（首尾相同）"""
    by_id = {t.task_id: t for t in tasks}
    visited: set[str] = set()

    for root in tasks:
        if root.task_id in visited:
            continue
        visited.add(root.task_id)
        path = [root.task_id]
        on_path = {root.task_id}
        frames: list[Iterator[str]] = [iter(root.dependencies)]
        while frames:
            for dep in frames[-1]:
                if dep not in by_id:
                    continue
                if dep in on_path:
                    return [*path[path.index(dep):], dep]
                if dep not in visited:
                    visited.add(dep)
                    path.append(dep)
                    on_path.add(dep)
                    frames.append(iter(by_id[dep].dependencies))
                    break
            else:
                frames.pop()
                on_path.discard(path.pop())
    return None
