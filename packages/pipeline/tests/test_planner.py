"""TaskPlanner 单元测试

测试内容：
1. 模板选择与 6 步线性分解
2. DAG 校验：悬空依赖、环路
3. 拓扑排序（依赖在前，同层按优先级）
4. fast / thorough 约束
5. 显式 DAG 分解
"""

import pytest
from autoops.core.exceptions import PlanningError
from autoops.core.models import TaskPriority, TaskSpec
from autoops.pipeline import ExplicitDecomposer, TaskPlanner
from autoops.pipeline.planner import detect_template, find_cycle

from pipeline_helpers import CICD_CONTEXT, CICD_GOAL, make_goal, make_task


def _assert_topological(tasks):
    position = {t.task_id: i for i, t in enumerate(tasks)}
    for task in tasks:
        for dep in task.dependencies:
            assert position[dep] < position[task.task_id]


class TestDecomposition:
    """模板分解"""

    @pytest.mark.parametrize(
        "description,template",
        [
            (CICD_GOAL, "data"),
            ("Automate the nightly release workflow", "automation"),
            ("Review customer feedback for the mobile app", "analysis"),
            ("Integrate billing with the payments api", "integration"),
            ("Write onboarding guide for new hires", "default"),
        ],
    )
    def test_detect_template(self, description: str, template: str):
        assert detect_template(description) == template

    def test_cicd_plan_is_linear_chain(self):
        plan = TaskPlanner().plan(make_goal(CICD_GOAL, CICD_CONTEXT))
        assert plan.template == "data"
        assert len(plan.tasks) == 6
        assert [t.estimated_duration for t in plan.tasks] == [30, 30, 30, 15, 15, 15]
        assert plan.estimated_total_duration == 135
        assert plan.tasks[0].dependencies == []
        for prev, task in zip(plan.tasks, plan.tasks[1:]):
            assert task.dependencies == [prev.task_id]

    def test_step_priorities(self):
        plan = TaskPlanner().plan(make_goal("Write onboarding guide for new hires"))
        priorities = [t.priority for t in plan.tasks]
        assert priorities == [
            TaskPriority.HIGH,
            TaskPriority.MEDIUM,
            TaskPriority.MEDIUM,
            TaskPriority.LOW,
            TaskPriority.LOW,
            TaskPriority.HIGH,
        ]

    def test_reasoning_summary_mentions_template(self):
        plan = TaskPlanner().plan(make_goal("Write onboarding guide for new hires"))
        assert "template: default" in plan.reasoning_summary


class TestValidation:
    """DAG 校验"""

    def test_cycle_raises_planning_error(self):
        a = make_task("A", task_id="a")
        b = make_task("B", dependencies=["a"], task_id="b")
        a.dependencies = ["b"]
        planner = TaskPlanner()

        with pytest.raises(PlanningError) as exc_info:
            planner.build_plan(make_goal("Cycle goal for testing"), [a, b])
        assert exc_info.value.cycle is not None
        assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]
        assert "Circular dependency" in exc_info.value.message

    def test_unknown_dependency(self):
        task = make_task("A", dependencies=["missing"])
        validation = TaskPlanner.validate([task])
        assert validation.valid is False
        assert "unknown dependency" in validation.issues[0]
        assert validation.cycle is None

    def test_self_dependency_is_cycle(self):
        task = make_task("A", task_id="a", dependencies=["a"])
        assert find_cycle([task]) == ["a", "a"]

    def test_validation_is_idempotent(self):
        a = make_task("A", task_id="a")
        b = make_task("B", task_id="b", dependencies=["a"])
        first = TaskPlanner.validate([a, b])
        second = TaskPlanner.validate([a, b])
        assert first == second
        assert first.valid is True

    def test_deep_chain_cycle_detected(self):
        depth = 5000
        # t0 -> t1 -> ... -> t4999 -> t0
        tasks = [
            make_task(f"T{i}", task_id=f"t{i}", dependencies=[f"t{(i + 1) % depth}"])
            for i in range(depth)
        ]
        cycle = find_cycle(tasks)
        assert cycle is not None
        assert cycle[0] == cycle[-1] == "t0"
        assert len(cycle) == depth + 1


class TestPrioritize:
    """拓扑排序"""

    def test_dependencies_before_dependents(self):
        low = make_task("low", task_id="low", priority=TaskPriority.LOW)
        high = make_task("high", task_id="high", priority=TaskPriority.HIGH, dependencies=["low"])
        ordered = TaskPlanner.prioritize([low, high])
        assert [t.task_id for t in ordered] == ["low", "high"]

    def test_independent_tasks_by_priority(self):
        tasks = [
            make_task("low", task_id="low", priority=TaskPriority.LOW),
            make_task("mid", task_id="mid", priority=TaskPriority.MEDIUM),
            make_task("high", task_id="high", priority=TaskPriority.HIGH),
        ]
        ordered = TaskPlanner.prioritize(tasks)
        assert [t.task_id for t in ordered] == ["high", "mid", "low"]

    def test_diamond(self):
        a = make_task("A", task_id="a", priority=TaskPriority.LOW)
        b = make_task("B", task_id="b", dependencies=["a"])
        c = make_task("C", task_id="c", dependencies=["a"], priority=TaskPriority.HIGH)
        d = make_task("D", task_id="d", dependencies=["b", "c"])
        ordered = TaskPlanner.prioritize([d, c, b, a])
        _assert_topological(ordered)
        assert len(ordered) == 4

    def test_deep_chain(self):
        depth = 5000
        tasks = [
            make_task(f"T{i}", task_id=f"t{i}", dependencies=[f"t{i - 1}"] if i else [])
            for i in range(depth)
        ]
        ordered = TaskPlanner.prioritize(list(reversed(tasks)))
        assert [t.task_id for t in ordered] == [f"t{i}" for i in range(depth)]
        assert TaskPlanner.validate(tasks).valid is True


class TestConstraints:
    """约束缩放"""

    def test_fast_scales_down(self):
        goal = make_goal(CICD_GOAL, CICD_CONTEXT, constraints=["fast"])
        plan = TaskPlanner().plan(goal)
        assert [t.estimated_duration for t in plan.tasks] == [21, 21, 21, 10, 10, 10]
        assert plan.estimated_total_duration == 93

    def test_thorough_scales_up(self):
        goal = make_goal(CICD_GOAL, CICD_CONTEXT, constraints=["Thorough"])
        plan = TaskPlanner().plan(goal)
        assert [t.estimated_duration for t in plan.tasks] == [45, 45, 45, 22, 22, 22]

    def test_fast_wins_over_thorough(self):
        tasks = [make_task("A", estimated_duration=30)]
        constrained = TaskPlanner.apply_constraints(tasks, ["thorough", "fast"])
        assert constrained[0].estimated_duration == 21

    def test_no_constraints_keeps_durations(self):
        tasks = [make_task("A", estimated_duration=10)]
        assert TaskPlanner.apply_constraints(tasks, [])[0].estimated_duration == 10


class TestExplicitDecomposer:
    """显式 DAG"""

    def test_arbitrary_dag(self):
        specs = [
            TaskSpec(key="build", title="Build image"),
            TaskSpec(key="unit", title="Unit tests", dependencies=["build"]),
            TaskSpec(key="lint", title="Lint", dependencies=["build"]),
            TaskSpec(key="ship", title="Ship", dependencies=["unit", "lint"]),
        ]
        planner = TaskPlanner(ExplicitDecomposer(specs))
        plan = planner.plan(make_goal("Ship the service image"))
        assert plan.template == "explicit"
        assert len(plan.tasks) == 4
        _assert_topological(plan.tasks)
        assert plan.tasks[-1].title == "Ship"

    def test_unknown_key_fails_validation(self):
        specs = [TaskSpec(key="a", title="A", dependencies=["ghost"])]
        planner = TaskPlanner(ExplicitDecomposer(specs))
        with pytest.raises(PlanningError):
            planner.plan(make_goal("Goal with a dangling dependency"))
