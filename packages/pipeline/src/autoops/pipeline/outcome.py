"""OutcomeDecider -- 模拟执行的成败判定

TaskExecutor 不直接使用随机数，由注入的 decider 决定每次尝试的结果，
测试中可以精确复现失败路径。
"""

import random
from collections.abc import Iterable
from typing import Protocol

from autoops.core.models import Task

SIMULATED_FAILURE_MESSAGE = "Simulated task failure for demonstration"


class OutcomeDecider(Protocol):
    """判定一次执行尝试是否成功"""

    def decide(self, task: Task, attempt: int) -> bool: ...


class AlwaysSucceed:
    """默认 decider：所有尝试都成功"""

    def decide(self, task: Task, attempt: int) -> bool:
        return True


class ProbabilisticOutcome:
    """按固定成功率判定，seed 相同则序列相同"""

    def __init__(self, success_rate: float = 0.9, seed: int | None = None) -> None:
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError(f"success_rate must be within [0, 1], got {success_rate}")
        self._success_rate = success_rate
        self._rng = random.Random(seed)

    def decide(self, task: Task, attempt: int) -> bool:
        return self._rng.random() < self._success_rate


class ScriptedOutcome:
    """按 task_id 或标题指定失败的任务

    Args:
        failures: 需要失败的 task_id 或任务标题
        fail_attempts: 前 N 次尝试失败，之后成功；None 表示始终失败
    """

    def __init__(self, failures: Iterable[str], fail_attempts: int | None = None) -> None:
        self._failures = set(failures)
        self._fail_attempts = fail_attempts

    def decide(self, task: Task, attempt: int) -> bool:
        if task.task_id not in self._failures and task.title not in self._failures:
            return True
        if self._fail_attempts is None:
            return False
        return attempt > self._fail_attempts
