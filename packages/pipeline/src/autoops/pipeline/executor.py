"""TaskExecutor -- 依赖门控的任务执行

执行器持有任务 arena（task_id -> Task）与结果表（task_id -> TaskResult），
任务只有在全部依赖的结果 success 时才会开始。

两种模式：
- 顺序（默认）：按计划顺序逐个执行；首个失败后，其后所有任务标记 skipped 并停止
- 有界并行：就绪任务并发执行（Semaphore 限流）；失败只跳过其传递下游

工作是模拟的：按 progress_steps 步 sleep，由注入的 OutcomeDecider 判定成败。
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime

from autoops.core.models import (
    EventType,
    ExecutionSummary,
    Task,
    TaskEventPayload,
    TaskProgressPayload,
    TaskResult,
    TaskStatus,
)

from .config import ExecutorConfig
from .events import RunEventEmitter
from .injection import FailureInjector, NullFailureInjector
from .outcome import SIMULATED_FAILURE_MESSAGE, AlwaysSucceed, OutcomeDecider
from .runlog import RunLog


ProgressCallback = Callable[[Task, float], Awaitable[None]]

DEPENDENCIES_NOT_SATISFIED = "Dependencies not satisfied"
RUN_TIMED_OUT = "Run timed out"

# 标题包含 key 时使用对应输出，按顺序匹配
OUTPUT_TABLE: tuple[tuple[str, str], ...] = (
    ("Analyze", "Analysis complete. Identified 5 key components and 3 potential optimizations."),
    ("Design", "Design specification created. Architecture follows best practices."),
    ("Implement", "Implementation successful. 150 lines of code generated."),
    ("Test", "All tests passed. Coverage: 87%. Performance within acceptable limits."),
    ("Deploy", "Deployment successful. Service is now live and healthy."),
    ("Validate", "Validation complete. All checks passed."),
)
DEFAULT_OUTPUT = "Task completed successfully. Output generated."


def task_output(task: Task) -> str:
    for key, output in OUTPUT_TABLE:
        if key in task.title:
            return output
    return DEFAULT_OUTPUT


def simulated_metrics(task: Task) -> dict[str, float]:
    """以 task_id 为种子，同一任务的指标固定"""
    rng = random.Random(task.task_id)
    return {
        "executionTime": float(task.estimated_duration + rng.randrange(5)),
        "memoryUsed": float(rng.randrange(100) + 50),
        "cpuUsage": float(rng.randrange(30) + 10),
    }


def failure_output(task: Task) -> str:
    return f'Task "{task.title}" encountered an error during execution.'


class TaskExecutor:
    """任务执行器

    一个实例只服务一次 Run；arena 与结果表由该 Run 独占。
    """

    def __init__(
        self,
        config: ExecutorConfig | None = None,
        decider: OutcomeDecider | None = None,
        injector: FailureInjector | None = None,
        run_log: RunLog | None = None,
        emitter: RunEventEmitter | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._config = config or ExecutorConfig()
        self._decider = decider or AlwaysSucceed()
        self._injector = injector or NullFailureInjector()
        self._run_log = run_log or RunLog("standalone", verbose=self._config.verbose_logging)
        self._emitter = emitter
        self._on_progress = on_progress

        self._arena: dict[str, Task] = {}
        self._order: list[str] = []
        self._results: dict[str, TaskResult] = {}
        self._started: float | None = None
        self._finished: float | None = None

    @property
    def tasks(self) -> list[Task]:
        """按计划顺序返回 arena 中的任务"""
        return [self._arena[task_id] for task_id in self._order]

    @property
    def results(self) -> dict[str, TaskResult]:
        return dict(self._results)

    async def execute_all(
        self,
        tasks: Sequence[Task],
        config: ExecutorConfig | None = None,
    ) -> list[Task]:
        """执行全部任务，返回按计划顺序排列、均处于终态的任务

        Args:
            tasks: 已排序的任务（依赖在前）
            config: 覆盖构造时的配置
        """
        if config is not None:
            self._config = config

        self._arena = {t.task_id: t.model_copy(deep=True) for t in tasks}
        self._order = [t.task_id for t in tasks]
        self._results = {}
        self._started = time.monotonic()

        mode = "parallel" if self._config.parallel_execution else "sequential"
        self._run_log.info(
            f"Executing {len(self._order)} tasks",
            mode=mode,
            max_concurrency=self._config.max_concurrency,
        )

        if self._config.parallel_execution:
            await self._run_parallel()
        else:
            await self._run_sequential()

        self._finished = time.monotonic()
        return self.tasks

    # ------------------------------------------------------------
    # 调度
    # ------------------------------------------------------------

    async def _run_sequential(self) -> None:
        for index, task_id in enumerate(self._order):
            task = self._arena[task_id]
            await self._execute_task(task)
            if task.status == TaskStatus.FAILED:
                reason = f"Skipped due to previous task failure: {task.title}"
                for later_id in self._order[index + 1 :]:
                    await self._skip(self._arena[later_id], reason)
                return

    async def _run_parallel(self) -> None:
        semaphore = asyncio.Semaphore(self._config.max_concurrency)
        pending = list(self._order)
        running: dict[asyncio.Task, str] = {}

        async def bounded(task: Task) -> None:
            async with semaphore:
                await self._execute_task(task)

        try:
            while pending or running:
                for task_id in list(pending):
                    task = self._arena[task_id]
                    blocker = self._failed_dependency(task)
                    if blocker is not None:
                        pending.remove(task_id)
                        await self._skip(
                            task, f"Skipped due to failed dependency: {blocker.title}"
                        )
                    elif self._dependencies_satisfied(task):
                        pending.remove(task_id)
                        running[asyncio.create_task(bounded(task))] = task_id

                if not running:
                    # 剩余任务的依赖永远无法满足（不在 arena 内）
                    for task_id in pending:
                        await self._execute_task(self._arena[task_id])
                    pending.clear()
                    break

                done, _ = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                for finished in done:
                    running.pop(finished)
                    finished.result()
        finally:
            for leftover in running:
                leftover.cancel()
            if running:
                await asyncio.gather(*running, return_exceptions=True)

    def _dependencies_satisfied(self, task: Task) -> bool:
        for dep in task.dependencies:
            result = self._results.get(dep)
            if result is None or not result.success:
                return False
        return True

    def _failed_dependency(self, task: Task) -> Task | None:
        for dep in task.dependencies:
            upstream = self._arena.get(dep)
            if upstream is not None and upstream.status in (TaskStatus.FAILED, TaskStatus.SKIPPED):
                return upstream
        return None

    # ------------------------------------------------------------
    # 单任务
    # ------------------------------------------------------------

    async def _execute_task(self, task: Task) -> None:
        if not self._dependencies_satisfied(task):
            result = TaskResult(
                success=False,
                error=DEPENDENCIES_NOT_SATISFIED,
                error_kind="dependency",
            )
            task.attempts.append(result)
            self._finish(task, result)
            task.transition_to(TaskStatus.FAILED)
            self._run_log.error(
                f"Task failed: {DEPENDENCIES_NOT_SATISFIED}",
                task_id=task.task_id,
                error_kind="dependency",
            )
            await self._emit_task(EventType.TASK_FAILED, task)
            return

        task.transition_to(TaskStatus.IN_PROGRESS)
        task.started_at = datetime.now(UTC)
        self._run_log.info(f"Starting task: {task.title}", task_id=task.task_id)
        await self._emit_task(EventType.TASK_STARTED, task)

        max_attempts = 1 + self._config.max_retries
        for attempt in range(1, max_attempts + 1):
            result = await self._attempt(task, attempt)
            task.attempts.append(result)
            if result.success:
                break
            if attempt < max_attempts:
                self._run_log.warning(
                    f"Retrying task: {task.title}",
                    task_id=task.task_id,
                    attempt=attempt + 1,
                    error=result.error,
                )

        self._finish(task, result)
        if result.success:
            task.transition_to(TaskStatus.COMPLETED)
            self._run_log.info(f"Task completed: {task.title}", task_id=task.task_id)
            await self._emit_task(EventType.TASK_COMPLETED, task)
        else:
            task.transition_to(TaskStatus.FAILED)
            self._run_log.error(
                f"Task failed: {result.error}",
                task_id=task.task_id,
                error_kind=result.error_kind,
                attempts=len(task.attempts),
            )
            await self._emit_task(EventType.TASK_FAILED, task)

    async def _attempt(self, task: Task, attempt: int) -> TaskResult:
        if self._injector.should_inject("executing", task.task_id):
            failure = self._injector.inject("executing", task.task_id)
            return TaskResult(
                success=False,
                output=failure_output(task),
                error=failure.error_message,
                error_kind="injected",
                attempt=attempt,
            )

        timeout_s = self._config.task_timeout_s
        try:
            async with asyncio.timeout(timeout_s):
                await self._simulate(task)
        except TimeoutError:
            return TaskResult(
                success=False,
                output=failure_output(task),
                error=f"Task timed out after {timeout_s}s",
                error_kind="timeout",
                attempt=attempt,
            )

        metrics = simulated_metrics(task)
        if self._decider.decide(task, attempt):
            return TaskResult(
                success=True,
                output=task_output(task),
                metrics=metrics,
                artifacts=[f"artifact_{task.task_id[-8:].lower()}.json"],
                attempt=attempt,
            )
        return TaskResult(
            success=False,
            output=failure_output(task),
            error=SIMULATED_FAILURE_MESSAGE,
            error_kind="task_failure",
            metrics=metrics,
            attempt=attempt,
        )

    async def _simulate(self, task: Task) -> None:
        steps = self._config.progress_steps
        step_s = task.estimated_duration * self._config.time_scale / steps
        for step in range(1, steps + 1):
            await asyncio.sleep(step_s)
            progress = step / steps * 100
            self._run_log.debug(
                f"Task progress: {progress:.0f}%", task_id=task.task_id
            )
            if self._emitter is not None:
                await self._emitter.emit(
                    EventType.TASK_PROGRESS,
                    TaskProgressPayload(task_id=task.task_id, progress=progress),
                )
            if self._on_progress is not None:
                await self._on_progress(task, progress)

    async def _skip(self, task: Task, reason: str) -> None:
        result = TaskResult(success=False, output=reason)
        task.transition_to(TaskStatus.SKIPPED)
        task.result = result
        self._results[task.task_id] = result
        self._run_log.info(f"Task skipped: {task.title}", task_id=task.task_id, reason=reason)
        await self._emit_task(EventType.TASK_SKIPPED, task)

    def _finish(self, task: Task, result: TaskResult) -> None:
        task.result = result
        task.completed_at = datetime.now(UTC)
        if task.started_at is not None:
            task.actual_duration = (task.completed_at - task.started_at).total_seconds()
        self._results[task.task_id] = result

    async def _emit_task(self, event_type: EventType, task: Task) -> None:
        if self._emitter is None:
            return
        result = task.result
        await self._emitter.emit(
            event_type,
            TaskEventPayload(
                task_id=task.task_id,
                title=task.title,
                status=task.status,
                error=result.error if result else None,
                error_kind=result.error_kind if result else None,
                attempt=len(task.attempts) or 1,
            ),
        )

    # ------------------------------------------------------------
    # Run 中断收尾与摘要
    # ------------------------------------------------------------

    async def finalize_interrupted(
        self, error: str = RUN_TIMED_OUT, error_kind: str = "timeout"
    ) -> None:
        """Run 被中断后收尾：进行中的任务标记 failed，未开始的任务标记 skipped

        超时与执行过程中的意外异常都走这里，保证没有任务停在非终态。
        """
        skip_reason = (
            "Skipped due to run timeout"
            if error_kind == "timeout"
            else f"Skipped due to run interruption: {error}"
        )
        for task in self.tasks:
            if task.status == TaskStatus.IN_PROGRESS:
                result = TaskResult(
                    success=False,
                    output=failure_output(task),
                    error=error,
                    error_kind=error_kind,
                    attempt=len(task.attempts) + 1,
                )
                task.attempts.append(result)
                self._finish(task, result)
                task.transition_to(TaskStatus.FAILED)
                self._run_log.error(
                    f"Task failed: {error}", task_id=task.task_id, error_kind=error_kind
                )
                await self._emit_task(EventType.TASK_FAILED, task)
            elif task.status == TaskStatus.PENDING:
                await self._skip(task, skip_reason)
        self._finished = time.monotonic()

    def summarize(self) -> ExecutionSummary:
        tasks = self.tasks
        failed = [t for t in tasks if t.status == TaskStatus.FAILED]
        duration_ms = 0
        if self._started is not None:
            end = self._finished if self._finished is not None else time.monotonic()
            duration_ms = int((end - self._started) * 1000)
        return ExecutionSummary(
            total=len(tasks),
            completed=sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
            failed=len(failed),
            skipped=sum(1 for t in tasks if t.status == TaskStatus.SKIPPED),
            total_duration_ms=duration_ms,
            errors=[f"{t.title}: {t.result.error}" for t in failed if t.result and t.result.error],
        )
