"""Orchestrator -- Goal 编排流水线的控制协程

一次 process_goal 调用对应一次 Run，阶段严格按顺序推进：
classifying -> validating_safety -> assessing_confidence -> planning
-> executing -> reflecting -> optimizing -> complete / failed

共享组件（IntentRouter / SafetyGate / ConfidenceEstimator / TaskPlanner）
由 PipelineServices 持有；每次 Run 的可变状态放在独立的 RunContext 中，
只由控制协程修改。错误在边界处转换为 RunError，不向调用方抛出。
"""

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from ulid import ULID

from autoops.core.config import GOAL_MAX_LENGTH, GOAL_MIN_LENGTH, GOAL_PREVIEW_LENGTH
from autoops.core.exceptions import (
    ClarificationRequiredError,
    GoalValidationError,
    PipelineError,
    RunTimeoutError,
    SafetyBlockedError,
)
from autoops.core.models import (
    PHASE_TERMINAL_STATES,
    ClarificationPolicy,
    ConfidenceAssessment,
    EventType,
    ExecutionSummary,
    FailureAnalysis,
    Goal,
    IntentClassification,
    IntentType,
    OptimizationResult,
    PhaseChangedPayload,
    PhaseRecord,
    Reflection,
    RunCompletedPayload,
    RunError,
    RunOptions,
    RunOutcome,
    RunPhase,
    RunRecord,
    RunStartedPayload,
    RunStatus,
    SafetyDecision,
    SafetyValidationResult,
    Task,
    TaskPlan,
    TaskStatus,
    validate_phase_transition,
)
from autoops.core.store.protocols import HistoricalRunReader, RunMemorySink

from .config import PipelineConfig, load_pipeline_config
from .confidence import ConfidenceEstimator
from .events import EventSink, RunEventEmitter
from .executor import RUN_TIMED_OUT, TaskExecutor
from .failure import FailureHandler
from .injection import FailureInjector, NullFailureInjector
from .intent import IntentRouter
from .optimizer import suggest_optimizations
from .outcome import AlwaysSucceed, OutcomeDecider
from .planner import TaskPlanner
from .reflection import reflect
from .runlog import RunLog
from .safety import SafetyGate

log = structlog.get_logger()


def validate_goal(goal: str | None) -> str:
    """校验 goal 文本长度，返回去除首尾空白后的文本

    Raises:
        GoalValidationError: 为空、过短或过长
    """
    text = (goal or "").strip()
    if not text:
        raise GoalValidationError("Goal must not be empty")
    if len(text) < GOAL_MIN_LENGTH:
        raise GoalValidationError(f"Goal must be at least {GOAL_MIN_LENGTH} characters")
    if len(text) > GOAL_MAX_LENGTH:
        raise GoalValidationError(f"Goal must be at most {GOAL_MAX_LENGTH} characters")
    return text


@dataclass
class PipelineServices:
    """跨 Run 共享的流水线组件"""

    router: IntentRouter
    gate: SafetyGate
    estimator: ConfidenceEstimator
    planner: TaskPlanner
    config: PipelineConfig
    history: HistoricalRunReader | None = None
    memory: RunMemorySink | None = None


def build_services(
    config: PipelineConfig | None = None,
    history: HistoricalRunReader | None = None,
    memory: RunMemorySink | None = None,
    planner: TaskPlanner | None = None,
) -> PipelineServices:
    """按配置创建共享组件，未提供 config 时从环境变量加载"""
    config = config or load_pipeline_config()
    return PipelineServices(
        router=IntentRouter(),
        gate=SafetyGate(config.safety),
        estimator=ConfidenceEstimator(config.confidence),
        planner=planner or TaskPlanner(),
        config=config,
        history=history,
        memory=memory,
    )


@dataclass
class RunContext:
    """单次 Run 的可变状态"""

    run_id: str
    goal: Goal
    options: RunOptions
    emitter: RunEventEmitter
    run_log: RunLog
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    phase: RunPhase = RunPhase.ACCEPTED
    phases: list[PhaseRecord] = field(default_factory=list)
    status: RunStatus = RunStatus.RUNNING

    intent: IntentClassification | None = None
    explanation: str | None = None
    safety: SafetyValidationResult | None = None
    confidence: ConfidenceAssessment | None = None
    history: list[RunRecord] = field(default_factory=list)
    draft_tasks: list[Task] = field(default_factory=list)
    plan: TaskPlan | None = None
    executor: TaskExecutor | None = None
    tasks: list[Task] = field(default_factory=list)
    summary: ExecutionSummary = field(default_factory=ExecutionSummary)
    reflection: Reflection | None = None
    optimization: OptimizationResult | None = None
    failure_analysis: FailureAnalysis | None = None
    error: RunError | None = None

    def __post_init__(self) -> None:
        self._clock = time.monotonic()
        self._phase_clock = self._clock
        self.phases.append(PhaseRecord(phase=self.phase, started_at=self.started_at))

    async def advance(self, to_phase: RunPhase) -> None:
        """推进到下一阶段：关闭当前阶段记录并发出 PHASE_CHANGED"""
        if not validate_phase_transition(self.phase, to_phase):
            raise RuntimeError(f"Invalid phase transition: {self.phase} -> {to_phase}")

        now = datetime.now(UTC)
        duration_ms = int((time.monotonic() - self._phase_clock) * 1000)
        current = self.phases[-1]
        current.completed_at = now
        current.duration_ms = duration_ms

        from_phase = self.phase
        self.phase = to_phase
        self.run_log.phase = to_phase
        self._phase_clock = time.monotonic()

        record = PhaseRecord(phase=to_phase, started_at=now)
        if to_phase in PHASE_TERMINAL_STATES:
            record.completed_at = now
        self.phases.append(record)

        self.run_log.debug(f"Phase changed: {from_phase} -> {to_phase}", duration_ms=duration_ms)
        await self.emitter.emit(
            EventType.PHASE_CHANGED,
            PhaseChangedPayload(from_phase=from_phase, to_phase=to_phase, duration_ms=duration_ms),
        )

    def halt(self, error: PipelineError, status: RunStatus) -> None:
        """记录终止原因；每条失败路径至少写一条 error 日志"""
        self.status = status
        self.error = RunError(kind=error.kind, message=error.message, details=error.details())
        self.run_log.error(error.message, error_kind=error.kind, error_details=error.details())

    def freeze(self) -> RunOutcome:
        completed_at = datetime.now(UTC)
        return RunOutcome(
            run_id=self.run_id,
            goal=self.goal.description,
            context=self.goal.context,
            status=self.status,
            final_phase=self.phase,
            started_at=self.started_at,
            completed_at=completed_at,
            duration_ms=int((time.monotonic() - self._clock) * 1000),
            intent=self.intent,
            explanation=self.explanation,
            safety=self.safety,
            confidence=self.confidence,
            plan=self.plan,
            tasks=[t.model_copy(deep=True) for t in self.tasks],
            phases=[p.model_copy() for p in self.phases],
            summary=self.summary,
            reflection=self.reflection,
            optimization=self.optimization,
            failure_analysis=self.failure_analysis,
            error=self.error,
            logs=self.run_log.entries,
        )


class Orchestrator:
    """Goal 编排器

    Args:
        services: 共享组件，None 时按环境变量配置新建
        decider: 任务成败判定，默认全部成功
        injector: 故障注入，默认不注入
        event_sink: RunEvent 接收端（如 SSEHub）
        failure_handler: 失败分析器
    """

    def __init__(
        self,
        services: PipelineServices | None = None,
        *,
        decider: OutcomeDecider | None = None,
        injector: FailureInjector | None = None,
        event_sink: EventSink | None = None,
        failure_handler: FailureHandler | None = None,
    ) -> None:
        self._services = services or build_services()
        self._decider = decider or AlwaysSucceed()
        self._injector = injector or NullFailureInjector()
        self._event_sink = event_sink
        self._failure_handler = failure_handler or FailureHandler()

    @property
    def services(self) -> PipelineServices:
        return self._services

    @property
    def config(self) -> PipelineConfig:
        return self._services.config

    async def process_goal(
        self,
        goal: str,
        context: str | None = None,
        options: RunOptions | None = None,
        *,
        constraints: Sequence[str] = (),
        run_id: str | None = None,
    ) -> RunOutcome:
        """处理一个 Goal，返回终态 RunOutcome

        Args:
            goal: 目标文本
            context: 附加上下文
            options: 运行选项
            constraints: 约束关键字（fast / thorough）
            run_id: 指定 run_id（请求处理层预先分配时使用）

        Returns:
            不可变的 RunOutcome；goal 非法时 status 为 rejected
        """
        options = options or RunOptions()
        run_id = run_id or str(ULID())

        with structlog.contextvars.bound_contextvars(run_id=run_id):
            run_log = RunLog(run_id, verbose=options.verbose_logging)
            ctx = RunContext(
                run_id=run_id,
                goal=Goal(
                    goal_id=str(ULID()),
                    description=(goal or "").strip(),
                    context=context,
                    constraints=list(constraints),
                    created_at=datetime.now(UTC),
                ),
                options=options,
                emitter=RunEventEmitter(run_id, self._event_sink),
                run_log=run_log,
            )

            try:
                validate_goal(goal)
            except GoalValidationError as e:
                ctx.halt(e, RunStatus.REJECTED)
                await ctx.advance(RunPhase.FAILED)
                log.warning("goal_rejected", reason=e.message)
                return await self._finish(ctx)

            await ctx.emitter.emit(
                EventType.RUN_STARTED,
                RunStartedPayload(
                    goal_preview=ctx.goal.description[:GOAL_PREVIEW_LENGTH],
                    goal_length=len(ctx.goal.description),
                ),
            )
            run_log.info("Run started", goal_length=len(ctx.goal.description))
            log.info("run_started", goal_length=len(ctx.goal.description))

            await self._run(ctx)

            terminal = RunPhase.COMPLETE if ctx.status == RunStatus.COMPLETED else RunPhase.FAILED
            await ctx.advance(terminal)
            return await self._finish(ctx)

    # ------------------------------------------------------------
    # 阶段驱动
    # ------------------------------------------------------------

    async def _run(self, ctx: RunContext) -> None:
        timeout_s = self.config.orchestrator.run_timeout_s
        try:
            async with asyncio.timeout(timeout_s):
                await self._drive(ctx)
        except TimeoutError:
            await self._finalize_tasks(ctx)
            ctx.halt(RunTimeoutError(timeout_s, phase=str(ctx.phase)), RunStatus.FAILED)
        except SafetyBlockedError as e:
            ctx.halt(e, RunStatus.BLOCKED)
        except ClarificationRequiredError as e:
            ctx.halt(e, RunStatus.CLARIFICATION_REQUIRED)
        except PipelineError as e:
            ctx.halt(e, RunStatus.FAILED)
        except Exception as e:
            log.exception("run_internal_error", phase=ctx.phase, error_type=type(e).__name__)
            message = str(e) or type(e).__name__
            await self._finalize_tasks(
                ctx, error=f"Internal error: {message}", error_kind="internal_error"
            )
            ctx.status = RunStatus.FAILED
            ctx.error = RunError(
                kind="internal_error",
                message=message,
                details={"error_type": type(e).__name__},
            )
            ctx.run_log.error(f"Internal error: {e}", error_kind="internal_error")

        if any(t.status == TaskStatus.FAILED for t in ctx.tasks):
            ctx.failure_analysis = self._failure_handler.analyze(ctx.tasks)

    async def _drive(self, ctx: RunContext) -> None:
        if not await self._classify(ctx):
            return
        await self._validate_safety(ctx)
        await self._assess_confidence(ctx)
        await self._plan(ctx)

        if ctx.options.skip_execution:
            ctx.run_log.info("Execution skipped by request", task_count=len(ctx.tasks))
            ctx.summary = ExecutionSummary(total=len(ctx.tasks))
            ctx.status = RunStatus.COMPLETED
            return

        await self._execute(ctx)

        if not ctx.options.skip_reflection:
            await ctx.advance(RunPhase.REFLECTING)
            ctx.reflection = reflect(
                ctx.tasks, ctx.summary.total_duration_ms / 1000, ctx.goal.description
            )
            ctx.run_log.info(
                f"Reflection score: {ctx.reflection.overall_score}",
                success_rate=ctx.reflection.success_rate,
            )

        if ctx.options.enable_optimization:
            await ctx.advance(RunPhase.OPTIMIZING)
            ctx.optimization = suggest_optimizations(
                ctx.plan, ctx.tasks, ctx.reflection, ctx.history, ctx.goal.description
            )
            ctx.run_log.info(
                f"Generated {len(ctx.optimization.optimizations)} optimization suggestions"
            )

        ctx.status = RunStatus.COMPLETED

    async def _classify(self, ctx: RunContext) -> bool:
        """返回 False 表示 Run 在分类后结束（信息查询）"""
        await ctx.advance(RunPhase.CLASSIFYING)
        router = self._services.router
        intent = router.classify(ctx.goal.description)
        ctx.intent = intent
        ctx.run_log.info(
            f"Intent classified as {intent.intent_type}",
            confidence=intent.confidence,
            keywords=intent.keywords,
        )

        if intent.intent_type == IntentType.INFORMATION_QUERY:
            ctx.explanation = router.explain(ctx.goal.description)
            ctx.run_log.info("Information query answered without execution")
            ctx.status = RunStatus.COMPLETED
            return False

        if intent.intent_type == IntentType.AMBIGUOUS:
            self._clarify(
                ctx,
                ClarificationRequiredError(
                    "intent",
                    "Goal is too ambiguous to plan",
                    questions=[intent.suggested_action] if intent.suggested_action else [],
                ),
            )
        return True

    async def _validate_safety(self, ctx: RunContext) -> None:
        await ctx.advance(RunPhase.VALIDATING_SAFETY)
        gate = self._services.gate
        safety = gate.validate(ctx.goal.description, ctx.goal.context)
        ctx.safety = safety
        decision = gate.decision_for(safety)
        ctx.run_log.info(
            f"Safety level {safety.safety_level} (score {safety.safety_score})",
            decision=decision,
            violation_count=len(safety.violations),
        )

        # 只有 blocked 才直接阻断；严格模式下未批准的 caution/warning 走澄清策略
        if decision == SafetyDecision.BLOCKED:
            raise SafetyBlockedError(safety)
        if decision == SafetyDecision.CLARIFICATION_REQUIRED:
            self._clarify(
                ctx,
                ClarificationRequiredError(
                    "safety",
                    "Safety validation requires clarification",
                    questions=[c.question for c in safety.clarifications_needed if c.required],
                ),
            )
        elif not safety.is_approved:
            self._clarify(
                ctx,
                ClarificationRequiredError(
                    "safety",
                    f"Safety level {safety.safety_level} is not approved in strict mode",
                    questions=[c.question for c in safety.clarifications_needed]
                    or list(safety.recommendations),
                ),
            )

    async def _assess_confidence(self, ctx: RunContext) -> None:
        await ctx.advance(RunPhase.ASSESSING_CONFIDENCE)
        ctx.draft_tasks = self._services.planner.decompose(ctx.goal)
        ctx.history = await self._recent_runs()

        confidence = self._services.estimator.assess(
            ctx.goal.description,
            ctx.goal.context,
            draft_plan=ctx.draft_tasks,
            historical_runs=ctx.history,
        )
        ctx.confidence = confidence
        recommendation = confidence.execution_recommendation
        ctx.run_log.info(
            f"Confidence {confidence.overall_confidence} ({confidence.confidence_level})",
            caution_level=recommendation.caution_level,
            historical_runs=len(ctx.history),
        )

        if not recommendation.proceed_with_execution:
            self._clarify(
                ctx,
                ClarificationRequiredError(
                    "confidence",
                    f"Confidence {confidence.overall_confidence} is below the execution threshold",
                    questions=list(recommendation.additional_validation),
                ),
            )

    async def _plan(self, ctx: RunContext) -> None:
        await ctx.advance(RunPhase.PLANNING)
        plan = self._services.planner.build_plan(ctx.goal, ctx.draft_tasks)
        ctx.plan = plan
        ctx.tasks = [t.model_copy(deep=True) for t in plan.tasks]
        ctx.run_log.info(
            f"Plan created with {len(plan.tasks)} tasks",
            plan_id=plan.plan_id,
            template=plan.template,
            estimated_total_duration=plan.estimated_total_duration,
        )

    async def _execute(self, ctx: RunContext) -> None:
        await ctx.advance(RunPhase.EXECUTING)
        base = self.config.executor
        executor_config = base.model_copy(
            update={
                "parallel_execution": ctx.options.parallel_execution or base.parallel_execution,
                "verbose_logging": ctx.options.verbose_logging,
            }
        )
        executor = TaskExecutor(
            executor_config,
            decider=self._decider,
            injector=self._injector,
            run_log=ctx.run_log,
            emitter=ctx.emitter,
        )
        ctx.executor = executor
        ctx.tasks = await executor.execute_all(ctx.plan.tasks)
        ctx.summary = executor.summarize()

    # ------------------------------------------------------------
    # 辅助
    # ------------------------------------------------------------

    async def _finalize_tasks(
        self, ctx: RunContext, error: str = RUN_TIMED_OUT, error_kind: str = "timeout"
    ) -> None:
        """执行中途中断时收尾，任务全部落到终态"""
        if ctx.executor is None:
            return
        await ctx.executor.finalize_interrupted(error, error_kind)
        ctx.tasks = ctx.executor.tasks
        ctx.summary = ctx.executor.summarize()

    def _clarify(self, ctx: RunContext, error: ClarificationRequiredError) -> None:
        """按 clarification_policy 中止或记录 warning 后继续"""
        if ctx.options.clarification_policy == ClarificationPolicy.ABORT:
            raise error
        ctx.run_log.warning(
            f"Proceeding without clarification: {error.message}",
            source=error.source,
            questions=error.questions,
        )

    async def _recent_runs(self) -> list[RunRecord]:
        reader = self._services.history
        if reader is None:
            return []
        return await reader.recent_runs(self.config.orchestrator.history_window)

    async def _finish(self, ctx: RunContext) -> RunOutcome:
        """发出 RUN_COMPLETED，冻结结果并写入 RunMemorySink"""
        await ctx.emitter.emit(
            EventType.RUN_COMPLETED,
            RunCompletedPayload(
                status=ctx.status,
                final_phase=ctx.phase,
                completed=ctx.summary.completed,
                failed=ctx.summary.failed,
                skipped=ctx.summary.skipped,
                error_kind=ctx.error.kind if ctx.error else None,
            ),
        )
        outcome = ctx.freeze()

        memory = self._services.memory
        if memory is not None:
            try:
                await memory.save_run(outcome)
            except Exception as e:
                log.error("run_save_failed", error_type=type(e).__name__, error=str(e))

        log.info(
            "run_finished",
            status=outcome.status,
            final_phase=outcome.final_phase,
            duration_ms=outcome.duration_ms,
            completed=outcome.summary.completed,
            failed=outcome.summary.failed,
            skipped=outcome.summary.skipped,
        )
        return outcome
