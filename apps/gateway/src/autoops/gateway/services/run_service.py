"""RunService -- Goal 受理与 Run 查询

受理流程：
1. 校验 goal（非法时抛出 GoalValidationError，由路由映射为 400）
2. 分配 run_id 并登记到 SSEHub
3. wait=True 时同步等待 Run 结束；否则后台执行
每次 Run 使用新的 Orchestrator，共享组件来自 PipelineServices。
"""

import asyncio
from collections.abc import Sequence

import structlog
from autoops.core.models import RunOptions, RunOutcome
from autoops.core.store import StoreGroup
from autoops.pipeline import Orchestrator, OutcomeDecider, PipelineServices, validate_goal
from ulid import ULID

from .sse_hub import SSEHub

log = structlog.get_logger()


class RunService:
    """Run 业务服务"""

    # 后台 Run 的强引用，防止被垃圾回收
    _background: set[asyncio.Task] = set()

    def __init__(
        self,
        services: PipelineServices,
        store_group: StoreGroup,
        sse_hub: SSEHub,
        decider: OutcomeDecider | None = None,
    ) -> None:
        self._services = services
        self._stores = store_group
        self._sse_hub = sse_hub
        self._decider = decider

    def _orchestrator(self) -> Orchestrator:
        return Orchestrator(
            self._services,
            decider=self._decider,
            event_sink=self._sse_hub,
        )

    async def run_goal(
        self,
        goal: str,
        context: str | None = None,
        options: RunOptions | None = None,
        constraints: Sequence[str] = (),
    ) -> RunOutcome:
        """同步执行一次 Run 并返回结果"""
        validate_goal(goal)
        run_id = str(ULID())
        self._sse_hub.begin_run(run_id)
        return await self._orchestrator().process_goal(
            goal, context, options, constraints=constraints, run_id=run_id
        )

    async def start_run(
        self,
        goal: str,
        context: str | None = None,
        options: RunOptions | None = None,
        constraints: Sequence[str] = (),
    ) -> str:
        """受理 Goal 并在后台执行，返回 run_id"""
        validate_goal(goal)
        run_id = str(ULID())
        self._sse_hub.begin_run(run_id)

        task = asyncio.create_task(
            self._process_in_background(run_id, goal, context, options, constraints)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

        log.info("run_accepted", run_id=run_id, goal_length=len(goal))
        return run_id

    async def _process_in_background(
        self,
        run_id: str,
        goal: str,
        context: str | None,
        options: RunOptions | None,
        constraints: Sequence[str],
    ) -> None:
        try:
            await self._orchestrator().process_goal(
                goal, context, options, constraints=constraints, run_id=run_id
            )
        except Exception:
            # Run 内错误已转换为 RunOutcome，这里只会遇到框架层异常
            log.exception("background_run_failed", run_id=run_id)

    async def get_run(self, run_id: str) -> RunOutcome | None:
        return await self._stores.run_store.get_run(run_id)

    async def list_runs(self, status: str | None = None) -> list[RunOutcome]:
        return await self._stores.run_store.list_runs(status)

    @classmethod
    async def cancel_background(cls) -> None:
        """关闭时取消仍在执行的后台 Run"""
        tasks = list(cls._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
