"""FailureInjector -- 故障注入

执行器在每次尝试前询问 should_inject(phase, task_id)；命中后 inject()
返回的 InjectedFailure 作为该次尝试的失败结果，与自然失败走同一条处理路径。
"""

import random
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol

import structlog
from pydantic import BaseModel, Field
from ulid import ULID

log = structlog.get_logger()


class InjectedFailureType(StrEnum):
    """注入的故障类型"""

    TASK_TIMEOUT = "task_timeout"
    TASK_ERROR = "task_error"
    WORKFLOW_ABORT = "workflow_abort"
    RESOURCE_UNAVAILABLE = "resource_unavailable"
    PERMISSION_DENIED = "permission_denied"
    NETWORK_FAILURE = "network_failure"
    VALIDATION_FAILURE = "validation_failure"
    DEPENDENCY_FAILURE = "dependency_failure"
    RANDOM = "random"


class InjectionTiming(StrEnum):
    """注入时机"""

    IMMEDIATE = "immediate"
    DELAYED = "delayed"
    RANDOM = "random"
    ON_TASK = "on_task"
    ON_PHASE = "on_phase"


DEFAULT_MESSAGES: dict[InjectedFailureType, str] = {
    InjectedFailureType.TASK_TIMEOUT: "Task execution exceeded timeout limit",
    InjectedFailureType.TASK_ERROR: "Task encountered an unexpected error",
    InjectedFailureType.WORKFLOW_ABORT: "Workflow was forcefully aborted",
    InjectedFailureType.RESOURCE_UNAVAILABLE: "Required resource is not available",
    InjectedFailureType.PERMISSION_DENIED: "Operation not permitted",
    InjectedFailureType.NETWORK_FAILURE: "Network connection failed",
    InjectedFailureType.VALIDATION_FAILURE: "Input validation failed",
    InjectedFailureType.DEPENDENCY_FAILURE: "Required dependency is unavailable",
    InjectedFailureType.RANDOM: "Random failure for testing",
}

# RANDOM 类型实际抽取的候选
RANDOM_CANDIDATES: tuple[InjectedFailureType, ...] = (
    InjectedFailureType.TASK_TIMEOUT,
    InjectedFailureType.TASK_ERROR,
    InjectedFailureType.RESOURCE_UNAVAILABLE,
    InjectedFailureType.NETWORK_FAILURE,
    InjectedFailureType.VALIDATION_FAILURE,
)


class FailureInjectionConfig(BaseModel):
    """故障注入配置"""

    enabled: bool = True
    failure_type: InjectedFailureType
    timing: InjectionTiming
    target_task_id: str | None = Field(default=None, description="on_task 时只命中该任务")
    target_phase: str | None = Field(default=None, description="on_phase 时只命中该阶段")
    probability: float = Field(default=1.0, ge=0.0, le=1.0)
    custom_message: str | None = None
    recoverable: bool = True


class InjectedFailure(BaseModel):
    """一次已注入的故障"""

    injection_id: str
    timestamp: datetime
    failure_type: InjectedFailureType
    triggered_at: str = Field(description="命中的阶段或任务")
    error_message: str
    recoverable: bool


FAILURE_SCENARIOS: dict[str, FailureInjectionConfig] = {
    "task-timeout": FailureInjectionConfig(
        failure_type=InjectedFailureType.TASK_TIMEOUT,
        timing=InjectionTiming.ON_TASK,
        custom_message="Task execution timed out after maximum wait time",
    ),
    "network-failure": FailureInjectionConfig(
        failure_type=InjectedFailureType.NETWORK_FAILURE,
        timing=InjectionTiming.RANDOM,
        probability=0.5,
        custom_message="Network connection lost during operation",
    ),
    "permission-denied": FailureInjectionConfig(
        failure_type=InjectedFailureType.PERMISSION_DENIED,
        timing=InjectionTiming.ON_TASK,
        recoverable=False,
        custom_message="Insufficient permissions to perform operation",
    ),
    "resource-exhaustion": FailureInjectionConfig(
        failure_type=InjectedFailureType.RESOURCE_UNAVAILABLE,
        timing=InjectionTiming.DELAYED,
        custom_message="Resource limits exceeded",
    ),
    "cascade-failure": FailureInjectionConfig(
        failure_type=InjectedFailureType.DEPENDENCY_FAILURE,
        timing=InjectionTiming.ON_PHASE,
        target_phase="executing",
        custom_message="Dependency service unavailable causing cascade failure",
    ),
    "validation-error": FailureInjectionConfig(
        failure_type=InjectedFailureType.VALIDATION_FAILURE,
        timing=InjectionTiming.IMMEDIATE,
        custom_message="Input validation failed",
    ),
    "random-chaos": FailureInjectionConfig(
        failure_type=InjectedFailureType.RANDOM,
        timing=InjectionTiming.RANDOM,
        probability=0.3,
        custom_message="Random failure injected for chaos testing",
    ),
}


class FailureInjector(Protocol):
    """故障注入接口"""

    def should_inject(self, phase: str, task_id: str | None = None) -> bool: ...

    def inject(self, phase: str, task_id: str | None = None) -> InjectedFailure: ...


class NullFailureInjector:
    """默认实现：从不注入"""

    def should_inject(self, phase: str, task_id: str | None = None) -> bool:
        return False

    def inject(self, phase: str, task_id: str | None = None) -> InjectedFailure:
        raise RuntimeError("NullFailureInjector never injects failures")


class ScenarioFailureInjector:
    """按配置或预置场景注入故障

    Args:
        config: 注入配置，None 表示未启用
        seed: 随机数种子，用于复现 probability 抽样
    """

    def __init__(
        self,
        config: FailureInjectionConfig | None = None,
        seed: int | None = None,
    ) -> None:
        self._config = config
        self._rng = random.Random(seed)
        self._injected: list[InjectedFailure] = []

    @classmethod
    def from_scenario(cls, name: str, seed: int | None = None, **overrides) -> "ScenarioFailureInjector":
        """从 FAILURE_SCENARIOS 构造，overrides 覆盖场景字段（如 target_task_id）"""
        if name not in FAILURE_SCENARIOS:
            raise ValueError(f"Unknown scenario: {name}")
        return cls(FAILURE_SCENARIOS[name].model_copy(update=overrides), seed=seed)

    @property
    def enabled(self) -> bool:
        return self._config is not None and self._config.enabled

    @property
    def config(self) -> FailureInjectionConfig | None:
        return self._config

    @property
    def injected(self) -> list[InjectedFailure]:
        return list(self._injected)

    def enable(self, config: FailureInjectionConfig) -> None:
        self._config = config

    def disable(self) -> None:
        self._config = None

    def should_inject(self, phase: str, task_id: str | None = None) -> bool:
        if not self.enabled:
            return False
        config = self._config

        if config.timing == InjectionTiming.ON_PHASE and phase != config.target_phase:
            return False
        if (
            config.timing == InjectionTiming.ON_TASK
            and config.target_task_id
            and task_id != config.target_task_id
        ):
            return False

        return self._rng.random() < config.probability

    def inject(self, phase: str, task_id: str | None = None) -> InjectedFailure:
        if self._config is None:
            raise RuntimeError("No failure configuration set")
        config = self._config

        failure_type = config.failure_type
        if failure_type == InjectedFailureType.RANDOM:
            failure_type = self._rng.choice(RANDOM_CANDIDATES)

        failure = InjectedFailure(
            injection_id=str(ULID()),
            timestamp=datetime.now(UTC),
            failure_type=failure_type,
            triggered_at=task_id or phase,
            error_message=config.custom_message or DEFAULT_MESSAGES[failure_type],
            recoverable=config.recoverable,
        )
        self._injected.append(failure)
        log.warning(
            "failure_injected",
            phase=phase,
            task_id=task_id,
            failure_type=failure_type,
        )
        return failure

    def statistics(self) -> dict[str, int]:
        """按故障类型统计注入次数"""
        counts: dict[str, int] = {}
        for failure in self._injected:
            counts[failure.failure_type.value] = counts.get(failure.failure_type.value, 0) + 1
        return counts
