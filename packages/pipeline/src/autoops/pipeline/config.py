"""PipelineConfig -- 流水线各组件配置加载

从环境变量加载配置；非法值记录 warning 并回退默认值，不阻塞启动。
评分权重与阈值沿用经验常量，未经校准不要修改。
"""

import os

import structlog
from pydantic import BaseModel, Field

from autoops.core.config import get_time_scale

log = structlog.get_logger()


class SafetyConfig(BaseModel):
    """SafetyGate 配置"""

    strict_mode: bool = Field(default=False, description="严格模式：非 safe 一律不批准")
    allow_destructive_operations: bool = Field(default=False, description="跳过 destructive 类规则")
    allow_external_access: bool = Field(default=True, description="跳过 external 类规则")


class ConfidenceConfig(BaseModel):
    """ConfidenceEstimator 配置"""

    clarity_weight: float = Field(default=0.35, ge=0.0, le=1.0)
    historical_weight: float = Field(default=0.35, ge=0.0, le=1.0)
    complexity_weight: float = Field(default=0.30, ge=0.0, le=1.0)
    min_confidence_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    caution_threshold: float = Field(default=0.6, ge=0.0, le=1.0)


class ExecutorConfig(BaseModel):
    """TaskExecutor 配置"""

    parallel_execution: bool = Field(default=False, description="有界并行模式")
    max_concurrency: int = Field(default=3, ge=1, description="并行模式并发上限")
    max_retries: int = Field(default=0, ge=0, description="失败后额外重试次数")
    task_timeout_s: float = Field(default=60.0, gt=0, description="单任务超时（秒）")
    time_scale: float = Field(
        default_factory=get_time_scale,
        ge=0.0,
        description="每个预估秒实际等待的秒数",
    )
    progress_steps: int = Field(default=10, ge=1, description="模拟执行的进度步数")
    verbose_logging: bool = Field(default=False, description="保留 debug 日志")


class OrchestratorConfig(BaseModel):
    """Orchestrator 配置"""

    run_timeout_s: float = Field(default=600.0, gt=0, description="单次 Run 超时（秒）")
    history_window: int = Field(default=50, ge=0, description="置信度评估读取的历史条数")


class PipelineConfig(BaseModel):
    """流水线总配置"""

    safety: SafetyConfig = Field(default_factory=SafetyConfig)
    confidence: ConfidenceConfig = Field(default_factory=ConfidenceConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)


def _env_bool(val: str) -> bool:
    return val.strip().lower() in ("1", "true", "yes", "on")


def _env_number(env_var: str, val: str, cast: type, fallback: float) -> float | int | None:
    try:
        return cast(val)
    except ValueError:
        log.warning(
            "invalid_pipeline_config",
            env_var=env_var,
            value=val,
            fallback=fallback,
        )
        return None


def load_pipeline_config() -> PipelineConfig:
    """从环境变量加载流水线配置

    环境变量映射:
        AUTOOPS_SAFETY_STRICT_MODE -> safety.strict_mode
        AUTOOPS_ALLOW_DESTRUCTIVE -> safety.allow_destructive_operations
        AUTOOPS_ALLOW_EXTERNAL -> safety.allow_external_access
        AUTOOPS_MIN_CONFIDENCE -> confidence.min_confidence_threshold
        AUTOOPS_PARALLEL_EXECUTION -> executor.parallel_execution
        AUTOOPS_MAX_CONCURRENCY -> executor.max_concurrency
        AUTOOPS_MAX_RETRIES -> executor.max_retries
        AUTOOPS_TASK_TIMEOUT_S -> executor.task_timeout_s
        AUTOOPS_RUN_TIMEOUT_S -> orchestrator.run_timeout_s

    Returns:
        PipelineConfig 实例
    """
    safety: dict = {}
    confidence: dict = {}
    executor: dict = {}
    orchestrator: dict = {}

    if val := os.environ.get("AUTOOPS_SAFETY_STRICT_MODE"):
        safety["strict_mode"] = _env_bool(val)

    if val := os.environ.get("AUTOOPS_ALLOW_DESTRUCTIVE"):
        safety["allow_destructive_operations"] = _env_bool(val)

    if val := os.environ.get("AUTOOPS_ALLOW_EXTERNAL"):
        safety["allow_external_access"] = _env_bool(val)

    if val := os.environ.get("AUTOOPS_MIN_CONFIDENCE"):
        parsed = _env_number("AUTOOPS_MIN_CONFIDENCE", val, float, 0.4)
        if parsed is not None:
            confidence["min_confidence_threshold"] = parsed

    if val := os.environ.get("AUTOOPS_PARALLEL_EXECUTION"):
        executor["parallel_execution"] = _env_bool(val)

    if val := os.environ.get("AUTOOPS_MAX_CONCURRENCY"):
        parsed = _env_number("AUTOOPS_MAX_CONCURRENCY", val, int, 3)
        if parsed is not None:
            executor["max_concurrency"] = parsed

    if val := os.environ.get("AUTOOPS_MAX_RETRIES"):
        parsed = _env_number("AUTOOPS_MAX_RETRIES", val, int, 0)
        if parsed is not None:
            executor["max_retries"] = parsed

    if val := os.environ.get("AUTOOPS_TASK_TIMEOUT_S"):
        parsed = _env_number("AUTOOPS_TASK_TIMEOUT_S", val, float, 60.0)
        if parsed is not None:
            executor["task_timeout_s"] = parsed

    if val := os.environ.get("AUTOOPS_RUN_TIMEOUT_S"):
        parsed = _env_number("AUTOOPS_RUN_TIMEOUT_S", val, float, 600.0)
        if parsed is not None:
            orchestrator["run_timeout_s"] = parsed

    return PipelineConfig(
        safety=SafetyConfig(**safety),
        confidence=ConfidenceConfig(**confidence),
        executor=ExecutorConfig(**executor),
        orchestrator=OrchestratorConfig(**orchestrator),
    )
