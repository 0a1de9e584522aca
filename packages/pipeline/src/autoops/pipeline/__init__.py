"""AutoOps Pipeline -- Goal 编排流水线

packages/pipeline 的公开接口导出。
"""

# 门控组件
from .confidence import ConfidenceEstimator

# 配置
from .config import (
    ConfidenceConfig,
    ExecutorConfig,
    OrchestratorConfig,
    PipelineConfig,
    SafetyConfig,
    load_pipeline_config,
)
from .events import EventSink, RunEventEmitter
from .executor import TaskExecutor
from .failure import FailureHandler
from .injection import (
    FAILURE_SCENARIOS,
    FailureInjectionConfig,
    FailureInjector,
    InjectedFailure,
    NullFailureInjector,
    ScenarioFailureInjector,
)
from .intent import IntentRouter
from .optimizer import suggest_optimizations

# 编排
from .orchestrator import (
    Orchestrator,
    PipelineServices,
    RunContext,
    build_services,
    validate_goal,
)
from .outcome import AlwaysSucceed, OutcomeDecider, ProbabilisticOutcome, ScriptedOutcome
from .planner import (
    DecompositionStrategy,
    ExplicitDecomposer,
    TaskPlanner,
    TemplateDecomposer,
    find_cycle,
)
from .reflection import reflect
from .runlog import RunLog
from .safety import SafetyGate

__all__ = [
    "IntentRouter",
    "SafetyGate",
    "ConfidenceEstimator",
    "TaskPlanner",
    "DecompositionStrategy",
    "TemplateDecomposer",
    "ExplicitDecomposer",
    "find_cycle",
    "TaskExecutor",
    "OutcomeDecider",
    "AlwaysSucceed",
    "ProbabilisticOutcome",
    "ScriptedOutcome",
    "FailureInjector",
    "NullFailureInjector",
    "ScenarioFailureInjector",
    "FailureInjectionConfig",
    "InjectedFailure",
    "FAILURE_SCENARIOS",
    "FailureHandler",
    "reflect",
    "suggest_optimizations",
    "RunLog",
    "EventSink",
    "RunEventEmitter",
    "Orchestrator",
    "PipelineServices",
    "RunContext",
    "build_services",
    "validate_goal",
    "PipelineConfig",
    "SafetyConfig",
    "ConfidenceConfig",
    "ExecutorConfig",
    "OrchestratorConfig",
    "load_pipeline_config",
]
