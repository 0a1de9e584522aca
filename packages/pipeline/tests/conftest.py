"""packages/pipeline 测试配置 -- 零等待执行配置 + 编排器 fixture"""

import pytest
from autoops.core.store import InMemoryRunStore
from autoops.pipeline import (
    ExecutorConfig,
    Orchestrator,
    PipelineConfig,
    PipelineServices,
    build_services,
)


@pytest.fixture
def executor_config() -> ExecutorConfig:
    """不等待的执行配置"""
    return ExecutorConfig(time_scale=0.0)


@pytest.fixture
def pipeline_config(executor_config: ExecutorConfig) -> PipelineConfig:
    return PipelineConfig(executor=executor_config)


@pytest.fixture
def run_store() -> InMemoryRunStore:
    return InMemoryRunStore()


@pytest.fixture
def services(pipeline_config: PipelineConfig, run_store: InMemoryRunStore) -> PipelineServices:
    return build_services(pipeline_config, history=run_store, memory=run_store)


@pytest.fixture
def orchestrator(services: PipelineServices) -> Orchestrator:
    return Orchestrator(services)
