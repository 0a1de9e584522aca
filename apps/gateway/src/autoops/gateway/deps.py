"""依赖注入模块 -- 通过 FastAPI Depends 注入共享组件

所有实例挂在 app.state 上，由 lifespan（或测试）通过 init_app_state 初始化。
"""

from autoops.core.store import StoreGroup
from autoops.pipeline import PipelineServices
from fastapi import Depends, Request

from .services.run_service import RunService
from .services.sse_hub import SSEHub


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_sse_hub(request: Request) -> SSEHub:
    """从 app.state 获取 SSEHub 实例"""
    return request.app.state.sse_hub


def get_services(request: Request) -> PipelineServices:
    """从 app.state 获取 PipelineServices 实例"""
    return request.app.state.services


def get_run_service(
    request: Request,
    services: PipelineServices = Depends(get_services),
    store_group: StoreGroup = Depends(get_store_group),
    sse_hub: SSEHub = Depends(get_sse_hub),
) -> RunService:
    """每个请求一个 RunService"""
    return RunService(
        services,
        store_group,
        sse_hub,
        decider=getattr(request.app.state, "decider", None),
    )
