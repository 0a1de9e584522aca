"""structlog 配置模块

dev 模式：pretty print 可读输出
json 模式：结构化 JSON 输出，每条日志带 service 字段
Logfire APM：LOGFIRE_SEND_TO_LOGFIRE 控制，false 时只保留本地日志。
"""

import logging
import os

import structlog
from fastapi import FastAPI

SERVICE_NAME = "autoops-gateway"

# 访问日志与 SSE 连接日志只保留 warning 以上
NOISY_LOGGERS: tuple[str, ...] = ("uvicorn.access", "sse_starlette.sse")


def _add_service(
    logger: logging.Logger, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog 与标准库 logging

    Args:
        log_format: "json"（生产）或 "dev"（默认），缺省读 AUTOOPS_LOG_FORMAT
        log_level: 根 logger 级别，缺省读 AUTOOPS_LOG_LEVEL，默认 INFO
    """
    log_format = log_format or os.environ.get("AUTOOPS_LOG_FORMAT", "dev")
    level_name = (log_level or os.environ.get("AUTOOPS_LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def setup_logfire(app: FastAPI) -> None:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE="true" 时启用（需要 LOGFIRE_TOKEN 与 logfire extra），
    初始化失败只记录 warning。
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return

    try:
        import logfire

        logfire.configure(service_name=SERVICE_NAME)
        logfire.instrument_fastapi(app)
    except Exception as e:
        structlog.get_logger().warning(
            "logfire_init_failed",
            error_type=type(e).__name__,
            message="Logfire 初始化失败，只保留本地日志",
        )
