"""RunLog -- 单次 Run 的 append-only 日志

每条记录同时以相同级别镜像到 structlog；
verbose=False 时 debug 记录直接丢弃（既不入 RunLog 也不镜像）。
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from ulid import ULID

from autoops.core.models import LogEntry, LogLevel, RunPhase

log = structlog.get_logger()


class RunLog:
    """单次 Run 的日志"""

    def __init__(self, run_id: str, verbose: bool = False) -> None:
        self._run_id = run_id
        self._verbose = verbose
        self._entries: list[LogEntry] = []
        self.phase: RunPhase = RunPhase.ACCEPTED

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def errors(self) -> list[LogEntry]:
        return [e for e in self._entries if e.level == LogLevel.ERROR]

    def debug(self, message: str, **details: Any) -> None:
        self._append(LogLevel.DEBUG, message, details)

    def info(self, message: str, **details: Any) -> None:
        self._append(LogLevel.INFO, message, details)

    def warning(self, message: str, **details: Any) -> None:
        self._append(LogLevel.WARNING, message, details)

    def error(self, message: str, **details: Any) -> None:
        self._append(LogLevel.ERROR, message, details)

    def _append(self, level: LogLevel, message: str, details: dict[str, Any]) -> None:
        if level == LogLevel.DEBUG and not self._verbose:
            return

        entry = LogEntry(
            log_id=str(ULID()),
            timestamp=datetime.now(UTC),
            phase=self.phase,
            level=level,
            message=message,
            details=details,
        )
        self._entries.append(entry)

        emit = getattr(log, level.value)
        emit(
            "run_log",
            run_id=self._run_id,
            phase=self.phase,
            message=message,
            **details,
        )
