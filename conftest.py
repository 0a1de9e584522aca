"""全局 pytest 配置 -- 关闭 Logfire 外发 + 零等待模拟执行"""

import pytest


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """测试期间不外发 Logfire，默认配置下模拟执行不等待"""
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
    monkeypatch.setenv("AUTOOPS_TIME_SCALE", "0")
    monkeypatch.delenv("AUTOOPS_SIMULATED_SUCCESS_RATE", raising=False)
