"""配置常量模块 -- 可通过环境变量覆盖

包含 Goal 长度限制、历史记录容量、SSE 心跳间隔、模拟执行时间缩放等可配置常量。
"""

import os

# Goal 文本长度限制（字符）
GOAL_MIN_LENGTH: int = int(os.environ.get("AUTOOPS_GOAL_MIN_LENGTH", "10"))
GOAL_MAX_LENGTH: int = int(os.environ.get("AUTOOPS_GOAL_MAX_LENGTH", "2000"))

# 进程内保留的历史 Run 数量
RUN_HISTORY_LIMIT: int = int(os.environ.get("AUTOOPS_RUN_HISTORY_LIMIT", "100"))

# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(os.environ.get("AUTOOPS_SSE_HEARTBEAT_INTERVAL", "15"))

# 目标预览截断长度
GOAL_PREVIEW_LENGTH: int = 200


def get_time_scale() -> float:
    """获取模拟执行的时间缩放系数

    每个预估秒实际等待 time_scale 秒；0 表示不等待。
    """
    return float(os.environ.get("AUTOOPS_TIME_SCALE", "0.01"))
