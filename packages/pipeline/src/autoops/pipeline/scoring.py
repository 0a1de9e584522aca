"""评分通用工具"""

import math


def round2(value: float) -> float:
    """四舍五入到两位小数（half-up，与 0.695 -> 0.70 一致）"""
    return math.floor(value * 100 + 0.5 + 1e-9) / 100


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))
