"""节流延迟工具."""

import random


def random_between(min_sec: float, max_sec: float) -> float:
    """在 [min, max] 间均匀取值；max 不大于 min 时返回 min."""
    if max_sec <= min_sec:
        return min_sec
    return min_sec + random.random() * (max_sec - min_sec)


def calc_delay_seconds(mode: str, min_sec: float, max_sec: float) -> float:
    """
    计算一次随机延迟.

    Args:
        mode: delayed | immediate，immediate 模式下不延迟
        min_sec: 最小秒数
        max_sec: 最大秒数

    Returns:
        延迟秒数（保留三位小数）
    """
    if mode == "immediate":
        return 0.0
    return round(random_between(min_sec, max_sec), 3)
