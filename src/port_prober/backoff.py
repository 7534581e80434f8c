"""
重试退避策略
"""

from dataclasses import dataclass
from typing import Callable

# 退避策略：输入失败的尝试序号（从0开始），返回等待秒数
BackoffStrategy = Callable[[int], float]


@dataclass(frozen=True)
class ExponentialBackoff:
    """指数退避，delay(i) = base * factor ** i，无抖动"""
    base: float = 1.0
    factor: float = 2.0

    def __call__(self, attempt: int) -> float:
        return self.base * (self.factor ** attempt)


def no_backoff(attempt: int) -> float:
    """不等待，立即重试"""
    return 0.0


DEFAULT_BACKOFF = ExponentialBackoff()
