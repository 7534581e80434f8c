"""
线程安全的扫描结果收集器
"""

import threading
from dataclasses import dataclass
from typing import List, Tuple

from .models import ScanOutcome


@dataclass(frozen=True)
class AggregateSnapshot:
    """收集器快照"""
    outcomes: Tuple[ScanOutcome, ...]
    open_count: int
    scanned: int


class ResultAggregator:
    """结果收集器，所有写入都持有同一把锁"""

    def __init__(self):
        self._lock = threading.Lock()
        self._outcomes: List[ScanOutcome] = []
        self._open_count = 0
        self._scanned = 0

    def record(self, outcome: ScanOutcome) -> int:
        """
        记录一个任务结果

        Returns:
            int: 记录后的已扫描计数
        """
        with self._lock:
            self._outcomes.append(outcome)
            if outcome.is_open:
                self._open_count += 1
            self._scanned += 1
            return self._scanned

    @property
    def open_count(self) -> int:
        with self._lock:
            return self._open_count

    @property
    def scanned(self) -> int:
        with self._lock:
            return self._scanned

    def snapshot(self) -> AggregateSnapshot:
        """返回当前结果与计数的副本，应在所有 worker 结束后调用"""
        with self._lock:
            return AggregateSnapshot(
                outcomes=tuple(self._outcomes),
                open_count=self._open_count,
                scanned=self._scanned,
            )
