"""
Worker池：N 个线程从有界队列中拉取任务并探测
"""

import queue
import threading
from typing import Callable, List, Optional

from .aggregator import ResultAggregator
from .logger_config import logger
from .models import ProbeStatus, ScanOutcome, ScanTask
from .prober import ConnectionProber

# 队列关闭标记，每个 worker 收到一个后退出
CLOSE = object()

OutcomeCallback = Callable[[ScanOutcome, int], None]


class WorkerPool:
    """固定大小的探测线程池"""

    def __init__(self,
                 workers: int,
                 prober: ConnectionProber,
                 aggregator: ResultAggregator,
                 cancel_event: Optional[threading.Event] = None,
                 on_outcome: Optional[OutcomeCallback] = None):
        if workers < 1:
            raise ValueError(f"worker 数量必须 >= 1，当前: {workers}")
        self.workers = workers
        self.prober = prober
        self.aggregator = aggregator
        self.cancel_event = cancel_event or threading.Event()
        self.on_outcome = on_outcome
        self._threads: List[threading.Thread] = []

    def start(self, task_queue: queue.Queue) -> None:
        """启动全部 worker"""
        for i in range(self.workers):
            thread = threading.Thread(
                target=self._worker,
                args=(task_queue,),
                name=f"probe-worker-{i + 1}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        logger.debug(f"已启动 {self.workers} 个 worker")

    def close(self, task_queue: queue.Queue) -> None:
        """通知所有 worker 不会再有新任务"""
        for _ in self._threads:
            task_queue.put(CLOSE)

    def join(self) -> None:
        """等待所有 worker 退出"""
        for thread in self._threads:
            thread.join()
        logger.debug("所有 worker 已退出")

    def _worker(self, task_queue: queue.Queue) -> None:
        while True:
            task = task_queue.get()
            try:
                if task is CLOSE:
                    return
                # 取消后继续清空队列，但不再探测
                if self.cancel_event.is_set():
                    continue

                outcome = self._probe(task)
                scanned = self.aggregator.record(outcome)
                if self.on_outcome:
                    self._notify(outcome, scanned)
            finally:
                task_queue.task_done()

    def _probe(self, task: ScanTask) -> ScanOutcome:
        try:
            return self.prober.probe(task, self.cancel_event)
        except Exception:
            logger.exception(f"探测 {task} 时发生未预期的异常")
            return ScanOutcome(task=task, status=ProbeStatus.CLOSED, attempts=1)

    def _notify(self, outcome: ScanOutcome, scanned: int) -> None:
        try:
            self.on_outcome(outcome, scanned)
        except Exception as e:
            logger.error(f"进度回调执行失败: {e}")
