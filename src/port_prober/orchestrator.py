"""
扫描编排：任务生成 → 有界队列 → Worker池 → 结果收集 → 扫描摘要
"""

import queue
import threading
import time
import uuid
from typing import Callable, Optional

from .aggregator import ResultAggregator
from .logger_config import logger
from .models import ScanConfig, ScanOutcome, ScanResult, ScanSummary
from .pool import WorkerPool
from .prober import ConnectionProber
from .targets import TaskGenerator

# 进度回调：(已扫描数, 总数, 本次结果)
ProgressCallback = Callable[[int, int, ScanOutcome], None]


class ScanOrchestrator:
    """
    扫描编排器

    每个实例只执行一次扫描。run() 阻塞直到所有 worker 退出，
    在此之前不会返回任何部分结果。
    """

    def __init__(self,
                 config: Optional[ScanConfig] = None,
                 prober: Optional[ConnectionProber] = None,
                 aggregator: Optional[ResultAggregator] = None,
                 on_progress: Optional[ProgressCallback] = None,
                 scan_id: Optional[str] = None):
        self.config = config or ScanConfig()
        self.prober = prober or ConnectionProber(self.config)
        self.aggregator = aggregator or ResultAggregator()
        self.on_progress = on_progress
        self.scan_id = scan_id or str(uuid.uuid4())
        self._cancel_event = threading.Event()
        self._started = False
        self._total = 0

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """取消扫描：停止投递任务，停止重试，进行中的连接尝试结束后退出"""
        if not self._cancel_event.is_set():
            logger.info(f"扫描 {self.scan_id} 已请求取消")
        self._cancel_event.set()

    def run(self) -> ScanResult:
        """
        执行扫描

        Returns:
            ScanResult: 扫描结果（已完成或已取消）

        Raises:
            ConfigError: 目标或端口配置无效，在任何网络活动之前抛出
        """
        if self._started:
            raise RuntimeError("ScanOrchestrator 只能执行一次扫描")
        self._started = True

        generator = TaskGenerator.from_config(self.config)
        self._total = len(generator)

        result = ScanResult(scan_id=self.scan_id)
        result.mark_running()

        # worker 数不超过任务数
        workers = max(1, min(self.config.workers, self._total))
        task_queue: queue.Queue = queue.Queue(maxsize=self.config.queue_size)
        pool = WorkerPool(
            workers=workers,
            prober=self.prober,
            aggregator=self.aggregator,
            cancel_event=self._cancel_event,
            on_outcome=self._handle_outcome if self.on_progress else None,
        )

        logger.info(f"开始扫描 {self.scan_id}: {len(generator.hosts)} 个目标, "
                    f"{len(generator.ports)} 个端口, 共 {self._total} 个任务, {workers} 个 worker")

        timer = None
        if self.config.deadline:
            timer = threading.Timer(self.config.deadline, self._on_deadline)
            timer.daemon = True

        start = time.perf_counter()
        if timer:
            timer.start()
        try:
            pool.start(task_queue)
            self._enqueue(generator, task_queue)
            pool.close(task_queue)
            pool.join()
        finally:
            if timer:
                timer.cancel()
        duration = time.perf_counter() - start

        snapshot = self.aggregator.snapshot()
        outcomes = sorted(snapshot.outcomes, key=lambda o: (o.task.host, o.task.port))
        summary = ScanSummary(
            targets_scanned=len(generator.hosts),
            ports_scanned=snapshot.scanned,
            open_count=snapshot.open_count,
            duration=duration,
        )

        if self.cancelled:
            result.mark_cancelled(summary, outcomes)
            logger.warning(f"扫描 {self.scan_id} 已取消: 完成 {snapshot.scanned}/{self._total} 个任务")
        else:
            if snapshot.scanned != self._total:
                logger.error(f"结果数量 {snapshot.scanned} 与任务数量 {self._total} 不一致")
            result.mark_completed(summary, outcomes)
            logger.info(f"扫描完成 {self.scan_id}: 开放端口 {snapshot.open_count} 个，耗时 {duration:.2f}秒")

        return result

    def _enqueue(self, generator: TaskGenerator, task_queue: queue.Queue) -> None:
        """投递任务，队列满时阻塞"""
        for task in generator:
            if self._cancel_event.is_set():
                logger.debug("扫描已取消，停止投递任务")
                return
            task_queue.put(task)

    def _handle_outcome(self, outcome: ScanOutcome, scanned: int) -> None:
        self.on_progress(scanned, self._total, outcome)

    def _on_deadline(self) -> None:
        logger.warning(f"扫描 {self.scan_id} 超过截止时间 {self.config.deadline}秒")
        self.cancel()
