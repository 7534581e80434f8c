"""
TCP连接探测：带指数退避的连接重试 + Banner获取
"""

import socket
import threading
import time
from typing import Optional

from .backoff import BackoffStrategy, ExponentialBackoff
from .logger_config import logger
from .models import ProbeStatus, ScanConfig, ScanOutcome, ScanTask


class ConnectionProber:
    """连接探测器 - 对单个扫描任务执行连接尝试"""

    def __init__(self, config: Optional[ScanConfig] = None, backoff: Optional[BackoffStrategy] = None):
        self.config = config or ScanConfig()
        self.backoff = backoff or ExponentialBackoff(base=self.config.backoff_base)
        logger.debug("ConnectionProber 初始化完成，配置: timeout={}s, max_retries={}, grab_banner={}",
                     self.config.timeout, self.config.max_retries, self.config.grab_banner)

    def probe(self, task: ScanTask, cancel_event: Optional[threading.Event] = None) -> ScanOutcome:
        """
        探测单个扫描任务

        最多尝试 max_retries 次，每次失败后按退避策略等待再重试，
        最后一次失败后不再等待。连接被拒绝、超时、不可达、DNS失败都按同一种失败处理。

        Args:
            task: 扫描任务
            cancel_event: 取消信号，置位后停止重试

        Returns:
            ScanOutcome: 探测结果
        """
        start = time.perf_counter()
        max_retries = self.config.max_retries
        attempts = 0

        for attempt in range(max_retries):
            attempts = attempt + 1
            try:
                sock = socket.create_connection((task.host, task.port), timeout=self.config.timeout)
            except OSError as e:
                logger.debug(f"第 {attempts} 次连接 {task} 失败: {e}")
                if attempts < max_retries:
                    delay = self.backoff(attempt)
                    logger.debug(f"等待 {delay:.1f}秒 后重试 {task}")
                    if self._wait(delay, cancel_event):
                        logger.debug(f"扫描已取消，停止重试 {task}")
                        break
                continue

            try:
                banner = self._grab_banner(sock) if self.config.grab_banner else None
            finally:
                sock.close()

            logger.info(f"端口开放: {task} (第 {attempts} 次尝试)")
            return ScanOutcome(
                task=task,
                status=ProbeStatus.OPEN,
                banner=banner,
                attempts=attempts,
                elapsed=time.perf_counter() - start,
            )

        logger.debug(f"连接 {task} 失败，共尝试 {attempts} 次")
        return ScanOutcome(
            task=task,
            status=ProbeStatus.CLOSED,
            banner=None,
            attempts=attempts,
            elapsed=time.perf_counter() - start,
        )

    def _grab_banner(self, sock: socket.socket) -> Optional[str]:
        """
        读取服务主动发送的Banner

        使用固定的读取超时，与连接超时无关；读取失败或无数据时返回 None。
        """
        try:
            sock.settimeout(self.config.banner_timeout)
            data = sock.recv(self.config.banner_max_bytes)
        except OSError as e:
            logger.debug(f"Banner读取失败: {e}")
            return None

        if not data:
            return None
        banner = data.decode("utf-8", errors="ignore").strip()
        return banner or None

    @staticmethod
    def _wait(delay: float, cancel_event: Optional[threading.Event]) -> bool:
        """等待退避时间，返回是否在等待期间被取消"""
        if cancel_event is None:
            if delay > 0:
                time.sleep(delay)
            return False
        if delay > 0:
            return cancel_event.wait(delay)
        return cancel_event.is_set()
