"""
统一的端口扫描服务层
提供同步/异步调用模式、回调和扫描任务管理
"""

import asyncio
import functools
import uuid
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime
from dataclasses import dataclass
from enum import Enum

from .exceptions import ConfigError
from .logger_config import logger
from .models import ScanConfig, ScanOutcome, ScanResult
from .orchestrator import ProgressCallback, ScanOrchestrator


class CallbackType(str, Enum):
    """回调类型枚举"""
    ON_START = "on_start"
    ON_PROGRESS = "on_progress"
    ON_COMPLETE = "on_complete"
    ON_ERROR = "on_error"


@dataclass
class ScanProgress:
    """扫描进度信息"""
    scan_id: str
    scanned: int
    total: int
    outcome: ScanOutcome
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()

    @property
    def progress_percent(self) -> float:
        if self.total <= 0:
            return 100.0
        return self.scanned * 100.0 / self.total


class ScanService:
    """统一的端口扫描服务"""

    def __init__(self, config: Optional[ScanConfig] = None):
        self.config = config or ScanConfig()

        # 活跃扫描任务管理
        self.active_scans: Dict[str, ScanOrchestrator] = {}
        self.callbacks: Dict[CallbackType, List[Callable]] = {t: [] for t in CallbackType}

        # 结果缓存
        self.result_cache: Dict[str, ScanResult] = {}

        logger.debug("ScanService initialized")

    # ==================== 配置管理 ====================

    def get_config(self) -> ScanConfig:
        return self.config

    def update_config(self, config: Optional[ScanConfig] = None, **updates: Any) -> ScanConfig:
        """
        更新默认扫描配置

        Args:
            config: 新的完整配置（可选）
            **updates: 在当前配置基础上覆盖的字段

        Returns:
            ScanConfig: 更新后的配置
        """
        base = config or self.config
        self.config = ScanConfig(**{**base.model_dump(), **updates}) if updates else base
        logger.debug(f"扫描配置已更新: {self.config}")
        return self.config

    # ==================== 回调管理 ====================

    def register_callback(self, callback_type: CallbackType, callback: Callable[[CallbackType, Any], None]) -> None:
        """注册回调函数，回调参数为 (callback_type, data)"""
        self.callbacks[callback_type].append(callback)

    def _trigger_callback(self, callback_type: CallbackType, data: Any) -> None:
        """触发回调函数，回调异常只记录不传播"""
        for callback in self.callbacks[callback_type]:
            try:
                callback(callback_type, data)
            except Exception as e:
                logger.error(f"回调执行失败 {callback_type.value}: {e}")

    # ==================== 同步调用模式 ====================

    def scan_sync(self,
                  config: Optional[ScanConfig] = None,
                  progress_callback: Optional[ProgressCallback] = None,
                  scan_id: Optional[str] = None) -> ScanResult:
        """
        同步执行一次扫描

        Args:
            config: 扫描配置，默认使用服务配置
            progress_callback: 进度回调 (scanned, total, outcome)，在 worker 线程中调用
            scan_id: 扫描ID（可选）

        Returns:
            ScanResult: 扫描结果

        Raises:
            ConfigError: 目标或端口配置无效
        """
        config = config or self.config
        scan_id = scan_id or str(uuid.uuid4())

        def on_progress(scanned: int, total: int, outcome: ScanOutcome) -> None:
            if progress_callback:
                progress_callback(scanned, total, outcome)
            self._trigger_callback(CallbackType.ON_PROGRESS, ScanProgress(scan_id, scanned, total, outcome))

        orchestrator = ScanOrchestrator(config, on_progress=on_progress, scan_id=scan_id)
        self.active_scans[scan_id] = orchestrator
        self._trigger_callback(CallbackType.ON_START, scan_id)

        try:
            result = orchestrator.run()
        except ConfigError as e:
            logger.error(f"扫描配置错误: {e}")
            self._trigger_callback(CallbackType.ON_ERROR, e)
            raise
        except Exception as e:
            logger.exception(f"扫描失败: {scan_id}")
            self._trigger_callback(CallbackType.ON_ERROR, e)
            result = ScanResult(scan_id=scan_id)
            result.mark_failed(str(e))
        finally:
            self.active_scans.pop(scan_id, None)

        self.result_cache[scan_id] = result
        self._trigger_callback(CallbackType.ON_COMPLETE, result)
        return result

    # ==================== 异步调用模式 ====================

    async def scan_async(self,
                         config: Optional[ScanConfig] = None,
                         progress_callback: Optional[ProgressCallback] = None,
                         scan_id: Optional[str] = None) -> ScanResult:
        """
        异步执行一次扫描

        扫描本身在线程池中运行，不阻塞事件循环。
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(self.scan_sync, config, progress_callback, scan_id)
        )

    # ==================== 扫描管理 ====================

    def cancel_scan(self, scan_id: str) -> bool:
        """取消正在进行的扫描，扫描不存在时返回 False"""
        orchestrator = self.active_scans.get(scan_id)
        if orchestrator is None:
            return False
        orchestrator.cancel()
        return True

    def list_active_scans(self) -> List[str]:
        return list(self.active_scans)

    def get_result(self, scan_id: str) -> Optional[ScanResult]:
        return self.result_cache.get(scan_id)


# ==================== 便捷函数 ====================

# 全局服务实例
_default_service = None


def get_default_service(config: Optional[ScanConfig] = None) -> ScanService:
    """获取默认服务实例"""
    global _default_service
    if _default_service is None:
        _default_service = ScanService(config)
    return _default_service


def scan(config: Optional[ScanConfig] = None, **overrides: Any) -> ScanResult:
    """便捷的同步扫描函数"""
    service = get_default_service()
    if overrides:
        config = ScanConfig(**{**(config or service.config).model_dump(), **overrides})
    return service.scan_sync(config)


async def scan_async(config: Optional[ScanConfig] = None, **overrides: Any) -> ScanResult:
    """便捷的异步扫描函数"""
    service = get_default_service()
    if overrides:
        config = ScanConfig(**{**(config or service.config).model_dump(), **overrides})
    return await service.scan_async(config)
