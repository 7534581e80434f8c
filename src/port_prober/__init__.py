"""
TCP端口可达性探测

这个包提供一个有界并发的TCP连接探测器：
1. 目标 × 端口 去重生成扫描任务
2. 固定数量的 worker 从有界队列中拉取任务并探测
3. 连接失败按指数退避重试，连接成功后尝试读取Banner
4. 线程安全地汇总结果并生成扫描摘要
"""

__version__ = "0.1.0"

# 导入并初始化日志配置
from .logger_config import logger, configure_logger, init_logger

from .exceptions import PortProberError, ConfigError

# 核心业务层
from .targets import TaskGenerator, resolve_targets, build_port_set, parse_port_list
from .backoff import ExponentialBackoff, no_backoff
from .prober import ConnectionProber
from .aggregator import ResultAggregator
from .pool import WorkerPool
from .orchestrator import ScanOrchestrator

# 统一服务层
from .service import (
    ScanService, ScanProgress, CallbackType,
    get_default_service, scan, scan_async
)

# 数据模型
from .models import (
    ScanTask, ScanOutcome, ScanSummary, ScanConfig, ScanResult,
    ProbeStatus, ScanStatus
)

__all__ = [
    # 异常
    "PortProberError",
    "ConfigError",

    # 核心业务层
    "TaskGenerator",
    "resolve_targets",
    "build_port_set",
    "parse_port_list",
    "ExponentialBackoff",
    "no_backoff",
    "ConnectionProber",
    "ResultAggregator",
    "WorkerPool",
    "ScanOrchestrator",

    # 统一服务层
    "ScanService",
    "ScanProgress",
    "CallbackType",
    "get_default_service",
    "scan",
    "scan_async",

    # 数据模型
    "ScanTask",
    "ScanOutcome",
    "ScanSummary",
    "ScanConfig",
    "ScanResult",
    "ProbeStatus",
    "ScanStatus",
]
