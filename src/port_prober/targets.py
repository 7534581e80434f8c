"""
扫描任务生成：目标解析、端口集合构建、(host, port) 任务去重
"""

from typing import Iterable, Iterator, List, Optional, Set

from .exceptions import ConfigError
from .logger_config import logger
from .models import ScanConfig, ScanTask

MIN_PORT = 1
MAX_PORT = 65535


def resolve_targets(target: Optional[str] = None, targets: Optional[str] = None) -> List[str]:
    """
    解析扫描目标

    单个目标优先；否则按逗号拆分目标列表，去除空白并丢弃空项。

    Args:
        target: 单个目标
        targets: 逗号分隔的目标列表

    Returns:
        List[str]: 目标列表

    Raises:
        ConfigError: 未指定任何目标
    """
    if target and target.strip():
        return [target.strip()]

    hosts = [t.strip() for t in (targets or "").split(",") if t.strip()]
    if not hosts:
        raise ConfigError("未指定扫描目标，请使用 --target 或 --targets")
    return hosts


def parse_port_list(spec: Optional[str]) -> Set[int]:
    """
    解析逗号分隔的端口列表，无法解析或越界的项会被跳过

    Args:
        spec: 端口列表字符串，例如 "22,80,443"

    Returns:
        Set[int]: 端口集合
    """
    ports: Set[int] = set()
    if not spec:
        return ports

    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            port = int(part)
        except ValueError:
            logger.warning(f"忽略无效端口: {part!r}")
            continue
        if not MIN_PORT <= port <= MAX_PORT:
            logger.warning(f"忽略越界端口: {port}")
            continue
        ports.add(port)

    return ports


def build_port_set(start: int, end: int, explicit: Optional[str] = None) -> Set[int]:
    """
    构建端口集合：连续范围 [start, end] 与显式端口列表取并集

    Raises:
        ConfigError: 结束端口小于起始端口，或范围越界
    """
    if end < start:
        raise ConfigError(f"端口范围无效: 结束端口 {end} 小于起始端口 {start}")
    if start < MIN_PORT or end > MAX_PORT:
        raise ConfigError(f"端口范围无效: {start}-{end}，端口必须在 {MIN_PORT}-{MAX_PORT} 之间")

    ports = set(range(start, end + 1))
    ports.update(parse_port_list(explicit))
    return ports


class TaskGenerator:
    """扫描任务生成器：目标 × 端口 的去重笛卡尔积，不涉及网络"""

    def __init__(self, hosts: Iterable[str], ports: Iterable[int]):
        # 保留目标首次出现的顺序，重复目标只保留一次
        self.hosts: List[str] = list(dict.fromkeys(h.strip() for h in hosts if h and h.strip()))
        if not self.hosts:
            raise ConfigError("未指定扫描目标，请使用 --target 或 --targets")
        self.ports: List[int] = sorted(set(ports))

    @classmethod
    def from_config(cls, config: ScanConfig) -> "TaskGenerator":
        ports = build_port_set(config.start_port, config.end_port, config.extra_ports)
        return cls(config.targets, ports)

    def __len__(self) -> int:
        return len(self.hosts) * len(self.ports)

    def __iter__(self) -> Iterator[ScanTask]:
        return self.generate()

    def generate(self) -> Iterator[ScanTask]:
        """按 (目标, 端口) 顺序逐个产出扫描任务"""
        for host in self.hosts:
            for port in self.ports:
                yield ScanTask(host=host, port=port)
