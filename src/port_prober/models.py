"""
扫描相关的数据模型定义
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum
from datetime import datetime


class ProbeStatus(str, Enum):
    """单个端口的探测状态"""
    OPEN = "open"
    CLOSED = "closed"


class ScanStatus(str, Enum):
    """扫描状态枚举"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ScanTask(BaseModel):
    """扫描任务：一个 (host, port) 组合"""
    model_config = ConfigDict(frozen=True)

    host: str = Field(..., min_length=1, description="目标主机（IP或域名）")
    port: int = Field(..., ge=1, le=65535, description="端口号")

    @property
    def address(self) -> str:
        """host:port 形式的地址，IPv6 地址加方括号"""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.address


class ScanOutcome(BaseModel):
    """单个扫描任务的结果，由处理该任务的 worker 创建一次"""
    model_config = ConfigDict(frozen=True)

    task: ScanTask = Field(..., description="对应的扫描任务")
    status: ProbeStatus = Field(..., description="探测状态 (open/closed)")
    banner: Optional[str] = Field(None, description="Banner信息")
    attempts: int = Field(..., ge=1, description="连接尝试次数")
    elapsed: float = Field(default=0.0, ge=0.0, description="耗时(秒)，包含重试等待")

    @property
    def is_open(self) -> bool:
        return self.status == ProbeStatus.OPEN


class ScanSummary(BaseModel):
    """扫描摘要，仅在全部任务完成后计算"""
    targets_scanned: int = Field(default=0, ge=0, description="扫描的目标数")
    ports_scanned: int = Field(default=0, ge=0, description="扫描的端口总数（目标 × 端口）")
    open_count: int = Field(default=0, ge=0, description="开放端口数量")
    duration: float = Field(default=0.0, ge=0.0, description="扫描耗时(秒)")


class ScanConfig(BaseModel):
    """扫描配置模型"""
    # 目标与端口
    targets: List[str] = Field(default_factory=lambda: ["scanme.nmap.org"], description="扫描目标列表")
    start_port: int = Field(default=1, description="起始端口（包含）")
    end_port: int = Field(default=22, description="结束端口（包含）")
    extra_ports: str = Field(default="", description="额外端口，逗号分隔，与端口范围取并集")

    # 并发配置
    workers: int = Field(default=200, ge=1, description="并发 worker 数量")
    queue_size: int = Field(default=100, ge=1, description="任务队列容量")

    # 连接与重试配置
    timeout: float = Field(default=5.0, gt=0, description="单次连接超时时间(秒)")
    max_retries: int = Field(default=3, ge=1, description="最大连接尝试次数")
    backoff_base: float = Field(default=1.0, ge=0.0, description="指数退避基数(秒)")

    # Banner获取配置
    grab_banner: bool = Field(default=True, description="是否读取Banner")
    banner_timeout: float = Field(default=2.0, gt=0, description="Banner读取超时时间(秒)")
    banner_max_bytes: int = Field(default=1024, ge=1, description="Banner最大字节数")

    # 整体扫描截止时间
    deadline: Optional[float] = Field(None, gt=0, description="整体扫描截止时间(秒)，超时后取消扫描")


class ScanResult(BaseModel):
    """扫描结果模型"""
    scan_id: str = Field(..., description="扫描ID")
    status: ScanStatus = Field(default=ScanStatus.PENDING, description="扫描状态")
    start_time: datetime = Field(default_factory=datetime.now, description="开始时间")
    end_time: Optional[datetime] = Field(None, description="结束时间")

    summary: ScanSummary = Field(default_factory=ScanSummary, description="扫描摘要")
    outcomes: List[ScanOutcome] = Field(default_factory=list, description="全部任务结果")
    error_message: Optional[str] = Field(None, description="错误信息")

    @property
    def open_outcomes(self) -> List[ScanOutcome]:
        return [o for o in self.outcomes if o.is_open]

    def mark_running(self) -> None:
        self.status = ScanStatus.RUNNING

    def mark_completed(self, summary: ScanSummary, outcomes: List[ScanOutcome]) -> None:
        """标记扫描完成"""
        self.status = ScanStatus.COMPLETED
        self.end_time = datetime.now()
        self.summary = summary
        self.outcomes = outcomes

    def mark_cancelled(self, summary: ScanSummary, outcomes: List[ScanOutcome]) -> None:
        """标记扫描被取消，保留已完成的部分结果"""
        self.mark_completed(summary, outcomes)
        self.status = ScanStatus.CANCELLED

    def mark_failed(self, error: str) -> None:
        """标记扫描失败"""
        self.status = ScanStatus.FAILED
        self.end_time = datetime.now()
        self.error_message = error
