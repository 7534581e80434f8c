"""
统一的日志配置模块
提供详细的日志格式，包含文件名、函数名、行号等信息
"""

import sys
import os
from pathlib import Path
from loguru import logger

# 移除默认的 handler
logger.remove()


def detailed_formatter(record):
    """
    详细的日志格式化器，包含：
    - 时间戳
    - 日志级别
    - 文件路径（相对路径）
    - 函数名和行号
    - 消息内容
    """
    try:
        project_root = Path(__file__).parent.parent.parent
        relative_path = Path(record["file"].path).relative_to(project_root)
    except (ValueError, AttributeError):
        relative_path = Path(record["file"].path).name if record["file"].path else "unknown"

    time_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green>"
    level_format = "<level>{level: <8}</level>"
    location_format = "<cyan>{}</cyan>:<yellow>{}</yellow>:<blue>{}</blue>".format(
        relative_path,
        record["function"],
        record["line"]
    )
    thread_format = "<magenta>{thread.name}</magenta>"
    message_format = "<level>{message}</level>"

    log_format = f"{time_format} | {level_format} | {thread_format} | {location_format} | {message_format}"

    if record["exception"]:
        log_format += "\n{exception}"
    else:
        log_format += "\n"

    return log_format


def simple_formatter(record):
    """简化的日志格式化器"""
    return "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>\n{exception}"


def configure_logger(level="WARNING", detailed=True, log_file=None):
    """
    配置日志系统（会替换已有的 handler）

    Args:
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        detailed: 是否使用详细格式
        log_file: 日志文件路径（可选）
    """
    logger.remove()
    formatter = detailed_formatter if detailed else simple_formatter

    # 扫描结果走 stdout，日志统一输出到 stderr
    logger.add(
        sys.stderr,
        format=formatter,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=True,
        enqueue=True
    )

    if log_file:
        logger.add(
            log_file,
            format=formatter,
            level=level,
            rotation="100 MB",
            retention="7 days",
            compression="zip",
            backtrace=True,
            diagnose=True,
            enqueue=True
        )


def init_logger():
    """初始化日志系统，从环境变量读取配置"""
    log_level = os.getenv("LOG_LEVEL", "WARNING").upper()
    log_detailed = os.getenv("LOG_DETAILED", "true").lower() == "true"
    log_file = os.getenv("LOG_FILE") or None

    configure_logger(level=log_level, detailed=log_detailed, log_file=log_file)


# 默认初始化
init_logger()

__all__ = ["logger", "configure_logger", "init_logger"]
