"""
扫描器异常定义
"""


class PortProberError(Exception):
    """扫描器异常基类"""


class ConfigError(PortProberError, ValueError):
    """
    配置错误（致命）

    在任何网络活动开始之前抛出，例如：
    - 未指定扫描目标
    - 端口范围无效（结束端口小于起始端口）
    """


__all__ = ["PortProberError", "ConfigError"]
