"""errors.py

模拟器的错误分类
"""


class SimulationError(Exception):
    """模拟器所有错误的基类"""


class ConfigurationError(SimulationError, ValueError):
    """策略或调度器参数不合法 (在任何事件执行之前抛出)"""


class NoCapacity(SimulationError):
    """集群中没有任何主机能够满足调用的资源需求"""


class InvalidReference(SimulationError, LookupError):
    """事件引用了已经销毁的实体 (调用已归档或容器已被回收)"""
