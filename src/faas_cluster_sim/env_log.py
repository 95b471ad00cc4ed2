"""env_log.py

模拟结果记录定义
"""

import math
from bisect import bisect_right
from enum import Enum
from typing import NamedTuple, Optional, Sequence

from .errors import InvalidReference


class InvocationStatus(str, Enum):
    """调用的最终结果"""

    COMPLETED = "completed"
    UNSCHEDULABLE = "unschedulable"
    TIMEOUT = "timeout"
    ABANDONED = "abandoned"


class InvocationRecord(NamedTuple):
    """每个调用对应一条结果记录

    Attributes:
        inv_id (int): 调用ID
        func_name (str): 函数名称
        status (InvocationStatus): 调用的最终结果
        host_id (int | None): 执行调用的主机ID
        container_id (int | None): 执行调用的容器ID
        is_cold (bool | None): 是否为冷启动
        arrival_time (float): 到达时间
        start_time (float | None): 开始执行的时间
        completion_time (float | None): 执行完成的时间
        queueing_delay (float | None): 从到达到被调用器接纳的等待时间
    """

    inv_id: int
    func_name: str
    status: InvocationStatus
    host_id: Optional[int]
    container_id: Optional[int]
    is_cold: Optional[bool]
    arrival_time: float
    start_time: Optional[float]
    completion_time: Optional[float]
    queueing_delay: Optional[float]


class UtilizationRecord(NamedTuple):
    """主机的资源利用率记录

    Attributes:
        timestamp (float): 时间戳
        utilization (float): 主导资源的利用率
        allocated (tuple[int, ...]): 各资源的已分配量 (按主机资源名称顺序)
        active_containers (int): 冷启动中或正在执行的容器数量
        idle_containers (int): 空闲容器数量
        queue_length (int): 调用器队列长度
    """

    timestamp: float
    utilization: float
    allocated: tuple[int, ...]
    active_containers: int
    idle_containers: int
    queue_length: int


class SimulationResult:
    """一次模拟运行的结果

    Args:
        scheduler (str): 调度器描述
        records (list[InvocationRecord]): 调用结果记录
        resource_names (dict[int, tuple[str, ...]]): 各主机的资源名称顺序
        utilization (dict[int, list[UtilizationRecord]]): 各主机的资源利用率时间序列
        wasted_resources (dict[int, dict[str, float]] | None): 各主机空闲容器占用的资源与时间之积
    """

    __slots__ = (
        "scheduler",
        "records",
        "resource_names",
        "utilization",
        "wasted_resources",
        "_by_id",
    )

    def __init__(
        self,
        scheduler: str,
        records: list[InvocationRecord],
        resource_names: dict[int, tuple[str, ...]],
        utilization: dict[int, list[UtilizationRecord]],
        wasted_resources: Optional[dict[int, dict[str, float]]] = None,
    ):
        self.scheduler: str = scheduler
        self.records: tuple[InvocationRecord, ...] = tuple(sorted(records, key=lambda r: r.inv_id))
        self.resource_names: dict[int, tuple[str, ...]] = resource_names
        self.utilization: dict[int, list[UtilizationRecord]] = utilization
        self.wasted_resources: dict[int, dict[str, float]] = wasted_resources if wasted_resources is not None else {}
        self._by_id: dict[int, InvocationRecord] = {r.inv_id: r for r in self.records}

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, inv_id: int) -> InvocationRecord:
        """按调用ID查找结果记录"""
        if inv_id not in self._by_id:
            raise InvalidReference(f"No record for invocation {inv_id}")
        return self._by_id[inv_id]

    def count(self, status: InvocationStatus) -> int:
        return sum(1 for r in self.records if r.status == status)

    @property
    def completed(self) -> list[InvocationRecord]:
        return [r for r in self.records if r.status == InvocationStatus.COMPLETED]

    def cold_start_fraction(self) -> float:
        """已完成调用中冷启动所占的比例"""
        completed = self.completed
        if not completed:
            return 0.0
        return sum(1 for r in completed if r.is_cold) / len(completed)

    def mean_queueing_delay(self) -> float:
        """已完成调用的平均排队时间"""
        delays = [r.queueing_delay for r in self.completed if r.queueing_delay is not None]
        if not delays:
            return 0.0
        return sum(delays) / len(delays)

    def relative_slowdowns(self) -> list[float]:
        """已完成调用的相对减速比：(完成时间 - 到达时间) / 执行时长，执行时长为 0 的调用不计入"""
        slowdowns = []
        for r in self.completed:
            if r.start_time is None or r.completion_time is None:
                continue
            execution = r.completion_time - r.start_time
            if execution > 0:
                slowdowns.append((r.completion_time - r.arrival_time) / execution)
        return slowdowns

    def relative_slowdown_percentile(self, q: float = 99.0) -> float:
        """相对减速比的 q 分位数 (0 <= q <= 100，线性插值)"""
        return percentile(self.relative_slowdowns(), q)

    def wasted_resource_time(self, name: str) -> float:
        """所有主机上空闲容器占用的某种资源与时间之积"""
        return sum(w.get(name, 0.0) for w in self.wasted_resources.values())

    def utilization_at(self, host_id: int, time: float) -> UtilizationRecord:
        """获得指定主机在指定时间点的资源利用率记录"""
        records = self.utilization[host_id]

        # 使用二分查找找到最后一个小于等于 time 的记录索引
        i = bisect_right(records, time, key=lambda r: r.timestamp) - 1

        if i < 0:
            raise ValueError(f"No utilization record for host {host_id} at or before time {time}")

        return records[i]


def percentile(values: Sequence[float], q: float) -> float:
    """线性插值的 q 分位数；没有数据时返回 0.0

    Args:
        values (Sequence[float]): 数据
        q (float): 分位点，0 <= q <= 100

    Returns:
        float: 分位数
    """

    if not 0 <= q <= 100:
        raise ValueError(f"Percentile must be within [0, 100], got {q}")
    if not values:
        return 0.0

    ordered = sorted(values)
    pos = (len(ordered) - 1) * q / 100
    lo = math.floor(pos)
    hi = math.ceil(pos)
    return ordered[lo] + (ordered[hi] - ordered[lo]) * (pos - lo)
