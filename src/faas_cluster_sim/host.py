"""host.py

主机建模
"""

import itertools
import logging
from bisect import bisect_left
from typing import Iterator, Mapping

from .coldstart import ColdStartPolicy
from .container import Container, ContainerState
from .env_log import UtilizationRecord
from .errors import InvalidReference
from .invocation import Invocation
from .invoker import build_invoker
from .resources import ResourceLedger

logger = logging.getLogger(__name__)


class Host:
    """主机模型

    主机拥有资源账本、容器注册表和调用器，是容量记账的唯一来源。

    Args:
        host_id (int): 主机ID
        capacity (Mapping[str, int]): 各资源的容量
        invoker (str): 调用器类型名称
        policy (ColdStartPolicy): 冷启动策略
        id_source (Iterator[int] | None): 容器ID生成器，集群内所有主机共享
    """

    __slots__ = (
        "host_id",
        "ledger",
        "invoker",
        "containers",
        "invocation_count",
        "wasted_resources",
        "_id_source",
        "_rum",
    )

    def __init__(
        self,
        host_id: int,
        capacity: Mapping[str, int],
        invoker: str,
        policy: ColdStartPolicy,
        id_source: Iterator[int] | None = None,
    ):
        self.host_id: int = host_id
        self.ledger = ResourceLedger(capacity)
        self.invoker = build_invoker(invoker, self, policy)
        self.containers: dict[int, Container] = {}  # 未被回收的容器，容器ID -> 容器
        self.invocation_count: int = 0  # 调度到本主机的调用总数
        self.wasted_resources: dict[str, float] = {name: 0.0 for name in capacity}  # 空闲容器占用的资源 x 时间

        self._id_source: Iterator[int] = id_source if id_source is not None else itertools.count()
        self._rum = ResourceUtilizationManager()
        self.record_utilization(0.0)

    def __repr__(self) -> str:
        return f"Host(id={self.host_id}, capacity={self.ledger.capacity})"

    def fits(self, inv: Invocation) -> bool:
        """现在是否能够为调用提供容器

        可复用的空闲容器、足够的剩余资源，或者回收其他空闲容器之后足够的剩余资源。
        """

        if self.find_idle_container(inv) is not None or self.ledger.fits(inv.resources):
            return True
        return self.fits_after_reclaim(inv.resources)

    def fits_after_reclaim(self, req: Mapping[str, int]) -> bool:
        """回收所有空闲容器之后，剩余资源是否能够满足需求"""
        reclaimable: dict[str, int] = {}
        for c in self.containers.values():
            if c.state == ContainerState.IDLE:
                for name, quantity in c.resources.items():
                    reclaimable[name] = reclaimable.get(name, 0) + quantity

        return all(quantity <= self.ledger.free(name) + reclaimable.get(name, 0) for name, quantity in req.items())

    def can_ever_fit(self, inv: Invocation) -> bool:
        """主机的总容量是否能够满足调用的资源需求"""
        return self.ledger.can_ever_fit(inv.resources)

    def has_warm(self, inv: Invocation) -> bool:
        """主机上是否有可供该调用复用的空闲容器"""
        return self.find_idle_container(inv) is not None

    def would_admit(self, inv: Invocation) -> bool:
        """调用提交到本主机时是否会被立即接纳"""
        return self.invoker.would_admit(inv)

    def find_idle_container(self, inv: Invocation) -> Container | None:
        """查找可供调用复用的空闲容器

        同一函数有多个空闲容器时选择最早创建的；资源需求不同时，需要剩余资源能够满足预留的调整。
        """

        for c in self.containers.values():
            if c.state != ContainerState.IDLE or c.func_name != inv.func_name:
                continue
            if c.resources != inv.resources and not self.ledger.can_resize(c.resources, inv.resources):
                continue
            return c
        return None

    def create_container(self, func_name: str, resources: Mapping[str, int], time: float) -> Container:
        """创建新容器并预留资源 (冷启动)"""
        self.ledger.allocate(resources)
        container = Container(next(self._id_source), self.host_id, func_name, resources, time)
        self.containers[container.container_id] = container
        return container

    def reuse_container(self, container: Container, inv: Invocation, time: float):
        """复用空闲容器 (热启动)，必要时调整资源预留"""
        self._account_idle(container, time)
        if container.resources != inv.resources:
            self.ledger.resize(container.resources, inv.resources)
            container.resources = dict(inv.resources)
        container.reuse(inv.inv_id, time)

    def evict_container(self, container: Container, time: float):
        """回收容器并归还资源"""
        self._account_idle(container, time)
        container.evict(time)
        self.ledger.release(container.resources)
        del self.containers[container.container_id]

    def reclaim(self, req: Mapping[str, int], time: float) -> list[Container]:
        """按最后活跃时间从早到晚回收空闲容器，直到剩余资源能够满足需求

        Args:
            req (Mapping[str, int]): 资源需求
            time (float): 当前时间

        Returns:
            list[Container]: 被回收的容器
        """

        evicted: list[Container] = []
        idle = sorted(
            (c for c in self.containers.values() if c.state == ContainerState.IDLE),
            key=lambda c: (c.last_active_time, c.container_id),
        )

        for c in idle:
            if self.ledger.fits(req):
                break
            self.evict_container(c, time)
            evicted.append(c)
            logger.debug("reclaimed idle container %d of %s on host %d at %s", c.container_id, c.func_name, self.host_id, time)

        return evicted

    def _account_idle(self, container: Container, time: float):
        """容器离开空闲状态时，累计其空闲期间占用的资源"""
        if container.state != ContainerState.IDLE:
            return
        delta = time - container.last_active_time
        for name, quantity in container.resources.items():
            self.wasted_resources[name] = self.wasted_resources.get(name, 0.0) + delta * quantity

    def get_container(self, container_id: int) -> Container:
        if container_id not in self.containers:
            raise InvalidReference(f"Container {container_id} does not exist on host {self.host_id}")
        return self.containers[container_id]

    def function_containers(self, func_name: str) -> list[Container]:
        """主机上属于指定函数、尚未被回收的容器"""
        return [c for c in self.containers.values() if c.func_name == func_name]

    def spare_containers(self, func_name: str) -> list[Container]:
        """主机上属于指定函数、没有在服务调用的容器 (空闲或预热部署中)"""
        return [c for c in self.function_containers(func_name) if c.invocation_id is None]

    @property
    def queue_length(self) -> int:
        return len(self.invoker)

    @property
    def active_invocations(self) -> int:
        """冷启动中、正在执行或排队中的调用数量"""
        busy = sum(1 for c in self.containers.values() if c.invocation_id is not None)
        return busy + self.queue_length

    def utilization(self) -> float:
        return self.ledger.utilization()

    def record_utilization(self, time: float):
        """在指定时间点记录主机的当前状态；同一时间点只保留最新的记录"""
        idle = sum(1 for c in self.containers.values() if c.state == ContainerState.IDLE)
        self._rum.clear_after(time)
        self._rum.add_record(
            UtilizationRecord(
                timestamp=time,
                utilization=self.ledger.utilization(),
                allocated=self.ledger.snapshot(),
                active_containers=len(self.containers) - idle,
                idle_containers=idle,
                queue_length=self.queue_length,
            )
        )

    @property
    def utilization_records(self) -> list[UtilizationRecord]:
        return self._rum.records


class ResourceUtilizationManager:
    """记录主机的资源利用率

    每条记录表示自该时间点起，直到下一条记录时间点为止的资源利用率情况。
    """

    __slots__ = ("records",)

    def __init__(self):
        self.records: list[UtilizationRecord] = []  # 元素必须保证按 timestamp 升序

    def clear_after(self, time: float):
        """删除指定时间点以及之后的所有记录

        Args:
            time (float): 时间点
        """

        # 使用二分查找找到第一个大于等于 time 的记录索引
        i = bisect_left(self.records, time, key=lambda r: r.timestamp)

        if i == len(self.records):
            # 没有需要删除的记录直接返回，避免不必要的切片操作
            return

        self.records = self.records[:i]

    def add_record(self, record: UtilizationRecord):
        """添加资源利用率记录

        Args:
            record (UtilizationRecord): 资源利用率记录
        """

        if self.records and record.timestamp <= self.records[-1].timestamp:
            raise ValueError("New record timestamp must be greater than the last record timestamp")

        self.records.append(record)
