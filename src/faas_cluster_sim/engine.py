"""engine.py

离散事件模拟引擎
"""

import logging
from typing import Callable, Iterable

from .cluster import Cluster
from .coldstart import build_coldstart_policy
from .config import SchedulerConfig, SimulationConfig
from .container import ContainerState
from .deployer import build_deployer
from .env_log import InvocationRecord, InvocationStatus, SimulationResult
from .errors import InvalidReference, NoCapacity
from .event import Event, EventKind, EventQueue
from .host import Host
from .invocation import Invocation, InvStat, TraceRecord
from .invoker import Admission
from .scheduler import Scheduler, build_scheduler

logger = logging.getLogger(__name__)


class Simulation:
    """无服务器集群的离散事件模拟

    引擎持有全局逻辑时钟和事件队列，每次取出 (时间, 插入序号) 最小的事件并分派给相应的组件。
    所有状态变化都发生在单个事件的处理过程中，同一输入和配置 (包括随机数种子) 下的运行结果是确定的。

    Args:
        config (SimulationConfig): 集群与策略配置
        scheduler (Scheduler | SchedulerConfig): 调度器实例或调度器配置
    """

    def __init__(self, config: SimulationConfig, scheduler: Scheduler | SchedulerConfig):
        self.config = config
        self.policy = build_coldstart_policy(config.coldstart_policy)
        self.deployer = build_deployer(config.idle_deployer, self.policy)
        self.scheduler: Scheduler = scheduler if isinstance(scheduler, Scheduler) else build_scheduler(scheduler)
        self.cluster = Cluster(config, self.policy)
        self.queue_timeout: float | None = config.queue_timeout

        self.now: float = 0.0
        self._events = EventQueue()
        self._invocations: dict[int, Invocation] = {}  # 尚未产生结果记录的调用
        self._records: list[InvocationRecord] = []
        self._next_inv_id: int = 0

        self._handlers: dict[EventKind, Callable[[Event], None]] = {
            EventKind.ARRIVAL: self._on_arrival,
            EventKind.INVOCATION_START: self._on_invocation_start,
            EventKind.INVOCATION_COMPLETE: self._on_invocation_complete,
            EventKind.EVICTION_CHECK: self._on_eviction_check,
            EventKind.QUEUE_TIMEOUT: self._on_queue_timeout,
            EventKind.CONTAINER_READY: self._on_container_ready,
        }

    def __len__(self) -> int:
        """尚未处理的事件数量 (包括已取消的事件)"""
        return len(self._events)

    def submit(self, record: TraceRecord) -> int:
        """提交一次调用到达

        Args:
            record (TraceRecord): 轨迹记录

        Returns:
            int: 分配给该调用的ID
        """

        if record.arrival_time < self.now:
            raise ValueError(f"Arrival time {record.arrival_time} cannot be earlier than current time {self.now}")

        inv = Invocation.from_trace(self._next_inv_id, record)
        self._next_inv_id += 1
        self._invocations[inv.inv_id] = inv
        self.schedule(EventKind.ARRIVAL, inv.inv_id, inv.arrival_time)
        return inv.inv_id

    def load_trace(self, records: Iterable[TraceRecord]) -> list[int]:
        """按顺序提交轨迹中的所有调用"""
        return [self.submit(r) for r in records]

    def schedule(self, kind: EventKind, subject_id: int, at_time: float, host_id: int | None = None) -> Event:
        """在指定时间安排一个事件

        Returns:
            Event: 被安排的事件，可用于取消
        """

        if at_time < self.now:
            raise ValueError(f"Cannot schedule {kind.name} at {at_time}, current time is {self.now}")

        return self._events.push(kind, subject_id, at_time, host_id)

    def advance(self) -> bool:
        """处理下一个事件

        Returns:
            bool: 是否处理了事件；事件队列为空时返回 False
        """

        event = self._events.pop()
        if event is None:
            return False

        self.now = event.time

        if event.cancelled:
            return True

        logger.debug("t=%s processing %s for %d", self.now, event.kind.name, event.subject_id)

        try:
            self._handlers[event.kind](event)
        except InvalidReference as e:
            logger.warning("t=%s dropping %s event: %s", self.now, event.kind.name, e)

        return True

    def run_until_empty(self) -> SimulationResult:
        """处理所有事件，直到事件队列为空

        事件队列清空后仍在排队的调用会被记录为 `ABANDONED`。

        Returns:
            SimulationResult: 模拟结果
        """

        while self.advance():
            pass

        for host in self.cluster:
            for inv in host.invoker.drain_all():
                inv.abandon()
                self._archive(inv, InvocationStatus.ABANDONED)
            host.record_utilization(self.now)

        return self.result()

    def result(self) -> SimulationResult:
        return SimulationResult(
            scheduler=repr(self.scheduler),
            records=self._records,
            resource_names={h.host_id: h.ledger.names for h in self.cluster},
            utilization={h.host_id: list(h.utilization_records) for h in self.cluster},
            wasted_resources={h.host_id: dict(h.wasted_resources) for h in self.cluster},
        )

    def _get_invocation(self, inv_id: int) -> Invocation:
        if inv_id not in self._invocations:
            raise InvalidReference(f"Invocation {inv_id} does not exist or has already been archived")
        return self._invocations[inv_id]

    def _archive(self, inv: Invocation, status: InvocationStatus):
        """生成结果记录，调用不再参与模拟"""
        self._records.append(
            InvocationRecord(
                inv_id=inv.inv_id,
                func_name=inv.func_name,
                status=status,
                host_id=inv.host_id,
                container_id=inv.container_id,
                is_cold=inv.is_cold,
                arrival_time=inv.arrival_time,
                start_time=inv.start_time,
                completion_time=inv.completion_time,
                queueing_delay=inv.queueing_delay,
            )
        )
        del self._invocations[inv.inv_id]

    def _start(self, admission: Admission, host: Host):
        """为被接纳的调用安排开始执行事件；冷启动需要额外等待冷启动延迟

        随后按冷启动策略在主机上预热同一函数的容器，预热容器同样需要等待冷启动延迟。
        """

        inv = admission.invocation
        start_time = self.now + inv.cold_start_latency if admission.is_cold else self.now
        self.schedule(EventKind.INVOCATION_START, inv.inv_id, start_time, host.host_id)

        for container in self.policy.prewarm(inv, host, self.now):
            self.schedule(EventKind.CONTAINER_READY, container.container_id, self.now + inv.cold_start_latency, host.host_id)

    def _drain(self, host: Host):
        """主机资源被释放后，尝试接纳其调用器队列中的调用"""
        for admission in host.invoker.dequeue(self.now):
            self._start(admission, host)

    def _on_arrival(self, event: Event):
        inv = self._get_invocation(event.subject_id)

        try:
            host_id = self.scheduler.select_host(inv, self.cluster)
        except NoCapacity as e:
            logger.info("t=%s invocation %d of %s is unschedulable: %s", self.now, inv.inv_id, inv.func_name, e)
            inv.reject()
            self._archive(inv, InvocationStatus.UNSCHEDULABLE)
            return

        host = self.cluster[host_id]
        inv.assign_host(host_id)
        host.invocation_count += 1

        admission = host.invoker.submit(inv, self.now)
        if admission is not None:
            self._start(admission, host)
        elif self.queue_timeout is not None:
            inv.timeout_event = self.schedule(EventKind.QUEUE_TIMEOUT, inv.inv_id, self.now + self.queue_timeout, host_id)

        host.record_utilization(self.now)

    def _on_invocation_start(self, event: Event):
        inv = self._get_invocation(event.subject_id)
        host = self.cluster[inv.host_id]  # type: ignore
        container = host.get_container(inv.container_id)  # type: ignore

        if container.state == ContainerState.STARTING:
            container.start(self.now)
        inv.run(self.now)

        self.schedule(EventKind.INVOCATION_COMPLETE, inv.inv_id, self.now + inv.duration, host.host_id)
        host.record_utilization(self.now)

    def _on_invocation_complete(self, event: Event):
        inv = self._get_invocation(event.subject_id)
        host = self.cluster[inv.host_id]  # type: ignore
        container = host.get_container(inv.container_id)  # type: ignore

        inv.finish(self.now)
        container.release(self.now)
        container.eviction_event = self.schedule(
            EventKind.EVICTION_CHECK,
            container.container_id,
            self.now + self.policy.keepalive_window(container),
            host.host_id,
        )
        self._archive(inv, InvocationStatus.COMPLETED)

        # 空闲容器可能被排队中的同一函数调用复用
        self._drain(host)
        host.record_utilization(self.now)

    def _on_eviction_check(self, event: Event):
        if event.host_id is None:
            raise InvalidReference(f"Eviction check for container {event.subject_id} carries no host")

        host = self.cluster[event.host_id]
        container = host.get_container(event.subject_id)
        container.eviction_event = None

        if self.deployer.on_eviction_check(container, host, self.now):
            self._drain(host)
            host.record_utilization(self.now)

    def _on_container_ready(self, event: Event):
        if event.host_id is None:
            raise InvalidReference(f"Ready event for container {event.subject_id} carries no host")

        host = self.cluster[event.host_id]
        container = host.get_container(event.subject_id)
        container.ready(self.now)
        container.eviction_event = self.schedule(
            EventKind.EVICTION_CHECK,
            container.container_id,
            self.now + self.policy.keepalive_window(container),
            host.host_id,
        )

        # 排队中的同一函数调用可以直接使用预热好的容器
        self._drain(host)
        host.record_utilization(self.now)

    def _on_queue_timeout(self, event: Event):
        inv = self._get_invocation(event.subject_id)
        if inv.state != InvStat.QUEUED:
            return

        host = self.cluster[inv.host_id]  # type: ignore
        if not host.invoker.remove(inv):
            raise InvalidReference(f"Invocation {inv.inv_id} is not queued on host {host.host_id}")

        logger.info("t=%s invocation %d of %s timed out in queue of host %d", self.now, inv.inv_id, inv.func_name, host.host_id)
        inv.time_out()
        self._archive(inv, InvocationStatus.TIMEOUT)

        # 队首调用离开后，后面的调用可能可以被接纳
        self._drain(host)
        host.record_utilization(self.now)
