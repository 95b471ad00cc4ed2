"""invocation.py

函数调用建模
"""

from enum import IntEnum
from typing import TYPE_CHECKING, Mapping, NamedTuple, Optional

if TYPE_CHECKING:
    from .event import Event


class TraceRecord(NamedTuple):
    """工作负载轨迹中的一次函数调用到达

    Attributes:
        func_name (str): 函数名称
        arrival_time (float): 到达时间
        duration (float): 执行时长 (不含冷启动)
        resources (Mapping[str, int]): 资源需求
        cold_start_latency (float): 冷启动时需要额外等待的时长
    """

    func_name: str
    arrival_time: float
    duration: float
    resources: Mapping[str, int]
    cold_start_latency: float = 0.0


class InvStat(IntEnum):
    """调用状态

    - ARRIVED: 已到达，尚未分配主机
    - QUEUED: 在主机的调用器队列中等待
    - ADMITTED: 已被调用器接纳，等待容器就绪
    - RUNNING: 正在执行
    - FINISHED: 执行完成
    - UNSCHEDULABLE: 没有主机能够满足其资源需求
    - TIMED_OUT: 排队超时
    - ABANDONED: 模拟结束时仍在排队
    """

    ARRIVED = 0
    QUEUED = 1
    ADMITTED = 2
    RUNNING = 3
    FINISHED = 4
    UNSCHEDULABLE = 5
    TIMED_OUT = 6
    ABANDONED = 7


class Invocation:
    """函数调用模型

    `host_id` 和 `container_id` 各自最多设置一次，设置后不可更改。

    Args:
        inv_id (int): 调用ID
        func_name (str): 函数名称
        resources (Mapping[str, int]): 资源需求
        arrival_time (float): 到达时间
        duration (float): 执行时长
        cold_start_latency (float): 冷启动延迟
    """

    __slots__ = (
        "inv_id",
        "func_name",
        "resources",
        "arrival_time",
        "duration",
        "cold_start_latency",
        "state",
        "host_id",
        "container_id",
        "is_cold",
        "admission_time",
        "start_time",
        "completion_time",
        "timeout_event",
    )

    ValidStateTransitions: dict[InvStat, set[InvStat]] = {
        InvStat.ARRIVED: {InvStat.QUEUED, InvStat.ADMITTED, InvStat.UNSCHEDULABLE},
        InvStat.QUEUED: {InvStat.ADMITTED, InvStat.TIMED_OUT, InvStat.ABANDONED},
        InvStat.ADMITTED: {InvStat.RUNNING},
        InvStat.RUNNING: {InvStat.FINISHED},
        InvStat.FINISHED: set(),
        InvStat.UNSCHEDULABLE: set(),
        InvStat.TIMED_OUT: set(),
        InvStat.ABANDONED: set(),
    }

    def __init__(
        self,
        inv_id: int,
        func_name: str,
        resources: Mapping[str, int],
        arrival_time: float,
        duration: float,
        cold_start_latency: float = 0.0,
    ):
        if arrival_time < 0:
            raise ValueError(f"Arrival time ({arrival_time}) must be non-negative")
        if duration < 0:
            raise ValueError(f"Duration ({duration}) must be non-negative")
        if cold_start_latency < 0:
            raise ValueError(f"Cold start latency ({cold_start_latency}) must be non-negative")
        for name, quantity in resources.items():
            if quantity < 0:
                raise ValueError(f"Requirement of resource '{name}' must be non-negative, got {quantity}")

        self.inv_id: int = inv_id
        self.func_name: str = func_name
        self.resources: dict[str, int] = dict(resources)
        self.arrival_time: float = arrival_time
        self.duration: float = duration
        self.cold_start_latency: float = cold_start_latency

        self.state: InvStat = InvStat.ARRIVED
        self.host_id: Optional[int] = None
        self.container_id: Optional[int] = None
        self.is_cold: Optional[bool] = None
        self.admission_time: Optional[float] = None
        self.start_time: Optional[float] = None
        self.completion_time: Optional[float] = None
        self.timeout_event: Optional["Event"] = None

    @classmethod
    def from_trace(cls, inv_id: int, record: TraceRecord) -> "Invocation":
        return cls(
            inv_id,
            record.func_name,
            record.resources,
            record.arrival_time,
            record.duration,
            record.cold_start_latency,
        )

    def __repr__(self) -> str:
        return f"Invocation(id={self.inv_id}, func={self.func_name!r}, state={self.state.name})"

    def _validate_state_transition(self, new_state: InvStat):
        """验证调用的状态转换是否合法"""
        if new_state not in self.ValidStateTransitions[self.state]:
            raise ValueError(f"Invalid invocation state transition: {self.state.name} -> {new_state.name}")

    def assign_host(self, host_id: int):
        """由调度器设置目标主机"""
        if self.host_id is not None:
            raise RuntimeError(f"Invocation {self.inv_id} is already assigned to host {self.host_id}")
        self.host_id = host_id

    def enqueue(self):
        self._validate_state_transition(InvStat.QUEUED)
        self.state = InvStat.QUEUED

    def admit(self, container_id: int, is_cold: bool, time: float):
        """由调用器接纳，并绑定容器"""
        if self.container_id is not None:
            raise RuntimeError(f"Invocation {self.inv_id} is already bound to container {self.container_id}")
        if time < self.arrival_time:
            raise ValueError(f"Admission time ({time}) cannot be earlier than arrival time ({self.arrival_time})")

        self._validate_state_transition(InvStat.ADMITTED)
        self.container_id = container_id
        self.is_cold = is_cold
        self.admission_time = time
        self.state = InvStat.ADMITTED

        if self.timeout_event is not None:
            self.timeout_event.cancel()
            self.timeout_event = None

    def run(self, time: float):
        if self.admission_time is None:
            raise ValueError("Invocation must be admitted before running")
        if time < self.admission_time:
            raise ValueError(f"Start time ({time}) cannot be earlier than admission time ({self.admission_time})")

        self._validate_state_transition(InvStat.RUNNING)
        self.start_time = time
        self.state = InvStat.RUNNING

    def finish(self, time: float):
        if self.start_time is None:
            raise ValueError("Invocation must be running before finishing")
        if time < self.start_time:
            raise ValueError(f"Finish time ({time}) cannot be earlier than start time ({self.start_time})")

        self._validate_state_transition(InvStat.FINISHED)
        self.completion_time = time
        self.state = InvStat.FINISHED

    def reject(self):
        """没有主机能够满足资源需求"""
        self._validate_state_transition(InvStat.UNSCHEDULABLE)
        self.state = InvStat.UNSCHEDULABLE

    def time_out(self):
        self._validate_state_transition(InvStat.TIMED_OUT)
        self.state = InvStat.TIMED_OUT
        self.timeout_event = None

    def abandon(self):
        self._validate_state_transition(InvStat.ABANDONED)
        self.state = InvStat.ABANDONED
        if self.timeout_event is not None:
            self.timeout_event.cancel()
            self.timeout_event = None

    @property
    def queueing_delay(self) -> Optional[float]:
        """从到达到被接纳的等待时间"""
        if self.admission_time is None:
            return None
        return self.admission_time - self.arrival_time
