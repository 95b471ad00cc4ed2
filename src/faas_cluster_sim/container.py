"""container.py

容器建模
"""

from enum import IntEnum
from typing import TYPE_CHECKING, Mapping, Optional

if TYPE_CHECKING:
    from .event import Event


class ContainerState(IntEnum):
    """容器状态

    - STARTING: 冷启动中 (或预热部署中)
    - ACTIVE: 正在为某个调用服务
    - IDLE: 空闲 (保温)，可被同一函数的后续调用复用
    - EVICTED: 已被回收，资源已归还主机
    """

    STARTING = 0
    ACTIVE = 1
    IDLE = 2
    EVICTED = 3


class Container:
    """容器模型

    容器只通过 `host_id` 关联到所属主机，资源预留的记账由主机的资源账本负责。

    Args:
        container_id (int): 容器ID
        host_id (int): 所属主机ID
        func_name (str): 容器中运行的函数名称
        resources (Mapping[str, int]): 容器的资源预留
        creation_time (float): 容器创建 (开始冷启动) 的时间
    """

    __slots__ = (
        "container_id",
        "host_id",
        "func_name",
        "resources",
        "state",
        "creation_time",
        "last_active_time",
        "invocation_id",
        "served",
        "eviction_event",
    )

    ValidStateTransitions: dict[ContainerState, set[ContainerState]] = {
        ContainerState.STARTING: {ContainerState.ACTIVE, ContainerState.IDLE},
        ContainerState.ACTIVE: {ContainerState.IDLE},
        ContainerState.IDLE: {ContainerState.ACTIVE, ContainerState.EVICTED},
        ContainerState.EVICTED: set(),
    }

    def __init__(self, container_id: int, host_id: int, func_name: str, resources: Mapping[str, int], creation_time: float):
        self.container_id: int = container_id
        self.host_id: int = host_id
        self.func_name: str = func_name
        self.resources: dict[str, int] = dict(resources)

        self.state: ContainerState = ContainerState.STARTING
        self.creation_time: float = creation_time
        self.last_active_time: float = creation_time
        self.invocation_id: Optional[int] = None  # 正在服务的调用
        self.served: int = 0  # 已服务的调用数量
        self.eviction_event: Optional["Event"] = None  # 尚未触发的回收检查事件

    def __repr__(self) -> str:
        return f"Container(id={self.container_id}, host={self.host_id}, func={self.func_name!r}, state={self.state.name})"

    def _validate_state_transition(self, new_state: ContainerState):
        """验证容器的状态转换是否合法"""
        if new_state not in self.ValidStateTransitions[self.state]:
            raise ValueError(f"Invalid container state transition: {self.state.name} -> {new_state.name}")

    def bind(self, inv_id: int, time: float):
        """冷启动容器绑定到触发它的调用"""
        if self.state != ContainerState.STARTING:
            raise ValueError(f"Only a starting container can be bound, container is {self.state.name}")
        if self.invocation_id is not None:
            raise RuntimeError(f"Container {self.container_id} is already bound to invocation {self.invocation_id}")

        self.invocation_id = inv_id
        self.last_active_time = time

    def start(self, time: float):
        """冷启动完成，开始执行调用"""
        if time < self.creation_time:
            raise ValueError(f"Start time {time} cannot be earlier than creation time {self.creation_time}")

        self._validate_state_transition(ContainerState.ACTIVE)
        self.state = ContainerState.ACTIVE
        self.last_active_time = time

    def ready(self, time: float):
        """预热容器部署完成，进入空闲状态"""
        if self.invocation_id is not None:
            raise RuntimeError(f"Container {self.container_id} is bound to invocation {self.invocation_id}, it cannot become idle")
        if time < self.creation_time:
            raise ValueError(f"Ready time {time} cannot be earlier than creation time {self.creation_time}")

        self._validate_state_transition(ContainerState.IDLE)
        self.state = ContainerState.IDLE
        self.last_active_time = time

    def reuse(self, inv_id: int, time: float):
        """空闲容器被复用 (热启动)"""
        if time < self.last_active_time:
            raise ValueError(f"Reuse time {time} cannot be earlier than last active time {self.last_active_time}")

        self._validate_state_transition(ContainerState.ACTIVE)
        self.state = ContainerState.ACTIVE
        self.invocation_id = inv_id
        self.last_active_time = time

        # 容器被复用，之前安排的回收检查失效
        if self.eviction_event is not None:
            self.eviction_event.cancel()
            self.eviction_event = None

    def release(self, time: float):
        """调用执行完成，容器进入空闲状态"""
        if self.state != ContainerState.ACTIVE:
            raise ValueError(f"Invalid container state transition: {self.state.name} -> IDLE (release)")
        if time < self.last_active_time:
            raise ValueError(f"Release time {time} cannot be earlier than last active time {self.last_active_time}")

        self._validate_state_transition(ContainerState.IDLE)
        self.state = ContainerState.IDLE
        self.invocation_id = None
        self.last_active_time = time
        self.served += 1

    def evict(self, time: float):
        """容器被回收"""
        if time < self.last_active_time:
            raise ValueError(f"Eviction time {time} cannot be earlier than last active time {self.last_active_time}")

        self._validate_state_transition(ContainerState.EVICTED)
        self.state = ContainerState.EVICTED

        if self.eviction_event is not None:
            self.eviction_event.cancel()
            self.eviction_event = None

    @property
    def idle(self) -> bool:
        return self.state == ContainerState.IDLE
