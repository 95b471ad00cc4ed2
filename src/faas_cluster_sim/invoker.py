"""invoker.py

主机级调用器：接纳调用或使其排队
"""

from abc import ABC, abstractmethod
from collections import deque
from typing import TYPE_CHECKING, NamedTuple

from .coldstart import ColdStartPolicy
from .container import Container
from .errors import ConfigurationError
from .invocation import Invocation

if TYPE_CHECKING:
    from .host import Host


class Admission(NamedTuple):
    """调用被接纳的结果

    Attributes:
        invocation (Invocation): 被接纳的调用
        container (Container): 执行该调用的容器
        is_cold (bool): 是否为冷启动
    """

    invocation: Invocation
    container: Container
    is_cold: bool


class Invoker(ABC):
    """调用器基类

    Args:
        host (Host): 调用器所属主机
        policy (ColdStartPolicy): 冷启动策略
    """

    name: str = "Invoker"

    def __init__(self, host: "Host", policy: ColdStartPolicy):
        self.host: "Host" = host
        self.policy: ColdStartPolicy = policy
        self._queue: deque[Invocation] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    def __iter__(self):
        return iter(self._queue)

    def __repr__(self) -> str:
        return f"{self.name}(host={self.host.host_id}, queued={len(self._queue)})"

    def submit(self, inv: Invocation, time: float) -> Admission | None:
        """提交一个新调用

        Args:
            inv (Invocation): 已分配到本主机的调用
            time (float): 当前时间

        Returns:
            Admission | None: 调用被立即接纳时返回接纳结果；调用进入队列时返回 None
        """

        if inv.host_id != self.host.host_id:
            raise ValueError(f"Invocation {inv.inv_id} is assigned to host {inv.host_id}, not {self.host.host_id}")

        if self.would_admit(inv):
            return self._admit(inv, time)

        inv.enqueue()
        self._queue.append(inv)
        return None

    def remove(self, inv: Invocation) -> bool:
        """从队列中移除一个调用 (排队超时)

        Returns:
            bool: 调用是否在队列中
        """

        try:
            self._queue.remove(inv)
        except ValueError:
            return False
        return True

    def drain_all(self) -> list[Invocation]:
        """清空队列并返回所有仍在排队的调用"""
        invocations = list(self._queue)
        self._queue.clear()
        return invocations

    def _admit(self, inv: Invocation, time: float) -> Admission:
        container, is_cold = self.policy.resolve(inv, self.host, time)
        inv.admit(container.container_id, is_cold, time)
        return Admission(inv, container, is_cold)

    @abstractmethod
    def would_admit(self, inv: Invocation) -> bool:
        """如果现在提交该调用，它是否会被立即接纳"""

    @abstractmethod
    def dequeue(self, time: float) -> list[Admission]:
        """在主机资源被释放后，尝试接纳排队中的调用

        Args:
            time (float): 当前时间

        Returns:
            list[Admission]: 本次被接纳的调用，按接纳顺序排列
        """


class FIFOInvoker(Invoker):
    """严格按到达顺序接纳调用

    队首调用无法被接纳时，后面的调用也不会被检查 (队头阻塞)；
    队列非空时，新到达的调用直接排到队尾。
    """

    name = "FIFOInvoker"

    def would_admit(self, inv: Invocation) -> bool:
        return not self._queue and self.host.fits(inv)

    def dequeue(self, time: float) -> list[Admission]:
        admitted: list[Admission] = []

        while self._queue:
            if not self.host.fits(self._queue[0]):
                break

            inv = self._queue.popleft()
            admitted.append(self._admit(inv, time))

        return admitted


class NaiveInvoker(Invoker):
    """每次都遍历整个队列，接纳所有能够接纳的调用

    新到达的调用只要资源足够就会被立即接纳，不受队列中其他调用的影响。
    """

    name = "NaiveInvoker"

    def would_admit(self, inv: Invocation) -> bool:
        return self.host.fits(inv)

    def dequeue(self, time: float) -> list[Admission]:
        if not self._queue:
            return []

        admitted: list[Admission] = []
        remaining: deque[Invocation] = deque()

        for inv in self._queue:
            if self.host.fits(inv):
                admitted.append(self._admit(inv, time))
            else:
                remaining.append(inv)

        self._queue = remaining
        return admitted


INVOKERS: dict[str, type[Invoker]] = {
    FIFOInvoker.name: FIFOInvoker,
    NaiveInvoker.name: NaiveInvoker,
}


def build_invoker(name: str, host: "Host", policy: ColdStartPolicy) -> Invoker:
    """根据名称创建调用器"""
    if name not in INVOKERS:
        raise ConfigurationError(f"Unknown invoker: {name}")
    return INVOKERS[name](host, policy)
