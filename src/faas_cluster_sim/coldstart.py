"""coldstart.py

冷启动策略：决定调用复用空闲容器 (热启动) 还是创建新容器 (冷启动)，以及空闲容器的保温时长
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .config import FixedTimeColdStartPolicyConfig
from .container import Container
from .errors import ConfigurationError
from .invocation import Invocation

if TYPE_CHECKING:
    from .host import Host


class ColdStartPolicy(ABC):
    """冷启动策略基类"""

    def resolve(self, inv: Invocation, host: "Host", time: float) -> tuple[Container, bool]:
        """为已被接纳的调用确定容器

        优先复用主机上同一函数的空闲容器；没有可复用的容器时创建新容器并预留资源，
        剩余资源不足时先回收主机上最久未活跃的空闲容器。

        Args:
            inv (Invocation): 调用
            host (Host): 调用所在的主机
            time (float): 当前时间

        Returns:
            (Container, bool): 使用的容器，以及是否为冷启动
        """

        container = host.find_idle_container(inv)
        if container is not None:
            host.reuse_container(container, inv, time)
            return container, False

        if not host.ledger.fits(inv.resources):
            host.reclaim(inv.resources, time)
        if not host.ledger.fits(inv.resources):
            raise RuntimeError(f"Host {host.host_id} cannot fit invocation {inv.inv_id}; it should not have been admitted")

        container = host.create_container(inv.func_name, inv.resources, time)
        container.bind(inv.inv_id, time)
        return container, True

    def prewarm(self, inv: Invocation, host: "Host", time: float) -> list[Container]:
        """调用被接纳后，在主机上为该函数预先部署容器

        只使用剩余资源，不回收其他容器；主机的调用器队列非空时不部署。

        Returns:
            list[Container]: 新部署的容器，均处于 STARTING 状态且不绑定调用
        """

        target = self.prewarm_target(inv.func_name)
        deployed: list[Container] = []
        if host.queue_length:
            return deployed

        while len(host.spare_containers(inv.func_name)) < target and host.ledger.fits(inv.resources):
            deployed.append(host.create_container(inv.func_name, inv.resources, time))

        return deployed

    def prewarm_target(self, func_name: str) -> int:
        """每台主机上为该函数保持的空闲容器数量"""
        return 0

    @abstractmethod
    def keepalive_window(self, container: Container) -> float:
        """容器进入空闲状态后，经过多长时间才可以被回收"""

    @abstractmethod
    def retain(self, container: Container, host: "Host") -> bool:
        """即使保温时间已过，是否仍然保留该容器"""


class FixedTimeColdStartPolicy(ColdStartPolicy):
    """固定保温时长的冷启动策略

    Args:
        keepalive (float): 空闲容器被回收前的保温时长
        prewarm (int): 每个函数在每台主机上保持的空闲容器数量；调用被接纳后补足，回收不会使其低于该值
    """

    def __init__(self, keepalive: float, prewarm: int = 0):
        if keepalive < 0:
            raise ConfigurationError(f"keepalive must be non-negative, got {keepalive}")
        if prewarm < 0:
            raise ConfigurationError(f"prewarm must be non-negative, got {prewarm}")

        self.keepalive: float = keepalive
        self.prewarm_count: int = prewarm

    def __repr__(self) -> str:
        return f"FixedTimeColdStartPolicy[keepalive={self.keepalive},prewarm={self.prewarm_count}]"

    def keepalive_window(self, container: Container) -> float:
        return self.keepalive

    def prewarm_target(self, func_name: str) -> int:
        return self.prewarm_count

    def retain(self, container: Container, host: "Host") -> bool:
        return len(host.spare_containers(container.func_name)) <= self.prewarm_count


def build_coldstart_policy(config: FixedTimeColdStartPolicyConfig) -> ColdStartPolicy:
    """根据配置创建冷启动策略"""
    if isinstance(config, FixedTimeColdStartPolicyConfig):
        return FixedTimeColdStartPolicy(config.keepalive, config.prewarm)
    raise ConfigurationError(f"Unknown cold start policy configuration: {config!r}")
