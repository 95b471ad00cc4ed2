"""deployer.py

空闲容器回收策略
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .coldstart import ColdStartPolicy
from .container import Container
from .errors import ConfigurationError

if TYPE_CHECKING:
    from .host import Host

logger = logging.getLogger(__name__)


class IdleDeployer(ABC):
    """空闲容器回收策略基类

    Args:
        policy (ColdStartPolicy): 提供保温时长和保留规则的冷启动策略
    """

    def __init__(self, policy: ColdStartPolicy):
        self.policy: ColdStartPolicy = policy

    @abstractmethod
    def on_eviction_check(self, container: Container, host: "Host", time: float) -> bool:
        """回收检查事件触发时调用

        Returns:
            bool: 容器是否被回收
        """


class BasicDeployer(IdleDeployer):
    """容器空闲满保温时长后回收，除非冷启动策略要求保留"""

    def on_eviction_check(self, container: Container, host: "Host", time: float) -> bool:
        if not container.idle:
            # 检查触发前容器已被复用
            return False

        if time < container.last_active_time + self.policy.keepalive_window(container):
            return False

        if self.policy.retain(container, host):
            logger.debug("retaining prewarmed container %d of %s on host %d", container.container_id, container.func_name, host.host_id)
            return False

        host.evict_container(container, time)
        logger.debug("evicted container %d of %s on host %d at %s", container.container_id, container.func_name, host.host_id, time)
        return True


def build_deployer(name: str, policy: ColdStartPolicy) -> IdleDeployer:
    """根据名称创建空闲容器回收策略"""
    if name == "BasicDeployer":
        return BasicDeployer(policy)
    raise ConfigurationError(f"Unknown idle deployer: {name}")
