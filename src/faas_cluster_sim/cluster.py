"""cluster.py

主机集群建模
"""

import itertools

from .coldstart import ColdStartPolicy
from .config import SimulationConfig
from .errors import InvalidReference
from .host import Host
from .invocation import Invocation


class Cluster:
    """主机集群模型

    主机按配置中主机组的顺序依次编号，同一组内的副本编号连续。

    Args:
        config (SimulationConfig): 模拟配置
        policy (ColdStartPolicy): 冷启动策略
    """

    __slots__ = (
        "_hosts",
        "_group_of",
    )

    def __init__(self, config: SimulationConfig, policy: ColdStartPolicy):
        id_source = itertools.count()

        hosts: list[Host] = []
        group_of: list[int] = []
        for group, hc in enumerate(config.hosts):
            for _ in range(hc.count):
                hosts.append(Host(len(hosts), hc.capacity, hc.invoker, policy, id_source))
                group_of.append(group)

        self._hosts: tuple[Host, ...] = tuple(hosts)
        self._group_of: tuple[int, ...] = tuple(group_of)

    def __len__(self) -> int:
        return len(self._hosts)

    def __getitem__(self, host_id: int) -> Host:
        if not 0 <= host_id < len(self._hosts):
            raise InvalidReference(f"Host {host_id} does not exist")
        return self._hosts[host_id]

    def __iter__(self):
        return iter(self._hosts)

    @property
    def hosts(self) -> tuple[Host, ...]:
        return self._hosts

    def group_of(self, host_id: int) -> int:
        """主机所属的主机组在配置中的序号"""
        return self._group_of[host_id]

    def capable_hosts(self, inv: Invocation) -> list[Host]:
        """总容量能够满足调用资源需求的主机"""
        return [h for h in self._hosts if h.can_ever_fit(inv)]

    def admissible_hosts(self, inv: Invocation) -> list[Host]:
        """调用提交后会被立即接纳的主机"""
        return [h for h in self._hosts if h.would_admit(inv)]
