"""scheduler.py

集群级调度器：为每个到达的调用选择目标主机
"""

import random
import zlib
from abc import ABC, abstractmethod
from typing import Sequence

from .cluster import Cluster
from .config import (
    HermesSchedulerConfig,
    LeastLoadedSchedulerConfig,
    LocalityBasedSchedulerConfig,
    RandomSchedulerConfig,
    RoundRobinSchedulerConfig,
    SchedulerConfig,
    format_policy,
)
from .errors import ConfigurationError, NoCapacity
from .host import Host
from .invocation import Invocation

TIE_BREAK_CRITERIA = ("warm", "invocations")


def _check_flag(name: str, value: object) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a bool, got {value!r}")
    return value


def _exclude_queued(hosts: Sequence[Host]) -> list[Host]:
    """排除调用器队列非空的主机；所有主机都有排队时不做排除"""
    idle = [h for h in hosts if h.queue_length == 0]
    return idle if idle else list(hosts)


class Scheduler(ABC):
    """调度器基类

    `select_host` 只读取集群状态，不修改它。只有调度器自身声明的状态 (轮询游标、随机数序列) 会在调度时改变。

    如果有主机的总容量能够满足调用的资源需求，调度器一定返回其中之一；
    各算法会优先选择提交后能被立即接纳的主机，否则选择的主机会让调用在其调用器中排队。
    """

    name: str = "Scheduler"

    def select_host(self, inv: Invocation, cluster: Cluster) -> int:
        """为调用选择目标主机

        Args:
            inv (Invocation): 待调度的调用
            cluster (Cluster): 集群

        Returns:
            int: 目标主机ID

        Raises:
            NoCapacity: 没有主机能够满足调用的资源需求
        """

        capable = cluster.capable_hosts(inv)
        if not capable:
            raise NoCapacity(f"No host can ever satisfy requirement {inv.resources} of invocation {inv.inv_id}")

        return self._select(inv, cluster, capable)

    @abstractmethod
    def _select(self, inv: Invocation, cluster: Cluster, capable: list[Host]) -> int:
        """在总容量足够的主机 `capable` (非空) 中选择目标主机"""

    def options(self) -> dict[str, object]:
        return {}

    def __repr__(self) -> str:
        return format_policy(self.name, self.options())


class LocalityBasedScheduler(Scheduler):
    """基于局部性的调度器

    每个函数根据名称的哈希值拥有一台固定的主机，从该主机开始依次探测其余主机。
    优先选择有可复用空闲容器的主机；否则：

    - `warm_only=True` 时只在固定主机上冷启动，固定主机容量不足时抛出 `NoCapacity`
    - `warm_only=False` 时选择探测顺序中第一台能立即接纳的主机

    Args:
        warm_only (bool): 是否禁止在固定主机以外的主机上冷启动
    """

    name = "LocalityBasedScheduler"

    def __init__(self, warm_only: bool = False):
        self.warm_only: bool = _check_flag("warm_only", warm_only)

    def options(self) -> dict[str, object]:
        return {"warm_only": self.warm_only}

    @staticmethod
    def home_host(func_name: str, host_count: int) -> int:
        """函数的固定主机 (使用 CRC32，保证不同进程之间的结果一致)"""
        return zlib.crc32(func_name.encode("utf-8")) % host_count

    def _select(self, inv: Invocation, cluster: Cluster, capable: list[Host]) -> int:
        n = len(cluster)
        home = self.home_host(inv.func_name, n)
        order = [cluster[(home + i) % n] for i in range(n)]

        for h in order:
            if h.has_warm(inv):
                return h.host_id

        if self.warm_only:
            if order[0].can_ever_fit(inv):
                return home
            raise NoCapacity(f"Home host {home} of {inv.func_name} cannot satisfy invocation {inv.inv_id}")

        for h in order:
            if h.would_admit(inv):
                return h.host_id

        return next(h.host_id for h in order if h.can_ever_fit(inv))


class RandomScheduler(Scheduler):
    """在能够立即接纳调用的主机中均匀随机选择

    Args:
        seed (int): 随机数种子
    """

    name = "RandomScheduler"

    def __init__(self, seed: int = 0):
        if isinstance(seed, bool) or not isinstance(seed, int):
            raise ConfigurationError(f"seed must be an int, got {seed!r}")
        self.seed: int = seed
        self._rng = random.Random(seed)

    def options(self) -> dict[str, object]:
        return {"seed": self.seed}

    def _select(self, inv: Invocation, cluster: Cluster, capable: list[Host]) -> int:
        pool = [h for h in capable if h.would_admit(inv)] or capable
        return self._rng.choice(pool).host_id


class LeastLoadedScheduler(Scheduler):
    """选择资源利用率最低的主机

    排序键依次为：资源利用率、按 `tie_break` 顺序排列的次要条件、主机ID。

    Args:
        prefer_warm (bool): 次要条件中加入是否有可复用的空闲容器
        use_invocation_count (bool): 次要条件中加入调度到该主机的调用总数
        avoid_queueing (bool): 不考虑调用器队列非空的主机
        tie_break (Sequence[str]): `warm` 和 `invocations` 两个次要条件的优先顺序
    """

    name = "LeastLoadedScheduler"

    def __init__(
        self,
        prefer_warm: bool = False,
        use_invocation_count: bool = False,
        avoid_queueing: bool = False,
        tie_break: Sequence[str] = TIE_BREAK_CRITERIA,
    ):
        tie_break = tuple(tie_break)
        if sorted(tie_break) != sorted(TIE_BREAK_CRITERIA):
            raise ConfigurationError(f"tie_break must order {TIE_BREAK_CRITERIA} exactly once each, got {tie_break}")

        self.prefer_warm: bool = _check_flag("prefer_warm", prefer_warm)
        self.use_invocation_count: bool = _check_flag("use_invocation_count", use_invocation_count)
        self.avoid_queueing: bool = _check_flag("avoid_queueing", avoid_queueing)
        self.tie_break: tuple[str, ...] = tie_break

    def options(self) -> dict[str, object]:
        return {
            "prefer_warm": self.prefer_warm,
            "use_invocation_count": self.use_invocation_count,
            "avoid_queueing": self.avoid_queueing,
            "tie_break": self.tie_break,
        }

    def _key(self, h: Host, inv: Invocation) -> tuple[float, ...]:
        key: list[float] = [h.utilization()]
        for criterion in self.tie_break:
            if criterion == "warm" and self.prefer_warm:
                key.append(0 if h.has_warm(inv) else 1)
            elif criterion == "invocations" and self.use_invocation_count:
                key.append(h.invocation_count)
        key.append(h.host_id)
        return tuple(key)

    def _select(self, inv: Invocation, cluster: Cluster, capable: list[Host]) -> int:
        pool = _exclude_queued(capable) if self.avoid_queueing else capable
        admissible = [h for h in pool if h.would_admit(inv)]
        return min(admissible or pool, key=lambda h: self._key(h, inv)).host_id


class RoundRobinScheduler(Scheduler):
    """按固定顺序轮流选择主机，跳过不能立即接纳调用的主机"""

    name = "RoundRobinScheduler"

    def __init__(self):
        self._cursor: int = 0

    def _select(self, inv: Invocation, cluster: Cluster, capable: list[Host]) -> int:
        n = len(cluster)
        order = [cluster[(self._cursor + i) % n] for i in range(n)]

        chosen = next((h for h in order if h.would_admit(inv)), None)
        if chosen is None:
            # 没有主机能立即接纳时，选择游标之后第一台总容量足够的主机排队
            chosen = next(h for h in order if h.can_ever_fit(inv))

        self._cursor = (chosen.host_id + 1) % n
        return chosen.host_id


class HermesScheduler(Scheduler):
    """兼顾局部性与负载的调度器

    在负载最低的、有可复用空闲容器且能立即接纳的主机上热启动；
    没有这样的主机时，在全局负载最低的主机上冷启动。

    Args:
        use_invocation_count (bool): 以活跃调用数 (而不是资源利用率) 作为负载
        avoid_queueing (bool): 不考虑调用器队列非空的主机
    """

    name = "HermesScheduler"

    def __init__(self, use_invocation_count: bool = False, avoid_queueing: bool = False):
        self.use_invocation_count: bool = _check_flag("use_invocation_count", use_invocation_count)
        self.avoid_queueing: bool = _check_flag("avoid_queueing", avoid_queueing)

    def options(self) -> dict[str, object]:
        return {
            "use_invocation_count": self.use_invocation_count,
            "avoid_queueing": self.avoid_queueing,
        }

    def _key(self, h: Host) -> tuple[float, float, int]:
        if self.use_invocation_count:
            return (h.active_invocations, h.utilization(), h.host_id)
        return (h.utilization(), h.active_invocations, h.host_id)

    def _select(self, inv: Invocation, cluster: Cluster, capable: list[Host]) -> int:
        pool = _exclude_queued(capable) if self.avoid_queueing else capable

        warm = [h for h in pool if h.has_warm(inv) and h.would_admit(inv)]
        if warm:
            return min(warm, key=self._key).host_id

        admissible = [h for h in pool if h.would_admit(inv)]
        return min(admissible or pool, key=self._key).host_id


def build_scheduler(config: SchedulerConfig) -> Scheduler:
    """根据配置创建调度器"""
    if isinstance(config, LocalityBasedSchedulerConfig):
        return LocalityBasedScheduler(config.warm_only)
    if isinstance(config, RandomSchedulerConfig):
        return RandomScheduler(config.seed)
    if isinstance(config, LeastLoadedSchedulerConfig):
        return LeastLoadedScheduler(
            config.prefer_warm,
            config.use_invocation_count,
            config.avoid_queueing,
            config.tie_break,
        )
    if isinstance(config, RoundRobinSchedulerConfig):
        return RoundRobinScheduler()
    if isinstance(config, HermesSchedulerConfig):
        return HermesScheduler(config.use_invocation_count, config.avoid_queueing)
    raise ConfigurationError(f"Unknown scheduler configuration: {config!r}")
