"""resources.py

主机资源账本
"""

from typing import Mapping


class ResourceLedger:
    """主机资源账本

    只负责记账，不包含任何策略。资源名称的顺序由 `capacity` 的插入顺序决定。

    Args:
        capacity (Mapping[str, int]): 各资源的容量 (资源名称 -> 数量)
    """

    __slots__ = (
        "capacity",
        "_allocated",
    )

    def __init__(self, capacity: Mapping[str, int]):
        for name, quantity in capacity.items():
            if quantity < 0:
                raise ValueError(f"Capacity of resource '{name}' must be non-negative, got {quantity}")

        self.capacity: dict[str, int] = dict(capacity)
        self._allocated: dict[str, int] = {name: 0 for name in self.capacity}

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self.capacity)

    def allocated(self, name: str) -> int:
        return self._allocated.get(name, 0)

    def free(self, name: str) -> int:
        return self.capacity.get(name, 0) - self._allocated.get(name, 0)

    def fits(self, req: Mapping[str, int]) -> bool:
        """当前剩余资源是否能够满足需求"""
        return all(quantity <= self.free(name) for name, quantity in req.items())

    def can_ever_fit(self, req: Mapping[str, int]) -> bool:
        """主机的总容量是否能够满足需求 (不考虑当前分配情况)"""
        return all(quantity <= self.capacity.get(name, 0) for name, quantity in req.items())

    def allocate(self, req: Mapping[str, int]):
        """分配资源

        Args:
            req (Mapping[str, int]): 资源需求

        Raises:
            RuntimeError: 剩余资源不足
        """

        if not self.fits(req):
            raise RuntimeError(f"Cannot allocate {dict(req)}: free resources are {self.snapshot_free()}")

        for name, quantity in req.items():
            if quantity:
                self._allocated[name] += quantity

    def release(self, req: Mapping[str, int]):
        """归还资源

        Args:
            req (Mapping[str, int]): 之前分配的资源

        Raises:
            RuntimeError: 归还的数量超过了已分配的数量
        """

        for name, quantity in req.items():
            if quantity > self.allocated(name):
                raise RuntimeError(
                    f"Cannot release {quantity} of '{name}': only {self.allocated(name)} is allocated"
                )

        for name, quantity in req.items():
            if quantity:
                self._allocated[name] -= quantity

    def can_resize(self, old: Mapping[str, int], new: Mapping[str, int]) -> bool:
        """把一份已有的预留从 `old` 调整为 `new` 时，增加的部分能否由剩余资源满足"""
        for name in set(old) | set(new):
            delta = new.get(name, 0) - old.get(name, 0)
            if delta > self.free(name):
                return False
        return True

    def resize(self, old: Mapping[str, int], new: Mapping[str, int]):
        """把一份已有的预留从 `old` 调整为 `new`"""
        if not self.can_resize(old, new):
            raise RuntimeError(f"Cannot resize reservation {dict(old)} -> {dict(new)}")

        self.release(old)
        self.allocate(new)

    def utilization(self) -> float:
        """资源利用率 (各资源已分配比例的最大值，即主导资源份额)"""
        shares = [self._allocated[name] / cap for name, cap in self.capacity.items() if cap > 0]
        return max(shares, default=0.0)

    def snapshot(self) -> tuple[int, ...]:
        """按资源名称顺序返回当前分配量"""
        return tuple(self._allocated[name] for name in self.capacity)

    def snapshot_free(self) -> dict[str, int]:
        return {name: self.free(name) for name in self.capacity}
