"""event.py

离散事件及事件队列
"""

from dataclasses import dataclass, field
from enum import IntEnum
from queue import PriorityQueue
from typing import Optional


class EventKind(IntEnum):
    """事件类型

    - ARRIVAL: 调用到达集群
    - INVOCATION_START: 容器就绪，调用开始执行
    - INVOCATION_COMPLETE: 调用执行完成
    - EVICTION_CHECK: 检查空闲容器是否应被回收
    - QUEUE_TIMEOUT: 检查排队的调用是否超时
    - CONTAINER_READY: 预热容器部署完成
    """

    ARRIVAL = 0
    INVOCATION_START = 1
    INVOCATION_COMPLETE = 2
    EVICTION_CHECK = 3
    QUEUE_TIMEOUT = 4
    CONTAINER_READY = 5


@dataclass(order=True, slots=True)
class Event:
    """离散事件

    事件之间按照 (time, seq) 全序比较，相同时间的事件按插入顺序处理。

    Args:
        time (float): 事件发生的逻辑时间
        seq (int): 插入序号
        kind (EventKind): 事件类型
        subject_id (int): 事件主体 (调用或容器) 的ID
        host_id (int | None): 事件主体所在的主机ID
    """

    time: float
    seq: int
    kind: EventKind = field(compare=False)
    subject_id: int = field(compare=False)
    host_id: Optional[int] = field(default=None, compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self):
        """取消事件；被取消的事件仍留在队列中，出队时不做任何处理"""
        self.cancelled = True


class EventQueue:
    """按 (time, seq) 排序的事件队列"""

    __slots__ = (
        "_queue",
        "_seq",
    )

    def __init__(self):
        self._queue: PriorityQueue[Event] = PriorityQueue()
        self._seq: int = 0

    def __len__(self) -> int:
        return self._queue.qsize()

    def push(self, kind: EventKind, subject_id: int, time: float, host_id: Optional[int] = None) -> Event:
        """插入一个新事件并返回它，以便之后取消"""
        event = Event(time, self._seq, kind, subject_id, host_id)
        self._seq += 1
        self._queue.put(event)
        return event

    def peek(self) -> Event | None:
        """查看下一个事件，但不从队列中移除"""
        with self._queue.mutex:
            if self._queue.queue:
                return self._queue.queue[0]
            else:
                return None

    def pop(self) -> Event | None:
        """取出下一个事件"""
        if not self._queue.empty():
            return self._queue.get()
        else:
            return None
