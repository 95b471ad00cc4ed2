"""test_event.py

测试 src/faas_cluster_sim/event.py 中的 Event 和 EventQueue 类
"""

import pytest

from faas_cluster_sim.event import Event, EventKind, EventQueue


class TestEvent:
    """测试 Event 类"""

    def test_ordering_by_time_then_seq(self):
        """测试事件按 (时间, 插入序号) 排序，与事件类型和主体无关"""
        a = Event(1.0, 5, EventKind.ARRIVAL, 9)
        b = Event(1.0, 6, EventKind.INVOCATION_COMPLETE, 0)
        c = Event(0.5, 7, EventKind.EVICTION_CHECK, 1)
        assert c < a < b

    def test_cancel(self):
        """测试取消事件"""
        e = Event(1.0, 0, EventKind.EVICTION_CHECK, 3, 1)
        assert not e.cancelled
        e.cancel()
        assert e.cancelled


class TestEventQueue:
    """测试 EventQueue 类"""

    @pytest.fixture
    def queue(self) -> EventQueue:
        """创建空事件队列"""
        return EventQueue()

    def test_empty_queue(self, queue: EventQueue):
        """测试空队列"""
        assert len(queue) == 0
        assert queue.peek() is None
        assert queue.pop() is None

    def test_pop_in_time_order(self, queue: EventQueue):
        """测试按时间顺序出队"""
        queue.push(EventKind.ARRIVAL, 0, 3.0)
        queue.push(EventKind.ARRIVAL, 1, 1.0)
        queue.push(EventKind.ARRIVAL, 2, 2.0)

        assert queue.peek().subject_id == 1  # type: ignore
        assert [queue.pop().subject_id for _ in range(3)] == [1, 2, 0]  # type: ignore

    def test_equal_times_are_fifo(self, queue: EventQueue):
        """测试相同时间的事件按插入顺序出队"""
        kinds = [EventKind.INVOCATION_COMPLETE, EventKind.ARRIVAL, EventKind.EVICTION_CHECK, EventKind.ARRIVAL]
        for i, kind in enumerate(kinds):
            queue.push(kind, i, 5.0)

        popped = [queue.pop() for _ in kinds]
        assert [e.subject_id for e in popped] == [0, 1, 2, 3]  # type: ignore
        assert [e.seq for e in popped] == [0, 1, 2, 3]  # type: ignore

    def test_cancelled_event_stays_in_queue(self, queue: EventQueue):
        """测试被取消的事件仍在队列中，出队时带有取消标记"""
        e = queue.push(EventKind.EVICTION_CHECK, 0, 1.0, host_id=2)
        queue.push(EventKind.ARRIVAL, 1, 2.0)
        e.cancel()

        assert len(queue) == 2
        first = queue.pop()
        assert first is e
        assert first.cancelled
        assert first.host_id == 2
