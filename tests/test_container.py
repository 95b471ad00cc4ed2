"""test_container.py

测试 src/faas_cluster_sim/container.py 中的 Container 类
"""

import pytest

from faas_cluster_sim.container import Container, ContainerState
from faas_cluster_sim.event import Event, EventKind


class TestContainer:
    """测试 Container 类"""

    @pytest.fixture
    def sample_container(self) -> Container:
        """创建示例容器"""
        return Container(container_id=3, host_id=1, func_name="f", resources={"cores": 1}, creation_time=2.0)

    def test_container_initialization(self, sample_container: Container):
        """测试容器初始化"""
        assert sample_container.container_id == 3
        assert sample_container.host_id == 1
        assert sample_container.func_name == "f"
        assert sample_container.resources == {"cores": 1}
        assert sample_container.state == ContainerState.STARTING
        assert sample_container.last_active_time == 2.0
        assert sample_container.invocation_id is None
        assert sample_container.eviction_event is None

    def test_cold_start_lifecycle(self, sample_container: Container):
        """测试冷启动容器的完整生命周期"""
        sample_container.bind(7, 2.0)
        assert sample_container.invocation_id == 7

        sample_container.start(3.0)
        assert sample_container.state == ContainerState.ACTIVE

        sample_container.release(5.0)
        assert sample_container.state == ContainerState.IDLE
        assert sample_container.idle
        assert sample_container.last_active_time == 5.0
        assert sample_container.invocation_id is None
        assert sample_container.served == 1

        sample_container.evict(10.0)
        assert sample_container.state == ContainerState.EVICTED

    def test_bind_twice(self, sample_container: Container):
        """测试重复绑定"""
        sample_container.bind(7, 2.0)
        with pytest.raises(RuntimeError, match="already bound"):
            sample_container.bind(8, 2.0)

    def test_start_invalid_time(self, sample_container: Container):
        """测试开始时间早于创建时间"""
        with pytest.raises(ValueError, match="cannot be earlier than creation time"):
            sample_container.start(1.0)

    def test_reuse_cancels_eviction_check(self, sample_container: Container):
        """测试复用空闲容器会取消尚未触发的回收检查"""
        sample_container.start(2.0)
        sample_container.release(4.0)
        event = Event(14.0, 0, EventKind.EVICTION_CHECK, sample_container.container_id, 1)
        sample_container.eviction_event = event

        sample_container.reuse(9, 6.0)
        assert sample_container.state == ContainerState.ACTIVE
        assert sample_container.invocation_id == 9
        assert sample_container.eviction_event is None
        assert event.cancelled

    @pytest.mark.parametrize(
        "transition",
        ["release", "evict"],
    )
    def test_invalid_transitions_from_starting(self, sample_container: Container, transition: str):
        """测试冷启动中的容器不能直接进入空闲或被回收"""
        with pytest.raises(ValueError, match="Invalid container state transition"):
            getattr(sample_container, transition)(3.0)

    def test_prewarmed_container_ready(self, sample_container: Container):
        """测试预热容器部署完成后进入空闲状态"""
        sample_container.ready(4.0)
        assert sample_container.state == ContainerState.IDLE
        assert sample_container.last_active_time == 4.0
        assert sample_container.served == 0

        sample_container.reuse(5, 6.0)
        assert sample_container.state == ContainerState.ACTIVE

    def test_bound_container_cannot_become_ready(self, sample_container: Container):
        """测试已绑定调用的冷启动容器不能直接进入空闲状态"""
        sample_container.bind(7, 2.0)
        with pytest.raises(RuntimeError, match="cannot become idle"):
            sample_container.ready(3.0)

        with pytest.raises(ValueError, match="cannot be earlier than creation time"):
            Container(4, 1, "f", {"cores": 1}, 2.0).ready(1.0)

    def test_evict_cancels_eviction_check(self, sample_container: Container):
        """测试被提前回收的容器的回收检查被取消"""
        sample_container.ready(2.0)
        event = Event(12.0, 0, EventKind.EVICTION_CHECK, sample_container.container_id, 1)
        sample_container.eviction_event = event

        sample_container.evict(5.0)
        assert sample_container.state == ContainerState.EVICTED
        assert sample_container.eviction_event is None
        assert event.cancelled

    def test_evicted_container_cannot_be_reused(self, sample_container: Container):
        """测试被回收的容器不能再被复用"""
        sample_container.start(2.0)
        sample_container.release(3.0)
        sample_container.evict(4.0)
        with pytest.raises(ValueError, match="EVICTED -> ACTIVE"):
            sample_container.reuse(1, 5.0)
