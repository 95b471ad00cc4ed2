"""test_cluster.py

测试 src/faas_cluster_sim/cluster.py 中的 Cluster 类
"""

import pytest

from faas_cluster_sim.cluster import Cluster
from faas_cluster_sim.coldstart import FixedTimeColdStartPolicy
from faas_cluster_sim.config import HostConfig, ResourceConfig, SimulationConfig
from faas_cluster_sim.errors import InvalidReference
from faas_cluster_sim.invocation import Invocation
from faas_cluster_sim.invoker import FIFOInvoker, NaiveInvoker


class TestCluster:
    """测试 Cluster 类"""

    @pytest.fixture
    def cluster(self) -> Cluster:
        """两台 2 核主机 (FIFO) 和一台带 GPU 的 8 核主机 (Naive)"""
        config = SimulationConfig(
            hosts=[
                HostConfig(cores=2, count=2),
                HostConfig(cores=8, resources=[ResourceConfig(name="gpu", quantity=1)], invoker="NaiveInvoker"),
            ],
            coldstart_policy="FixedTimeColdStartPolicy[keepalive=10]",
        )
        return Cluster(config, FixedTimeColdStartPolicy(keepalive=10.0))

    def test_host_layout(self, cluster: Cluster):
        """测试主机按配置顺序编号"""
        assert len(cluster) == 3
        assert [h.host_id for h in cluster] == [0, 1, 2]
        assert [cluster.group_of(i) for i in range(3)] == [0, 0, 1]
        assert cluster[2].ledger.capacity == {"cores": 8, "gpu": 1}
        assert isinstance(cluster[0].invoker, FIFOInvoker)
        assert isinstance(cluster[2].invoker, NaiveInvoker)

    def test_unknown_host(self, cluster: Cluster):
        """测试访问不存在的主机"""
        with pytest.raises(InvalidReference):
            cluster[3]
        with pytest.raises(InvalidReference):
            cluster[-1]

    def test_container_ids_are_cluster_wide(self, cluster: Cluster):
        """测试容器ID在整个集群内唯一"""
        a = cluster[0].create_container("f", {"cores": 1}, 0.0)
        b = cluster[2].create_container("f", {"cores": 1}, 0.0)
        c = cluster[0].create_container("g", {"cores": 1}, 0.0)
        assert [a.container_id, b.container_id, c.container_id] == [0, 1, 2]

    def test_capable_and_admissible_hosts(self, cluster: Cluster):
        """测试按总容量和剩余容量筛选主机"""
        small = Invocation(0, "f", {"cores": 2}, 0.0, 1.0)
        gpu = Invocation(1, "g", {"cores": 1, "gpu": 1}, 0.0, 1.0)

        assert [h.host_id for h in cluster.capable_hosts(small)] == [0, 1, 2]
        assert [h.host_id for h in cluster.capable_hosts(gpu)] == [2]

        cluster[0].create_container("x", {"cores": 1}, 0.0)
        assert [h.host_id for h in cluster.admissible_hosts(small)] == [1, 2]
        assert [h.host_id for h in cluster.capable_hosts(small)] == [0, 1, 2]
