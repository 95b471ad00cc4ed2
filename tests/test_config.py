"""test_config.py

测试 src/faas_cluster_sim/config.py 中的配置类
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from faas_cluster_sim.config import (
    ExperimentConfig,
    FixedTimeColdStartPolicyConfig,
    HermesSchedulerConfig,
    HostConfig,
    LeastLoadedSchedulerConfig,
    LocalityBasedSchedulerConfig,
    RandomSchedulerConfig,
    ResourceConfig,
    RoundRobinSchedulerConfig,
    SimulationConfig,
    format_policy,
    parse_policy_string,
)

DATA_DIR = Path(__file__).parent / "data"


class TestParsePolicyString:
    """测试紧凑策略描述的解析"""

    def test_with_options(self):
        """测试带参数的描述"""
        assert parse_policy_string("FixedTimeColdStartPolicy[keepalive=600,prewarm=0]") == {
            "name": "FixedTimeColdStartPolicy",
            "keepalive": "600",
            "prewarm": "0",
        }

    def test_without_options(self):
        """测试不带参数的描述"""
        assert parse_policy_string("RoundRobinScheduler") == {"name": "RoundRobinScheduler"}
        assert parse_policy_string("RoundRobinScheduler[]") == {"name": "RoundRobinScheduler"}

    def test_whitespace(self):
        """测试参数两侧的空白"""
        assert parse_policy_string(" RandomScheduler[ seed = 3 ] ") == {"name": "RandomScheduler", "seed": "3"}

    @pytest.mark.parametrize(
        "s",
        [
            "Random Scheduler",
            "RandomScheduler[seed]",
            "RandomScheduler[seed=1,seed=2]",
            "RandomScheduler[=1]",
            "RandomScheduler[seed=1",
        ],
    )
    def test_malformed(self, s: str):
        """测试格式错误的描述"""
        with pytest.raises(ValueError):
            parse_policy_string(s)

    def test_format_is_inverse(self):
        """测试 format_policy 生成的描述可以被解析回来"""
        s = format_policy("LeastLoadedScheduler", {"prefer_warm": True, "tie_break": ("invocations", "warm")})
        assert s == "LeastLoadedScheduler[prefer_warm=true,tie_break=invocations+warm]"
        config = LeastLoadedSchedulerConfig(**parse_policy_string(s))
        assert config.prefer_warm is True
        assert config.tie_break == ("invocations", "warm")


class TestHostConfig:
    """测试 HostConfig 配置类"""

    def test_capacity(self):
        """测试主机容量包含核心数和其他资源"""
        hc = HostConfig(cores=12, resources=[ResourceConfig(name="mem", quantity=26624)], count=8)
        assert hc.capacity == {"cores": 12, "mem": 26624}
        assert hc.invoker == "FIFOInvoker"

    def test_reserved_resource_name(self):
        """测试 cores 不能作为其他资源的名称"""
        with pytest.raises(ValidationError, match="reserved"):
            HostConfig(cores=4, resources=[ResourceConfig(name="cores", quantity=2)])

    def test_duplicate_resource_names(self):
        """测试重复的资源名称"""
        with pytest.raises(ValidationError) as exc_info:
            HostConfig(
                cores=4,
                resources=[ResourceConfig(name="mem", quantity=1), ResourceConfig(name="mem", quantity=2)],
            )
        assert "Duplicate resource names" in str(exc_info.value)
        assert "mem" in str(exc_info.value)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"cores": 0},
            {"cores": 4, "count": 0},
            {"cores": 4, "invoker": "LIFOInvoker"},
            {"cores": 4, "resources": [{"name": "mem", "quantity": -1}]},
        ],
    )
    def test_invalid_values(self, kwargs: dict):
        """测试非法字段值"""
        with pytest.raises(ValidationError):
            HostConfig(**kwargs)


class TestSimulationConfig:
    """测试 SimulationConfig 配置类"""

    def test_coldstart_policy_from_string(self):
        """测试从紧凑描述解析冷启动策略"""
        config = SimulationConfig(
            hosts=[HostConfig(cores=2)],
            coldstart_policy="FixedTimeColdStartPolicy[keepalive=600,prewarm=1]",  # type: ignore
        )
        assert config.coldstart_policy == FixedTimeColdStartPolicyConfig(keepalive=600.0, prewarm=1)
        assert config.cpu_policy == "isolated"
        assert config.idle_deployer == "BasicDeployer"
        assert config.queue_timeout is None

    def test_host_count(self):
        """测试主机总数"""
        config = SimulationConfig(
            hosts=[HostConfig(cores=2, count=3), HostConfig(cores=4, count=2)],
            coldstart_policy=FixedTimeColdStartPolicyConfig(keepalive=1.0),
        )
        assert config.host_count == 5

    @pytest.mark.parametrize(
        "field, value",
        [
            ("hosts", []),
            ("cpu_policy", "shared"),
            ("idle_deployer", "GreedyDeployer"),
            ("queue_timeout", 0),
            ("coldstart_policy", "FixedTimeColdStartPolicy[keepalive=-1]"),
            ("coldstart_policy", "FixedTimeColdStartPolicy[keepalive=10,lifetime=3]"),
            ("coldstart_policy", "AdaptiveColdStartPolicy[keepalive=10]"),
        ],
    )
    def test_invalid_values(self, field: str, value: object):
        """测试非法字段值"""
        data: dict[str, object] = {
            "hosts": [{"cores": 2}],
            "coldstart_policy": {"keepalive": 10},
        }
        data[field] = value
        with pytest.raises(ValidationError):
            SimulationConfig(**data)  # type: ignore


class TestSchedulerConfigs:
    """测试调度器配置类"""

    def test_labels(self):
        """测试规范描述字符串"""
        assert RoundRobinSchedulerConfig().label == "RoundRobinScheduler"
        assert RandomSchedulerConfig(seed=1).label == "RandomScheduler[seed=1]"
        assert LocalityBasedSchedulerConfig(warm_only=True).label == "LocalityBasedScheduler[warm_only=true]"
        assert (
            HermesSchedulerConfig(use_invocation_count=True).label
            == "HermesScheduler[use_invocation_count=true,avoid_queueing=false]"
        )

    @pytest.mark.parametrize(
        "tie_break",
        [("warm",), ("warm", "warm"), ("warm", "invocations", "warm"), ("load", "warm")],
    )
    def test_invalid_tie_break(self, tie_break: tuple):
        """测试非法的次要条件顺序"""
        with pytest.raises(ValidationError):
            LeastLoadedSchedulerConfig(tie_break=tie_break)  # type: ignore

    def test_unknown_flag(self):
        """测试未知参数"""
        with pytest.raises(ValidationError):
            RoundRobinSchedulerConfig(seed=1)  # type: ignore


class TestExperimentConfig:
    """测试 ExperimentConfig 配置类"""

    def test_from_yaml(self):
        """测试从 YAML 文件加载实验配置"""
        config = ExperimentConfig.from_yaml(str(DATA_DIR / "experiment_config.yaml"))

        assert config.base_config.host_count == 3
        assert config.base_config.hosts[0].capacity == {"cores": 4, "mem": 4096}
        assert config.base_config.hosts[2].invoker == "NaiveInvoker"
        assert config.base_config.coldstart_policy.keepalive == 60.0

        assert [type(s) for s in config.schedulers] == [
            LocalityBasedSchedulerConfig,
            LocalityBasedSchedulerConfig,
            RandomSchedulerConfig,
            LeastLoadedSchedulerConfig,
            RoundRobinSchedulerConfig,
            HermesSchedulerConfig,
        ]
        assert config.schedulers[0].warm_only is True  # type: ignore
        assert config.schedulers[2].seed == 1  # type: ignore
        least_loaded = config.schedulers[3]
        assert isinstance(least_loaded, LeastLoadedSchedulerConfig)
        assert least_loaded.use_invocation_count is True
        assert least_loaded.prefer_warm is False

    def test_mixed_scheduler_forms(self):
        """测试调度器既可以写成紧凑描述也可以写成字典"""
        config = ExperimentConfig(
            base_config={"hosts": [{"cores": 2}], "coldstart_policy": {"keepalive": 5}},  # type: ignore
            schedulers=["RandomScheduler[seed=7]", {"name": "HermesScheduler", "avoid_queueing": True}],  # type: ignore
        )
        assert config.schedulers[0] == RandomSchedulerConfig(seed=7)
        assert config.schedulers[1] == HermesSchedulerConfig(avoid_queueing=True)

    def test_duplicate_schedulers(self):
        """测试重复的调度器配置"""
        with pytest.raises(ValidationError) as exc_info:
            ExperimentConfig(
                base_config={"hosts": [{"cores": 2}], "coldstart_policy": {"keepalive": 5}},  # type: ignore
                schedulers=["RandomScheduler[seed=1]", "RandomScheduler[seed=1]"],  # type: ignore
            )
        assert "Duplicate scheduler configurations" in str(exc_info.value)

    def test_unknown_scheduler(self):
        """测试未知的调度器名称"""
        with pytest.raises(ValidationError):
            ExperimentConfig(
                base_config={"hosts": [{"cores": 2}], "coldstart_policy": {"keepalive": 5}},  # type: ignore
                schedulers=["FastestScheduler"],  # type: ignore
            )
