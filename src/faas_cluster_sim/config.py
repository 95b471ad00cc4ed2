"""config.py

集群、策略与调度器配置模型
"""

import re
from typing import Annotated, Any, Literal, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# 形如 `Name[key=value,key=value]` 的紧凑策略描述
_POLICY_PATTERN = re.compile(r"^\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*(?:\[(?P<options>[^\]]*)\])?\s*$")


def parse_policy_string(s: str) -> dict[str, Any]:
    """解析紧凑的策略描述字符串

    例如 `FixedTimeColdStartPolicy[keepalive=600,prewarm=0]` 解析为
    `{"name": "FixedTimeColdStartPolicy", "keepalive": "600", "prewarm": "0"}`，
    参数值的类型转换交给 pydantic 完成。

    Args:
        s (str): 策略描述字符串

    Returns:
        dict[str, Any]: 包含 `name` 以及各参数的字典
    """

    m = _POLICY_PATTERN.match(s)
    if m is None:
        raise ValueError(f"Malformed policy description: {s!r}")

    result: dict[str, Any] = {"name": m.group("name")}
    options = m.group("options")
    if not options or not options.strip():
        return result

    for item in options.split(","):
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Malformed option {item!r} in policy description {s!r}")
        if key in result:
            raise ValueError(f"Duplicate option '{key}' in policy description {s!r}")
        result[key] = value.strip()

    return result


def _parse_if_string(value: Any) -> Any:
    if isinstance(value, str):
        return parse_policy_string(value)
    return value


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (tuple, list)):
        return "+".join(str(v) for v in value)
    return str(value)


def format_policy(name: str, options: dict[str, Any]) -> str:
    """生成紧凑的策略描述字符串，是 `parse_policy_string` 的逆操作"""
    if not options:
        return name
    return f"{name}[{','.join(f'{k}={_format_value(v)}' for k, v in options.items())}]"


class PolicyModel(BaseModel):
    """以 `name` 区分具体实现的策略配置"""

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def label(self) -> str:
        """规范的紧凑描述字符串，例如 `RandomScheduler[seed=1]`"""
        return format_policy(getattr(self, "name"), self.model_dump(exclude={"name"}))


class ResourceConfig(BaseModel):
    name: str = Field(..., min_length=1, description="资源名称")
    quantity: int = Field(..., ge=0, description="资源数量")


class HostConfig(BaseModel):
    cores: int = Field(..., gt=0, description="CPU 核心数")
    resources: list[ResourceConfig] = Field(default_factory=list, description="其他资源")
    invoker: Literal["FIFOInvoker", "NaiveInvoker"] = Field("FIFOInvoker", description="调用器类型")
    count: int = Field(1, gt=0, description="该类主机的数量")

    @model_validator(mode="after")
    def validate_resource_names(self) -> "HostConfig":
        names = [r.name for r in self.resources]

        if "cores" in names:
            raise ValueError("Resource name 'cores' is reserved for the host core count")

        if len(names) != len(set(names)):
            duplicates = set(n for n in names if names.count(n) > 1)
            raise ValueError(f"Duplicate resource names in host configuration: {', '.join(sorted(duplicates))}")

        return self

    @property
    def capacity(self) -> dict[str, int]:
        """主机的全部资源容量 (核心数以 `cores` 记录)"""
        capacity = {"cores": self.cores}
        capacity.update((r.name, r.quantity) for r in self.resources)
        return capacity


class FixedTimeColdStartPolicyConfig(PolicyModel):
    name: Literal["FixedTimeColdStartPolicy"] = "FixedTimeColdStartPolicy"
    keepalive: float = Field(..., ge=0, description="空闲容器被回收前的保温时长")
    prewarm: int = Field(0, ge=0, description="每个函数在每台主机上至少保留的容器数量")


class LocalityBasedSchedulerConfig(PolicyModel):
    name: Literal["LocalityBasedScheduler"] = "LocalityBasedScheduler"
    warm_only: bool = False


class RandomSchedulerConfig(PolicyModel):
    name: Literal["RandomScheduler"] = "RandomScheduler"
    seed: int = 0


class LeastLoadedSchedulerConfig(PolicyModel):
    name: Literal["LeastLoadedScheduler"] = "LeastLoadedScheduler"
    prefer_warm: bool = False
    use_invocation_count: bool = False
    avoid_queueing: bool = False
    tie_break: tuple[Literal["warm", "invocations"], ...] = ("warm", "invocations")

    @field_validator("tie_break", mode="before")
    @classmethod
    def split_tie_break(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(v.strip() for v in value.split("+"))
        return value

    @field_validator("tie_break")
    @classmethod
    def validate_tie_break(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if sorted(value) != ["invocations", "warm"]:
            raise ValueError(f"tie_break must order both 'warm' and 'invocations' exactly once, got {value}")
        return value


class RoundRobinSchedulerConfig(PolicyModel):
    name: Literal["RoundRobinScheduler"] = "RoundRobinScheduler"


class HermesSchedulerConfig(PolicyModel):
    name: Literal["HermesScheduler"] = "HermesScheduler"
    use_invocation_count: bool = False
    avoid_queueing: bool = False


SchedulerConfig = Annotated[
    Union[
        LocalityBasedSchedulerConfig,
        RandomSchedulerConfig,
        LeastLoadedSchedulerConfig,
        RoundRobinSchedulerConfig,
        HermesSchedulerConfig,
    ],
    Field(discriminator="name"),
]


class SimulationConfig(BaseModel):
    hosts: list[HostConfig] = Field(..., min_length=1, description="主机组配置列表")
    coldstart_policy: FixedTimeColdStartPolicyConfig = Field(..., description="冷启动策略")
    cpu_policy: Literal["isolated"] = Field("isolated", description="CPU 隔离模式")
    idle_deployer: Literal["BasicDeployer"] = Field("BasicDeployer", description="空闲容器回收策略")
    queue_timeout: float | None = Field(None, gt=0, description="排队超时时长，None 表示不限制")

    @field_validator("coldstart_policy", mode="before")
    @classmethod
    def parse_coldstart_policy(cls, value: Any) -> Any:
        return _parse_if_string(value)

    @classmethod
    def from_yaml(cls, path: str) -> "SimulationConfig":
        """从 YAML 文件加载模拟配置"""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls(**data)

    @property
    def host_count(self) -> int:
        return sum(h.count for h in self.hosts)


class ExperimentConfig(BaseModel):
    base_config: SimulationConfig = Field(..., description="所有调度器共享的集群配置")
    schedulers: list[SchedulerConfig] = Field(..., min_length=1, description="需要比较的调度器列表")

    @field_validator("schedulers", mode="before")
    @classmethod
    def parse_schedulers(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_parse_if_string(v) for v in value]
        return value

    @classmethod
    def from_yaml(cls, path: str) -> "ExperimentConfig":
        """从 YAML 文件加载实验配置"""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls(**data)

    @model_validator(mode="after")
    def validate_unique_scheduler_labels(self) -> "ExperimentConfig":
        labels = [s.label for s in self.schedulers]

        if len(labels) != len(set(labels)):
            duplicates = set(n for n in labels if labels.count(n) > 1)
            raise ValueError(f"Duplicate scheduler configurations: {', '.join(sorted(duplicates))}")

        return self
