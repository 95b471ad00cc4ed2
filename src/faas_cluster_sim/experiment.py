"""experiment.py

使用同一条轨迹比较多个调度器
"""

import logging
from typing import Sequence

from .config import ExperimentConfig
from .engine import Simulation
from .env_log import SimulationResult
from .invocation import TraceRecord

logger = logging.getLogger(__name__)


def run_experiment(config: ExperimentConfig, trace: Sequence[TraceRecord]) -> dict[str, SimulationResult]:
    """依次使用每个调度器运行同一条轨迹

    每个调度器使用一个完全独立的模拟引擎，引擎之间不共享任何可变状态。

    Args:
        config (ExperimentConfig): 实验配置
        trace (Sequence[TraceRecord]): 工作负载轨迹

    Returns:
        dict[str, SimulationResult]: 调度器描述 -> 模拟结果，顺序与配置中的调度器顺序一致
    """

    results: dict[str, SimulationResult] = {}

    for scheduler_config in config.schedulers:
        label = scheduler_config.label
        sim = Simulation(config.base_config, scheduler_config)
        sim.load_trace(trace)
        results[label] = sim.run_until_empty()

        logger.info(
            "%s: %d invocations, cold start fraction %.4f, mean queueing delay %.4f, p99 relative slowdown %.4f",
            label,
            len(results[label]),
            results[label].cold_start_fraction(),
            results[label].mean_queueing_delay(),
            results[label].relative_slowdown_percentile(99),
        )

    return results
