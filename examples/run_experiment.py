import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.append(str(PROJECT_ROOT / "src"))

import logging
import random
import time

from faas_cluster_sim import ExperimentConfig, TraceRecord, run_experiment

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

config_file = PROJECT_ROOT / "tests" / "data" / "experiment_config.yaml"
config = ExperimentConfig.from_yaml(str(config_file))

# 生成泊松到达的合成轨迹
rng = random.Random(42)
functions = [(f"fn-{i}", {"cores": rng.randint(1, 2), "mem": rng.choice([128, 256, 512])}) for i in range(20)]
trace: list[TraceRecord] = []
t = 0.0
for _ in range(5000):
    t += rng.expovariate(20.0)
    name, resources = rng.choice(functions)
    trace.append(TraceRecord(name, t, rng.uniform(0.1, 2.0), resources, cold_start_latency=0.5))

tic = time.time()
results = run_experiment(config, trace)

for label, result in results.items():
    print(
        "{:<100} cold start fraction: {:.4f}  mean queueing delay: {:.4f}  p99 slowdown: {:.4f}  idle core-seconds: {:.1f}".format(
            label,
            result.cold_start_fraction(),
            result.mean_queueing_delay(),
            result.relative_slowdown_percentile(99),
            result.wasted_resource_time("cores"),
        )
    )

print(f"Experiment finished in {time.time() - tic:.2f} seconds")
