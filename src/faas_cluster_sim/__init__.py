from .config import ExperimentConfig, SimulationConfig
from .engine import Simulation
from .env_log import InvocationRecord, InvocationStatus, SimulationResult, UtilizationRecord
from .errors import ConfigurationError, InvalidReference, NoCapacity, SimulationError
from .experiment import run_experiment
from .invocation import TraceRecord

__all__ = [
    "ConfigurationError",
    "ExperimentConfig",
    "InvalidReference",
    "InvocationRecord",
    "InvocationStatus",
    "NoCapacity",
    "Simulation",
    "SimulationConfig",
    "SimulationError",
    "SimulationResult",
    "TraceRecord",
    "UtilizationRecord",
    "run_experiment",
]
