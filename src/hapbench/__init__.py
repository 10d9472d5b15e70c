from hapbench._version import VERSION, __version__
from hapbench.errors import (
    FixtureWriteFailure,
    HapbenchError,
    Incomplete,
    InvalidParameter,
    StrategyUnsupported,
)
from hapbench.fixtures import BenchmarkInput, FixtureSet, FixtureWorkspace
from hapbench.generator import GeneratedTable, MarkerRecord, generate
from hapbench.harness import BenchmarkReport, BenchmarkResult, run_benchmark
from hapbench.strategies import LoaderStrategy, default_strategies, select_strategies

__all__ = [
    "VERSION",
    "__version__",
    "HapbenchError",
    "InvalidParameter",
    "FixtureWriteFailure",
    "StrategyUnsupported",
    "Incomplete",
    "MarkerRecord",
    "GeneratedTable",
    "generate",
    "BenchmarkInput",
    "FixtureSet",
    "FixtureWorkspace",
    "LoaderStrategy",
    "default_strategies",
    "select_strategies",
    "BenchmarkResult",
    "BenchmarkReport",
    "run_benchmark",
]
