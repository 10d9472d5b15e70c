from __future__ import annotations

import gc
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from hapbench.errors import Incomplete, InvalidParameter, StrategyUnsupported
from hapbench.fixtures import BenchmarkInput, FixtureSet
from hapbench.strategies import LoaderStrategy, as_strategy, table_shape
from hapbench.util.logging import log_structured_event, new_job_id

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class BenchmarkResult:
    strategy_name: str
    elapsed: float
    replicate_index: int
    input_label: str = "tsv"
    rows: int | None = None
    columns: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "strategy_name": self.strategy_name,
            "input_label": self.input_label,
            "replicate_index": self.replicate_index,
            "elapsed": self.elapsed,
            "rows": self.rows,
            "columns": self.columns,
        }


@dataclass(frozen=True)
class StrategyFailure:
    strategy_name: str
    input_label: str
    error: StrategyUnsupported
    completed_replicates: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "strategy_name": self.strategy_name,
            "input_label": self.input_label,
            "error": str(self.error),
            "cause_type": type(self.error.cause).__name__ if self.error.cause is not None else None,
            "completed_replicates": self.completed_replicates,
        }


@dataclass(frozen=True)
class IncompletePairing:
    strategy_name: str
    input_label: str
    completed_replicates: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "strategy_name": self.strategy_name,
            "input_label": self.input_label,
            "completed_replicates": self.completed_replicates,
        }


@dataclass
class BenchmarkReport:
    replicates: int
    strategy_names: list[str]
    input_labels: list[str]
    run_id: str = ""
    results: list[BenchmarkResult] = field(default_factory=list)
    failures: list[StrategyFailure] = field(default_factory=list)
    incomplete: list[IncompletePairing] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def is_complete(self) -> bool:
        return not self.incomplete

    def result_strategy_names(self) -> set[str]:
        return {result.strategy_name for result in self.results}

    def raise_for_incomplete(self) -> None:
        if self.incomplete:
            raise Incomplete(
                f"time budget exhausted with {len(self.incomplete)} pairing(s) unfinished",
                self.incomplete,
            )


def _normalize_inputs(inputs) -> list[BenchmarkInput]:
    if isinstance(inputs, FixtureSet):
        return inputs.benchmark_inputs()
    normalized = list(inputs)
    if not normalized:
        raise InvalidParameter("at least one benchmark input is required")
    for item in normalized:
        if not isinstance(item, BenchmarkInput):
            raise InvalidParameter(f"benchmark inputs must be BenchmarkInput values, got {type(item).__name__}")
    labels = [item.label for item in normalized]
    if len(set(labels)) != len(labels):
        raise InvalidParameter("benchmark input labels must be unique")
    return normalized


def _normalize_strategies(strategies: Mapping[str, Any]) -> dict[str, LoaderStrategy]:
    if not strategies:
        raise InvalidParameter("at least one strategy is required")
    return {str(name): as_strategy(str(name), candidate) for name, candidate in strategies.items()}


def run_benchmark(
    strategies: Mapping[str, Any],
    inputs: FixtureSet | Iterable[BenchmarkInput],
    replicates: int,
    *,
    nrows_hint: int | None = None,
    time_budget_seconds: float | None = None,
    clock: Callable[[], float] = time.perf_counter,
) -> BenchmarkReport:
    """Time every (strategy, input) pairing ``replicates`` times.

    Every pairing of the full strategy x input matrix is attempted. A
    pairing whose strategy cannot read compressed input, or whose loader
    raises, is recorded as a ``StrategyUnsupported`` failure and the run
    moves on. With ``time_budget_seconds`` no invocation starts once the
    budget is spent; unfinished pairings are listed in ``incomplete`` and
    finished results are kept. A strategy that takes the row count hint
    must return exactly ``nrows_hint`` rows; a short or long read is
    recorded as a failure, not as a result.

    Each invocation loads the file from scratch. A full garbage collection
    runs before, and outside of, every timed call.
    """
    if isinstance(replicates, bool) or not isinstance(replicates, int) or replicates <= 0:
        raise InvalidParameter(f"replicates must be a positive integer, got {replicates!r}")
    if time_budget_seconds is not None and time_budget_seconds <= 0:
        raise InvalidParameter("time_budget_seconds must be > 0 when set")
    resolved_strategies = _normalize_strategies(strategies)
    resolved_inputs = _normalize_inputs(inputs)

    report = BenchmarkReport(
        replicates=replicates,
        strategy_names=list(resolved_strategies),
        input_labels=[item.label for item in resolved_inputs],
        run_id=new_job_id("bench"),
    )
    log_structured_event(
        LOG,
        logging.INFO,
        "benchmark_start",
        run_id=report.run_id,
        strategies=report.strategy_names,
        inputs=report.input_labels,
        replicates=replicates,
        time_budget_seconds=time_budget_seconds,
    )

    started = clock()
    deadline = started + time_budget_seconds if time_budget_seconds is not None else None

    for strategy_name, strategy in resolved_strategies.items():
        for item in resolved_inputs:
            if item.compressed and not strategy.supports_compressed:
                error = StrategyUnsupported(
                    f"strategy {strategy_name} cannot read compressed input {item.label}",
                    strategy_name,
                    item.label,
                )
                report.failures.append(StrategyFailure(strategy_name, item.label, error))
                log_structured_event(
                    LOG,
                    logging.WARNING,
                    "strategy_unsupported",
                    run_id=report.run_id,
                    strategy=strategy_name,
                    input=item.label,
                    reason="compressed_input",
                )
                continue

            completed = 0
            failed = False
            for replicate_index in range(1, replicates + 1):
                if deadline is not None and clock() >= deadline:
                    break
                gc.collect()
                t0 = clock()
                try:
                    table = strategy.load(item.path, nrows_hint=nrows_hint)
                    elapsed = clock() - t0
                    rows, columns = table_shape(table)
                    if strategy.needs_row_count_hint and nrows_hint is not None and rows != nrows_hint:
                        raise StrategyUnsupported(
                            f"strategy {strategy_name} read {rows} rows but the row count hint is {nrows_hint}",
                            strategy_name,
                            item.label,
                        )
                except StrategyUnsupported as exc:
                    error = exc
                except Exception as exc:
                    error = StrategyUnsupported(
                        f"strategy {strategy_name} failed on input {item.label}",
                        strategy_name,
                        item.label,
                        exc,
                    )
                else:
                    del table
                    report.results.append(
                        BenchmarkResult(
                            strategy_name=strategy_name,
                            elapsed=elapsed,
                            replicate_index=replicate_index,
                            input_label=item.label,
                            rows=rows,
                            columns=columns,
                        )
                    )
                    completed += 1
                    log_structured_event(
                        LOG,
                        logging.DEBUG,
                        "benchmark_invocation",
                        run_id=report.run_id,
                        strategy=strategy_name,
                        input=item.label,
                        replicate=replicate_index,
                        elapsed_seconds=round(elapsed, 6),
                        rows=rows,
                    )
                    continue

                if error.input_label is None:
                    error.input_label = item.label
                report.failures.append(StrategyFailure(strategy_name, item.label, error, completed))
                log_structured_event(
                    LOG,
                    logging.WARNING,
                    "strategy_unsupported",
                    run_id=report.run_id,
                    strategy=strategy_name,
                    input=item.label,
                    reason=type(error.cause).__name__ if error.cause is not None else "capability",
                    error=str(error),
                )
                failed = True
                break

            if not failed and completed < replicates:
                report.incomplete.append(IncompletePairing(strategy_name, item.label, completed))

    report.elapsed_seconds = clock() - started
    log_structured_event(
        LOG,
        logging.WARNING if report.incomplete else logging.INFO,
        "benchmark_done",
        run_id=report.run_id,
        results=len(report.results),
        failures=len(report.failures),
        incomplete=len(report.incomplete),
        elapsed_seconds=round(report.elapsed_seconds, 6),
    )
    return report
