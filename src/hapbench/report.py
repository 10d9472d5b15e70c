from __future__ import annotations

import csv
import importlib.metadata
import math
import platform
import statistics
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Sequence

import polars as pl

from hapbench._version import VERSION
from hapbench.fixtures import FixtureSet
from hapbench.harness import BenchmarkReport, BenchmarkResult
from hapbench.util.deps import require_matplotlib_pyplot
from hapbench.util.json import json_backend, json_dumps

REPORT_SCHEMA_VERSION = "hapbench_report_v1"
RESULT_COLUMNS = ("strategy_name", "input_label", "replicate_index", "elapsed", "rows", "columns")
_RESULT_SCHEMA = {
    "strategy_name": pl.String,
    "input_label": pl.String,
    "replicate_index": pl.Int64,
    "elapsed": pl.Float64,
    "rows": pl.Int64,
    "columns": pl.Int64,
}
_ENVIRONMENT_PACKAGES = ("hapbench", "numpy", "pandas", "polars", "duckdb", "h5py", "matplotlib", "orjson")


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def stat_summary(values: list[float]) -> dict[str, float]:
    if not values:
        return {}
    stddev = statistics.stdev(values) if len(values) > 1 else 0.0
    sorted_vals = sorted(values)

    def nearest_rank(p: float) -> float:
        idx = int(math.ceil(p * len(sorted_vals))) - 1
        idx = max(0, min(idx, len(sorted_vals) - 1))
        return sorted_vals[idx]

    mean_val = statistics.fmean(values)
    return {
        "n": float(len(values)),
        "mean": mean_val,
        "stddev": stddev,
        "min": sorted_vals[0],
        "max": sorted_vals[-1],
        "median": statistics.median(values),
        "p90": nearest_rank(0.90),
        "p95": nearest_rank(0.95),
        "cv_pct": (stddev / mean_val * 100.0) if mean_val else 0.0,
    }


def results_frame(results: Iterable[BenchmarkResult]) -> pl.DataFrame:
    rows = [result.as_dict() for result in results]
    return pl.DataFrame(rows, schema=_RESULT_SCHEMA)


def summarize(results: Iterable[BenchmarkResult]) -> pl.DataFrame:
    """Per (strategy, input) timing statistics, in first-seen order."""
    frame = results_frame(results)
    elapsed = pl.col("elapsed")
    return (
        frame.group_by(["strategy_name", "input_label"], maintain_order=True)
        .agg(
            pl.len().alias("n"),
            elapsed.min().alias("min"),
            elapsed.quantile(0.25, interpolation="linear").alias("q25"),
            elapsed.median().alias("median"),
            elapsed.mean().alias("mean"),
            elapsed.quantile(0.75, interpolation="linear").alias("q75"),
            elapsed.max().alias("max"),
            elapsed.std().fill_null(0.0).alias("stddev"),
        )
    )


def grouped_elapsed(results: Iterable[BenchmarkResult]) -> dict[tuple[str, str], list[float]]:
    groups: dict[tuple[str, str], list[float]] = {}
    for result in results:
        groups.setdefault((result.strategy_name, result.input_label), []).append(float(result.elapsed))
    return groups


def pkg_version(name: str) -> str:
    try:
        return importlib.metadata.version(name)
    except importlib.metadata.PackageNotFoundError:
        return "not-installed"


def environment_info() -> dict[str, Any]:
    return {
        "timestamp_utc": datetime.now(timezone.utc).replace(microsecond=0).isoformat(),
        "platform": {
            "system": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
            "platform": platform.platform(),
        },
        "python": {
            "executable": sys.executable,
            "version": platform.python_version(),
        },
        "packages": {name: pkg_version(name) for name in _ENVIRONMENT_PACKAGES},
        "json_backend": json_backend(),
    }


def build_report_payload(
    report: BenchmarkReport,
    *,
    fixtures: FixtureSet | None = None,
    parameters: dict[str, Any] | None = None,
    environment: dict[str, Any] | None = None,
) -> dict[str, Any]:
    timings = {
        f"{strategy}|{label}": stat_summary(values)
        for (strategy, label), values in grouped_elapsed(report.results).items()
    }
    payload: dict[str, Any] = {
        "schema_version": REPORT_SCHEMA_VERSION,
        "hapbench_version": VERSION,
        "run_id": report.run_id,
        "replicates": report.replicates,
        "strategies": list(report.strategy_names),
        "inputs": list(report.input_labels),
        "complete": report.is_complete,
        "elapsed_seconds": report.elapsed_seconds,
        "parameters": dict(parameters or {}),
        "timings": timings,
        "results": [result.as_dict() for result in report.results],
        "failures": [failure.as_dict() for failure in report.failures],
        "incomplete": [pairing.as_dict() for pairing in report.incomplete],
    }
    if fixtures is not None:
        payload["fixtures"] = {
            "files": {
                item.artifact: {
                    "path": str(item.path),
                    "bytes": item.bytes,
                    "write_seconds": item.write_seconds,
                }
                for item in fixtures.files()
            },
            "size_stats": fixtures.size_stats(),
            "hdf5_dataset": fixtures.hdf5_dataset,
        }
    if environment is not None:
        payload["environment"] = environment
    return payload


def write_report_json(payload: dict[str, Any], path: Path) -> Path:
    ensure_parent(path)
    path.write_text(json_dumps(payload, indent=True) + "\n", encoding="utf-8")
    return path


def write_results_csv(results: Sequence[BenchmarkResult], path: Path) -> Path:
    ensure_parent(path)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=list(RESULT_COLUMNS))
        writer.writeheader()
        for result in results:
            writer.writerow(result.as_dict())
    return path


def plot_results(results: Sequence[BenchmarkResult], path: Path, *, title: str | None = None) -> Path:
    """Box plot of elapsed seconds per strategy and input, saved as PNG."""
    groups = grouped_elapsed(results)
    if not groups:
        raise ValueError("no benchmark results to plot")
    plt = require_matplotlib_pyplot("plot_results")
    labels = [f"{strategy}\n{label}" for strategy, label in groups]
    fig, ax = plt.subplots(figsize=(max(6.0, 1.1 * len(groups)), 5.0))
    try:
        ax.boxplot(list(groups.values()))
        ax.set_xticks(range(1, len(labels) + 1))
        ax.set_xticklabels(labels, rotation=45, ha="right", fontsize=8)
        ax.set_ylabel("elapsed (s)")
        ax.set_title(title or "Genotype table load time")
        ax.grid(axis="y", alpha=0.3)
        fig.tight_layout()
        ensure_parent(path)
        fig.savefig(path, dpi=120)
    finally:
        plt.close(fig)
    return path
