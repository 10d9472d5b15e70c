"""Command line entry point: generate fixtures, time loaders, write reports."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from hapbench.config import get_runtime_defaults
from hapbench.errors import FixtureWriteFailure, InvalidParameter
from hapbench.fixtures import FixtureWorkspace, verify_gzip_roundtrip
from hapbench.generator import generate
from hapbench.harness import run_benchmark
from hapbench.report import (
    build_report_payload,
    environment_info,
    plot_results,
    summarize,
    write_report_json,
    write_results_csv,
)
from hapbench.strategies import BUILTIN_STRATEGY_NAMES, select_strategies

LOG = logging.getLogger("hapbench.cli")

EXIT_OK = 0
EXIT_INVALID_PARAMETER = 2
EXIT_FIXTURE_WRITE_FAILURE = 3
EXIT_INCOMPLETE = 4

REPORT_JSON_NAME = "report.json"
RESULTS_CSV_NAME = "results.csv"
PLOT_NAME = "timings.png"


def parse_csv_tokens(text: str | None) -> list[str]:
    if text is None:
        return []
    return [token.strip() for token in str(text).split(",") if token.strip()]


def _build_parser() -> argparse.ArgumentParser:
    defaults = get_runtime_defaults()
    parser = argparse.ArgumentParser(prog="hapbench", description=__doc__)
    parser.add_argument("--rows", type=int, default=defaults.generator.nrows, help="Number of marker rows.")
    parser.add_argument(
        "--genotype-columns",
        type=int,
        default=defaults.generator.ngenotype_columns,
        help="Number of per-individual genotype columns.",
    )
    parser.add_argument("--chromosomes", type=int, default=defaults.generator.nchromosomes)
    parser.add_argument("--max-position", type=int, default=defaults.generator.max_position)
    parser.add_argument("--seed", type=int, default=defaults.generator.seed)
    parser.add_argument(
        "--replicates",
        type=int,
        default=defaults.benchmark.replicates,
        help="Timed invocations per strategy and input.",
    )
    parser.add_argument(
        "--strategies",
        default=",".join(defaults.benchmark.strategies),
        help="Comma-separated strategy names. Available: " + ",".join(BUILTIN_STRATEGY_NAMES),
    )
    parser.add_argument(
        "--time-budget-seconds",
        type=float,
        default=defaults.benchmark.time_budget_seconds,
        help="Stop starting new invocations after this many seconds (0 disables the cap).",
    )
    parser.add_argument("--output-dir", type=Path, default=Path("hapbench-out"))
    parser.add_argument(
        "--fixture-dir",
        type=Path,
        default=None,
        help="Directory for fixtures (default: a temporary directory).",
    )
    parser.add_argument(
        "--keep-fixtures",
        action=argparse.BooleanOptionalAction,
        default=defaults.fixtures.keep,
    )
    parser.add_argument("--plot", action=argparse.BooleanOptionalAction, default=True)
    parser.add_argument("--log-level", default="WARNING", help="Python logging level name.")
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def _print_summary(report) -> None:
    for row in summarize(report.results).iter_rows(named=True):
        print(
            f"strategy={row['strategy_name']} input={row['input_label']} n={row['n']} "
            f"min_s={row['min']:.4f} median_s={row['median']:.4f} mean_s={row['mean']:.4f} "
            f"max_s={row['max']:.4f}",
            flush=True,
        )
    for failure in report.failures:
        print(
            f"unsupported strategy={failure.strategy_name} input={failure.input_label} err={failure.error}",
            flush=True,
        )
    for pairing in report.incomplete:
        print(
            f"incomplete strategy={pairing.strategy_name} input={pairing.input_label} "
            f"completed={pairing.completed_replicates}",
            flush=True,
        )


def _resolve_time_budget(value: float | None) -> float | None:
    # Same convention as defaults.toml: zero or less disables the cap.
    if value is None or value <= 0:
        return None
    return float(value)


def run(args: argparse.Namespace) -> int:
    defaults = get_runtime_defaults()
    time_budget_seconds = _resolve_time_budget(args.time_budget_seconds)
    table = generate(
        args.rows,
        args.genotype_columns,
        nchromosomes=args.chromosomes,
        max_position=args.max_position,
        seed=args.seed,
        placeholder=defaults.generator.placeholder,
    )
    strategies = select_strategies(parse_csv_tokens(args.strategies), table.column_types())
    print(
        f"generated rows={table.nrows} genotype_columns={table.ngenotype_columns} seed={args.seed}",
        flush=True,
    )

    with FixtureWorkspace(args.fixture_dir, keep=args.keep_fixtures) as workspace:
        fixtures = workspace.write_fixtures(
            table,
            basename=defaults.fixtures.basename,
            hdf5_group=defaults.fixtures.hdf5_group,
            hdf5_dataset=defaults.fixtures.hdf5_dataset,
            gzip_level=defaults.fixtures.gzip_level,
        )
        if not verify_gzip_roundtrip(fixtures):
            raise FixtureWriteFailure(
                "gzip fixture does not decompress to the text fixture", "tsv_gz", fixtures.tsv_gz.path
            )
        for item in fixtures.files():
            print(
                f"fixture artifact={item.artifact} bytes={item.bytes} write_s={item.write_seconds:.4f}",
                flush=True,
            )
        del table

        report = run_benchmark(
            strategies,
            fixtures,
            args.replicates,
            nrows_hint=args.rows,
            time_budget_seconds=time_budget_seconds,
        )
        payload = build_report_payload(
            report,
            fixtures=fixtures,
            parameters={
                "rows": args.rows,
                "genotype_columns": args.genotype_columns,
                "chromosomes": args.chromosomes,
                "max_position": args.max_position,
                "seed": args.seed,
                "replicates": args.replicates,
                "time_budget_seconds": time_budget_seconds,
            },
            environment=environment_info(),
        )

    _print_summary(report)
    output_dir: Path = args.output_dir
    write_report_json(payload, output_dir / REPORT_JSON_NAME)
    write_results_csv(report.results, output_dir / RESULTS_CSV_NAME)
    if args.plot and report.results:
        plot_results(report.results, output_dir / PLOT_NAME)
    print(f"report_written dir={output_dir}", flush=True)
    return EXIT_OK if report.is_complete else EXIT_INCOMPLETE


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    try:
        return run(args)
    except InvalidParameter as exc:
        LOG.error("invalid parameter: %s", exc)
        return EXIT_INVALID_PARAMETER
    except FixtureWriteFailure as exc:
        LOG.error("fixture write failed artifact=%s path=%s: %s", exc.artifact, exc.path, exc)
        return EXIT_FIXTURE_WRITE_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
