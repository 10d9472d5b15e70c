import itertools
import unittest
from pathlib import Path

import polars as pl
import pytest

from hapbench.errors import Incomplete, InvalidParameter, StrategyUnsupported
from hapbench.fixtures import BenchmarkInput
from hapbench.harness import run_benchmark
from hapbench.strategies import LoaderStrategy, select_strategies


def _frame_loader(path, *, column_types=None, nrows_hint=None):
    return pl.DataFrame({"a": [1, 2, 3], "b": ["x", "y", "z"]})


def _strategy(name, *, supports_compressed=True, loader=_frame_loader):
    return LoaderStrategy(name=name, loader=loader, supports_compressed=supports_compressed)


PLAIN = BenchmarkInput(label="tsv", path=Path("plain.tsv"), compressed=False)
PACKED = BenchmarkInput(label="tsv.gz", path=Path("plain.tsv.gz"), compressed=True)


class TestRunBenchmark(unittest.TestCase):
    def test_unsupported_compressed_input_is_reported_not_raised(self):
        strategies = {
            "alpha": _strategy("alpha"),
            "beta": _strategy("beta"),
            "plain_only": _strategy("plain_only", supports_compressed=False),
        }
        report = run_benchmark(strategies, [PACKED], replicates=3)

        counts = {}
        for result in report.results:
            counts[result.strategy_name] = counts.get(result.strategy_name, 0) + 1
        self.assertEqual(counts, {"alpha": 3, "beta": 3})
        self.assertEqual(len(report.failures), 1)
        failure = report.failures[0]
        self.assertEqual(failure.strategy_name, "plain_only")
        self.assertEqual(failure.input_label, "tsv.gz")
        self.assertIsInstance(failure.error, StrategyUnsupported)
        self.assertTrue(report.is_complete)

    def test_full_matrix_is_benchmarked(self):
        strategies = {"alpha": _strategy("alpha"), "beta": _strategy("beta")}
        report = run_benchmark(strategies, [PLAIN, PACKED], replicates=2)
        pairs = {(r.strategy_name, r.input_label) for r in report.results}
        self.assertEqual(
            pairs,
            {("alpha", "tsv"), ("alpha", "tsv.gz"), ("beta", "tsv"), ("beta", "tsv.gz")},
        )
        self.assertEqual(len(report.results), 8)
        self.assertEqual(report.strategy_names, ["alpha", "beta"])
        self.assertEqual(report.input_labels, ["tsv", "tsv.gz"])

    def test_results_carry_replicate_index_and_shape(self):
        report = run_benchmark({"alpha": _strategy("alpha")}, [PLAIN], replicates=3)
        self.assertEqual([r.replicate_index for r in report.results], [1, 2, 3])
        for result in report.results:
            self.assertEqual((result.rows, result.columns), (3, 2))
            self.assertGreaterEqual(result.elapsed, 0.0)

    def test_raising_loader_is_wrapped_and_run_continues(self):
        calls = []

        def broken(path, *, column_types=None, nrows_hint=None):
            calls.append(path)
            raise ValueError("cannot parse")

        strategies = {"broken": _strategy("broken", loader=broken), "alpha": _strategy("alpha")}
        report = run_benchmark(strategies, [PLAIN], replicates=4)

        self.assertEqual(len(calls), 1)
        self.assertEqual(len(report.failures), 1)
        error = report.failures[0].error
        self.assertIsInstance(error, StrategyUnsupported)
        self.assertIsInstance(error.cause, ValueError)
        self.assertEqual(error.strategy_name, "broken")
        self.assertEqual(error.input_label, "tsv")
        self.assertEqual(len([r for r in report.results if r.strategy_name == "alpha"]), 4)
        self.assertEqual(report.incomplete, [])

    def test_plain_callables_are_accepted(self):
        def loader(path, nrows_hint=None):
            return pl.DataFrame({"a": [nrows_hint]})

        report = run_benchmark({"callable": loader}, [PLAIN], replicates=2, nrows_hint=9)
        self.assertEqual(len(report.results), 2)
        self.assertEqual(report.results[0].rows, 1)

    def test_invalid_arguments(self):
        with self.assertRaises(InvalidParameter):
            run_benchmark({"alpha": _strategy("alpha")}, [PLAIN], replicates=0)
        with self.assertRaises(InvalidParameter):
            run_benchmark({}, [PLAIN], replicates=1)
        with self.assertRaises(InvalidParameter):
            run_benchmark({"alpha": _strategy("alpha")}, [], replicates=1)
        with self.assertRaises(InvalidParameter):
            run_benchmark({"alpha": _strategy("alpha")}, [PLAIN, PLAIN], replicates=1)
        with self.assertRaises(InvalidParameter):
            run_benchmark({"alpha": _strategy("alpha")}, [PLAIN], replicates=1, time_budget_seconds=0)


def test_time_budget_returns_partial_results_and_flags_the_rest():
    ticks = itertools.count()
    strategies = {"alpha": _strategy("alpha"), "beta": _strategy("beta")}

    report = run_benchmark(
        strategies,
        [PLAIN],
        replicates=3,
        time_budget_seconds=5,
        clock=lambda: float(next(ticks)),
    )

    assert [(r.strategy_name, r.replicate_index) for r in report.results] == [("alpha", 1), ("alpha", 2)]
    assert all(r.elapsed == 1.0 for r in report.results)
    assert not report.is_complete
    assert [(p.strategy_name, p.completed_replicates) for p in report.incomplete] == [("alpha", 2), ("beta", 0)]
    with pytest.raises(Incomplete) as excinfo:
        report.raise_for_incomplete()
    assert len(excinfo.value.pairings) == 2


def test_generous_budget_completes():
    report = run_benchmark({"alpha": _strategy("alpha")}, [PLAIN], replicates=2, time_budget_seconds=3600)
    assert report.is_complete
    report.raise_for_incomplete()


def test_fixture_benchmark_is_idempotent(fixture_set, small_table):
    strategies = select_strategies(
        ["pandas_inferred", "polars_typed", "polars_lazy_scan"],
        small_table.column_types(),
    )
    first = run_benchmark(strategies, fixture_set, replicates=2, nrows_hint=small_table.nrows)
    second = run_benchmark(strategies, fixture_set, replicates=2, nrows_hint=small_table.nrows)

    assert first.result_strategy_names() == second.result_strategy_names()
    assert len(first.results) == len(second.results) == 10
    assert [(f.strategy_name, f.input_label) for f in first.failures] == [("polars_lazy_scan", "tsv.gz")]
    for result in first.results:
        assert (result.rows, result.columns) == (small_table.nrows, len(small_table.columns))


def test_row_count_hint_mismatch_is_a_failure_not_a_result(fixture_set, small_table):
    strategies = select_strategies(
        ["pandas_typed_nrows", "polars_typed", "polars_inferred"],
        small_table.column_types(),
    )
    report = run_benchmark(strategies, fixture_set, replicates=2, nrows_hint=10)

    assert {r.strategy_name for r in report.results} == {"polars_inferred"}
    assert all(r.rows == small_table.nrows for r in report.results)
    failed = sorted((f.strategy_name, f.input_label) for f in report.failures)
    assert failed == [
        ("pandas_typed_nrows", "tsv"),
        ("pandas_typed_nrows", "tsv.gz"),
        ("polars_typed", "tsv"),
        ("polars_typed", "tsv.gz"),
    ]
    for failure in report.failures:
        assert isinstance(failure.error, StrategyUnsupported)
        assert failure.completed_replicates == 0
        assert "row count hint" in str(failure.error)
    assert report.is_complete


def test_matching_row_count_hint_is_accepted(fixture_set, small_table):
    strategies = select_strategies(["pandas_typed_nrows"], small_table.column_types())
    report = run_benchmark(strategies, fixture_set, replicates=1, nrows_hint=small_table.nrows)
    assert report.failures == []
    assert [r.rows for r in report.results] == [small_table.nrows, small_table.nrows]
