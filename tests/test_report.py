import csv
import json
import unittest

import pytest

from hapbench.errors import StrategyUnsupported
from hapbench.harness import BenchmarkReport, BenchmarkResult, IncompletePairing, StrategyFailure
from hapbench.report import (
    REPORT_SCHEMA_VERSION,
    build_report_payload,
    environment_info,
    plot_results,
    results_frame,
    stat_summary,
    summarize,
    write_report_json,
    write_results_csv,
)


def _results():
    return [
        BenchmarkResult("alpha", 1.0, 1, "tsv", 10, 5),
        BenchmarkResult("alpha", 3.0, 2, "tsv", 10, 5),
        BenchmarkResult("alpha", 2.0, 3, "tsv", 10, 5),
        BenchmarkResult("beta", 4.0, 1, "tsv.gz", 10, 5),
    ]


def _report():
    report = BenchmarkReport(replicates=3, strategy_names=["alpha", "beta", "gamma"], input_labels=["tsv", "tsv.gz"])
    report.results.extend(_results())
    report.failures.append(
        StrategyFailure("gamma", "tsv.gz", StrategyUnsupported("no gzip", "gamma", "tsv.gz"))
    )
    report.incomplete.append(IncompletePairing("beta", "tsv.gz", 1))
    return report


class TestSummaries(unittest.TestCase):
    def test_stat_summary(self):
        summary = stat_summary([1.0, 2.0, 3.0, 4.0])
        self.assertEqual(summary["n"], 4.0)
        self.assertEqual(summary["min"], 1.0)
        self.assertEqual(summary["max"], 4.0)
        self.assertEqual(summary["median"], 2.5)
        self.assertAlmostEqual(summary["mean"], 2.5)
        self.assertEqual(summary["p90"], 4.0)
        self.assertGreater(summary["cv_pct"], 0.0)

    def test_stat_summary_single_and_empty(self):
        self.assertEqual(stat_summary([]), {})
        self.assertEqual(stat_summary([2.0])["stddev"], 0.0)

    def test_summarize_groups_by_strategy_and_input(self):
        frame = summarize(_results())
        self.assertEqual(frame["strategy_name"].to_list(), ["alpha", "beta"])
        alpha = frame.row(0, named=True)
        self.assertEqual(alpha["n"], 3)
        self.assertEqual(alpha["min"], 1.0)
        self.assertEqual(alpha["median"], 2.0)
        self.assertEqual(alpha["max"], 3.0)
        self.assertAlmostEqual(alpha["mean"], 2.0)
        self.assertAlmostEqual(alpha["q25"], 1.5)
        self.assertAlmostEqual(alpha["q75"], 2.5)
        beta = frame.row(1, named=True)
        self.assertEqual(beta["stddev"], 0.0)

    def test_results_frame_schema(self):
        frame = results_frame(_results())
        self.assertEqual(
            frame.columns,
            ["strategy_name", "input_label", "replicate_index", "elapsed", "rows", "columns"],
        )
        self.assertEqual(frame.height, 4)
        self.assertEqual(results_frame([]).height, 0)


def test_report_payload_round_trips_through_json(tmp_path):
    payload = build_report_payload(_report(), parameters={"rows": 10}, environment=environment_info())
    path = write_report_json(payload, tmp_path / "out" / "report.json")
    decoded = json.loads(path.read_text(encoding="utf-8"))

    assert decoded["schema_version"] == REPORT_SCHEMA_VERSION
    assert decoded["complete"] is False
    assert decoded["parameters"] == {"rows": 10}
    assert decoded["timings"]["alpha|tsv"]["n"] == 3.0
    assert len(decoded["results"]) == 4
    assert decoded["failures"][0]["strategy_name"] == "gamma"
    assert decoded["incomplete"] == [{"strategy_name": "beta", "input_label": "tsv.gz", "completed_replicates": 1}]
    assert "polars" in decoded["environment"]["packages"]


def test_report_payload_includes_fixture_stats(fixture_set):
    payload = build_report_payload(_report(), fixtures=fixture_set)
    assert set(payload["fixtures"]["files"]) == {"tsv", "tsv_gz", "hdf5"}
    assert payload["fixtures"]["size_stats"]["tsv_bytes"] == fixture_set.tsv.bytes


def test_write_results_csv(tmp_path):
    path = write_results_csv(_results(), tmp_path / "results.csv")
    with path.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == 4
    assert rows[0]["strategy_name"] == "alpha"
    assert float(rows[3]["elapsed"]) == 4.0


def test_plot_results_writes_png(tmp_path):
    path = plot_results(_results(), tmp_path / "plots" / "timings.png")
    assert path.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"


def test_plot_results_requires_data(tmp_path):
    with pytest.raises(ValueError):
        plot_results([], tmp_path / "empty.png")
