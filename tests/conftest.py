from __future__ import annotations

import pytest

from hapbench.config import clear_runtime_defaults_cache, reset_runtime_defaults_load_telemetry
from hapbench.fixtures import FixtureWorkspace
from hapbench.generator import generate

SMALL_ROWS = 120
SMALL_GENOTYPE_COLUMNS = 4


@pytest.fixture
def small_table():
    return generate(SMALL_ROWS, SMALL_GENOTYPE_COLUMNS, nchromosomes=12, max_position=10_000, seed=7)


@pytest.fixture
def fixture_set(tmp_path, small_table):
    with FixtureWorkspace(tmp_path / "fixtures", keep=True) as workspace:
        yield workspace.write_fixtures(small_table)


@pytest.fixture(autouse=True)
def _fresh_runtime_defaults(monkeypatch):
    monkeypatch.delenv("HAPBENCH_DEFAULTS_PATH", raising=False)
    clear_runtime_defaults_cache()
    reset_runtime_defaults_load_telemetry()
    yield
    clear_runtime_defaults_cache()
