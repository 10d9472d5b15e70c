from __future__ import annotations

from functools import lru_cache
from importlib import import_module

MISSING_DEP_TEMPLATE = "{pkg} is required for {api_name}. Install with: pip install {pkg}"


@lru_cache(maxsize=8)
def _optional_module(module_name):
    try:
        return import_module(module_name)
    except ImportError:
        return None


def _require(module_name, pkg, api_name):
    module = _optional_module(module_name)
    if module is None:
        raise ImportError(MISSING_DEP_TEMPLATE.format(pkg=pkg, api_name=api_name))
    return module


def require_polars(api_name):
    return _require("polars", "polars", api_name)


def require_pandas(api_name):
    return _require("pandas", "pandas", api_name)


def require_duckdb(api_name):
    return _require("duckdb", "duckdb", api_name)


def require_h5py(api_name):
    return _require("h5py", "h5py", api_name)


def require_matplotlib_pyplot(api_name):
    matplotlib = _require("matplotlib", "matplotlib", api_name)
    # Headless backend; must be selected before pyplot is imported.
    matplotlib.use("Agg")
    return _require("matplotlib.pyplot", "matplotlib", api_name)


def quote_sql_string(value):
    return "'" + str(value).replace("'", "''") + "'"
