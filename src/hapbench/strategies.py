"""Named loader strategies for the delimited genotype table.

Each strategy is one configuration of a table reader. The variation between
strategies is spelled out as a capability set rather than inferred from
which optional arguments a reader accepts:

- ``needs_type_hints``: per-column types are declared before parsing.
- ``needs_row_count_hint``: the expected row count is passed up front.
- ``emits_categorical``: chromosome and genotype columns are dictionary
  encoded.
- ``supports_compressed``: the reader accepts the gzip copy of the file.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from hapbench.errors import InvalidParameter, StrategyUnsupported
from hapbench.generator import INT64_TYPE, STRING_TYPE
from hapbench.util.deps import quote_sql_string, require_duckdb, require_pandas, require_polars

SEPARATOR = "\t"
# Columns dictionary-encoded by categorical strategies besides genotype calls.
CATEGORICAL_METADATA_COLUMNS = ("chromosome",)
CATEGORY_TYPE = "category"

LoaderFn = Callable[..., Any]


@dataclass(frozen=True)
class LoaderStrategy:
    name: str
    loader: LoaderFn
    description: str = ""
    supports_compressed: bool = True
    needs_type_hints: bool = False
    needs_row_count_hint: bool = False
    emits_categorical: bool = False
    column_types: Mapping[str, str] | None = None

    def capabilities(self) -> dict[str, bool]:
        return {
            "supports_compressed": self.supports_compressed,
            "needs_type_hints": self.needs_type_hints,
            "needs_row_count_hint": self.needs_row_count_hint,
            "emits_categorical": self.emits_categorical,
        }

    def with_column_types(self, column_types: Mapping[str, str] | None) -> "LoaderStrategy":
        return dataclasses.replace(self, column_types=dict(column_types) if column_types else None)

    def load(self, path: Path | str, nrows_hint: int | None = None):
        if self.needs_type_hints and not self.column_types:
            raise StrategyUnsupported(
                f"strategy {self.name} requires declared column types",
                self.name,
            )
        if self.needs_row_count_hint and not nrows_hint:
            raise StrategyUnsupported(
                f"strategy {self.name} requires a row count hint",
                self.name,
            )
        return self.loader(Path(path), column_types=self.column_types, nrows_hint=nrows_hint)


def table_shape(table) -> tuple[int, int]:
    shape = getattr(table, "shape", None)
    if not isinstance(shape, tuple) or len(shape) != 2:
        raise TypeError(f"loader returned an object without a 2-d shape: {type(table).__name__}")
    return int(shape[0]), int(shape[1])


def _categorical_columns(column_types: Mapping[str, str]) -> set[str]:
    # Genotype calls are everything after the fixed metadata block.
    names = list(column_types)
    return set(CATEGORICAL_METADATA_COLUMNS) | set(names[3:])


def _pandas_dtypes(column_types: Mapping[str, str], *, categorical: bool) -> dict[str, Any]:
    dtypes: dict[str, Any] = {}
    categorical_names = _categorical_columns(column_types) if categorical else set()
    for name, logical in column_types.items():
        if name in categorical_names:
            dtypes[name] = CATEGORY_TYPE
        elif logical == INT64_TYPE:
            dtypes[name] = "int64"
        elif logical == STRING_TYPE:
            dtypes[name] = str
        else:
            raise InvalidParameter(f"unknown column type {logical!r} for column {name}")
    return dtypes


def _polars_schema(pl, column_types: Mapping[str, str], *, categorical: bool) -> dict[str, Any]:
    schema: dict[str, Any] = {}
    categorical_names = _categorical_columns(column_types) if categorical else set()
    for name, logical in column_types.items():
        if name in categorical_names:
            schema[name] = pl.Categorical
        elif logical == INT64_TYPE:
            schema[name] = pl.Int64
        elif logical == STRING_TYPE:
            schema[name] = pl.String
        else:
            raise InvalidParameter(f"unknown column type {logical!r} for column {name}")
    return schema


def load_pandas_inferred(path: Path, *, column_types=None, nrows_hint=None):
    pd = require_pandas("load_pandas_inferred")
    return pd.read_csv(path, sep=SEPARATOR)


def load_pandas_typed(path: Path, *, column_types=None, nrows_hint=None):
    pd = require_pandas("load_pandas_typed")
    return pd.read_csv(path, sep=SEPARATOR, dtype=_pandas_dtypes(column_types, categorical=False))


def load_pandas_typed_nrows(path: Path, *, column_types=None, nrows_hint=None):
    pd = require_pandas("load_pandas_typed_nrows")
    return pd.read_csv(
        path,
        sep=SEPARATOR,
        dtype=_pandas_dtypes(column_types, categorical=False),
        nrows=nrows_hint,
    )


def load_pandas_categorical(path: Path, *, column_types=None, nrows_hint=None):
    pd = require_pandas("load_pandas_categorical")
    return pd.read_csv(
        path,
        sep=SEPARATOR,
        dtype=_pandas_dtypes(column_types, categorical=True),
        nrows=nrows_hint,
    )


def load_polars_inferred(path: Path, *, column_types=None, nrows_hint=None):
    pl = require_polars("load_polars_inferred")
    return pl.read_csv(path, separator=SEPARATOR)


def load_polars_typed(path: Path, *, column_types=None, nrows_hint=None):
    pl = require_polars("load_polars_typed")
    return pl.read_csv(
        path,
        separator=SEPARATOR,
        schema=_polars_schema(pl, column_types, categorical=False),
        n_rows=nrows_hint,
    )


def load_polars_categorical(path: Path, *, column_types=None, nrows_hint=None):
    pl = require_polars("load_polars_categorical")
    return pl.read_csv(
        path,
        separator=SEPARATOR,
        schema=_polars_schema(pl, column_types, categorical=True),
        n_rows=nrows_hint,
    )


def load_polars_lazy_scan(path: Path, *, column_types=None, nrows_hint=None):
    pl = require_polars("load_polars_lazy_scan")
    # scan_csv memory-maps the file and cannot read compressed input.
    return pl.scan_csv(path, separator=SEPARATOR).collect()


def load_duckdb_read_csv(path: Path, *, column_types=None, nrows_hint=None):
    duckdb = require_duckdb("load_duckdb_read_csv")
    path_sql = quote_sql_string(str(path))
    con = duckdb.connect(database=":memory:")
    try:
        return con.execute(
            f"SELECT * FROM read_csv({path_sql}, delim='\\t', header=true)"
        ).df()
    finally:
        con.close()


_BUILTIN_STRATEGIES = (
    LoaderStrategy(
        name="pandas_inferred",
        loader=load_pandas_inferred,
        description="pandas.read_csv with inferred column types",
    ),
    LoaderStrategy(
        name="pandas_typed",
        loader=load_pandas_typed,
        description="pandas.read_csv with declared column types",
        needs_type_hints=True,
    ),
    LoaderStrategy(
        name="pandas_typed_nrows",
        loader=load_pandas_typed_nrows,
        description="pandas.read_csv with declared column types and row count",
        needs_type_hints=True,
        needs_row_count_hint=True,
    ),
    LoaderStrategy(
        name="pandas_categorical",
        loader=load_pandas_categorical,
        description="pandas.read_csv with categorical chromosome and genotype columns",
        needs_type_hints=True,
        needs_row_count_hint=True,
        emits_categorical=True,
    ),
    LoaderStrategy(
        name="polars_inferred",
        loader=load_polars_inferred,
        description="polars.read_csv with inferred schema",
    ),
    LoaderStrategy(
        name="polars_typed",
        loader=load_polars_typed,
        description="polars.read_csv with declared schema and row count",
        needs_type_hints=True,
        needs_row_count_hint=True,
    ),
    LoaderStrategy(
        name="polars_categorical",
        loader=load_polars_categorical,
        description="polars.read_csv with categorical chromosome and genotype columns",
        needs_type_hints=True,
        needs_row_count_hint=True,
        emits_categorical=True,
    ),
    LoaderStrategy(
        name="polars_lazy_scan",
        loader=load_polars_lazy_scan,
        description="polars.scan_csv(...).collect() on the uncompressed file",
        supports_compressed=False,
    ),
    LoaderStrategy(
        name="duckdb_read_csv",
        loader=load_duckdb_read_csv,
        description="DuckDB read_csv materialized to pandas",
    ),
)
BUILTIN_STRATEGY_NAMES = tuple(strategy.name for strategy in _BUILTIN_STRATEGIES)


def default_strategies(column_types: Mapping[str, str] | None = None) -> dict[str, LoaderStrategy]:
    """All built-in strategies, with ``column_types`` bound to the typed ones."""
    strategies: dict[str, LoaderStrategy] = {}
    for strategy in _BUILTIN_STRATEGIES:
        if strategy.needs_type_hints:
            strategy = strategy.with_column_types(column_types)
        strategies[strategy.name] = strategy
    return strategies


def select_strategies(
    names: Iterable[str] | None,
    column_types: Mapping[str, str] | None = None,
) -> dict[str, LoaderStrategy]:
    available = default_strategies(column_types)
    if names is None:
        return available
    selected: dict[str, LoaderStrategy] = {}
    unknown: list[str] = []
    for name in names:
        token = str(name).strip()
        if not token or token in selected:
            continue
        if token not in available:
            unknown.append(token)
            continue
        selected[token] = available[token]
    if unknown:
        raise InvalidParameter(
            "unknown strategies: " + ", ".join(unknown) + "; available: " + ", ".join(BUILTIN_STRATEGY_NAMES)
        )
    if not selected:
        raise InvalidParameter("at least one strategy must be selected")
    return selected


def as_strategy(name: str, candidate) -> LoaderStrategy:
    """Accept a ``LoaderStrategy`` or a bare ``load(path, nrows_hint=None)`` callable."""
    if isinstance(candidate, LoaderStrategy):
        if candidate.name != name:
            return dataclasses.replace(candidate, name=name)
        return candidate
    if not callable(candidate):
        raise InvalidParameter(f"strategy {name!r} is neither a LoaderStrategy nor callable")

    def _call(path, *, column_types=None, nrows_hint=None):
        return candidate(path, nrows_hint=nrows_hint)

    return LoaderStrategy(name=name, loader=_call, description=getattr(candidate, "__doc__", None) or "")
