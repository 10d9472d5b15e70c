from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping

from hapbench.config.loader import (
    load_packaged_runtime_defaults_detailed,
    load_runtime_defaults_override_detailed,
)
from hapbench.util.logging import log_structured_event

_MAX_CONFIG_STRING_LENGTH = 128
_MAX_CONFIG_INT = 1_000_000_000
_MAX_CONFIG_LIST_ITEMS = 64
RUNTIME_DEFAULTS_SCHEMA_VERSION = 1
_RUNTIME_DEFAULTS_LOG = logging.getLogger("hapbench.config.runtime_defaults")
_RUNTIME_DEFAULTS_LOAD_TELEMETRY = {
    "source": "unknown",
    "fallback_activations": 0,
    "error_kind": None,
    "schema_status": "unknown",
}


@dataclass(frozen=True)
class GeneratorDefaults:
    nrows: int = 2000
    ngenotype_columns: int = 1000
    nchromosomes: int = 12
    max_position: int = 1_000_000
    seed: int | None = 42
    placeholder: str = "N"


@dataclass(frozen=True)
class BenchmarkDefaults:
    replicates: int = 5
    strategies: tuple[str, ...] = (
        "pandas_inferred",
        "pandas_typed",
        "pandas_typed_nrows",
        "pandas_categorical",
        "polars_inferred",
        "polars_typed",
        "polars_categorical",
        "polars_lazy_scan",
        "duckdb_read_csv",
    )
    time_budget_seconds: float | None = None


@dataclass(frozen=True)
class FixtureDefaults:
    basename: str = "hapmap"
    hdf5_group: str = "tables"
    hdf5_dataset: str = "hapmap"
    gzip_level: int = 6
    keep: bool = False


@dataclass(frozen=True)
class RuntimeDefaults:
    generator: GeneratorDefaults
    benchmark: BenchmarkDefaults
    fixtures: FixtureDefaults


_BUILTIN_RUNTIME_DEFAULTS = RuntimeDefaults(
    generator=GeneratorDefaults(),
    benchmark=BenchmarkDefaults(),
    fixtures=FixtureDefaults(),
)


def _set_runtime_defaults_telemetry(
    *,
    source: str,
    error_kind: str | None,
    schema_status: str,
    used_fallback: bool,
) -> None:
    if used_fallback:
        _RUNTIME_DEFAULTS_LOAD_TELEMETRY["fallback_activations"] = (
            int(_RUNTIME_DEFAULTS_LOAD_TELEMETRY["fallback_activations"]) + 1
        )
    _RUNTIME_DEFAULTS_LOAD_TELEMETRY["source"] = source
    _RUNTIME_DEFAULTS_LOAD_TELEMETRY["error_kind"] = error_kind
    _RUNTIME_DEFAULTS_LOAD_TELEMETRY["schema_status"] = schema_status
    log_structured_event(
        _RUNTIME_DEFAULTS_LOG,
        logging.WARNING if used_fallback else logging.DEBUG,
        "runtime_defaults_source",
        source=source,
        schema_status=schema_status,
        error_kind=error_kind,
        used_fallback=bool(used_fallback),
        fallback_activations=int(_RUNTIME_DEFAULTS_LOAD_TELEMETRY["fallback_activations"]),
    )


def runtime_defaults_load_telemetry() -> dict[str, object]:
    return dict(_RUNTIME_DEFAULTS_LOAD_TELEMETRY)


def reset_runtime_defaults_load_telemetry() -> None:
    _RUNTIME_DEFAULTS_LOAD_TELEMETRY["source"] = "unknown"
    _RUNTIME_DEFAULTS_LOAD_TELEMETRY["fallback_activations"] = 0
    _RUNTIME_DEFAULTS_LOAD_TELEMETRY["error_kind"] = None
    _RUNTIME_DEFAULTS_LOAD_TELEMETRY["schema_status"] = "unknown"


def _to_mapping(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    return {}


def _schema_status(payload: Mapping[str, Any], *, require_schema: bool) -> tuple[bool, str]:
    raw = _to_mapping(payload.get("meta")).get("schema_version")
    if raw is None:
        if require_schema:
            return False, "missing"
        return True, "absent"
    try:
        version = int(raw)
    except (TypeError, ValueError):
        return False, "mismatch"
    if version != RUNTIME_DEFAULTS_SCHEMA_VERSION:
        return False, "mismatch"
    return True, "ok"


def _parse_positive_int(raw: Any, default: int) -> int:
    if isinstance(raw, bool):
        return int(default)
    try:
        parsed = int(raw)
    except (TypeError, ValueError):
        return int(default)
    if parsed <= 0:
        return int(default)
    return min(parsed, _MAX_CONFIG_INT)


def _parse_optional_seed(raw: Any, default: int | None) -> int | None:
    if raw is None:
        return default
    if isinstance(raw, str) and raw.strip().lower() in {"", "none", "random"}:
        return None
    if isinstance(raw, bool):
        return default
    try:
        parsed = int(raw)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default


def _parse_optional_positive_float(raw: Any, default: float | None) -> float | None:
    if raw is None or isinstance(raw, bool):
        return default
    try:
        parsed = float(raw)
    except (TypeError, ValueError):
        return default
    if parsed <= 0:
        return None
    return parsed


def _parse_bool(raw: Any, default: bool) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in {"1", "true", "yes", "on"}:
            return True
        if value in {"0", "false", "no", "off"}:
            return False
    return bool(default)


def _parse_small_string(raw: Any, default: str) -> str:
    if raw is None:
        return str(default)
    value = str(raw).strip()
    if not value or len(value) > _MAX_CONFIG_STRING_LENGTH:
        return str(default)
    return value


def _parse_placeholder(raw: Any, default: str) -> str:
    value = _parse_small_string(raw, default)
    if any(ch in value for ch in ("\t", "\r", "\n")):
        return str(default)
    return value


def _parse_gzip_level(raw: Any, default: int) -> int:
    if isinstance(raw, bool):
        return int(default)
    try:
        parsed = int(raw)
    except (TypeError, ValueError):
        return int(default)
    if not 0 <= parsed <= 9:
        return int(default)
    return parsed


def _parse_small_string_list(raw: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    if not isinstance(raw, (list, tuple)):
        return tuple(default)
    result: list[str] = []
    for value in raw:
        if len(result) >= _MAX_CONFIG_LIST_ITEMS:
            break
        item = str(value).strip()
        if not item or len(item) > _MAX_CONFIG_STRING_LENGTH or item in result:
            continue
        result.append(item)
    if not result:
        return tuple(default)
    return tuple(result)


def parse_runtime_defaults(payload: Mapping[str, Any] | None, *, base: RuntimeDefaults | None = None) -> RuntimeDefaults:
    root = _to_mapping(payload)
    runtime_base = _BUILTIN_RUNTIME_DEFAULTS if base is None else base

    generator_raw = _to_mapping(root.get("generator"))
    generator_base = runtime_base.generator
    generator = GeneratorDefaults(
        nrows=_parse_positive_int(generator_raw.get("nrows"), generator_base.nrows),
        ngenotype_columns=_parse_positive_int(
            generator_raw.get("ngenotype_columns"),
            generator_base.ngenotype_columns,
        ),
        nchromosomes=_parse_positive_int(generator_raw.get("nchromosomes"), generator_base.nchromosomes),
        max_position=_parse_positive_int(generator_raw.get("max_position"), generator_base.max_position),
        seed=_parse_optional_seed(generator_raw.get("seed"), generator_base.seed),
        placeholder=_parse_placeholder(generator_raw.get("placeholder"), generator_base.placeholder),
    )

    benchmark_raw = _to_mapping(root.get("benchmark"))
    benchmark_base = runtime_base.benchmark
    benchmark = BenchmarkDefaults(
        replicates=_parse_positive_int(benchmark_raw.get("replicates"), benchmark_base.replicates),
        strategies=_parse_small_string_list(benchmark_raw.get("strategies"), benchmark_base.strategies),
        time_budget_seconds=_parse_optional_positive_float(
            benchmark_raw.get("time_budget_seconds"),
            benchmark_base.time_budget_seconds,
        ),
    )

    fixtures_raw = _to_mapping(root.get("fixtures"))
    fixtures_base = runtime_base.fixtures
    fixtures = FixtureDefaults(
        basename=_parse_small_string(fixtures_raw.get("basename"), fixtures_base.basename),
        hdf5_group=_parse_small_string(fixtures_raw.get("hdf5_group"), fixtures_base.hdf5_group),
        hdf5_dataset=_parse_small_string(fixtures_raw.get("hdf5_dataset"), fixtures_base.hdf5_dataset),
        gzip_level=_parse_gzip_level(fixtures_raw.get("gzip_level"), fixtures_base.gzip_level),
        keep=_parse_bool(fixtures_raw.get("keep"), fixtures_base.keep),
    )
    return RuntimeDefaults(generator=generator, benchmark=benchmark, fixtures=fixtures)


@lru_cache(maxsize=1)
def get_runtime_defaults() -> RuntimeDefaults:
    packaged = load_packaged_runtime_defaults_detailed()
    packaged_payload = packaged.get("payload")
    if not packaged.get("ok", False) or not isinstance(packaged_payload, Mapping):
        packaged_error = packaged.get("error_kind")
        _set_runtime_defaults_telemetry(
            source="builtin_fallback",
            error_kind=f"packaged_{packaged_error}" if packaged_error else "packaged_load_error",
            schema_status="missing",
            used_fallback=True,
        )
        return _BUILTIN_RUNTIME_DEFAULTS

    schema_ok, schema_state = _schema_status(packaged_payload, require_schema=True)
    if not schema_ok:
        _set_runtime_defaults_telemetry(
            source="builtin_fallback",
            error_kind="missing_packaged_schema" if schema_state == "missing" else "packaged_schema_mismatch",
            schema_status=schema_state,
            used_fallback=True,
        )
        return _BUILTIN_RUNTIME_DEFAULTS

    parsed = parse_runtime_defaults(packaged_payload)
    source = "packaged_toml"
    error_kind = None

    override = load_runtime_defaults_override_detailed()
    if override is not None:
        override_payload = override.get("payload")
        if override.get("ok", False) and isinstance(override_payload, Mapping):
            override_ok, override_state = _schema_status(override_payload, require_schema=False)
            if override_ok:
                parsed = parse_runtime_defaults(override_payload, base=parsed)
                source = "override_toml"
                schema_state = override_state
            else:
                error_kind = "override_schema_mismatch"
                schema_state = override_state
        else:
            error_kind = f"override_{override.get('error_kind') or 'invalid_shape'}"

    _set_runtime_defaults_telemetry(
        source=source,
        error_kind=error_kind,
        schema_status=schema_state,
        used_fallback=False,
    )
    return parsed


def clear_runtime_defaults_cache() -> None:
    get_runtime_defaults.cache_clear()
