from hapbench.config.loader import (
    DEFAULTS_PATH_ENV_VAR,
    load_packaged_runtime_defaults_detailed,
    load_runtime_defaults_override_detailed,
    load_toml_detailed,
)
from hapbench.config.runtime_defaults import (
    RUNTIME_DEFAULTS_SCHEMA_VERSION,
    BenchmarkDefaults,
    FixtureDefaults,
    GeneratorDefaults,
    RuntimeDefaults,
    clear_runtime_defaults_cache,
    get_runtime_defaults,
    parse_runtime_defaults,
    reset_runtime_defaults_load_telemetry,
    runtime_defaults_load_telemetry,
)

__all__ = [
    "DEFAULTS_PATH_ENV_VAR",
    "load_toml_detailed",
    "load_packaged_runtime_defaults_detailed",
    "load_runtime_defaults_override_detailed",
    "BenchmarkDefaults",
    "FixtureDefaults",
    "GeneratorDefaults",
    "RuntimeDefaults",
    "RUNTIME_DEFAULTS_SCHEMA_VERSION",
    "parse_runtime_defaults",
    "get_runtime_defaults",
    "clear_runtime_defaults_cache",
    "runtime_defaults_load_telemetry",
    "reset_runtime_defaults_load_telemetry",
]
