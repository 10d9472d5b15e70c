from __future__ import annotations

import os
import tomllib
from importlib import resources as importlib_resources
from pathlib import Path

_RESOURCE_PACKAGE = "hapbench.config"
DEFAULTS_FILENAME = "defaults.toml"
DEFAULTS_PATH_ENV_VAR = "HAPBENCH_DEFAULTS_PATH"
MAX_CONFIG_BYTES = 1 << 20


def _load_result(source: str, location: str, *, payload=None, error_kind=None, **extra) -> dict:
    result = {
        "ok": error_kind is None,
        "payload": payload if payload is not None else {},
        "source": source,
        "path": location,
        "error_kind": error_kind,
    }
    result.update(extra)
    return result


def _parse_toml_bytes(raw: bytes, *, source: str, location: str) -> dict:
    if len(raw) > MAX_CONFIG_BYTES:
        return _load_result(source, location, error_kind="oversized", size_bytes=len(raw))
    try:
        payload = tomllib.loads(raw.decode("utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError):
        return _load_result(source, location, error_kind="invalid_toml")
    return _load_result(source, location, payload=payload, size_bytes=len(raw))


def load_toml_detailed(path: Path | str, *, source: str = "file") -> dict:
    """Read one TOML file without raising.

    The result always carries ``ok``, ``payload``, ``source``, ``path`` and
    ``error_kind`` (``missing``, ``unreadable``, ``oversized`` or
    ``invalid_toml`` on failure, ``None`` on success).
    """
    path = Path(path).expanduser()
    location = str(path)
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        return _load_result(source, location, error_kind="missing")
    except OSError:
        return _load_result(source, location, error_kind="unreadable")
    if size > MAX_CONFIG_BYTES:
        return _load_result(source, location, error_kind="oversized", size_bytes=size)
    try:
        raw = path.read_bytes()
    except OSError:
        return _load_result(source, location, error_kind="unreadable")
    return _parse_toml_bytes(raw, source=source, location=location)


def load_packaged_runtime_defaults_detailed() -> dict:
    location = f"{_RESOURCE_PACKAGE}/{DEFAULTS_FILENAME}"
    resource = importlib_resources.files(_RESOURCE_PACKAGE).joinpath(DEFAULTS_FILENAME)
    try:
        raw = resource.read_bytes()
    except FileNotFoundError:
        return _load_result("packaged_toml", location, error_kind="missing")
    except OSError:
        return _load_result("packaged_toml", location, error_kind="unreadable")
    return _parse_toml_bytes(raw, source="packaged_toml", location=location)


def runtime_defaults_override_path() -> Path | None:
    override = os.getenv(DEFAULTS_PATH_ENV_VAR, "").strip()
    return Path(override) if override else None


def load_runtime_defaults_override_detailed() -> dict | None:
    path = runtime_defaults_override_path()
    if path is None:
        return None
    return load_toml_detailed(path, source="override_toml")
