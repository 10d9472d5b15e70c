from __future__ import annotations

import json as _stdlib_json

try:
    import orjson as _orjson
except Exception:  # pragma: no cover
    _orjson = None

if _orjson is not None:
    _JSON_BACKEND = "orjson"
else:
    _JSON_BACKEND = "json"


def json_backend() -> str:
    return _JSON_BACKEND


def json_loads(payload):
    if _orjson is not None:
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return _orjson.loads(payload)
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8")
    return _stdlib_json.loads(payload)


def json_dumps(payload, *, indent: bool = False) -> str:
    if _orjson is not None:
        option = _orjson.OPT_INDENT_2 if indent else 0
        try:
            return _orjson.dumps(payload, default=str, option=option).decode("utf-8")
        except TypeError:
            # orjson rejects non-str dict keys; stdlib json coerces them.
            pass
    return _stdlib_json.dumps(
        payload,
        default=str,
        ensure_ascii=False,
        indent=2 if indent else None,
        separators=None if indent else (",", ":"),
    )
