from __future__ import annotations

import logging
from uuid import uuid4

from hapbench.util.json import json_dumps

_TRUNCATED_SUFFIX = "...<truncated>"
_MAX_LOG_STRING_CHARS = 2048
JOB_ID_LEN = 12


def _truncate_log_value(value):
    if isinstance(value, str) and len(value) > _MAX_LOG_STRING_CHARS:
        return value[:_MAX_LOG_STRING_CHARS] + _TRUNCATED_SUFFIX
    return value


def new_job_id(prefix: str | None = None) -> str:
    token = uuid4().hex[:JOB_ID_LEN]
    cleaned = str(prefix or "").strip()
    if cleaned:
        return f"{cleaned}_{token}"
    return token


def log_structured_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields,
) -> dict[str, object]:
    payload: dict[str, object] = {"event": str(event)}
    payload.update({k: _truncate_log_value(v) for k, v in fields.items() if v is not None})
    if logger.isEnabledFor(level):
        logger.log(level, json_dumps(payload))
    return payload
