from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any


def _normalize(obj: Any) -> Any:
    if hasattr(obj, "value"):
        return obj.value
    if isinstance(obj, dict):
        return {str(k): _normalize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_normalize(v) for v in obj]
    return obj


def to_json_safe_dict(obj: Any) -> dict[str, Any]:
    """
    Convert a dataclass object into a JSON safe dict.

    Request and result dataclasses map one to one onto the ABS wire format and
    the task output contract, so this is all the encoding they need.
    """
    raw = asdict(obj)
    normalized = _normalize(raw)
    if not isinstance(normalized, dict):
        raise TypeError("expected dict after normalization")
    return normalized


def encode_body(obj: Any) -> bytes:
    """Encode a request dataclass as a UTF-8 JSON body."""
    return json.dumps(to_json_safe_dict(obj)).encode("utf-8")


def error_payload(kind: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Task error shape.

    {"_error": {"kind": ..., "msg": ..., "details": {...}}}
    """
    err: dict[str, Any] = {"kind": kind, "msg": message}
    if details is not None:
        err["details"] = details
    return {"_error": err}
