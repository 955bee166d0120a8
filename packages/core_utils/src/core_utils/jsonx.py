from __future__ import annotations
from typing import Any, Mapping

import orjson
from pydantic import BaseModel

__all__ = ["dumps_ordered", "dumps_pretty", "sanitize"]

def sanitize(obj: Any) -> Any:
    """Recursively convert *obj* into something JSON-serialisable.

    - Exceptions → {"error": <Type>, "message": str(e)}
    - Pydantic models → model_dump(mode="json")
    - bytes → UTF-8 string (replacement on errors)
    - sets/tuples → lists
    - datetimes → isoformat()
    - anything else → str(obj)
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, BaseException):
        return {"error": obj.__class__.__name__, "message": str(obj)}

    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")

    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).decode("utf-8", "replace")

    if isinstance(obj, Mapping):
        return {str(k): sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [sanitize(v) for v in obj]

    if hasattr(obj, "isoformat"):
        return obj.isoformat()

    return str(obj)

def dumps_ordered(obj: Any) -> str:
    """
    Compact JSON that keeps mapping insertion order.

    This is the wire form of push-channel frames: the client renders the
    terminal document as-is, so key order must survive the round trip.
    """
    return orjson.dumps(obj, default=sanitize).decode("utf-8")

def dumps_pretty(obj: Any) -> str:
    """
    Two-space indented JSON, insertion order kept, non-ASCII emitted verbatim.

    Strict on purpose: there is no ``default=`` hook, so a value orjson
    cannot encode raises ``orjson.JSONEncodeError`` (a ``TypeError``).
    """
    return orjson.dumps(obj, option=orjson.OPT_INDENT_2).decode("utf-8")
