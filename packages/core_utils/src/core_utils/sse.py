"""
Server-Sent Events (SSE) framing for the campaign push channel.

Every frame is a single ``data:`` line carrying compact JSON followed by the
blank line that terminates an SSE event. No ``event:`` field is used; the
client distinguishes frames by the ``done`` flag:

* chunk frame    – ``{"chunk": "<slice>", "done": false}``
* terminal frame – ``{"chunk": "", "done": true, "complete": <document>}``
"""

from typing import Any

from . import jsonx

__all__ = ["sse_data", "chunk_frame", "terminal_frame"]


def sse_data(payload: Any) -> str:
    """Frame *payload* as one SSE ``data:`` event."""
    return f"data: {jsonx.dumps_ordered(payload)}\n\n"


def chunk_frame(chunk: str) -> str:
    return sse_data({"chunk": chunk, "done": False})


def terminal_frame(document: Any) -> str:
    return sse_data({"chunk": "", "done": True, "complete": document})

