from .health import attach_health_routes
from .ids import generate_request_id, generate_campaign_id
from .uvicorn_entry import run
from .sse import sse_data, chunk_frame, terminal_frame
from . import jsonx

__all__ = [
    "attach_health_routes",
    "generate_request_id", "generate_campaign_id",
    "run",
    "sse_data", "chunk_frame", "terminal_frame",
    "jsonx",
]
