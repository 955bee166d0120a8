from .logger import (
    get_logger,
    log_stage,
    bind_trace_ids,
    bind_request_id,
    current_request_id,
    current_trace_ids,
    log_once_process,
    emit_request_summary,
    record_error,
)

__all__ = [
    "get_logger",
    "log_stage",
    "bind_trace_ids",
    "bind_request_id",
    "current_request_id",
    "current_trace_ids",
    "log_once_process",
    "emit_request_summary",
    "record_error",
]
