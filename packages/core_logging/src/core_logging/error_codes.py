from enum import Enum

class ErrorCode(str, Enum):
    """
    Canonical error codes carried in the ``code`` field of error bodies.
    """
    invalid_source        = "invalid_source"
    session_not_found     = "session_not_found"
    no_sources_connected  = "no_sources_connected"
    serialization_failed  = "serialization_failed"
    validation_failed     = "validation_failed"
    internal              = "internal"

__all__ = ["ErrorCode"]
