from .otel import init_tracing, instrument_fastapi_app
from .fastapi import instrument_app
__all__ = ["init_tracing", "instrument_fastapi_app", "instrument_app"]
