"""
core_utils.fastapi_bootstrap — one-call FastAPI wiring for the service.

  • Standard instrumentation (tracing, request logging, /metrics).
  • CORS from settings so the demo UI on another origin can call the API.
  • Health endpoints are attached explicitly by the service
    (see core_utils.health.attach_health_routes).
"""
from __future__ import annotations
from typing import Iterable

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from core_observability.fastapi import instrument_app


def setup_service(
    app: FastAPI,
    service_name: str,
    *,
    cors_origins: Iterable[str] = (),
    ttfb_label_route: bool = True,
    attach_metrics_endpoint: bool = True,
) -> None:
    """
    Apply standard wiring to `app`:

      • Tracing + request logging (+/metrics) via core_observability.fastapi.instrument_app
      • Optional CORS via starlette CORSMiddleware

    Idempotent for instrumentation; CORS is added once per app.
    """
    instrument_app(app, service_name, ttfb_label_route=ttfb_label_route, attach_metrics_endpoint=attach_metrics_endpoint)

    origins = [o for o in cors_origins if o]
    if origins and not getattr(app.state, "cors_installed", False):
        app.state.cors_installed = True
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            # Browsers reject credentialed requests against a wildcard origin.
            allow_credentials="*" not in origins,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["x-request-id", "x-trace-id"],
        )

__all__ = ["setup_service"]
