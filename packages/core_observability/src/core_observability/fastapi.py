from __future__ import annotations
import os
from .otel import init_tracing, instrument_fastapi_app
from core_logging.request_logging import attach_request_logging

def instrument_app(
    app,
    service_name: str | None = None,
    *,
    ttfb_label_route: bool = True,
    attach_metrics_endpoint: bool = True,
) -> None:
    """
    One-call FastAPI instrumentation:
      • sets up the OTEL tracer (prefers OTEL_* env),
      • installs the server-span middleware,
      • installs structured request logging with consistent metric prefixes,
      • optionally exposes Prometheus ``/metrics``.
    """
    svc = service_name or os.getenv("OTEL_SERVICE_NAME") or os.getenv("SERVICE_NAME") or "campaign_api"
    # Request logging is added first so the span middleware (added last) wraps it
    # and log lines see the active trace id.
    attach_request_logging(app, service=svc, metric_prefix=svc, ttfb_label_route=ttfb_label_route)
    init_tracing(svc)
    instrument_fastapi_app(app, service_name=svc)
    if attach_metrics_endpoint:
        from core_metrics.fastapi import attach_prometheus_endpoint
        attach_prometheus_endpoint(app)
