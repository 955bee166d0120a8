import os
import re
from typing import Optional

_tracing_ready: bool = False

def init_tracing(service_name: Optional[str] = None) -> None:
    """
    Idempotent OTEL bootstrap. Installs an SDK tracer provider so spans carry
    real ids; an OTLP/HTTP exporter is attached only when
    OTEL_EXPORTER_OTLP_ENDPOINT is set.
    """
    global _tracing_ready
    if _tracing_ready:
        return

    from opentelemetry import trace as _trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.sampling import ParentBased, ALWAYS_ON

    svc = service_name or os.getenv("OTEL_SERVICE_NAME") or os.getenv("SERVICE_NAME") or "campaign_api"
    tp = TracerProvider(resource=Resource.create({"service.name": svc}), sampler=ParentBased(ALWAYS_ON))

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        tp.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=_normalize_http_endpoint(endpoint))))

    _trace.set_tracer_provider(tp)
    _tracing_ready = True

    from opentelemetry.propagate import set_global_textmap
    from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
    set_global_textmap(TraceContextTextMapPropagator())

    from core_logging import get_logger, log_once_process
    log_once_process(
        get_logger(svc), "tracing_setup",
        event="observability.tracing_setup",
        exporter=endpoint or "",
        request_id="startup",
    )

def _normalize_http_endpoint(ep: str) -> str:
    # Ensure HTTP exporter endpoints include the '/v1/traces' suffix.
    if ep.endswith("/v1/traces"):
        return ep
    return ep.rstrip("/") + "/v1/traces"

_XTRACEID_RE = re.compile(r"^[0-9a-fA-F]{32}$")

def instrument_fastapi_app(app, service_name: Optional[str] = None) -> None:
    """
    Adds an HTTP middleware that starts a server span for each request,
    binds its ids into the logging context and echoes them via `x-trace-id`.
    Idempotent: a second call on the same app is a no-op.
    """
    if getattr(app.state, "otel_server_span_installed", False):
        return
    app.state.otel_server_span_installed = True
    init_tracing(service_name)

    from opentelemetry import trace as _trace
    from opentelemetry.propagate import extract
    from core_logging import bind_trace_ids

    tracer = _trace.get_tracer(service_name or os.getenv("OTEL_SERVICE_NAME") or "campaign_api")

    @app.middleware("http")
    async def _otel_server_span(request, call_next):
        name = f"HTTP {request.method} {request.url.path}"
        with tracer.start_as_current_span(name, context=extract(dict(request.headers))) as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("http.route", request.url.path)
            ctx = span.get_span_context()
            tid = f"{ctx.trace_id:032x}" if ctx.trace_id else None
            if not tid:
                upstream = request.headers.get("x-trace-id")
                tid = upstream.lower() if upstream and _XTRACEID_RE.match(upstream) else None
            bind_trace_ids(tid, f"{ctx.span_id:016x}" if ctx.span_id else None)
            response = await call_next(request)
            if tid:
                response.headers["x-trace-id"] = tid
            # Clear bound ids (avoid leakage across requests in worker reuse)
            bind_trace_ids(None, None)
            return response
