import logging, sys, orjson, os
from typing import Any, Optional, Dict, Iterable
import time
import contextvars

# ────────────────────────────────────────────────────────────
# Request-level aggregation & summary emission
# ────────────────────────────────────────────────────────────
class _ReqAgg:
    __slots__ = ("events","timers","last","errors")
    def __init__(self) -> None:
        self.events: dict[str, dict[str,int]] = {}
        self.timers: dict[str, list[float]] = {}
        self.last: dict[str, Any] = {}
        self.errors: list[dict[str,Any]] = []

_REQ_AGG: contextvars.ContextVar[Optional[_ReqAgg]] = contextvars.ContextVar("REQ_AGG", default=None)

def _get_req_agg() -> _ReqAgg:
    agg = _REQ_AGG.get()
    if agg is None:
        agg = _ReqAgg()
        _REQ_AGG.set(agg)
    return agg

def _should_summarize() -> bool:
    # Default to compact summary mode; set LOG_EMIT_MODE=verbose to disable
    return (os.getenv("LOG_EMIT_MODE", "summary").lower() in ("summary","summarize","compact"))

def _is_error_like(event: str, extras: Dict[str, Any]) -> bool:
    ev = (event or "").lower()
    if "error" in extras or extras.get("level") == "ERROR" or int(extras.get("status_code") or 200) >= 500:
        return True
    # A client walking away mid-stream is a normal outcome, not a failure.
    if extras.get("outcome") == "closed_client_gone":
        return False
    for k in ("error","failed","exception","invalid","rejected"):
        if k in ev:
            return True
    return False

def _always_emit(stage: str, event: str) -> bool:
    # Request bookends and stream lifecycle are kept even in summary mode
    if stage == "request" and event in ("request_start","request_end"):
        return True
    if stage == "stream" and event in ("stream.open","stream.closed"):
        return True
    return False

def _iter_latencies_ms(extras: Dict[str, Any]) -> Iterable[float]:
    v = extras.get("latency_ms")
    if isinstance(v, (int, float)):
        yield float(v)

def _agg_note(stage: str, event: str, extras: Dict[str, Any]) -> None:
    agg = _get_req_agg()
    st = agg.events.setdefault(stage, {})
    st[event] = st.get(event, 0) + 1
    for v in _iter_latencies_ms(extras):
        agg.timers.setdefault(stage, []).append(v)
    for k in ("request_id","session_id","campaign_type"):
        v = extras.get(k)
        if isinstance(v, str) and v:
            agg.last[k] = v
    http = extras.get("http")
    if isinstance(http, dict):
        m = http.get("method")
        t = http.get("target")
        if isinstance(m, str) and m:
            agg.last["method"] = m
        if isinstance(t, str) and t:
            agg.last["path"] = t
    if _is_error_like(event, extras):
        agg.errors.append({
            "stage": stage,
            "event": event,
            "attrs": {k: v for k, v in extras.items() if k not in ("message","event")}
        })
    tid, _ = current_trace_ids()
    if tid and "trace_id" not in agg.last:
        agg.last["trace_id"] = tid

def emit_request_summary(logger: logging.Logger, *, service: Optional[str]=None) -> None:
    """Emit one compact per-request summary line when summary mode is active."""
    if not _should_summarize():
        return
    agg = _REQ_AGG.get()
    if not agg:
        return
    timers = {}
    for stage, vals in agg.timers.items():
        if not vals:
            continue
        srt = sorted(vals)
        n   = len(srt)
        timers[stage] = {
            "count": n,
            "sum_ms": round(sum(srt), 3),
            "p50_ms": round(float(srt[int(0.5*(n-1))]), 3),
            "max_ms": round(max(srt), 3),
        }
    payload = {
        "stage": "summary",
        "service": service or os.getenv("SERVICE_NAME") or logger.name,
        "counts": {k: sum(v.values()) for k,v in agg.events.items()},
        "events": agg.events,
        "timers": timers,
        **agg.last,
        "error_count": len(agg.errors),
    }
    rid = current_request_id()
    if rid and not payload.get("request_id"):
        payload["request_id"] = rid
    logger.info("request_summary", extra=_sanitize_extra(payload))
    _REQ_AGG.set(None)

# ────────────────────────────────────────────────────────────
# Error helpers
# ────────────────────────────────────────────────────────────
def record_error(
    code: str,
    *,
    where: str,
    message: str,
    logger: logging.Logger,
    level: str = "ERROR",
    **extras: Any,
) -> None:
    """
    Emit one normalized error line *and* stash a crumb for the request
    summary. Safe to call from any failure path.
    """
    agg = _get_req_agg()
    agg.errors.append({"code": str(code), "where": str(where), "message": str(message)})
    levelno = getattr(logging, (level or "ERROR").upper(), logging.ERROR)
    payload = {
        "stage": extras.pop("stage", None) or "error",
        "error_code": code,
        "error_message": message,
        "where": where,
        **extras,
    }
    logger.log(levelno, "error", extra=_sanitize_extra(payload))

# ────────────────────────────────────────────────────────────
# Context binding (request id, trace ids)
# ────────────────────────────────────────────────────────────
_TRACE_IDS: contextvars.ContextVar[tuple[Optional[str], Optional[str]]] = \
    contextvars.ContextVar("_TRACE_IDS", default=(None, None))
_REQUEST_ID: contextvars.ContextVar[Optional[str]] = \
    contextvars.ContextVar("_REQUEST_ID", default=None)

def bind_trace_ids(trace_id: Optional[str], span_id: Optional[str]) -> None:
    """Bind trace/span IDs into the local context for logging fallbacks."""
    _TRACE_IDS.set((trace_id, span_id))

def bind_request_id(request_id: Optional[str]) -> None:
    """Bind the current request_id into the local context for log injection."""
    _REQUEST_ID.set(request_id)

def current_request_id() -> Optional[str]:
    """Return the currently bound request_id (if any)."""
    return _REQUEST_ID.get()

def current_trace_ids() -> tuple[Optional[str], Optional[str]]:
    """Return the currently bound (trace_id, span_id) pair, if any."""
    return _TRACE_IDS.get()


class _RequestIdFilter(logging.Filter):
    """Inject the bound request_id (if any) into LogRecords that lack it."""
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            rid = _REQUEST_ID.get()
            if rid:
                record.request_id = rid
        return True

# Reserved LogRecord attributes we must not overwrite
_RESERVED: set[str] = {
    "name","msg","args","levelname","levelno",
    "pathname","filename","module","exc_info","exc_text","stack_info",
    "lineno","funcName","created","msecs","relativeCreated",
    "thread","threadName","processName","process","message","asctime",
    "taskName",
}

# Fields promoted to the top level of the envelope; the rest goes under ``meta``
_TOP_LEVEL: set[str] = {
    "ts",
    "level",
    "service",
    "stage",
    "latency_ms",
    "request_id",
    "session_id",
    "message",
    "status_code",
    "path",
    "method",
    "outcome",
    "trace_id",
    "span_id",
}

def _default(obj):
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="ignore")
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)

class JsonFormatter(logging.Formatter):
    """Emit one JSON object per line.

    Top‑level keys follow ``_TOP_LEVEL``; everything else is nested under ``meta``.
    """

    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(getattr(record, "created", time.time()))),
            "level": record.levelname,
            "service": os.getenv("SERVICE_NAME", record.name),
            # Canonical event key (do not duplicate as `message`)
            "event": record.getMessage(),
        }

        # Attach OTEL trace identifiers if present; otherwise use local fallback.
        trace_id = None
        try:
            from opentelemetry import trace as _otel_trace  # type: ignore
            ctx = _otel_trace.get_current_span().get_span_context()  # type: ignore[attr-defined]
            if getattr(ctx, "trace_id", 0):
                trace_id = f"{ctx.trace_id:032x}"
        except ImportError:
            pass
        if not trace_id:
            trace_id, _ = _TRACE_IDS.get()
        if trace_id:
            base["trace_id"] = trace_id

        meta: Dict[str, Any] = {}
        for key, val in record.__dict__.items():
            if key in _RESERVED:
                continue
            if key in _TOP_LEVEL:
                base[key] = val
            else:
                meta[key] = val

        msg_extra = record.__dict__.get("message_extra", None)
        if msg_extra is not None:
            base["message"] = msg_extra
            meta.pop("message_extra", None)

        if record.exc_info:
            meta["exc"] = self.formatException(record.exc_info)

        if meta:
            base["meta"] = meta

        return orjson.dumps(base, default=_default).decode("utf-8")

class StructuredLogger(logging.Logger):
    """
    A drop-in `logging.Logger` replacement that **accepts arbitrary keyword
    arguments** (e.g. `logger.info("msg", stage="stream")`) and transparently
    merges them into the `extra` mapping.
    """

    def _log(                                   # noqa: PLR0913 – keep signature
        self,
        level: int,
        msg: str,
        args,
        exc_info=None,
        extra: Dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **kwargs: Any,
    ) -> None:
        if kwargs:
            extra = {**(extra or {}), **kwargs}
        extra = _sanitize_extra(extra)
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel,
        )


class DynamicStdoutHandler(logging.StreamHandler):
    """
    Ensures every *emit* writes to **the current** `sys.stdout`, so tests that
    use ``redirect_stdout`` capture lines from loggers built before the redirect.
    """

    def emit(self, record: logging.LogRecord) -> None:  # noqa: D401
        self.setStream(sys.stdout)
        super().emit(record)


logging.setLoggerClass(StructuredLogger)


def get_logger(name: str = "app", level: str | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    is_service_root = "." not in name  # only top-level names own handlers

    if is_service_root:
        if not logger.handlers:
            handler = DynamicStdoutHandler()
            handler.setFormatter(JsonFormatter())
            logger.addHandler(handler)
        logger.propagate = False
    else:
        # Leaf/module loggers never own handlers; let them bubble to the service root.
        for h in list(logger.handlers):
            logger.removeHandler(h)
        logger.propagate = True

    logger.setLevel(level or os.getenv("SERVICE_LOG_LEVEL", "INFO"))
    if not any(isinstance(f, _RequestIdFilter) for f in getattr(logger, "filters", [])):
        logger.addFilter(_RequestIdFilter())
    return logger

def _emit_stage_log(logger: logging.Logger, stage: str, event: str, **extras: Any):
    payload = {"stage": stage, **extras}
    # In summary mode: aggregate most breadcrumbs, but always keep bookends and errors.
    if _should_summarize() and not _always_emit(stage, event) and not _is_error_like(event, payload):
        _agg_note(stage, event, payload)
        return
    _agg_note(stage, event, payload)
    if _is_error_like(event, payload):
        logger.warning(event, extra=_sanitize_extra(payload))
    else:
        logger.info(event, extra=_sanitize_extra(payload))

def log_stage(logger: logging.Logger, stage: str, event: str, **fixed: Any) -> None:
    """
    log_stage(logger, "stream", "stream.open", request_id=rid, session_id=sid)

    In summary mode (default) ordinary breadcrumbs are folded into the
    per-request summary line; stream bookends and error-like events are
    always written.
    """
    _emit_stage_log(logger, stage, event, **fixed)

def _sanitize_extra(extra: Dict[str, Any] | None) -> Dict[str, Any]:
    """
    Remove/rename keys in `extra` that would collide with LogRecord attributes.
    - `message` is remapped to `message_extra` to preserve content.
    - all other collisions are namespaced as `meta_<key>`.
    """
    if not extra:
        return {}
    safe: Dict[str, Any] = {}
    for k, v in extra.items():
        lk = str(k)
        if lk == "meta" and isinstance(v, dict):
            for mk, mv in v.items():
                mk_norm = str(mk)
                safe[f"meta_{mk_norm}" if mk_norm in _RESERVED else mk_norm] = mv
            continue

        if lk in _RESERVED:
            if lk == "message":
                safe["message_extra"] = v
            else:
                safe[f"meta_{lk}"] = v
        else:
            safe[lk] = v
    return safe

# ---------------------------------------------------------------------------#
# log_once_process – emit a line only once per process key                    #
# ---------------------------------------------------------------------------#
_ONCE_KEYS: set[str] = set()
def log_once_process(logger: logging.Logger, key: str, *, level: int = logging.INFO, event: str, **kwargs: Any) -> None:
    """
    Emit a structured log exactly once per *key* for the lifetime of the process.
    Useful for one-shot diagnostics (e.g. effective stream cadence at startup).
    """
    if key in _ONCE_KEYS:
        return
    _ONCE_KEYS.add(key)
    logger.log(level, event, extra=_sanitize_extra(kwargs))
