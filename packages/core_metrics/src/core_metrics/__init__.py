"""
core_metrics – tiny helpers so the service can record counters / histograms /
gauges without sprinkling metric plumbing through request handlers.

Values are always written to the in-process Prometheus registry (scraped at
``/metrics``) and, when an OpenTelemetry meter provider is available, to OTLP
as well. Attributes are forwarded to OTEL; Prometheus series stay unlabelled
unless a counter opts in with ``prom_labels``.
"""

from __future__ import annotations

import os
import threading
from typing import Any, Dict, Sequence, cast

from opentelemetry import metrics as _otel_metrics
from prometheus_client import (
    REGISTRY as _PROM_REGISTRY,
    Counter as _pCounter,
    Histogram as _pHistogram,
    Gauge as _pGauge,
)

_P_COUNTERS: Dict[str, _pCounter] = {}
_P_HISTOS: Dict[str, _pHistogram] = {}
_P_GAUGES: Dict[str, _pGauge] = {}

# ── OpenTelemetry meter (no-op until a MeterProvider is installed) ──────────
_svc = os.getenv("OTEL_SERVICE_NAME") or os.getenv("SERVICE_NAME") or "campaign_api"
_METER = _otel_metrics.get_meter(f"{_svc}.core_metrics", version="0.1.0")

_COUNTERS: Dict[str, Any] = {}
_HISTOS: Dict[str, Any] = {}
_LOCK = threading.Lock()


def _existing(name: str) -> Any:
    # Collectors survive app re-creation in tests; reuse instead of re-registering.
    return _PROM_REGISTRY._names_to_collectors.get(name)  # type: ignore[attr-defined]


def counter(name: str, inc: int | float = 1, *, prom_labels: Sequence[str] = (), **attrs: Any) -> None:
    """
    Increment *name* by *inc* (default 1).

    ``prom_labels`` names the attributes that also become Prometheus labels;
    the first call for a name fixes its label set.
    """
    with _LOCK:
        c = _COUNTERS.get(name) or _METER.create_counter(name)
        _COUNTERS[name] = c
    c.add(inc, attributes=attrs or {})

    with _LOCK:
        pc = _P_COUNTERS.get(name)
        if pc is None:
            existing = _existing(name)
            pc = cast(_pCounter, existing) if existing is not None else _pCounter(
                name, f"Counter for {name}", labelnames=tuple(prom_labels),
            )
            _P_COUNTERS[name] = pc
    if prom_labels:
        pc.labels(**{k: str(attrs.get(k, "")) for k in prom_labels}).inc(inc)
    else:
        pc.inc(inc)


def histogram(name: str, value: float, **attrs: Any) -> None:
    """
    Record *value* in histogram *name*.
    """
    with _LOCK:
        h = _HISTOS.get(name) or _METER.create_histogram(name)
        _HISTOS[name] = h
    h.record(value, attributes=attrs or {})

    with _LOCK:
        ph = _P_HISTOS.get(name)
        if ph is None:
            existing = _existing(name)
            ph = cast(_pHistogram, existing) if existing is not None else _pHistogram(name, f"Histogram for {name}")
            _P_HISTOS[name] = ph
    ph.observe(value)


def _gauge(name: str) -> _pGauge:
    with _LOCK:
        g = _P_GAUGES.get(name)
        if g is None:
            existing = _existing(name)
            g = cast(_pGauge, existing) if existing is not None else _pGauge(name, f"Gauge for {name}")
            _P_GAUGES[name] = g
    return g


def gauge(name: str, value: float) -> None:
    """Set Prometheus **Gauge** *name* to *value*."""
    _gauge(name).set(value)


def gauge_add(name: str, delta: float) -> None:
    """Move Prometheus **Gauge** *name* by *delta* (e.g. +1 / -1 for open streams)."""
    _gauge(name).inc(delta)


__all__ = ["counter", "histogram", "gauge", "gauge_add"]
