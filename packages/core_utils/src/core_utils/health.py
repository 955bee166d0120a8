"""
core_utils.health – health-check routes for FastAPI services.

Provides attach_health_routes() to wire /healthz and /readyz with custom
liveness and readiness checks.
"""

import asyncio
from typing import Awaitable, Callable, Mapping, Union

from fastapi import APIRouter, FastAPI, Request

from core_logging import get_logger, record_error
from core_logging.error_codes import ErrorCode

# A health check can return:
#  - bool
#  - dict (arbitrary JSON body)
#  - Awaitable of either
HealthCheck = Callable[[], Union[bool, dict, Awaitable[Union[bool, dict]]]]
HealthChecks = Mapping[str, HealthCheck]

logger = get_logger("core_utils.health")


def attach_health_routes(app: FastAPI, *, checks: HealthChecks) -> None:
    """
    Register health-check endpoints on the app.

    Args:
        app: FastAPI application
        checks: mapping with keys "liveness" and/or "readiness" to callables.
            Each should return bool or dict (sync or async).

    Endpoints:
        GET /healthz -> { "status": "ok" | "fail" } or custom dict.
        GET /readyz -> readiness check result directly if dict, or
                       { "ready": <bool> }.
    """
    router = APIRouter()

    async def _run_check(name: str, fn: HealthCheck) -> Union[bool, dict]:
        try:
            res = fn()
            if asyncio.iscoroutine(res):
                res = await res
            return res
        except Exception as exc:
            # A failing probe reports "not ok" instead of a 500.
            record_error(
                ErrorCode.internal.value, where=f"health.{name}", message=str(exc),
                logger=logger, level="WARNING",
            )
            return False

    @router.get("/healthz", include_in_schema=False)
    async def _healthz(request: Request):
        if "liveness" not in checks:
            return {"status": "ok"}
        res = await _run_check("liveness", checks["liveness"])
        if isinstance(res, dict):
            return res
        return {"status": "ok" if bool(res) else "fail"}

    @router.get("/readyz", include_in_schema=False)
    async def _readyz(request: Request):
        if "readiness" not in checks:
            return {"ready": True}
        res = await _run_check("readiness", checks["readiness"])
        if isinstance(res, dict):
            return res
        return {"ready": bool(res)}

    app.include_router(router)

__all__ = ["attach_health_routes"]
