from fastapi import FastAPI
from fastapi.testclient import TestClient

from core_http.errors import ServiceError, attach_standard_error_handlers, error_body
from core_logging.error_codes import ErrorCode


class _Teapot(ServiceError):
    code = ErrorCode.invalid_source
    status_code = 418


def _app() -> FastAPI:
    app = FastAPI()
    attach_standard_error_handlers(app, service="core_http_test")

    @app.get("/teapot")
    async def teapot():
        raise _Teapot("short and stout", request_id="ignored")

    @app.get("/typed")
    async def typed(n: int):
        return {"n": n}

    return app


def test_service_error_envelope():
    resp = TestClient(_app()).get("/teapot")
    assert resp.status_code == 418
    body = resp.json()
    assert body["error"] == "short and stout"
    assert body["code"] == "invalid_source"
    assert body["request_id"]


def test_validation_envelope():
    resp = TestClient(_app()).get("/typed", params={"n": "nope"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "validation_failed"
    assert body["details"]["errors"]


def test_http_exception_passthrough():
    resp = TestClient(_app()).get("/missing")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Not Found"


def test_error_body_shape():
    assert error_body("boom", ErrorCode.internal, "rid") == {"error": "boom", "code": "internal", "request_id": "rid"}
