import pytest
from pydantic import ValidationError

from core_config import Settings
from core_config.constants import SSE_HEADERS, SSE_MEDIA_TYPE


def test_stream_defaults_match_reference_cadence(monkeypatch):
    monkeypatch.delenv("STREAM_CHUNK_SIZE", raising=False)
    monkeypatch.delenv("STREAM_TICK_MS", raising=False)
    s = Settings(_env_file=None)
    # constants are read at import time; pytest-env pins the tick for the suite
    assert s.stream_chunk_size >= 1
    assert s.session_ttl_sec == 0
    assert s.api_prefix == "/api"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("STREAM_CHUNK_SIZE", "8")
    monkeypatch.setenv("STREAM_TICK_MS", "5")
    monkeypatch.setenv("SESSION_TTL_SEC", "120")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    s = Settings(_env_file=None)
    assert (s.stream_chunk_size, s.stream_tick_ms, s.session_ttl_sec) == (8, 5, 120)
    assert s.cors_origin_list == ["https://a.example", "https://b.example"]


@pytest.mark.parametrize("field, value", [
    ("STREAM_CHUNK_SIZE", 0),
    ("STREAM_TICK_MS", -1),
    ("SESSION_TTL_SEC", -5),
])
def test_invalid_values_are_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


def test_prefix_is_normalised():
    assert Settings(_env_file=None, API_PREFIX="campaigns/").api_prefix == "/campaigns"
    assert Settings(_env_file=None, API_PREFIX="").api_prefix == ""


def test_sse_constants():
    assert SSE_MEDIA_TYPE == "text/event-stream"
    assert SSE_HEADERS["Cache-Control"] == "no-cache"
    assert SSE_HEADERS["Connection"] == "keep-alive"
