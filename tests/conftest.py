"""
Shared fixtures for the campaign service tests.

1. A pretty unified-diff assertion helper for clearer dict-vs-dict failures.
2. Factories for an isolated app (fresh store, zero-tick emitter) per test.
"""

import json
import difflib
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from core_config import Settings


# --------------------------------------------------------------------------- #
# Pretty diff for dict comparisons                                            #
# --------------------------------------------------------------------------- #
def pytest_assertrepr_compare(op, left, right):
    """Pretty unified-diff output when comparing two dicts with ==."""
    if isinstance(left, dict) and isinstance(right, dict) and op == "==":
        lhs = json.dumps(left, indent=2, sort_keys=True).splitlines()
        rhs = json.dumps(right, indent=2, sort_keys=True).splitlines()
        return [""] + list(
            difflib.unified_diff(lhs, rhs, fromfile="left", tofile="right")
        )


FIXED_NOW = datetime(2024, 3, 5, 9, 30, 15, 123456, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def catalog():
    from campaign_api.catalog import Catalog
    return Catalog()


@pytest.fixture
def store(catalog):
    from campaign_api.sessions import SessionStore
    return SessionStore(catalog)


@pytest.fixture
def generator(catalog):
    from campaign_api.generator import CampaignGenerator
    return CampaignGenerator(catalog, clock=lambda: FIXED_NOW, id_factory=lambda: "cmp-test-1")


@pytest.fixture
def settings():
    return Settings(STREAM_CHUNK_SIZE=50, STREAM_TICK_MS=0, SESSION_TTL_SEC=0)


@pytest.fixture
def app(settings, store, generator):
    from campaign_api.app import create_app
    return create_app(settings, store=store, generator=generator)


@pytest.fixture
def client(app):
    # context-managed => lifespan (= startup/shutdown) events fire
    with TestClient(app) as c:
        yield c
