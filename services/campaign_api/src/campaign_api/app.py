from __future__ import annotations

import asyncio
import contextlib
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import StreamingResponse

from core_config import Settings, get_settings
from core_config.constants import SSE_HEADERS, SSE_MEDIA_TYPE
from core_http.errors import attach_standard_error_handlers
from core_logging import current_request_id, get_logger, log_stage
from core_utils.fastapi_bootstrap import setup_service
from core_utils.health import attach_health_routes

from .catalog import Catalog
from .errors import NoSourcesConnectedError
from .generator import CampaignGenerator, DocumentGenerator, iso_z
from .models import ConnectRequest, ConnectResponse, HealthResponse
from .sessions import SessionStore, sweep_expired_sessions
from .streaming import ChunkedStreamEmitter

logger = get_logger("campaign_api")

router = APIRouter()


def parse_channels(raw: Optional[str], catalog: Catalog) -> Tuple[List[str], List[str]]:
    """
    Split a comma separated ``channels`` query value.

    Returns ``(known, dropped)``; blanks are ignored, order is kept.
    """
    known: List[str] = []
    dropped: List[str] = []
    for part in (raw or "").split(","):
        cid = part.strip()
        if not cid:
            continue
        (known if catalog.is_channel(cid) else dropped).append(cid)
    return known, dropped


# ──────────────────────────────────────────────────────────────────────────────
# Catalog & session routes
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=iso_z(datetime.now(timezone.utc)))


@router.get("/data-sources")
async def data_sources(request: Request) -> list:
    return request.app.state.catalog.source_summaries()


@router.get("/channels")
async def channels(request: Request) -> list:
    return request.app.state.catalog.channel_summaries()


@router.post("/connect", response_model=ConnectResponse)
async def connect(body: ConnectRequest, request: Request) -> ConnectResponse:
    state = request.app.state
    names = state.store.connect(body.session_id, body.source)
    source = state.catalog.source(body.source)
    return ConnectResponse(
        source=source.name,
        mock_data=dict(source.mock_data),
        connected_sources=names,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Push channel
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/generate-campaign")
async def generate_campaign(
    request: Request,
    session_id: str = Query("", alias="sessionId"),
    campaign_type: str = Query("", alias="type"),
    channels: str = Query(""),
):
    """
    Validate the session, build the campaign document and stream it.

    Every failure happens before the StreamingResponse is returned, so the
    client either gets a plain JSON error or a stream that only ends by
    completing or by the client leaving.
    """
    state = request.app.state
    settings: Settings = state.settings
    req_id = getattr(request.state, "request_id", None) or current_request_id()

    sources = state.store.get_connected_sources(session_id)
    if not sources:
        raise NoSourcesConnectedError(session_id=session_id)

    campaign_type = campaign_type.strip() or settings.default_campaign_type
    selected, dropped = parse_channels(channels, state.catalog)
    if dropped:
        log_stage(
            logger, "generate", "generate.channels_dropped",
            session_id=session_id, request_id=req_id, dropped=dropped,
        )

    t0 = time.perf_counter()
    document = state.generator(sources, campaign_type, selected)
    log_stage(
        logger, "generate", "generate.done",
        session_id=session_id, request_id=req_id, campaign_type=campaign_type,
        sources=list(sources), channels=selected,
        latency_ms=round((time.perf_counter() - t0) * 1000.0, 3),
    )
    session = state.emitter.prepare(document, session_id=session_id, request_id=req_id)

    return StreamingResponse(
        state.emitter.stream(session, is_disconnected=request.is_disconnected),
        media_type=SSE_MEDIA_TYPE,
        headers=dict(SSE_HEADERS),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Application factory
# ──────────────────────────────────────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[SessionStore] = None,
    generator: Optional[DocumentGenerator] = None,
    emitter: Optional[ChunkedStreamEmitter] = None,
    catalog: Optional[Catalog] = None,
) -> FastAPI:
    settings = settings if settings is not None else get_settings()
    catalog = catalog if catalog is not None else Catalog()
    if store is None:
        store = SessionStore(catalog, ttl_seconds=settings.session_ttl_sec)
    if generator is None:
        generator = CampaignGenerator(catalog)
    if emitter is None:
        emitter = ChunkedStreamEmitter(
            chunk_size=settings.stream_chunk_size,
            tick_ms=settings.stream_tick_ms,
        )

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        log_stage(
            logger, "init", "config",
            environment=settings.environment,
            chunk_size=emitter.chunk_size, tick_ms=emitter.tick_ms,
            session_ttl_sec=store.ttl_seconds,
            request_id="startup",
        )
        sweeper: Optional[asyncio.Task] = None
        if store.ttl_seconds > 0:
            sweeper = asyncio.create_task(
                sweep_expired_sessions(store, settings.session_sweep_interval_sec)
            )
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper

    app = FastAPI(title="Campaign Stream API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.catalog = catalog
    app.state.store = store
    app.state.generator = generator
    app.state.emitter = emitter

    setup_service(app, settings.service_name, cors_origins=settings.cors_origin_list)
    attach_standard_error_handlers(app, service=settings.service_name)
    attach_health_routes(app, checks={
        "liveness": (lambda: True),
        "readiness": (lambda: {"ready": True, "sessions": len(store)}),
    })
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
