import os


# Streaming cadence (the "typing" effect). Both are cosmetic knobs: the
# delivered text is identical for any positive chunk size.
STREAM_CHUNK_SIZE = int(os.getenv("STREAM_CHUNK_SIZE", "50"))
STREAM_TICK_MS = int(os.getenv("STREAM_TICK_MS", "50"))

# Campaign type used when the client omits ?type= (or sends it empty)
DEFAULT_CAMPAIGN_TYPE = os.getenv("DEFAULT_CAMPAIGN_TYPE", "general")

# Session retention. 0 keeps sessions for the lifetime of the process.
SESSION_TTL_SEC = int(os.getenv("SESSION_TTL_SEC", "0"))
SESSION_SWEEP_INTERVAL_SEC = int(os.getenv("SESSION_SWEEP_INTERVAL_SEC", "60"))

CAMPAIGN_PORT = int(os.getenv("PORT", "5001"))
API_PREFIX = os.getenv("API_PREFIX", "/api")

# Media type and headers for the push channel
SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    # nginx and friends buffer proxied responses unless told otherwise
    "X-Accel-Buffering": "no",
}
