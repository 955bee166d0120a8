from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from core_config.constants import (
    API_PREFIX,
    CAMPAIGN_PORT,
    DEFAULT_CAMPAIGN_TYPE,
    SESSION_SWEEP_INTERVAL_SEC,
    SESSION_TTL_SEC,
    STREAM_CHUNK_SIZE,
    STREAM_TICK_MS,
)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field(default="dev", alias="ENVIRONMENT")
    service_name: str = Field(default="campaign_api", alias="SERVICE_NAME")
    service_log_level: str = Field(default="INFO", alias="SERVICE_LOG_LEVEL")

    # HTTP surface
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=CAMPAIGN_PORT, alias="PORT")
    api_prefix: str = Field(default=API_PREFIX, alias="API_PREFIX")
    # The demo UI runs on another origin; "*" mirrors the permissive default.
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    # ── Push channel cadence ───────────────────────────────────────
    stream_chunk_size: int = Field(default=STREAM_CHUNK_SIZE, alias="STREAM_CHUNK_SIZE")
    stream_tick_ms: int = Field(default=STREAM_TICK_MS, alias="STREAM_TICK_MS")
    default_campaign_type: str = Field(default=DEFAULT_CAMPAIGN_TYPE, alias="DEFAULT_CAMPAIGN_TYPE")

    # ── Session retention ──────────────────────────────────────────
    session_ttl_sec: int = Field(default=SESSION_TTL_SEC, alias="SESSION_TTL_SEC")
    session_sweep_interval_sec: int = Field(default=SESSION_SWEEP_INTERVAL_SEC, alias="SESSION_SWEEP_INTERVAL_SEC")

    @field_validator("stream_chunk_size")
    @classmethod
    def _chunk_size_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("STREAM_CHUNK_SIZE must be >= 1")
        return v

    @field_validator("stream_tick_ms", "session_ttl_sec")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("api_prefix")
    @classmethod
    def _normalize_prefix(cls, v: str) -> str:
        v = (v or "").strip().rstrip("/")
        if v and not v.startswith("/"):
            v = f"/{v}"
        return v

    @property
    def cors_origin_list(self) -> list[str]:
        """Comma/space separated CORS_ORIGINS as a list."""
        return [p for p in (self.cors_origins or "").replace(",", " ").split() if p]

def get_settings() -> "Settings":
    return Settings()  # type: ignore
