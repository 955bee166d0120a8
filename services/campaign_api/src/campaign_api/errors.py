"""
Domain errors for the campaign service.

Every error here is raised *before* a push channel opens and is rendered by
``core_http.errors`` as ``{"error": <message>, "code": ..., "request_id": ...}``.
The messages are part of the client contract; the UI shows them verbatim.
"""
from __future__ import annotations

from core_http.errors import ServiceError
from core_logging.error_codes import ErrorCode


class CampaignError(ServiceError):
    status_code = 400
    default_message = "Campaign request failed"

    def __init__(self, message: str | None = None, **details) -> None:
        super().__init__(message or self.default_message, **details)


class InvalidSourceError(CampaignError):
    code = ErrorCode.invalid_source
    default_message = "Invalid data source"


class SessionNotFoundError(CampaignError):
    code = ErrorCode.session_not_found
    default_message = "No session found. Please connect data sources first."


class NoSourcesConnectedError(CampaignError):
    code = ErrorCode.no_sources_connected
    default_message = "No data sources connected"


class SerializationError(CampaignError):
    code = ErrorCode.serialization_failed
    status_code = 500
    default_message = "Campaign document could not be serialized"


__all__ = [
    "CampaignError",
    "InvalidSourceError",
    "SessionNotFoundError",
    "NoSourcesConnectedError",
    "SerializationError",
]
