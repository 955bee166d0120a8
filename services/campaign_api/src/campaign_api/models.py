from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class ConnectRequest(BaseModel):
    session_id: str = Field(alias="sessionId", min_length=1)
    source: str
    model_config = ConfigDict(populate_by_name=True)


class ConnectResponse(BaseModel):
    success: bool = True
    # Display name of the source that was just connected
    source: str
    mock_data: Dict[str, Any] = Field(alias="mockData")
    connected_sources: List[str] = Field(alias="connectedSources")
    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: str
