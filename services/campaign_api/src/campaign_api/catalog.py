"""
Static catalog of connectable data sources and delivery channels.

The payloads are canned; nothing here talks to a real platform. Ids are
the wire identifiers the client sends, names are what it displays.
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Tuple

from pydantic import BaseModel, ConfigDict, Field

CostTier = Literal["low", "medium", "high"]


class DataSource(BaseModel):
    id: str
    name: str
    type: str
    mock_data: Dict[str, Any] = Field(default_factory=dict, serialization_alias="mockData")
    model_config = ConfigDict(frozen=True)


class Channel(BaseModel):
    id: str
    name: str
    best_for: List[str] = Field(default_factory=list, serialization_alias="bestFor")
    avg_engagement: float = Field(serialization_alias="avgEngagement")
    cost: CostTier
    # Per-recipient distribution cost in USD
    unit_cost: float
    platforms: List[str] = Field(default_factory=list)
    model_config = ConfigDict(frozen=True)


DATA_SOURCES: Tuple[DataSource, ...] = (
    DataSource(
        id="facebook-pixel",
        name="Facebook Pixel",
        type="tracking",
        mock_data={
            "activeUsers": 15420,
            "pageViews": 45230,
            "conversionRate": 3.2,
            "topPages": ["/products", "/checkout", "/about"],
            "demographics": {"age": "25-34", "gender": "Mixed", "location": "US, UK, CA"},
        },
    ),
    DataSource(
        id="shopify",
        name="Shopify",
        type="ecommerce",
        mock_data={
            "totalCustomers": 8450,
            "activeProducts": 234,
            "averageOrderValue": 85.50,
            "topProducts": ["Wireless Earbuds", "Smart Watch", "Phone Case"],
            "recentOrders": 1250,
            "customerSegments": {"highValue": 850, "returning": 3200, "new": 4400},
        },
    ),
    DataSource(
        id="google-ads",
        name="Google Ads Tag",
        type="advertising",
        mock_data={
            "impressions": 125000,
            "clicks": 4500,
            "ctr": 3.6,
            "conversions": 180,
            "costPerClick": 1.25,
            "topKeywords": ["best headphones", "wireless earbuds", "smart watch deals"],
            "performance": {"excellent": 45, "good": 35, "needsWork": 20},
        },
    ),
)

CHANNELS: Tuple[Channel, ...] = (
    Channel(
        id="email",
        name="Email",
        best_for=["detailed content", "newsletters", "product launches"],
        avg_engagement=22.5,
        cost="low",
        unit_cost=0.01,
        platforms=["SendGrid", "Mailchimp", "AWS SES"],
    ),
    Channel(
        id="sms",
        name="SMS",
        best_for=["urgent messages", "flash sales", "time-sensitive"],
        avg_engagement=45.3,
        cost="medium",
        unit_cost=0.05,
        platforms=["Twilio", "MessageBird", "AWS SNS"],
    ),
    Channel(
        id="whatsapp",
        name="WhatsApp",
        best_for=["personal engagement", "customer support", "order updates"],
        avg_engagement=38.7,
        cost="medium",
        unit_cost=0.03,
        platforms=["Twilio WhatsApp API", "WhatsApp Business API"],
    ),
    Channel(
        id="ads",
        name="Ads",
        best_for=["broad reach", "brand awareness", "retargeting"],
        avg_engagement=12.8,
        cost="high",
        unit_cost=0.50,
        platforms=["Facebook Ads", "Google Ads", "TikTok Ads"],
    ),
)


class Catalog:
    """Read-only lookup over the data-source and channel tables."""

    def __init__(
        self,
        sources: Tuple[DataSource, ...] = DATA_SOURCES,
        channels: Tuple[Channel, ...] = CHANNELS,
    ) -> None:
        self._sources: Dict[str, DataSource] = {s.id: s for s in sources}
        self._channels: Dict[str, Channel] = {c.id: c for c in channels}

    def is_source(self, source_id: str) -> bool:
        return source_id in self._sources

    def is_channel(self, channel_id: str) -> bool:
        return channel_id in self._channels

    def source(self, source_id: str) -> DataSource:
        return self._sources[source_id]

    def channel(self, channel_id: str) -> Channel:
        return self._channels[channel_id]

    def source_names(self, source_ids) -> List[str]:
        return [self._sources[s].name for s in source_ids]

    def source_summaries(self) -> List[Dict[str, Any]]:
        return [{"id": s.id, "name": s.name, "type": s.type} for s in self._sources.values()]

    def channel_summaries(self) -> List[Dict[str, Any]]:
        return [{"id": c.id, "name": c.name, "bestFor": list(c.best_for)} for c in self._channels.values()]


__all__ = ["CostTier", "DataSource", "Channel", "DATA_SOURCES", "CHANNELS", "Catalog"]
