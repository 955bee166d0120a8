"""
Rule-based campaign document generator.

The generator is a pure function of its inputs plus two injected sources of
non-determinism (``clock`` and ``id_factory``), so the streaming layer can be
exercised with any document-producing callable.

Document layout (top-level keys, in this order):
``campaign``, ``audience``, ``message``, ``channel``, ``timing``,
``metrics``, ``budget``, ``execution``.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Protocol, Sequence, Tuple

from core_utils.ids import generate_campaign_id

from .catalog import Catalog

Document = Dict[str, Any]


class DocumentGenerator(Protocol):
    def __call__(
        self,
        connected_source_ids: Sequence[str],
        campaign_type: str,
        selected_channel_ids: Sequence[str],
    ) -> Document: ...


# Share of the combined audience a campaign targets
AUDIENCE_SHARE = 0.35
ASSUMED_CONVERSION = 0.05
ASSUMED_ORDER_VALUE = 85.50
SMALL_AUDIENCE = 5000
SHORT_VARIATION_LEN = 80

URGENT_TYPES = ("flash-sale", "urgent")
DETAILED_TYPES = ("product-launch", "detailed")
REACH_TYPES = ("retargeting", "awareness")

EMAIL_SUBJECT = "🎉 Exclusive Offer Inside - Limited Time!"
LONG_FOOTER = (
    "\n\nWhy shop with us?"
    "\n✓ Free shipping on orders over $50"
    "\n✓ 30-day money-back guarantee"
    "\n✓ 24/7 customer support"
    "\n\nDon't miss out on this exclusive opportunity!"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso_z(ts: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def money(amount: float) -> str:
    """``$`` + amount with two decimals, halves rounded away from zero."""
    q = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"${q}"


def short_date(ts: datetime) -> str:
    """M/D/YYYY without zero padding."""
    return f"{ts.month}/{ts.day}/{ts.year}"


def _fmt_number(v: Any) -> str:
    # 85.5 renders as "85.5", 3200 as "3200"
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


class CampaignGenerator:
    """Default :class:`DocumentGenerator` implementation."""

    def __init__(
        self,
        catalog: Catalog,
        *,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = generate_campaign_id,
    ) -> None:
        self._catalog = catalog
        self._clock = clock
        self._id_factory = id_factory

    # ── audience & insights ────────────────────────────────────────────
    def _audience_and_insights(self, sources: Sequence[str]) -> Tuple[int, List[str]]:
        total = 0
        insights: List[str] = []
        for source_id in sources:
            data = self._catalog.source(source_id).mock_data
            if source_id == "facebook-pixel":
                total += data["activeUsers"]
                insights.append(f"High engagement on {', '.join(data['topPages'])}")
                demo = data["demographics"]
                insights.append(f"Primary demographic: {demo['age']} from {demo['location']}")
            elif source_id == "shopify":
                total += data["totalCustomers"]
                insights.append(f"{data['customerSegments']['highValue']} high-value customers identified")
                insights.append(f"Top products: {', '.join(data['topProducts'])}")
                insights.append(f"Average order value: ${_fmt_number(data['averageOrderValue'])}")
            elif source_id == "google-ads":
                # Ad impressions are not a reachable audience; insights only.
                insights.append(f"Strong performance on keywords: {', '.join(data['topKeywords'][:2])}")
                insights.append(f"Current CTR: {_fmt_number(data['ctr'])}% with {data['conversions']} conversions")
        return total, insights

    # ── channel choice ─────────────────────────────────────────────────
    @staticmethod
    def choose_channel(campaign_type: str, selected: Sequence[str], total_audience: int) -> Tuple[str, str]:
        """Return ``(channel_id, reasoning)``."""
        if selected:
            if campaign_type in URGENT_TYPES:
                chosen = "sms" if "sms" in selected else selected[0]
                return chosen, f"Using your selected channel: {chosen} (optimized for urgency)"
            if campaign_type in DETAILED_TYPES:
                chosen = "email" if "email" in selected else selected[0]
                return chosen, f"Using your selected channel: {chosen} (optimized for detailed content)"
            if campaign_type in REACH_TYPES:
                chosen = "ads" if "ads" in selected else selected[0]
                return chosen, f"Using your selected channel: {chosen} (optimized for broad reach)"
            return selected[0], f"Using your selected channel: {selected[0]}"

        if campaign_type in URGENT_TYPES:
            return "sms", "SMS chosen for high urgency and immediate engagement (45.3% avg open rate)"
        if campaign_type in DETAILED_TYPES:
            return "email", "Email chosen for detailed product information and visual content"
        if campaign_type in REACH_TYPES:
            return "ads", "Ads chosen for broad reach and retargeting capabilities"
        if total_audience < SMALL_AUDIENCE:
            return "whatsapp", "WhatsApp chosen for personalized engagement with smaller audience"
        return "email", "Email chosen for cost-effective reach with detailed messaging"

    # ── copy & segment ─────────────────────────────────────────────────
    def _message_and_segment(self, sources: Sequence[str]) -> Tuple[str, str, List[str]]:
        if "shopify" in sources:
            top = self._catalog.source("shopify").mock_data["topProducts"][0]
            return (
                f"Exclusive offer for our valued customers! Get 20% off on {top} "
                "and other premium products. Limited time only!",
                "High-value returning customers",
                [
                    "Purchase history: 2+ orders in last 90 days",
                    "Average order value: $50+",
                    "Active engagement: Last visit within 14 days",
                    "Location: US, UK, CA",
                ],
            )
        return (
            "Special promotion just for you! Discover amazing deals on our best products.",
            "Active engaged users",
            [
                "Active in last 30 days",
                "Engaged with product pages",
                "Primary demographic: 25-34 years old",
            ],
        )

    @staticmethod
    def _open_rate_target(channel_id: str) -> str:
        if channel_id == "email":
            return "25%"
        if channel_id == "sms":
            return "45%"
        return "35%"

    def __call__(
        self,
        connected_source_ids: Sequence[str],
        campaign_type: str,
        selected_channel_ids: Sequence[str] = (),
    ) -> Document:
        sources = list(connected_source_ids)
        selected = list(selected_channel_ids)
        now = self._clock()
        campaign_id = self._id_factory()

        total, insights = self._audience_and_insights(sources)
        channel_id, reasoning = self.choose_channel(campaign_type, selected, total)
        channel = self._catalog.channel(channel_id)

        # Two days out, 2 PM
        optimal = (now + timedelta(days=2)).replace(hour=14, minute=0, second=0, microsecond=0)
        variant_b = optimal + timedelta(hours=1)

        message, segment, criteria = self._message_and_segment(sources)
        targeted = total * AUDIENCE_SHARE
        distribution = money(targeted * channel.unit_cost)

        return {
            "campaign": {
                "id": campaign_id,
                "name": f"AI-Generated Campaign - {short_date(now)}",
                "type": campaign_type,
                "status": "draft",
                "createdAt": iso_z(now),
                "dataSources": self._catalog.source_names(sources),
                "estimatedReach": total,
                "goals": [
                    "Increase conversion rate by 15-20%",
                    "Boost customer engagement",
                    "Drive sales within 48 hours",
                ],
                "insights": insights,
            },
            "audience": {
                "segment": segment,
                "size": math.floor(targeted),
                "criteria": criteria,
                "geography": ["United States", "United Kingdom", "Canada"],
                "expectedReachRate": "85-90%",
            },
            "message": {
                "primary": message,
                "subject": EMAIL_SUBJECT if channel_id == "email" else None,
                "variations": {
                    "short": message[:SHORT_VARIATION_LEN] + "... Shop now!",
                    "medium": message,
                    "long": message + LONG_FOOTER,
                },
                "callToAction": "Shop Now",
                "personalization": {
                    "enabled": True,
                    "fields": ["firstName", "lastPurchase", "favoriteCategory"],
                },
            },
            "channel": {
                "primary": channel_id,
                "name": channel.name,
                "reasoning": reasoning,
                "fallback": "email" if channel_id == "sms" else "sms",
                "estimatedCost": channel.cost,
                "expectedEngagement": f"{_fmt_number(channel.avg_engagement)}%",
            },
            "timing": {
                "optimal": iso_z(optimal),
                "timezone": "America/New_York",
                "reasoning": "Peak engagement window based on historical data (2 PM local time)",
                "sendWindow": "2-4 PM local time",
                "frequency": "one-time",
                "abTestSchedule": {
                    "variantA": iso_z(optimal),
                    "variantB": iso_z(variant_b),
                },
            },
            "metrics": {
                "kpis": [
                    {"name": "Open Rate", "target": self._open_rate_target(channel_id), "current": None},
                    {"name": "Click-Through Rate", "target": "8-12%", "current": None},
                    {"name": "Conversion Rate", "target": "4-6%", "current": None},
                    {
                        "name": "Revenue Generated",
                        "target": money(targeted * ASSUMED_CONVERSION * ASSUMED_ORDER_VALUE),
                        "current": None,
                    },
                ],
                "tracking": {
                    "utmParameters": {
                        "source": "markopolo",
                        "medium": channel_id,
                        "campaign": campaign_id,
                    },
                    "conversionPixels": ["Facebook Pixel"] if "facebook-pixel" in sources else [],
                    "analyticsEnabled": True,
                },
            },
            "budget": {
                "estimated": distribution,
                "breakdown": {
                    "creative": "$200",
                    "distribution": distribution,
                    "tools": "$50",
                },
                "roi_projection": "450-600%",
            },
            "execution": {
                "readyToExecute": True,
                "requiredApprovals": ["Marketing Manager", "Budget Holder"],
                "estimatedSetupTime": "15-30 minutes",
                "platforms": list(channel.platforms),
                "nextSteps": [
                    "Review and approve campaign",
                    "Finalize creative assets",
                    "Set up tracking parameters",
                    "Schedule campaign",
                    "Monitor performance dashboard",
                ],
            },
        }


__all__ = ["Document", "DocumentGenerator", "CampaignGenerator", "iso_z", "money", "short_date"]
