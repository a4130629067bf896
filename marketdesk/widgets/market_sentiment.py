"""Market sentiment read from recent GDELT coverage."""

from typing import Any, Literal

from pydantic import Field

from marketdesk.agent.entities import EntityDescriptor
from marketdesk.widgets.base import (
    TaskFailure,
    WidgetContext,
    WidgetModel,
    WidgetOutput,
    as_dict,
    as_list,
    dumps,
    source,
    synthesize,
)

PROMPT_ID = "market-sentiment"
DEFAULT_PROMPT = (
    "You are a market sentiment analyst. Classify sentiment as bullish, bearish or "
    "neutral with a 0-100 confidence. Return JSON."
)
MAX_ARTICLES = 20

FALLBACK = {
    "overallSentiment": "neutral",
    "confidence": 0,
    "indicators": [],
    "summary": "Analysis format error",
    "socialMediaBuzz": {"volume": "low", "sentiment": "mixed"},
}


class SentimentIndicator(WidgetModel):
    metric: str
    value: str = ""
    trend: str = ""
    explanation: str = ""


class Buzz(WidgetModel):
    volume: Literal["high", "medium", "low"] = "low"
    sentiment: Literal["positive", "negative", "mixed"] = "mixed"


class MarketSentimentData(WidgetOutput):
    overall_sentiment: Literal["bullish", "bearish", "neutral"] = "neutral"
    confidence: float = 0.0
    indicators: list[SentimentIndicator] = Field(default_factory=list)
    summary: str = ""
    social_media_buzz: Buzz = Field(default_factory=Buzz)


def _choice(value: Any, allowed: tuple[str, ...], default: str) -> str:
    text = str(value or "").lower()
    return text if text in allowed else default


def _indicator(raw: Any) -> SentimentIndicator | None:
    if not isinstance(raw, dict) or not raw.get("metric"):
        return None
    return SentimentIndicator(
        metric=str(raw["metric"]),
        value=str(raw.get("value") if raw.get("value") is not None else ""),
        trend=str(raw.get("trend") or ""),
        explanation=str(raw.get("explanation") or ""),
    )


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> MarketSentimentData:
    query = entity.company_name or entity.ticker or "market"
    result = await ctx.providers.gdelt.recent_news(query)
    if not result.usable:
        raise TaskFailure(result.message or f"No coverage found for {query}")

    articles = (result.value or [])[:MAX_ARTICLES]
    analysis = await synthesize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Assess market sentiment for {query} from these {len(articles)} recent articles:
{dumps(articles)}

Return JSON with overallSentiment, confidence, indicators (array of {{metric, value, trend, explanation}}), summary and socialMediaBuzz {{volume, sentiment}}.""",
        fallback=FALLBACK,
    )

    buzz = as_dict(analysis.get("socialMediaBuzz")) or {}
    try:
        confidence = max(0.0, min(100.0, float(analysis.get("confidence") or 0)))
    except (TypeError, ValueError):
        confidence = 0.0

    return MarketSentimentData(
        overall_sentiment=_choice(
            analysis.get("overallSentiment"), ("bullish", "bearish", "neutral"), "neutral"
        ),
        confidence=confidence,
        indicators=[i for i in map(_indicator, as_list(analysis.get("indicators"))) if i],
        summary=str(analysis.get("summary") or ""),
        social_media_buzz=Buzz(
            volume=_choice(buzz.get("volume"), ("high", "medium", "low"), "low"),
            sentiment=_choice(buzz.get("sentiment"), ("positive", "negative", "mixed"), "mixed"),
        ),
        sources=[source(ctx, "GDELT DOC 2.0", "https://www.gdeltproject.org")],
        last_updated=ctx.timestamp(),
    )
