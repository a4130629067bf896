"""News impact - recent coverage with sentiment and an impact hypothesis per item."""

from typing import Any, Literal

from pydantic import Field, field_validator

from marketdesk.agent.entities import EntityDescriptor
from marketdesk.widgets.base import (
    TaskFailure,
    WidgetContext,
    WidgetModel,
    WidgetOutput,
    as_list,
    dumps,
    source,
    synthesize,
)

PROMPT_ID = "news-impact"
DEFAULT_PROMPT = (
    "You are a financial news analyst. For each article give a sentiment and a short "
    "impact hypothesis. Return JSON with summary and news."
)
MAX_ARTICLES = 10


class NewsItem(WidgetModel):
    title: str
    source: str = ""
    time: str = ""
    sentiment: Literal["pos", "neg", "mix"] = "mix"
    impact_hypothesis: str = ""
    url: str = ""

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment(cls, value: Any) -> str:
        text = str(value or "").lower()
        if text.startswith("pos") or text == "bullish":
            return "pos"
        if text.startswith("neg") or text == "bearish":
            return "neg"
        return "mix"


class NewsImpactData(WidgetOutput):
    summary: str
    news: list[NewsItem] = Field(default_factory=list)


def _item(raw: Any) -> NewsItem | None:
    if not isinstance(raw, dict) or not raw.get("title"):
        return None
    return NewsItem(
        title=str(raw["title"]),
        source=str(raw.get("source") or ""),
        time=str(raw.get("time") or ""),
        sentiment=raw.get("sentiment"),
        impact_hypothesis=str(raw.get("impactHypothesis") or ""),
        url=str(raw.get("url") or ""),
    )


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> NewsImpactData:
    query = entity.company_name or entity.ticker
    if not query:
        raise TaskFailure("News impact needs a company name or ticker")

    # NewsAPI first, GDELT when it is unavailable
    result = await ctx.providers.newsapi.company_news(query)
    sources = [source(ctx, "News API", "https://newsapi.org")]
    if not result.usable or not result.value:
        result = await ctx.providers.gdelt.recent_news(query)
        sources = [source(ctx, "GDELT DOC 2.0", "https://www.gdeltproject.org")]

    if not result.usable or not result.value:
        raise TaskFailure(f"No recent news found for {query}")

    articles = result.value[:MAX_ARTICLES]
    analysis = await synthesize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Analyze these news articles for {query}:
{dumps(articles)}

Return JSON with:
- summary (string)
- news (array of {{title, source, time, sentiment: "pos" | "neg" | "mix", impactHypothesis, url}})""",
        fallback={"summary": "Analysis format error", "news": []},
    )

    return NewsImpactData(
        summary=str(analysis.get("summary") or f"Recent news for {query}"),
        news=[item for item in map(_item, as_list(analysis.get("news"))) if item is not None],
        sources=sources,
        last_updated=ctx.timestamp(),
    )
