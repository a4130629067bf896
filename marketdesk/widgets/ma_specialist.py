"""M&A view: deal economics, strategic rationale and recent deal news."""

import asyncio
from typing import Any

from pydantic import Field

from marketdesk.agent.entities import EntityDescriptor
from marketdesk.widgets.base import (
    TaskFailure,
    WidgetContext,
    WidgetOutput,
    as_dict,
    as_list,
    dumps,
    source,
    synthesize,
)

PROMPT_ID = "ma-specialist"
DEFAULT_PROMPT = (
    "You are an M&A specialist. Assess deal economics, strategic rationale, recent "
    "deals and risks. Return JSON."
)
NEWS_LIMIT = 20


class MASpecialistData(WidgetOutput):
    summary: str
    deal_economics: dict[str, Any] | None = None
    strategic_rationale: dict[str, Any] | None = None
    recent_deals: list[dict[str, Any]] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> MASpecialistData:
    ticker = entity.ticker
    if not ticker:
        raise TaskFailure("Ticker required for M&A analysis")

    fmp = ctx.providers.fmp
    quote, profile, news = await asyncio.gather(
        fmp.quote(ticker), fmp.profile(ticker), fmp.news(ticker, NEWS_LIMIT)
    )
    if not (quote.usable or profile.usable):
        raise TaskFailure(f"Could not fetch company data for {ticker}")

    analysis = await synthesize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Assess M&A potential for {entity.display_name} ({ticker}):
Quote: {dumps(quote.unwrap_or(None))}
Profile: {dumps(profile.unwrap_or(None))}
Recent news: {dumps(news.unwrap_or([]))}

Return JSON with summary, dealEconomics, strategicRationale, recentDeals and risks.""",
        fallback={"summary": "Analysis format error"},
    )

    return MASpecialistData(
        summary=str(analysis.get("summary") or f"M&A analysis for {ticker}"),
        deal_economics=as_dict(analysis.get("dealEconomics")),
        strategic_rationale=as_dict(analysis.get("strategicRationale")),
        recent_deals=[d for d in as_list(analysis.get("recentDeals")) if isinstance(d, dict)],
        risks=[str(r) for r in as_list(analysis.get("risks"))],
        sources=[source(ctx, "Financial Modeling Prep", "https://financialmodelingprep.com")],
        last_updated=ctx.timestamp(),
    )
