"""Financial statement and ratio analysis from FMP fundamentals."""

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

PROMPT_ID = "financial-analyst"
DEFAULT_PROMPT = (
    "You are a CFA analysing financial statements and ratios. Return JSON with "
    "summary, financialMetrics, ratios, valuation and earningsQuality."
)
PERIODS = 4


class FinancialAnalystData(WidgetOutput):
    summary: str
    financial_metrics: dict[str, Any] | None = None
    ratios: dict[str, Any] | None = None
    valuation: dict[str, Any] | None = None
    earnings_quality: list[str] = Field(default_factory=list)


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> FinancialAnalystData:
    ticker = entity.ticker
    if not ticker:
        raise TaskFailure("Ticker required for financial analysis")

    fmp = ctx.providers.fmp
    quote, statements, ratios, profile = await asyncio.gather(
        fmp.quote(ticker),
        fmp.income_statements(ticker, PERIODS),
        fmp.ratios(ticker, PERIODS),
        fmp.profile(ticker),
    )
    if not (statements.usable or ratios.usable):
        raise TaskFailure(f"No financial statements available for {ticker}")

    analysis = await synthesize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Analyze the financials of {entity.display_name} ({ticker}):
Quote: {dumps(quote.unwrap_or(None))}
Profile: {dumps(profile.unwrap_or(None))}
Income statements (last {PERIODS} years): {dumps(statements.unwrap_or([]))}
Ratios (last {PERIODS} years): {dumps(ratios.unwrap_or([]))}

Return JSON with summary, financialMetrics, ratios, valuation and earningsQuality (array of strings).""",
        fallback={"summary": "Analysis format error"},
    )

    return FinancialAnalystData(
        summary=str(analysis.get("summary") or f"Financial analysis for {ticker}"),
        financial_metrics=as_dict(analysis.get("financialMetrics")),
        ratios=as_dict(analysis.get("ratios")),
        valuation=as_dict(analysis.get("valuation")),
        earnings_quality=[str(x) for x in as_list(analysis.get("earningsQuality"))],
        sources=[source(ctx, "Financial Modeling Prep", "https://financialmodelingprep.com")],
        last_updated=ctx.timestamp(),
    )
