"""Intraday price action and short-term setups."""

import asyncio
from typing import Any

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

PROMPT_ID = "day-trader"
DEFAULT_PROMPT = (
    "You are a day trader. Read intraday price action and propose setups. Return JSON "
    "with summary, priceAction, technicalIndicators and tradingSetups."
)
MAX_BARS = 50


class IntradayBar(WidgetModel):
    time: str
    price: float
    volume: float = 0.0


class DayTraderData(WidgetOutput):
    summary: str
    price_action: dict[str, Any] | None = None
    technical_indicators: dict[str, Any] | None = None
    intraday_chart: list[IntradayBar] = Field(default_factory=list)
    trading_setups: list[dict[str, Any]] = Field(default_factory=list)


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> DayTraderData:
    ticker = entity.ticker
    if not ticker:
        raise TaskFailure("Ticker required for day trading analysis")

    fmp = ctx.providers.fmp
    quote, intraday = await asyncio.gather(fmp.quote(ticker), fmp.intraday(ticker, "5min"))

    bars = intraday.unwrap_or([])[:MAX_BARS]
    chart = [
        IntradayBar(time=str(bar["time"]), price=bar["close"], volume=bar["volume"])
        for bar in bars
        if bar.get("time") and bar.get("close") is not None
    ]
    if not quote.usable and not chart:
        raise TaskFailure(f"No intraday data available for {ticker}")

    analysis = await synthesize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Analyze intraday trading for {ticker}:
Quote: {dumps(quote.unwrap_or(None))}
5-minute bars (most recent {MAX_BARS}): {dumps(bars)}

Return JSON with summary, priceAction, technicalIndicators and tradingSetups.""",
        fallback={"summary": "Analysis format error"},
    )

    return DayTraderData(
        summary=str(analysis.get("summary") or f"Intraday analysis for {ticker}"),
        price_action=as_dict(analysis.get("priceAction")),
        technical_indicators=as_dict(analysis.get("technicalIndicators")),
        intraday_chart=chart,
        trading_setups=[s for s in as_list(analysis.get("tradingSetups")) if isinstance(s, dict)],
        sources=[source(ctx, "Financial Modeling Prep", "https://financialmodelingprep.com")],
        last_updated=ctx.timestamp(),
    )
