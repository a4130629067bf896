"""Bull and bear investment thesis from fundamentals and recent headlines."""

import asyncio
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

PROMPT_ID = "investment-thesis"
DEFAULT_PROMPT = (
    "You are an investment analyst. Write a bull and bear thesis with catalysts, "
    "risks and a valuation view. Return JSON."
)
HEADLINES = 10
VERDICTS = ("Undervalued", "Fairly Valued", "Overvalued")


class Case(WidgetModel):
    title: str = ""
    points: list[str] = Field(default_factory=list)


class Catalyst(WidgetModel):
    event: str
    timing: str = ""
    impact: str = ""


class Valuation(WidgetModel):
    current: float | None = None
    fair: float | None = None
    verdict: Literal["Undervalued", "Fairly Valued", "Overvalued"] = "Fairly Valued"


class InvestmentThesisData(WidgetOutput):
    one_liner: str = ""
    bull_case: Case = Field(default_factory=Case)
    bear_case: Case = Field(default_factory=Case)
    key_catalysts: list[Catalyst] = Field(default_factory=list)
    growth_drivers: list[str] = Field(default_factory=list)
    key_risks: list[str] = Field(default_factory=list)
    valuation: Valuation = Field(default_factory=Valuation)
    investment_rating: str = ""
    confidence: float = 50.0


def _case(raw: Any, default_title: str) -> Case:
    data = as_dict(raw) or {}
    return Case(
        title=str(data.get("title") or default_title),
        points=[str(p) for p in as_list(data.get("points"))],
    )


def _number(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _valuation(raw: Any, price: float | None) -> Valuation:
    data = as_dict(raw) or {}
    verdict = data.get("verdict")
    current = _number(data.get("current"))
    return Valuation(
        current=current if current is not None else price,
        fair=_number(data.get("fair")),
        verdict=verdict if verdict in VERDICTS else "Fairly Valued",
    )


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> InvestmentThesisData:
    ticker = entity.ticker
    if not ticker:
        raise TaskFailure("Ticker required for investment thesis")

    providers = ctx.providers
    quote, profile, ratios, news = await asyncio.gather(
        providers.fmp.quote(ticker),
        providers.fmp.profile(ticker),
        providers.fmp.ratios(ticker, 1),
        providers.gdelt.recent_news(entity.company_name or ticker),
    )
    if not (quote.usable or profile.usable):
        raise TaskFailure(f"Could not fetch company data for {ticker}")

    headlines = [a.get("title") for a in news.unwrap_or([])[:HEADLINES]]
    sources = [source(ctx, "Financial Modeling Prep", "https://financialmodelingprep.com")]
    if headlines:
        sources.append(source(ctx, "GDELT DOC 2.0", "https://www.gdeltproject.org"))

    analysis = await synthesize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Write an investment thesis for {entity.display_name} ({ticker}):
Quote: {dumps(quote.unwrap_or(None))}
Profile: {dumps(profile.unwrap_or(None))}
Ratios: {dumps(ratios.unwrap_or([]))}
Recent headlines: {dumps(headlines)}

Return JSON with oneLiner, bullCase, bearCase, keyCatalysts, growthDrivers, keyRisks, valuation, investmentRating and confidence.""",
        fallback={"oneLiner": "Analysis format error"},
    )

    price = quote.value.get("price") if quote.usable else None
    catalysts = [
        Catalyst(event=str(c["event"]), timing=str(c.get("timing") or ""), impact=str(c.get("impact") or ""))
        for c in as_list(analysis.get("keyCatalysts"))
        if isinstance(c, dict) and c.get("event")
    ]
    confidence = _number(analysis.get("confidence"))

    return InvestmentThesisData(
        one_liner=str(analysis.get("oneLiner") or ""),
        bull_case=_case(analysis.get("bullCase"), "Bull Case"),
        bear_case=_case(analysis.get("bearCase"), "Bear Case"),
        key_catalysts=catalysts,
        growth_drivers=[str(d) for d in as_list(analysis.get("growthDrivers"))],
        key_risks=[str(r) for r in as_list(analysis.get("keyRisks"))],
        valuation=_valuation(analysis.get("valuation"), price),
        investment_rating=str(analysis.get("investmentRating") or ""),
        confidence=max(0.0, min(100.0, confidence)) if confidence is not None else 50.0,
        sources=sources,
        last_updated=ctx.timestamp(),
    )
