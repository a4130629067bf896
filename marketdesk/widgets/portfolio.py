"""
Portfolio view over the companies in a query.

Queries name tickers, not holdings, so every position is valued at a
configured number of assumed shares. The figure is reported alongside the
totals and marked as a placeholder.
"""

import asyncio
from typing import Any, Literal

from pydantic import Field, field_validator

from marketdesk.agent.entities import CompanyRef, EntityDescriptor
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

PROMPT_ID = "portfolio"
DEFAULT_PROMPT = (
    "You are a portfolio manager. Estimate allocations and risk, score diversification "
    "0-100 and suggest rebalancing. Return JSON."
)


class Position(WidgetModel):
    ticker: str
    company_name: str
    current_price: float
    allocation: float = 0.0
    risk: Literal["low", "medium", "high"] = "medium"
    recommendation: str = ""

    @field_validator("risk", mode="before")
    @classmethod
    def _risk(cls, value: Any) -> str:
        text = str(value or "").lower()
        return text if text in ("low", "medium", "high") else "medium"


class PortfolioData(WidgetOutput):
    summary: str
    positions: list[Position] = Field(default_factory=list)
    total_value: float = 0.0
    assumed_shares: int
    assumed_shares_placeholder: bool = True
    diversification_score: float = 0.0
    risk_analysis: str = ""
    rebalancing_advice: list[str] = Field(default_factory=list)


def _refs(entity: EntityDescriptor) -> list[CompanyRef]:
    if entity.companies:
        return [ref for ref in entity.companies if ref.ticker]
    if entity.ticker:
        return [CompanyRef(company_name=entity.company_name, ticker=entity.ticker)]
    return []


def _clamp(value: Any, low: float = 0.0, high: float = 100.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return low
    return max(low, min(high, number))


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> PortfolioData:
    refs = _refs(entity)
    if not refs:
        raise TaskFailure("No positions with tickers to analyse")

    quotes = await asyncio.gather(*(ctx.providers.fmp.quote(ref.ticker) for ref in refs))
    base_positions = [
        Position(
            ticker=ref.ticker,
            company_name=result.value.get("name") or ref.display_name,
            current_price=result.value["price"],
        )
        for ref, result in zip(refs, quotes)
        if result.usable and result.value.get("price") is not None
    ]
    if not base_positions:
        raise TaskFailure("Could not fetch prices for any positions")

    shares = ctx.portfolio_assumed_shares
    total_value = sum(p.current_price * shares for p in base_positions)

    analysis = await synthesize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Analyze this portfolio ({shares} assumed shares per position, total value {total_value:.2f}):
{dumps([p.to_data() for p in base_positions])}

Return JSON with summary, positions (array of {{ticker, allocation, risk, recommendation}}), diversificationScore, riskAnalysis and rebalancingAdvice.""",
        fallback={"summary": "Analysis format error", "positions": []},
    )

    suggested = {
        str(p.get("ticker", "")).upper(): p
        for p in as_list(analysis.get("positions"))
        if isinstance(p, dict)
    }
    positions = []
    for position in base_positions:
        extra = suggested.get(position.ticker, {})
        default_allocation = position.current_price * shares / total_value * 100 if total_value else 0.0
        positions.append(
            Position(
                ticker=position.ticker,
                company_name=position.company_name,
                current_price=position.current_price,
                allocation=_clamp(extra.get("allocation", default_allocation)),
                risk=extra.get("risk"),
                recommendation=str(extra.get("recommendation") or ""),
            )
        )

    return PortfolioData(
        summary=str(analysis.get("summary") or "Portfolio analysis"),
        positions=positions,
        total_value=total_value,
        assumed_shares=shares,
        diversification_score=_clamp(analysis.get("diversificationScore")),
        risk_analysis=str(analysis.get("riskAnalysis") or ""),
        rebalancing_advice=[str(a) for a in as_list(analysis.get("rebalancingAdvice"))],
        sources=[source(ctx, "Financial Modeling Prep", "https://financialmodelingprep.com")],
        last_updated=ctx.timestamp(),
    )
