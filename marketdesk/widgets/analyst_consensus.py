"""Analyst consensus: price targets, forward estimates and earnings surprises."""

import asyncio
from typing import Any

from pydantic import Field

from marketdesk.agent.entities import EntityDescriptor
from marketdesk.widgets.base import (
    TaskFailure,
    WidgetContext,
    WidgetModel,
    WidgetOutput,
    dumps,
    source,
    summarize,
)

PROMPT_ID = "analyst-consensus"
DEFAULT_PROMPT = "You are a financial analyst summarising Street consensus in plain text."
SURPRISE_QUARTERS = 4


class TargetPrice(WidgetModel):
    average: float = 0.0
    high: float = 0.0
    low: float = 0.0
    median: float = 0.0
    current: float = 0.0
    upside: float = 0.0


class EPSEstimates(WidgetModel):
    next_quarter: float = 0.0
    next_year: float = 0.0


class Surprise(WidgetModel):
    period: str
    estimated: float
    actual: float
    surprise: float
    surprise_percent: float


class AnalystConsensusData(WidgetOutput):
    summary: str
    target_price: TargetPrice = Field(default_factory=TargetPrice)
    recommendation: str = "Hold"
    analyst_count: int = 0
    eps_estimates: EPSEstimates = Field(default_factory=EPSEstimates)
    revenue_growth: float = 0.0
    surprise_history: list[Surprise] = Field(default_factory=list)


def _pct_change(new: float, old: float) -> float:
    if not old:
        return 0.0
    return (new - old) / abs(old) * 100


def surprise_history(rows: list[dict[str, Any]], limit: int = SURPRISE_QUARTERS) -> list[Surprise]:
    """Most recent earnings surprises, with percentage relative to the estimate."""
    history = []
    for row in rows[:limit]:
        estimated = row.get("estimated", 0.0)
        actual = row.get("actual", 0.0)
        history.append(
            Surprise(
                period=str(row.get("date") or ""),
                estimated=estimated,
                actual=actual,
                surprise=actual - estimated,
                surprise_percent=_pct_change(actual, estimated),
            )
        )
    return history


def revenue_growth(estimates: list[dict[str, Any]]) -> float:
    """Growth between the two nearest revenue estimates (newest first)."""
    if len(estimates) < 2:
        return 0.0
    return _pct_change(estimates[0].get("revenue_avg", 0.0), estimates[1].get("revenue_avg", 0.0))


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> AnalystConsensusData:
    ticker = entity.ticker
    if not ticker:
        raise TaskFailure("Ticker required for analyst consensus")

    fmp = ctx.providers.fmp
    estimates, target, surprises = await asyncio.gather(
        fmp.analyst_estimates(ticker),
        fmp.price_target_consensus(ticker),
        fmp.earnings_surprises(ticker),
    )
    if not (estimates.usable or target.usable or surprises.usable):
        raise TaskFailure(f"No analyst coverage available for {ticker}")

    estimate_rows = estimates.unwrap_or([])
    consensus = target.unwrap_or({})
    history = surprise_history(surprises.unwrap_or([]))

    current = consensus.get("last_price", 0.0)
    average = consensus.get("consensus", 0.0)
    target_price = TargetPrice(
        average=average,
        high=consensus.get("high", 0.0),
        low=consensus.get("low", 0.0),
        median=consensus.get("median", 0.0),
        current=current,
        upside=_pct_change(average, current),
    )
    analyst_count = consensus.get("analysts") or (
        estimate_rows[0].get("analysts", 0) if estimate_rows else 0
    )
    eps = EPSEstimates(
        next_quarter=estimate_rows[0].get("eps_avg", 0.0) if estimate_rows else 0.0,
        next_year=estimate_rows[1].get("eps_avg", 0.0) if len(estimate_rows) > 1 else 0.0,
    )

    summary = await summarize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Summarise analyst consensus for {entity.display_name} ({ticker}):
Price target: {dumps(target_price.to_data())}
Rating: {consensus.get("rating") or "n/a"} from {analyst_count} analysts
Estimates: {dumps(estimate_rows)}
Earnings surprises: {dumps([s.to_data() for s in history])}""",
        default=f"Analyst consensus for {ticker}",
    )

    return AnalystConsensusData(
        summary=summary,
        target_price=target_price,
        recommendation=consensus.get("rating") or "Hold",
        analyst_count=int(analyst_count),
        eps_estimates=eps,
        revenue_growth=revenue_growth(estimate_rows),
        surprise_history=history,
        sources=[source(ctx, "Financial Modeling Prep", "https://financialmodelingprep.com")],
        last_updated=ctx.timestamp(),
    )
