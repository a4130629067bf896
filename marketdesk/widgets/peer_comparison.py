"""Target company against up to five FMP peers, with averages and rankings."""

import asyncio
from collections.abc import Callable
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

PROMPT_ID = "peer-comparison"
DEFAULT_PROMPT = "You are a financial analyst comparing a company to its peers in plain text."
MAX_PEERS = 5


class PeerMetrics(WidgetModel):
    ticker: str
    name: str
    market_cap: float | None = None
    pe: float | None = None
    roe: float | None = None
    debt_to_equity: float | None = None


class Ranking(WidgetModel):
    ticker: str
    score: float


class PeerComparisonData(WidgetOutput):
    summary: str
    target: PeerMetrics
    peers: list[PeerMetrics] = Field(default_factory=list)
    industry_averages: dict[str, float | None] = Field(default_factory=dict)
    rankings: dict[str, list[Ranking]] = Field(default_factory=dict)


async def _metrics(ticker: str, ctx: WidgetContext) -> PeerMetrics | None:
    fmp = ctx.providers.fmp
    quote, ratios = await asyncio.gather(fmp.quote(ticker), fmp.ratios(ticker, 1))
    if not quote.usable:
        return None
    q: dict[str, Any] = quote.value  # type: ignore[assignment]
    latest = (ratios.unwrap_or([]) or [{}])[0]
    return PeerMetrics(
        ticker=ticker,
        name=q.get("name") or ticker,
        market_cap=q.get("market_cap"),
        pe=q.get("pe") or latest.get("pe"),
        roe=latest.get("roe"),
        debt_to_equity=latest.get("debt_to_equity"),
    )


def _average(values: list[float | None]) -> float | None:
    present = [v for v in values if v is not None]
    return sum(present) / len(present) if present else None


def industry_averages(companies: list[PeerMetrics]) -> dict[str, float | None]:
    return {
        "pe": _average([c.pe for c in companies]),
        "roe": _average([c.roe for c in companies]),
        "debtToEquity": _average([c.debt_to_equity for c in companies]),
        "marketCap": _average([c.market_cap for c in companies]),
    }


def _ranked(
    companies: list[PeerMetrics], score: Callable[[PeerMetrics], float | None]
) -> list[Ranking]:
    scored = [Ranking(ticker=c.ticker, score=s) for c in companies if (s := score(c)) is not None]
    return sorted(scored, key=lambda r: r.score, reverse=True)


def rankings(companies: list[PeerMetrics]) -> dict[str, list[Ranking]]:
    """
    Rank companies per category, best first.

    valuation: 100 / P/E (cheaper ranks higher; non-positive P/E is unranked)
    profitability: ROE
    financialHealth: max(0, 100 - D/E * 10)
    growth: no growth data is fetched, so it stays empty
    """
    return {
        "valuation": _ranked(companies, lambda c: 100 / c.pe if c.pe and c.pe > 0 else None),
        "profitability": _ranked(companies, lambda c: c.roe),
        "financialHealth": _ranked(
            companies,
            lambda c: max(0.0, 100 - c.debt_to_equity * 10) if c.debt_to_equity is not None else None,
        ),
        "growth": [],
    }


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> PeerComparisonData:
    ticker = entity.ticker
    if not ticker:
        raise TaskFailure("Ticker required for peer comparison")

    target, peer_list = await asyncio.gather(
        _metrics(ticker, ctx), ctx.providers.fmp.peers(ticker)
    )
    if target is None:
        raise TaskFailure(f"Could not fetch data for {ticker}")

    peer_tickers = [p for p in peer_list.unwrap_or([]) if p != ticker][:MAX_PEERS]
    fetched = await asyncio.gather(*(_metrics(p, ctx) for p in peer_tickers))
    peers = [p for p in fetched if p is not None]

    averages = industry_averages(peers)
    ranks = rankings([target, *peers])

    summary = await summarize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Compare {target.name} ({ticker}) with its peers:
Target: {dumps(target.to_data())}
Peers: {dumps([p.to_data() for p in peers])}
Industry averages: {dumps(averages)}""",
        default=f"Peer comparison for {ticker}",
    )

    return PeerComparisonData(
        summary=summary,
        target=target,
        peers=peers,
        industry_averages=averages,
        rankings=ranks,
        sources=[source(ctx, "Financial Modeling Prep", "https://financialmodelingprep.com")],
        last_updated=ctx.timestamp(),
    )
