"""
Company core facts resolved across Alpha Vantage, FMP and Yahoo Finance.

Each provider function fetches its own slice of the facts concurrently and
returns a partial CompanyCore dict; the resolver merges them in priority
order. Missing valuation metrics are then derived where possible.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from marketdesk.providers.alpha_vantage import AlphaVantageClient
from marketdesk.providers.base import FailureReason, ProviderResult
from marketdesk.providers.fmp import FMPClient
from marketdesk.providers.resolver import NamedProvider, ResolvedRecord, resolve
from marketdesk.providers.yahoo import YahooClient

CORE_FIELDS = (
    "name",
    "price",
    "change",
    "change_percent",
    "volume",
    "market_cap",
    "pe",
    "roe",
    "roa",
    "debt_to_equity",
    "sector",
    "industry",
)


class CompanyCore(BaseModel):
    """Core facts for one ticker."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ticker: str
    name: str | None = None
    price: float | None = None
    change: float | None = None
    change_percent: float | None = None
    volume: float | None = None
    market_cap: float | None = None
    pe: float | None = None
    roe: float | None = None
    roa: float | None = None
    debt_to_equity: float | None = None
    sector: str | None = None
    industry: str | None = None


class CompanySnapshot(CompanyCore):
    """CompanyCore with derived gaps filled and provenance attached."""

    estimated: bool = False
    sources: list[str] = Field(default_factory=list)


@dataclass
class FinancialPrimitives:
    price: float | None = None
    shares: float | None = None
    eps: float | None = None
    net_income: float | None = None
    total_equity: float | None = None
    total_assets: float | None = None
    total_debt: float | None = None


def derive_metrics(p: FinancialPrimitives) -> dict[str, float]:
    """Compute valuation metrics from raw primitives, skipping anything undefined."""
    derived: dict[str, float] = {}

    if p.price and p.shares:
        derived["market_cap"] = p.price * p.shares
    if p.price and p.eps and p.eps > 0:
        derived["pe"] = p.price / p.eps
    if p.net_income and p.total_equity and p.total_equity > 0:
        derived["roe"] = p.net_income / p.total_equity * 100
    if p.net_income and p.total_assets and p.total_assets > 0:
        derived["roa"] = p.net_income / p.total_assets * 100
    if p.total_debt and p.total_equity and p.total_equity > 0:
        derived["debt_to_equity"] = p.total_debt / p.total_equity

    return derived


def _pick(data: dict[str, Any] | None, *fields: str) -> dict[str, Any]:
    if not data:
        return {}
    return {f: data.get(f) for f in fields if data.get(f) is not None}


def _combine(
    source: str, results: list[ProviderResult[dict[str, Any]]], parts: list[dict[str, Any]]
) -> ProviderResult[dict[str, Any]]:
    """Collapse several calls to one provider into a single partial result."""
    merged: dict[str, Any] = {}
    for part in parts:
        for key, value in part.items():
            merged.setdefault(key, value)
    if merged:
        return ProviderResult.ok(merged, source=source)
    succeeded = [r for r in results if r.succeeded]
    if succeeded and all(r.degraded for r in succeeded):
        return ProviderResult.ok({}, source=source, degraded=True)
    failure = next((r for r in results if not r.succeeded), None)
    if failure is not None:
        return ProviderResult.failed(failure.reason, failure.message, source=source)
    return ProviderResult.failed(FailureReason.NOT_FOUND, f"{source}: no data", source=source)


def alpha_vantage_provider(client: AlphaVantageClient) -> NamedProvider:
    async def fetch(ticker: str) -> ProviderResult[dict[str, Any]]:
        quote, overview = await asyncio.gather(
            client.global_quote(ticker), client.company_overview(ticker)
        )
        return _combine(
            client.name,
            [quote, overview],
            [
                _pick(quote.value if quote.usable else None,
                      "price", "change", "change_percent", "volume"),
                _pick(overview.value if overview.usable else None,
                      "name", "market_cap", "pe", "roe", "roa", "sector", "industry"),
            ],
        )

    return NamedProvider(client.name, fetch)


def fmp_provider(client: FMPClient) -> NamedProvider:
    async def fetch(ticker: str) -> ProviderResult[dict[str, Any]]:
        quote, profile = await asyncio.gather(client.quote(ticker), client.profile(ticker))
        return _combine(
            client.name,
            [quote, profile],
            [
                _pick(quote.value if quote.usable else None,
                      "price", "change", "change_percent", "volume", "market_cap", "pe"),
                _pick(profile.value if profile.usable else None, "name", "sector", "industry"),
            ],
        )

    return NamedProvider(client.name, fetch)


def yahoo_provider(client: YahooClient) -> NamedProvider:
    async def fetch(ticker: str) -> ProviderResult[dict[str, Any]]:
        facts = await client.company_facts(ticker)
        if not facts.usable:
            return facts
        return ProviderResult.ok(_pick(facts.value, *CORE_FIELDS), source=client.name)

    return NamedProvider(client.name, fetch)


async def resolve_company_core(ticker: str, providers: list[NamedProvider]) -> ResolvedRecord:
    """Resolve CompanyCore facts for a ticker from the given providers, in priority order."""
    return await resolve(ticker.upper(), providers, key_field="ticker")


async def company_snapshot(
    ticker: str,
    providers: list[NamedProvider],
    primitives: FinancialPrimitives | None = None,
) -> CompanySnapshot:
    """
    Resolve a ticker's core facts and fill gaps with derived metrics.

    `estimated` is set when any of market cap, P/E, ROE or debt/equity was
    missing from every provider.
    """
    record = await resolve_company_core(ticker, providers)
    core = record.data

    prims = primitives or FinancialPrimitives()
    if prims.price is None:
        prims.price = core.get("price")
    if prims.shares is None and core.get("market_cap") and core.get("price"):
        prims.shares = core["market_cap"] / core["price"]

    derived = derive_metrics(prims)

    snapshot = dict(core)
    for metric in ("market_cap", "pe", "roe", "roa", "debt_to_equity"):
        if snapshot.get(metric) is None and metric in derived:
            snapshot[metric] = derived[metric]

    estimated = any(
        core.get(metric) is None for metric in ("market_cap", "pe", "roe", "debt_to_equity")
    )

    return CompanySnapshot(**snapshot, estimated=estimated, sources=record.sources)
