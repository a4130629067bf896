"""Company snapshot - resolved core facts, 60-day chart and SEC fundamentals."""

import asyncio
from typing import Any

from pydantic import Field

from marketdesk.agent.entities import EntityDescriptor
from marketdesk.providers.company import CompanySnapshot, company_snapshot
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

PROMPT_ID = "company-snapshot"
DEFAULT_PROMPT = (
    "You are a financial data summarizer. Summarise price, recent trend and key "
    "fundamentals. Return JSON with summary, kpis and peers. No advice."
)
KPI_INSTRUCTION = (
    "\n\nIMPORTANT: In the kpis array, value must ALWAYS be a string (not an object). "
    "Format numbers appropriately with units."
)
CHART_DAYS = 60


class PriceData(WidgetModel):
    price: float
    change: float = 0.0
    change_percent: float = 0.0


class ChartPoint(WidgetModel):
    date: str
    close: float


class KPI(WidgetModel):
    name: str
    value: str
    unit: str = ""


class CompanySnapshotData(WidgetOutput):
    summary: str
    price_data: PriceData | None = None
    chart_data: list[ChartPoint] | None = None
    kpis: list[KPI] = Field(default_factory=list)
    peers: list[str] = Field(default_factory=list)
    estimated: bool = False


def _kpi(raw: Any) -> KPI:
    if not isinstance(raw, dict):
        return KPI(name=str(raw), value="N/A")
    value = raw.get("value")
    return KPI(
        name=str(raw.get("name") or "Unknown"),
        value=value if isinstance(value, str) else str(value if value is not None else "N/A"),
        unit=str(raw.get("unit") or ""),
    )


async def _nothing() -> None:
    return None


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> CompanySnapshotData:
    providers = ctx.providers
    ticker = entity.ticker

    core, series, facts = await asyncio.gather(
        company_snapshot(ticker, providers.company_core_providers()) if ticker else _nothing(),
        providers.alpha_vantage.daily_time_series(ticker) if ticker else _nothing(),
        providers.sec.company_facts(entity.company_name) if entity.company_name else _nothing(),
    )

    sources = []
    price_data = None
    if isinstance(core, CompanySnapshot):
        if core.price:
            price_data = PriceData(
                price=core.price,
                change=core.change or 0.0,
                change_percent=core.change_percent or 0.0,
            )
        sources.extend(source(ctx, name) for name in core.sources)

    chart_data = None
    if series is not None and series.usable and series.value:
        recent = [p for p in series.value[:CHART_DAYS] if p.get("close") is not None]
        chart_data = [ChartPoint(date=p["date"], close=p["close"]) for p in reversed(recent)]

    fundamentals = facts.value if facts is not None and facts.usable and facts.value else None
    if fundamentals:
        sources.append(source(ctx, "SEC EDGAR", "https://www.sec.gov/edgar"))

    has_core = isinstance(core, CompanySnapshot) and bool(core.sources)
    if not (has_core or chart_data or fundamentals):
        raise TaskFailure(
            "Unable to fetch any data for company snapshot. All data providers failed."
        )

    core_dump = core.model_dump(mode="json", by_alias=True) if core is not None else None
    analysis = await synthesize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Analyze this company data and provide a structured summary:
Company: {entity.company_name or ticker}
Core Data: {dumps(core_dump)}
Price Data: {dumps(price_data.model_dump() if price_data else None)}
Chart Data (last {CHART_DAYS} days): {dumps([p.model_dump() for p in chart_data or []])}
Fundamentals: {dumps(fundamentals)}

Return JSON with:
- summary (string)
- kpis (array of {{name: string, value: string, unit: string}} - value must be a STRING)
- peers (array of company name strings)"""
        + KPI_INSTRUCTION,
        fallback={"summary": "Analysis format error", "kpis": [], "peers": []},
    )

    return CompanySnapshotData(
        summary=str(analysis.get("summary") or "Company snapshot data"),
        price_data=price_data,
        chart_data=chart_data,
        kpis=[_kpi(k) for k in as_list(analysis.get("kpis"))],
        peers=[str(p) for p in as_list(analysis.get("peers"))],
        estimated=core.estimated if isinstance(core, CompanySnapshot) else False,
        sources=sources,
        last_updated=ctx.timestamp(),
    )
