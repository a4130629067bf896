"""Side-by-side comparison of two or more companies."""

import asyncio
from typing import Any

from pydantic import Field

from marketdesk.agent.entities import CompanyRef, EntityDescriptor
from marketdesk.logging import log
from marketdesk.providers.base import FailureReason, ProviderResult
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

PROMPT_ID = "comparison"
DEFAULT_PROMPT = (
    "You are a financial analyst comparing companies. Name a winner per category. "
    "Return JSON with summary and winner."
)


class CompanyMetrics(WidgetModel):
    name: str
    ticker: str
    price: float | None = None
    market_cap: float | None = None
    pe: float | None = None
    eps: float | None = None
    revenue: float | None = None
    roe: float | None = None
    debt_to_equity: float | None = None
    sector: str | None = None


class CategoryWinner(WidgetModel):
    category: str
    company: str
    reason: str = ""


class ComparisonData(WidgetOutput):
    summary: str
    companies: list[CompanyMetrics] = Field(default_factory=list)
    winner: list[CategoryWinner] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)


async def _fetch(ref: CompanyRef, ctx: WidgetContext) -> ProviderResult[CompanyMetrics]:
    if not ref.ticker:
        return ProviderResult.failed(
            FailureReason.NOT_FOUND, f"No ticker for {ref.display_name}"
        )

    fmp = ctx.providers.fmp
    quote, ratios, profile = await asyncio.gather(
        fmp.quote(ref.ticker), fmp.ratios(ref.ticker, 1), fmp.profile(ref.ticker)
    )
    if not quote.usable:
        return ProviderResult.failed(
            quote.reason or FailureReason.UPSTREAM_ERROR, quote.message, source="fmp"
        )

    q: dict[str, Any] = quote.value  # type: ignore[assignment]
    latest = (ratios.unwrap_or([]) or [{}])[0]
    prof = profile.unwrap_or({})
    return ProviderResult.ok(
        CompanyMetrics(
            name=prof.get("name") or q.get("name") or ref.display_name,
            ticker=ref.ticker,
            price=q.get("price"),
            market_cap=q.get("market_cap") or prof.get("market_cap"),
            pe=q.get("pe") or latest.get("pe"),
            eps=q.get("eps"),
            roe=latest.get("roe"),
            debt_to_equity=latest.get("debt_to_equity"),
            sector=prof.get("sector"),
        ),
        source="fmp",
    )


def _winner(raw: Any) -> CategoryWinner | None:
    if not isinstance(raw, dict) or not raw.get("category") or not raw.get("company"):
        return None
    return CategoryWinner(
        category=str(raw["category"]),
        company=str(raw["company"]),
        reason=str(raw.get("reason") or ""),
    )


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> ComparisonData:
    refs = entity.companies
    results = await asyncio.gather(*(_fetch(ref, ctx) for ref in refs))

    companies = []
    failed = {}
    for ref, result in zip(refs, results):
        if result.usable:
            companies.append(result.value)
        else:
            failed[ref.display_name] = result.message or "unavailable"
            log("runner", f"comparison: skipping {ref.display_name}", reason=result.reason)

    if not companies:
        raise TaskFailure(
            "Could not fetch data for any companies. Please check the tickers and try again."
        )

    names = ", ".join(c.name for c in companies)
    analysis = await synthesize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Compare these companies: {names}
{dumps([c.to_data() for c in companies])}

Return JSON with:
- summary (string)
- winner (array of {{category, company, reason}})""",
        fallback={"summary": "Analysis format error", "winner": []},
    )

    return ComparisonData(
        summary=str(analysis.get("summary") or f"Comparison of {names}"),
        companies=companies,
        winner=[w for w in map(_winner, as_list(analysis.get("winner"))) if w is not None],
        failed=failed,
        sources=[source(ctx, "Financial Modeling Prep", "https://financialmodelingprep.com")],
        last_updated=ctx.timestamp(),
    )
