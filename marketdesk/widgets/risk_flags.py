"""Sanctions and watchlist screening via OpenSanctions."""

from typing import Any

from pydantic import Field

from marketdesk.agent.entities import EntityDescriptor
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

PROMPT_ID = "risk-flags"
DEFAULT_PROMPT = (
    "You are a compliance screener. Summarise sanctions matches, or say "
    '"No hits found". Return JSON with summary and matches.'
)
NO_HITS = "No hits found"


class SanctionsMatch(WidgetModel):
    name: str
    datasets: list[str] = Field(default_factory=list)
    url: str = ""


class RiskFlagsData(WidgetOutput):
    summary: str = NO_HITS
    matches: list[SanctionsMatch] = Field(default_factory=list)


def _match(raw: Any) -> SanctionsMatch | None:
    if not isinstance(raw, dict) or not raw.get("name"):
        return None
    return SanctionsMatch(
        name=str(raw["name"]),
        datasets=[str(d) for d in as_list(raw.get("datasets"))],
        url=str(raw.get("url") or ""),
    )


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> RiskFlagsData:
    if not entity.company_name:
        raise TaskFailure("Risk screening needs a company name")

    result = await ctx.providers.sanctions.search(entity.company_name)
    if not result.usable:
        raise TaskFailure(result.message or "Sanctions search failed")

    matches = result.value or []
    analysis = await synthesize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Screen {entity.company_name} against these OpenSanctions results:
{dumps(matches)}

Return JSON with:
- summary (string, "{NO_HITS}" when there are no matches)
- matches (array of {{name, datasets, url}})""",
        fallback={"summary": NO_HITS if not matches else "Analysis format error", "matches": []},
    )

    return RiskFlagsData(
        summary=str(analysis.get("summary") or NO_HITS),
        matches=[m for m in map(_match, as_list(analysis.get("matches"))) if m is not None],
        sources=[source(ctx, "OpenSanctions", "https://www.opensanctions.org")],
        last_updated=ctx.timestamp(),
    )
