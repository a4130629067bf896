"""Macro indicators from FRED, with a short explanation of why each matters."""

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

PROMPT_ID = "macro-sector"
DEFAULT_PROMPT = (
    "You are a macro strategist. Explain briefly why each indicator matters. "
    "Return JSON with summary and indicators."
)
CHART_POINTS = 90

# (series id, display name, unit)
SERIES = [
    ("CPIAUCSL", "Consumer Price Index", "Index"),
    ("DGS10", "10-Year Treasury Yield", "%"),
    ("UNRATE", "Unemployment Rate", "%"),
]


class SeriesPoint(WidgetModel):
    date: str
    value: float


class Indicator(WidgetModel):
    name: str
    value: float
    unit: str
    explanation: str = ""
    chart_data: list[SeriesPoint] = Field(default_factory=list)


class MacroSectorData(WidgetOutput):
    summary: str = ""
    indicators: list[Indicator] = Field(default_factory=list)


def _explanation(raw: Any) -> str:
    entry = as_dict(raw)
    return str(entry.get("explanation") or "") if entry else ""


async def run(entity: EntityDescriptor, ctx: WidgetContext) -> MacroSectorData:
    fred = ctx.providers.fred
    results = await asyncio.gather(*(fred.series(series_id) for series_id, _, _ in SERIES))

    indicators = []
    for (_, name, unit), result in zip(SERIES, results):
        if not result.usable or not result.value:
            continue
        points = result.value[-CHART_POINTS:]
        indicators.append(
            Indicator(
                name=name,
                value=points[-1]["value"],
                unit=unit,
                chart_data=[SeriesPoint(**p) for p in points],
            )
        )

    if not indicators:
        raise TaskFailure("No macro indicators available from FRED")

    subject = entity.display_name or "the broad market"
    analysis = await synthesize(
        ctx,
        PROMPT_ID,
        DEFAULT_PROMPT,
        f"""Explain why these macro indicators matter for {subject}:
{dumps([{"name": i.name, "value": i.value, "unit": i.unit} for i in indicators])}

Return JSON with:
- summary (string)
- indicators (array of {{name, explanation}}, same order as given)""",
        fallback={"summary": "Analysis format error", "indicators": []},
    )

    explained = as_list(analysis.get("indicators"))
    for index, indicator in enumerate(indicators):
        if index < len(explained):
            indicator.explanation = _explanation(explained[index])

    return MacroSectorData(
        summary=str(analysis.get("summary") or ""),
        indicators=indicators,
        sources=[source(ctx, "FRED (Federal Reserve Economic Data)", "https://fred.stlouisfed.org")],
        last_updated=ctx.timestamp(),
    )
