"""
Multi-provider resolver.

Fetches the same logical record from several providers concurrently and
merges the partial results first-writer-wins, in priority order, keeping a
provenance trail of which provider supplied which field.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from marketdesk.logging import log
from marketdesk.providers.base import FailureReason, ProviderResult

ProviderFn = Callable[[str], Awaitable[ProviderResult[dict[str, Any]]]]


@dataclass
class NamedProvider:
    """A provider function with the name recorded in the contribution trail."""

    name: str
    fetch: ProviderFn


@dataclass
class Contribution:
    source: str
    fields: list[str]


@dataclass
class ResolvedRecord:
    """Merged record for one lookup key plus provenance."""

    key: str
    data: dict[str, Any]
    contributions: list[Contribution] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def sources(self) -> list[str]:
        return [c.source for c in self.contributions]

    @property
    def is_empty(self) -> bool:
        return not self.contributions

    def source_of(self, field_name: str) -> str | None:
        for contribution in self.contributions:
            if field_name in contribution.fields:
                return contribution.source
        return None


def _as_result(name: str, outcome: Any) -> ProviderResult[dict[str, Any]]:
    """Normalise a gathered outcome (result or raised exception) to a ProviderResult."""
    if isinstance(outcome, ProviderResult):
        return outcome
    if isinstance(outcome, BaseException):
        return ProviderResult.failed(
            FailureReason.UPSTREAM_ERROR, f"{name}: {outcome}", source=name
        )
    return ProviderResult.failed(
        FailureReason.PARSE_ERROR, f"{name}: returned {type(outcome).__name__}", source=name
    )


async def resolve(
    key: str,
    providers: list[NamedProvider],
    key_field: str = "ticker",
) -> ResolvedRecord:
    """
    Resolve one record from an ordered list of providers.

    All providers run concurrently and every one is allowed to settle; a
    provider that raises or fails never cancels the others. Merging walks the
    providers in list order and copies each non-null field that is not yet
    set. Failed and degraded results contribute nothing. When every provider
    fails the record holds only the key.
    """
    outcomes = await asyncio.gather(
        *(provider.fetch(key) for provider in providers),
        return_exceptions=True,
    )

    merged: dict[str, Any] = {key_field: key}
    record = ResolvedRecord(key=key, data=merged)

    for provider, outcome in zip(providers, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        result = _as_result(provider.name, outcome)

        if not result.succeeded:
            record.failures[provider.name] = result.message or "failed"
            continue
        if result.degraded:
            record.failures[provider.name] = "degraded fallback"
            continue
        if not isinstance(result.value, dict):
            continue

        taken: list[str] = []
        for name, value in result.value.items():
            if name == key_field or value is None:
                continue
            if merged.get(name) is not None:
                continue
            merged[name] = value
            taken.append(name)

        if taken:
            record.contributions.append(Contribution(source=provider.name, fields=taken))

    log(
        "providers",
        f"Resolved {key}",
        sources=record.sources,
        failures=list(record.failures),
    )
    return record
