"""Tests for multi-provider resolution."""

import asyncio

from marketdesk.providers.base import FailureReason, ProviderResult
from marketdesk.providers.company import FinancialPrimitives, company_snapshot, derive_metrics
from marketdesk.providers.resolver import Contribution, NamedProvider, resolve


def returning(name: str, data: dict, delay: float = 0.0) -> NamedProvider:
    async def fetch(key: str) -> ProviderResult:
        if delay:
            await asyncio.sleep(delay)
        return ProviderResult.ok(dict(data), source=name)

    return NamedProvider(name, fetch)


def failing(name: str, reason: FailureReason = FailureReason.UPSTREAM_ERROR) -> NamedProvider:
    async def fetch(key: str) -> ProviderResult:
        return ProviderResult.failed(reason, f"{name} down", source=name)

    return NamedProvider(name, fetch)


def raising(name: str) -> NamedProvider:
    async def fetch(key: str) -> ProviderResult:
        raise RuntimeError("boom")

    return NamedProvider(name, fetch)


def test_first_writer_wins():
    """The first provider to supply a field keeps it."""
    record = asyncio.run(
        resolve(
            "ACME",
            [
                returning("provider1", {"price": 10}),
                returning("provider2", {"price": 20, "sector": "Tech"}),
            ],
        )
    )

    assert record.data == {"ticker": "ACME", "price": 10, "sector": "Tech"}
    assert record.contributions == [
        Contribution("provider1", ["price"]),
        Contribution("provider2", ["sector"]),
    ]
    assert record.source_of("sector") == "provider2"


def test_null_fields_do_not_claim_a_slot():
    """Null values leave the field open for later providers."""
    record = asyncio.run(
        resolve(
            "ACME",
            [returning("a", {"price": None, "pe": 12.0}), returning("b", {"price": 5.0})],
        )
    )

    assert record.data["price"] == 5.0
    assert record.source_of("price") == "b"


def test_settles_all_instead_of_failing_fast():
    """One failing provider does not stop the others."""
    record = asyncio.run(
        resolve(
            "ACME",
            [
                raising("provider1"),
                returning("provider2", {"price": 20}, delay=0.01),
                returning("provider3", {"sector": "Tech"}, delay=0.02),
            ],
        )
    )

    assert record.data == {"ticker": "ACME", "price": 20, "sector": "Tech"}
    assert record.sources == ["provider2", "provider3"]
    assert "provider1" in record.failures


def test_all_providers_fail_yields_key_only():
    """With every provider failing only the key remains."""
    record = asyncio.run(resolve("ACME", [failing("a"), failing("b", FailureReason.TIMEOUT)]))

    assert record.data == {"ticker": "ACME"}
    assert record.is_empty
    assert set(record.failures) == {"a", "b"}


def test_degraded_fallback_is_skipped():
    """Degraded results contribute nothing."""
    async def degraded(key: str) -> ProviderResult:
        return ProviderResult.ok({"price": 0.0, "sector": None}, source="fmp", degraded=True)

    record = asyncio.run(
        resolve("ACME", [NamedProvider("fmp", degraded), returning("yahoo", {"price": 99.0})])
    )

    assert record.data["price"] == 99.0
    assert record.sources == ["yahoo"]
    assert record.failures["fmp"] == "degraded fallback"


def test_derive_metrics_skips_undefined_values():
    """Metrics with missing inputs are not derived."""
    derived = derive_metrics(
        FinancialPrimitives(
            price=50.0,
            shares=1_000.0,
            eps=0.0,
            net_income=200.0,
            total_equity=1_000.0,
            total_assets=0.0,
        )
    )

    assert derived["market_cap"] == 50_000.0
    assert derived["roe"] == 20.0
    assert "pe" not in derived
    assert "roa" not in derived
    assert "debt_to_equity" not in derived


def test_company_snapshot_fills_gaps_and_flags_estimates():
    """Derived values fill gaps and mark the snapshot estimated."""
    snapshot = asyncio.run(
        company_snapshot(
            "acme",
            [returning("alpha_vantage", {"price": 10.0, "market_cap": 1_000.0, "name": "Acme"})],
            FinancialPrimitives(eps=2.0),
        )
    )

    assert snapshot.ticker == "ACME"
    assert snapshot.pe == 5.0
    assert snapshot.estimated is True
    assert snapshot.sources == ["alpha_vantage"]
    assert snapshot.model_dump(by_alias=True)["marketCap"] == 1_000.0
