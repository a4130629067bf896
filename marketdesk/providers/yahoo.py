"""Yahoo Finance adapter using the yfinance library."""

import asyncio
from typing import Any

import yfinance as yf

from marketdesk.logging import log
from marketdesk.providers.base import (
    FailureReason,
    ProviderClient,
    ProviderError,
    ProviderResult,
    to_number,
)


def _fetch_yahoo_sync(ticker: str) -> dict[str, Any]:
    """Synchronous Yahoo Finance fetch using yfinance."""
    try:
        stock = yf.Ticker(ticker)
        info = stock.info
    except Exception as e:
        # yfinance surfaces HTTP and decoding problems as assorted exception types
        raise ProviderError(FailureReason.UPSTREAM_ERROR, f"yahoo: {e}", retryable=False) from e

    log("providers", f"yahoo: yfinance returned {len(info) if info else 0} fields", ticker=ticker)

    if not info:
        raise ProviderError(FailureReason.NOT_FOUND, f"yahoo: no data for {ticker}")

    price = info.get("currentPrice") or info.get("regularMarketPrice")
    if price is None and not any(info.get(k) for k in ("marketCap", "sector", "industry")):
        raise ProviderError(FailureReason.NOT_FOUND, f"yahoo: no data for {ticker}")

    debt_to_equity = to_number(info.get("debtToEquity"))
    # Yahoo reports debt/equity as a percentage
    if debt_to_equity is not None:
        debt_to_equity = debt_to_equity / 100

    roe = to_number(info.get("returnOnEquity"))
    roa = to_number(info.get("returnOnAssets"))

    return {
        "name": info.get("longName") or info.get("shortName"),
        "price": to_number(price),
        "change": to_number(info.get("regularMarketChange")),
        "change_percent": to_number(info.get("regularMarketChangePercent")),
        "volume": to_number(info.get("volume")),
        "market_cap": to_number(info.get("marketCap")),
        "pe": to_number(info.get("trailingPE")),
        "eps": to_number(info.get("trailingEps")),
        "roe": roe * 100 if roe is not None else None,
        "roa": roa * 100 if roa is not None else None,
        "debt_to_equity": debt_to_equity,
        "shares_outstanding": to_number(info.get("sharesOutstanding")),
        "sector": info.get("sector"),
        "industry": info.get("industry"),
    }


class YahooClient(ProviderClient):
    """yfinance-backed provider; needs no API key."""

    name = "yahoo"

    async def _company_facts(self, ticker: str) -> dict[str, Any]:
        # yfinance is synchronous, keep it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _fetch_yahoo_sync, ticker.upper())

    async def company_facts(self, ticker: str) -> ProviderResult[dict[str, Any]]:
        return await self.call("company_facts", self._company_facts, ticker)
