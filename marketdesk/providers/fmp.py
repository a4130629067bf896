"""
Financial Modeling Prep adapter.

Quotes, profiles, ratios, statements, intraday bars, peers, news and analyst
data from https://financialmodelingprep.com/api/v3.
"""

import re
from typing import Any

from marketdesk.logging import log
from marketdesk.providers.base import (
    FailureReason,
    ProviderClient,
    ProviderError,
    ProviderResult,
    ensure_number,
    to_number,
)

FMP_API_BASE = "https://financialmodelingprep.com/api/v3"

_EXCHANGE_SUFFIX = re.compile(r"\.(US|AX|L)$", re.IGNORECASE)


def normalize_symbol(symbol: str) -> str:
    """Upper-case and strip exchange suffixes FMP does not understand."""
    return _EXCHANGE_SUFFIX.sub("", symbol.strip().upper())


def _normalize_quote(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "symbol": raw.get("symbol"),
        "name": raw.get("name"),
        "price": to_number(raw.get("price")),
        "change": to_number(raw.get("change")),
        "change_percent": to_number(raw.get("changesPercentage")),
        "day_low": to_number(raw.get("dayLow")),
        "day_high": to_number(raw.get("dayHigh")),
        "year_low": to_number(raw.get("yearLow")),
        "year_high": to_number(raw.get("yearHigh")),
        "market_cap": to_number(raw.get("marketCap")),
        "volume": to_number(raw.get("volume")),
        "avg_volume": to_number(raw.get("avgVolume")),
        "open": to_number(raw.get("open")),
        "previous_close": to_number(raw.get("previousClose")),
        "eps": to_number(raw.get("eps")),
        "pe": to_number(raw.get("pe")),
    }


def fallback_quote(symbol: str) -> dict[str, Any]:
    """All-zero quote used when FMP rejects the API key."""
    quote = {key: 0.0 for key in _normalize_quote({})}
    quote["symbol"] = symbol
    quote["name"] = symbol
    return quote


def _normalize_ratios(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "symbol": raw.get("symbol"),
        "date": raw.get("date"),
        "current_ratio": to_number(raw.get("currentRatio")),
        "quick_ratio": to_number(raw.get("quickRatio")),
        "debt_to_equity": to_number(raw.get("debtEquityRatio")),
        "roe": to_number(raw.get("returnOnEquity")),
        "roa": to_number(raw.get("returnOnAssets")),
        "pe": to_number(raw.get("priceEarningsRatio")),
        "pb": to_number(raw.get("priceToBookRatio")),
        "dividend_yield": to_number(raw.get("dividendYield")),
        "net_profit_margin": to_number(raw.get("netProfitMargin")),
        "ev_to_ebitda": to_number(raw.get("enterpriseValueMultiple")),
    }


def _normalize_profile(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "symbol": raw.get("symbol"),
        "name": raw.get("companyName"),
        "sector": raw.get("sector") or None,
        "industry": raw.get("industry") or None,
        "description": raw.get("description") or "",
        "market_cap": to_number(raw.get("mktCap")),
        "beta": to_number(raw.get("beta")),
        "country": raw.get("country"),
        "website": raw.get("website"),
    }


def _first(data: Any) -> Any:
    if isinstance(data, list):
        return data[0] if data else None
    return data


class FMPClient(ProviderClient):
    """Client for Financial Modeling Prep."""

    name = "fmp"
    limiter_id = "fmp"

    async def _get(self, path: str, **params: Any) -> Any:
        params["apikey"] = self.require_key()
        return await self._get_json(f"{FMP_API_BASE}/{path}", params=params)

    async def _quote(self, symbol: str) -> dict[str, Any]:
        data = await self._get(f"quote/{symbol}")
        if not isinstance(data, list) or not data:
            raise ProviderError(FailureReason.NOT_FOUND, f"fmp: no quote for {symbol}")
        return _normalize_quote(data[0])

    async def quote(self, symbol: str) -> ProviderResult[dict[str, Any]]:
        """
        Fetch a quote.

        When FMP rejects the key, an all-zero quote is returned instead,
        marked degraded so resolvers leave it out of the merge.
        """
        symbol = normalize_symbol(symbol)
        result = await self.call("quote", self._quote, symbol)
        if result.reason == FailureReason.INVALID_KEY:
            log("providers", f"FMP key rejected for {symbol}, using fallback quote", level="warning")
            return ProviderResult.ok(
                fallback_quote(symbol), source=self.name, degraded=True, attempts=result.attempts
            )
        return result

    async def _profile(self, symbol: str) -> dict[str, Any]:
        data = _first(await self._get(f"profile/{symbol}"))
        if not data:
            raise ProviderError(FailureReason.NOT_FOUND, f"fmp: no profile for {symbol}")
        return _normalize_profile(data)

    async def profile(self, symbol: str) -> ProviderResult[dict[str, Any]]:
        return await self.call("profile", self._profile, normalize_symbol(symbol))

    async def _ratios(self, symbol: str, limit: int) -> list[dict[str, Any]]:
        data = await self._get(f"ratios/{symbol}", limit=limit)
        return [_normalize_ratios(row) for row in data or []]

    async def ratios(self, symbol: str, limit: int = 4) -> ProviderResult[list[dict[str, Any]]]:
        return await self.call("ratios", self._ratios, normalize_symbol(symbol), limit)

    async def _income_statements(self, symbol: str, limit: int) -> list[dict[str, Any]]:
        data = await self._get(f"income-statement/{symbol}", limit=limit)
        return [
            {
                "date": row.get("date"),
                "revenue": to_number(row.get("revenue")),
                "gross_profit": to_number(row.get("grossProfit")),
                "operating_income": to_number(row.get("operatingIncome")),
                "net_income": to_number(row.get("netIncome")),
                "ebitda": to_number(row.get("ebitda")),
                "eps": to_number(row.get("eps")),
            }
            for row in data or []
        ]

    async def income_statements(
        self, symbol: str, limit: int = 4
    ) -> ProviderResult[list[dict[str, Any]]]:
        return await self.call(
            "income_statements", self._income_statements, normalize_symbol(symbol), limit
        )

    async def _intraday(self, symbol: str, interval: str) -> list[dict[str, Any]]:
        data = await self._get(f"historical-chart/{interval}/{symbol}")
        return [
            {
                "time": bar.get("date"),
                "open": to_number(bar.get("open")),
                "high": to_number(bar.get("high")),
                "low": to_number(bar.get("low")),
                "close": to_number(bar.get("close")),
                "volume": ensure_number(bar.get("volume")),
            }
            for bar in data or []
        ]

    async def intraday(
        self, symbol: str, interval: str = "5min"
    ) -> ProviderResult[list[dict[str, Any]]]:
        return await self.call("intraday", self._intraday, normalize_symbol(symbol), interval)

    async def _peers(self, symbol: str) -> list[str]:
        data = _first(await self._get("stock_peers", symbol=symbol))
        if not data:
            return []
        return [str(peer) for peer in data.get("peersList", [])]

    async def peers(self, symbol: str) -> ProviderResult[list[str]]:
        return await self.call("peers", self._peers, normalize_symbol(symbol))

    async def _news(self, symbol: str, limit: int) -> list[dict[str, Any]]:
        data = await self._get("stock_news", tickers=symbol, limit=limit)
        return [
            {
                "title": item.get("title", ""),
                "source": item.get("site", ""),
                "url": item.get("url", ""),
                "published_at": item.get("publishedDate", ""),
                "text": (item.get("text") or "")[:500],
            }
            for item in data or []
        ]

    async def news(self, symbol: str, limit: int = 10) -> ProviderResult[list[dict[str, Any]]]:
        return await self.call("news", self._news, normalize_symbol(symbol), limit)

    async def _analyst_estimates(self, symbol: str, limit: int) -> list[dict[str, Any]]:
        data = await self._get(f"analyst-estimates/{symbol}", limit=limit)
        return [
            {
                "date": row.get("date"),
                "eps_avg": ensure_number(row.get("estimatedEpsAvg")),
                "eps_low": ensure_number(row.get("estimatedEpsLow")),
                "eps_high": ensure_number(row.get("estimatedEpsHigh")),
                "revenue_avg": ensure_number(row.get("estimatedRevenueAvg")),
                "revenue_low": ensure_number(row.get("estimatedRevenueLow")),
                "revenue_high": ensure_number(row.get("estimatedRevenueHigh")),
                "analysts": int(ensure_number(row.get("numberAnalystEstimatedRevenue"))),
            }
            for row in data or []
        ]

    async def analyst_estimates(
        self, symbol: str, limit: int = 4
    ) -> ProviderResult[list[dict[str, Any]]]:
        return await self.call(
            "analyst_estimates", self._analyst_estimates, normalize_symbol(symbol), limit
        )

    async def _price_target_consensus(self, symbol: str) -> dict[str, Any]:
        data = _first(await self._get(f"price-target-consensus/{symbol}"))
        if not data:
            raise ProviderError(FailureReason.NOT_FOUND, f"fmp: no price target for {symbol}")
        return {
            "consensus": ensure_number(data.get("targetConsensus")),
            "high": ensure_number(data.get("targetHigh")),
            "low": ensure_number(data.get("targetLow")),
            "median": ensure_number(data.get("targetMedian")),
            "last_price": ensure_number(data.get("lastPrice")),
            "rating": data.get("analystRating"),
            "analysts": int(ensure_number(data.get("numberOfAnalysts"))),
        }

    async def price_target_consensus(self, symbol: str) -> ProviderResult[dict[str, Any]]:
        return await self.call(
            "price_target_consensus", self._price_target_consensus, normalize_symbol(symbol)
        )

    async def _earnings_surprises(self, symbol: str) -> list[dict[str, Any]]:
        data = await self._get(f"earnings-surprises/{symbol}")
        if not isinstance(data, list):
            return []
        return [
            {
                "date": row.get("date", ""),
                "estimated": ensure_number(row.get("estimatedEarning")),
                "actual": ensure_number(row.get("actualEarningResult")),
            }
            for row in data
        ]

    async def earnings_surprises(self, symbol: str) -> ProviderResult[list[dict[str, Any]]]:
        return await self.call(
            "earnings_surprises", self._earnings_surprises, normalize_symbol(symbol)
        )
