"""Alpha Vantage adapter - global quote, company overview, daily series."""

from typing import Any

from marketdesk.providers.base import (
    FailureReason,
    ProviderClient,
    ProviderError,
    ProviderResult,
    to_number,
)

AV_API_BASE = "https://www.alphavantage.co/query"


class AlphaVantageClient(ProviderClient):
    """Client for the Alpha Vantage query API (free tier: 5 requests/minute)."""

    name = "alpha_vantage"
    limiter_id = "alpha_vantage"

    async def _query(self, function: str, symbol: str, **extra: str) -> dict[str, Any]:
        params = {
            "function": function,
            "symbol": symbol.upper(),
            "apikey": self.require_key(),
            **extra,
        }
        data = await self._get_json(AV_API_BASE, params=params)

        if not isinstance(data, dict):
            raise ProviderError(FailureReason.PARSE_ERROR, "alpha_vantage: unexpected payload")
        if "Error Message" in data:
            raise ProviderError(
                FailureReason.NOT_FOUND, f"alpha_vantage: {data['Error Message']}"
            )
        # Quota messages come back as HTTP 200 with a Note/Information body
        for key in ("Note", "Information"):
            if key in data:
                raise ProviderError(FailureReason.RATE_LIMITED, f"alpha_vantage: {data[key]}")
        return data

    async def _global_quote(self, symbol: str) -> dict[str, Any]:
        data = await self._query("GLOBAL_QUOTE", symbol)
        quote = data.get("Global Quote")
        if not quote:
            raise ProviderError(FailureReason.NOT_FOUND, f"alpha_vantage: no quote for {symbol}")

        return {
            "symbol": quote.get("01. symbol", symbol.upper()),
            "price": to_number(quote.get("05. price")),
            "change": to_number(quote.get("09. change")),
            "change_percent": to_number(quote.get("10. change percent")),
            "volume": to_number(quote.get("06. volume")),
        }

    async def _company_overview(self, symbol: str) -> dict[str, Any]:
        data = await self._query("OVERVIEW", symbol)
        if not data.get("Symbol"):
            raise ProviderError(
                FailureReason.NOT_FOUND, f"alpha_vantage: no overview for {symbol}"
            )

        return {
            "symbol": data["Symbol"],
            "name": data.get("Name") or None,
            "sector": data.get("Sector") or None,
            "industry": data.get("Industry") or None,
            "market_cap": to_number(data.get("MarketCapitalization")),
            "pe": to_number(data.get("PERatio")),
            "eps": to_number(data.get("EPS")),
            "roe": to_number(data.get("ReturnOnEquityTTM")),
            "roa": to_number(data.get("ReturnOnAssetsTTM")),
            "shares_outstanding": to_number(data.get("SharesOutstanding")),
        }

    async def _daily_time_series(self, symbol: str) -> list[dict[str, Any]]:
        data = await self._query("TIME_SERIES_DAILY", symbol, outputsize="compact")
        series = data.get("Time Series (Daily)")
        if not series:
            raise ProviderError(
                FailureReason.NOT_FOUND, f"alpha_vantage: no time series for {symbol}"
            )

        items = [
            {
                "date": date,
                "open": to_number(values.get("1. open")),
                "high": to_number(values.get("2. high")),
                "low": to_number(values.get("3. low")),
                "close": to_number(values.get("4. close")),
                "volume": to_number(values.get("5. volume")),
            }
            for date, values in series.items()
        ]
        # Newest first
        items.sort(key=lambda item: item["date"], reverse=True)
        return items

    async def global_quote(self, symbol: str) -> ProviderResult[dict[str, Any]]:
        return await self.call("global_quote", self._global_quote, symbol)

    async def company_overview(self, symbol: str) -> ProviderResult[dict[str, Any]]:
        return await self.call("company_overview", self._company_overview, symbol)

    async def daily_time_series(self, symbol: str) -> ProviderResult[list[dict[str, Any]]]:
        return await self.call("daily_time_series", self._daily_time_series, symbol)
