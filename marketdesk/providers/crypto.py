"""CoinGecko simple-price adapter."""

from typing import Any

from marketdesk.providers.base import ProviderClient, ProviderResult, ensure_number

COINGECKO_API_BASE = "https://api.coingecko.com/api/v3"


class CoinGeckoClient(ProviderClient):
    name = "coingecko"

    async def _prices(self, ids: list[str]) -> dict[str, dict[str, float]]:
        data = await self._get_json(
            f"{COINGECKO_API_BASE}/simple/price",
            params={
                "ids": ",".join(ids),
                "vs_currencies": "usd",
                "include_24hr_change": "true",
            },
        )
        return {
            coin_id: {
                "usd": ensure_number(values.get("usd")),
                "usd_24h_change": ensure_number(values.get("usd_24h_change")),
            }
            for coin_id, values in data.items()
        }

    async def prices(self, ids: list[str]) -> ProviderResult[dict[str, Any]]:
        """USD price and 24h change keyed by CoinGecko coin id."""
        return await self.call("prices", self._prices, ids)
