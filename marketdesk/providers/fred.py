"""FRED (Federal Reserve Economic Data) adapter."""

from typing import Any

from marketdesk.providers.base import ProviderClient, ProviderResult, to_number

FRED_API_BASE = "https://api.stlouisfed.org/fred"


class FREDClient(ProviderClient):
    name = "fred"

    async def _series(self, series_id: str) -> list[dict[str, Any]]:
        data = await self._get_json(
            f"{FRED_API_BASE}/series/observations",
            params={"series_id": series_id, "api_key": self.require_key(), "file_type": "json"},
        )

        observations = []
        for obs in data.get("observations", []):
            # FRED marks missing points with "."
            value = to_number(obs.get("value"))
            if value is None:
                continue
            observations.append({"date": obs.get("date", ""), "value": value})
        return observations

    async def series(self, series_id: str) -> ProviderResult[list[dict[str, Any]]]:
        """Observations for a series, oldest first, non-numeric points dropped."""
        return await self.call("series", self._series, series_id)
