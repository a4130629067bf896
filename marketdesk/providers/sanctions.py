"""OpenSanctions search adapter."""

from typing import Any

from marketdesk.providers.base import ProviderClient, ProviderResult

OPENSANCTIONS_API_BASE = "https://api.opensanctions.org"


class OpenSanctionsClient(ProviderClient):
    name = "opensanctions"

    async def _search(self, query: str) -> list[dict[str, Any]]:
        headers = {"Authorization": f"ApiKey {self.api_key}"} if self.api_key else None
        data = await self._get_json(
            f"{OPENSANCTIONS_API_BASE}/search/default", params={"q": query}, headers=headers
        )
        return [
            {
                "name": result.get("caption") or result.get("id", ""),
                "datasets": result.get("datasets") or [],
                "schema": result.get("schema") or "unknown",
                "score": result.get("score"),
                "url": f"https://www.opensanctions.org/entities/{result['id']}/"
                if result.get("id")
                else None,
            }
            for result in data.get("results", [])
        ]

    async def search(self, query: str) -> ProviderResult[list[dict[str, Any]]]:
        return await self.call("search", self._search, query)
