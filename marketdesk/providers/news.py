"""
News adapters.

NewsAPI (keyed, company news over the last 30 days) and the GDELT DOC 2.0
article list (keyless, used as fallback and for sentiment).
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any

from marketdesk.providers.base import ProviderClient, ProviderResult

NEWSAPI_BASE = "https://newsapi.org/v2"
GDELT_API_BASE = "https://api.gdeltproject.org/api/v2/doc/doc"

GDELT_MAX_ARTICLES = 25

_SCRIPT_LANGUAGES = [
    (re.compile(r"[一-龥]"), "zh"),
    (re.compile(r"[぀-ゟ゠-ヿ]"), "ja"),
    (re.compile(r"[가-힯]"), "ko"),
    (re.compile(r"[Ѐ-ӿ]"), "ru"),
]


def detect_language(text: str) -> str:
    """Guess an article language from the script of its title."""
    if not text:
        return "unknown"
    for pattern, language in _SCRIPT_LANGUAGES:
        if pattern.search(text):
            return language
    return "en"


class NewsAPIClient(ProviderClient):
    name = "newsapi"

    async def _search(
        self, query: str, from_date: str | None, to_date: str | None, page_size: int
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "q": query,
            "sortBy": "publishedAt",
            "pageSize": page_size,
            "apiKey": self.require_key(),
        }
        if from_date:
            params["from"] = from_date
        if to_date:
            params["to"] = to_date

        data = await self._get_json(f"{NEWSAPI_BASE}/everything", params=params)
        return [
            {
                "title": article.get("title") or "",
                "source": (article.get("source") or {}).get("name", ""),
                "url": article.get("url") or "",
                "published_at": article.get("publishedAt") or "",
                "description": article.get("description") or "",
            }
            for article in data.get("articles", [])
        ]

    async def company_news(
        self, query: str, days: int = 30, page_size: int = 10
    ) -> ProviderResult[list[dict[str, Any]]]:
        today = datetime.now(timezone.utc).date()
        since = today - timedelta(days=days)
        return await self.call(
            "company_news", self._search, query, since.isoformat(), today.isoformat(), page_size
        )


class GDELTClient(ProviderClient):
    name = "gdelt"

    async def _recent_news(self, query: str, language: str | None) -> list[dict[str, Any]]:
        data = await self._get_json(
            GDELT_API_BASE,
            params={"query": query, "mode": "artlist", "maxrecords": 50, "format": "json"},
        )

        articles = []
        for article in data.get("articles", []):
            title = article.get("title") or ""
            detected = article.get("language") or detect_language(title)
            # GDELT reports full language names ("English"), normalise to codes
            if detected.lower() == "english":
                detected = "en"
            if language and detected != language:
                continue

            articles.append(
                {
                    "title": title,
                    "url": article.get("url") or "",
                    "source": article.get("domain") or "",
                    "published_at": article.get("seendate")
                    or datetime.now(timezone.utc).isoformat(),
                    "tone": article.get("tone"),
                    "language": detected,
                }
            )
            if len(articles) >= GDELT_MAX_ARTICLES:
                break

        return articles

    async def recent_news(
        self, query: str, language: str | None = "en"
    ) -> ProviderResult[list[dict[str, Any]]]:
        return await self.call("recent_news", self._recent_news, query, language)
