"""Bundle of provider clients sharing one set of rate limiters."""

from dataclasses import dataclass
from typing import Any

from marketdesk.config import Config
from marketdesk.providers.alpha_vantage import AlphaVantageClient
from marketdesk.providers.base import ProviderClient, RetryPolicy
from marketdesk.providers.company import (
    alpha_vantage_provider,
    fmp_provider,
    yahoo_provider,
)
from marketdesk.providers.crypto import CoinGeckoClient
from marketdesk.providers.fmp import FMPClient
from marketdesk.providers.fred import FREDClient
from marketdesk.providers.limiter import RateLimiters
from marketdesk.providers.news import GDELTClient, NewsAPIClient
from marketdesk.providers.resolver import NamedProvider
from marketdesk.providers.sanctions import OpenSanctionsClient
from marketdesk.providers.sec import SECClient
from marketdesk.providers.yahoo import YahooClient


@dataclass
class Providers:
    alpha_vantage: AlphaVantageClient
    fmp: FMPClient
    yahoo: YahooClient
    fred: FREDClient
    newsapi: NewsAPIClient
    gdelt: GDELTClient
    sanctions: OpenSanctionsClient
    crypto: CoinGeckoClient
    sec: SECClient

    @classmethod
    def from_config(cls, config: Config, limiters: RateLimiters | None = None) -> "Providers":
        limiters = limiters or RateLimiters.from_settings(config.limits)
        retry = RetryPolicy(
            max_retries=config.provider_max_retries,
            backoff_seconds=config.provider_backoff,
        )
        common: dict[str, Any] = {
            "timeout": config.provider_timeout,
            "retry": retry,
            "limiters": limiters,
        }
        return cls(
            alpha_vantage=AlphaVantageClient(config.alpha_vantage_api_key, **common),
            fmp=FMPClient(config.fmp_api_key, **common),
            yahoo=YahooClient(**common),
            fred=FREDClient(config.fred_api_key, **common),
            newsapi=NewsAPIClient(config.newsapi_key, **common),
            gdelt=GDELTClient(**common),
            sanctions=OpenSanctionsClient(**common),
            crypto=CoinGeckoClient(**common),
            sec=SECClient(**common),
        )

    @property
    def clients(self) -> list[ProviderClient]:
        return [
            self.alpha_vantage,
            self.fmp,
            self.yahoo,
            self.fred,
            self.newsapi,
            self.gdelt,
            self.sanctions,
            self.crypto,
            self.sec,
        ]

    def company_core_providers(self) -> list[NamedProvider]:
        """Company-core providers in priority order."""
        return [
            alpha_vantage_provider(self.alpha_vantage),
            fmp_provider(self.fmp),
            yahoo_provider(self.yahoo),
        ]

    async def aclose(self) -> None:
        for client in self.clients:
            await client.aclose()
