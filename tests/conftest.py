"""Pytest configuration and fixtures."""

import json
import os
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import patch

import httpx
import pytest

from marketdesk.agent.prompts import PromptCatalog
from marketdesk.config import Config, reset_config
from marketdesk.providers.alpha_vantage import AlphaVantageClient
from marketdesk.providers.base import FailureReason, ProviderResult
from marketdesk.providers.crypto import CoinGeckoClient
from marketdesk.providers.fmp import FMPClient
from marketdesk.providers.fred import FREDClient
from marketdesk.providers.news import GDELTClient, NewsAPIClient
from marketdesk.providers.registry import Providers
from marketdesk.providers.sanctions import OpenSanctionsClient
from marketdesk.providers.sec import SECClient
from marketdesk.providers.yahoo import YahooClient
from marketdesk.widgets.base import WidgetContext

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


async def no_sleep(delay: float) -> None:
    return None


class FakeClock:
    """Manual clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


class FakeGenerator:
    """
    TextGenerator stand-in.

    `reply` is either a fixed string or a function of
    (system_prompt, user_prompt, json_mode). Every call is recorded.
    """

    def __init__(self, reply: str | Callable[[str, str, bool], str] = "{}"):
        self.reply = reply
        self.calls: list[tuple[str, str, bool]] = []

    async def generate(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        self.calls.append((system_prompt, user_prompt, json_mode))
        if callable(self.reply):
            return self.reply(system_prompt, user_prompt, json_mode)
        return self.reply


def json_reply(data: Any) -> str:
    return json.dumps(data)


def make_providers(
    handler: Callable[[httpx.Request], httpx.Response], **keys: str
) -> Providers:
    """Providers whose HTTP traffic goes to `handler` and whose retries never sleep."""

    def client(cls, api_key=None):
        return cls(
            api_key,
            http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            sleep=no_sleep,
        )

    return Providers(
        alpha_vantage=client(AlphaVantageClient, keys.get("alpha_vantage", "av-key")),
        fmp=client(FMPClient, keys.get("fmp", "fmp-key")),
        yahoo=client(YahooClient),
        fred=client(FREDClient, keys.get("fred", "fred-key")),
        newsapi=client(NewsAPIClient, keys.get("newsapi", "news-key")),
        gdelt=client(GDELTClient),
        sanctions=client(OpenSanctionsClient),
        crypto=client(CoinGeckoClient),
        sec=client(SECClient),
    )


def offline_yahoo(providers: Providers) -> None:
    """Stop the Yahoo adapter from reaching yfinance."""

    async def company_facts(ticker: str) -> ProviderResult[dict[str, Any]]:
        return ProviderResult.failed(FailureReason.NOT_FOUND, "yahoo: offline", source="yahoo")

    providers.yahoo.company_facts = company_facts  # type: ignore[method-assign]


def not_found(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, json={})


@pytest.fixture(autouse=True)
def reset_global_config():
    """Reset global config before each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def mock_env(tmp_path: Path):
    """Mock environment variables for testing."""
    env_vars = {
        "ANTHROPIC_API_KEY": "test-api-key-12345",
        "MODEL": "claude-sonnet-4-20250514",
        "LOG_LEVEL": "debug",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars


@pytest.fixture
def test_config(mock_env, tmp_path: Path) -> Config:
    """Create a test configuration."""
    return Config(
        anthropic_api_key=mock_env["ANTHROPIC_API_KEY"],
        model=mock_env["MODEL"],
        log_level=mock_env["LOG_LEVEL"],
        data_dir=tmp_path / ".marketdesk",
    )


@pytest.fixture
def widget_ctx():
    """Factory for a WidgetContext over a mock HTTP handler and a fake generator."""

    def build(
        handler: Callable[[httpx.Request], httpx.Response] = not_found,
        llm: FakeGenerator | None = None,
        **kwargs: Any,
    ) -> WidgetContext:
        providers = make_providers(handler)
        offline_yahoo(providers)
        return WidgetContext(
            providers=providers,
            llm=llm or FakeGenerator(),
            prompts=PromptCatalog(),
            clock=lambda: FIXED_NOW,
            **kwargs,
        )

    return build
