"""Configuration management - loads .env and config.toml."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_EXTRACTION_MODEL = "claude-3-5-haiku-20241022"
DEFAULT_LOG_LEVEL = "info"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_PROVIDER_TIMEOUT = 7.0
DEFAULT_PROVIDER_MAX_RETRIES = 2
DEFAULT_PROVIDER_BACKOFF = 0.35

# Placeholder position size used by the portfolio widget to estimate a total
# value. Real position sizes are not known, so this stays configurable.
DEFAULT_PORTFOLIO_ASSUMED_SHARES = 100


@dataclass
class LimiterSettings:
    """Token bucket settings for one upstream provider."""

    capacity: int
    refill_amount: int
    refill_interval: float  # seconds
    min_interval: float = 0.0  # seconds between grants

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LimiterSettings":
        return cls(
            capacity=int(data["capacity"]),
            refill_amount=int(data.get("refill_amount", data["capacity"])),
            refill_interval=float(data.get("refill_interval", 60.0)),
            min_interval=float(data.get("min_interval", 0.0)),
        )


# Alpha Vantage free tier is 5 req/min, FMP is far more generous
DEFAULT_LIMITS: dict[str, LimiterSettings] = {
    "alpha_vantage": LimiterSettings(
        capacity=5, refill_amount=5, refill_interval=60.0, min_interval=0.25
    ),
    "fmp": LimiterSettings(
        capacity=100, refill_amount=100, refill_interval=60.0, min_interval=0.1
    ),
}


@dataclass
class Config:
    """Application configuration."""

    # Required
    anthropic_api_key: str

    # Market data keys (optional - widgets degrade without them)
    alpha_vantage_api_key: str | None = None
    fmp_api_key: str | None = None
    fred_api_key: str | None = None
    newsapi_key: str | None = None

    # Model settings
    model: str = DEFAULT_MODEL
    extraction_model: str = DEFAULT_EXTRACTION_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    log_level: str = DEFAULT_LOG_LEVEL

    # Provider call behaviour
    provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT
    provider_max_retries: int = DEFAULT_PROVIDER_MAX_RETRIES
    provider_backoff: float = DEFAULT_PROVIDER_BACKOFF
    limits: dict[str, LimiterSettings] = field(
        default_factory=lambda: dict(DEFAULT_LIMITS)
    )

    portfolio_assumed_shares: int = DEFAULT_PORTFOLIO_ASSUMED_SHARES

    # Paths
    data_dir: Path = field(default_factory=lambda: Path.home() / ".marketdesk")

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"

    @property
    def history_dir(self) -> Path:
        return self.data_dir / "history"

    @property
    def prompts_path(self) -> Path:
        return self.data_dir / "prompts.toml"

    def ensure_dirs(self) -> None:
        """Create all required directories."""
        for dir_path in [self.logs_dir, self.history_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


def load_config(env_path: Path | None = None) -> Config:
    """
    Load configuration from .env and config.toml.

    Priority (highest to lowest):
    1. Environment variables
    2. config.toml
    3. Defaults
    """
    # Load .env file
    if env_path:
        load_dotenv(env_path)
    else:
        # Try local .env first, then ~/.marketdesk/.env
        local_env = Path.cwd() / ".env"
        home_env = Path.home() / ".marketdesk" / ".env"

        if local_env.exists():
            load_dotenv(local_env)
        elif home_env.exists():
            load_dotenv(home_env)

    toml_config = _load_toml_config()

    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise ConfigError(
            "ANTHROPIC_API_KEY not found. Set it in .env or environment.\n"
            "Get your key at: https://console.anthropic.com/"
        )

    general = toml_config.get("general", {})
    providers = toml_config.get("providers", {})

    limits = dict(DEFAULT_LIMITS)
    for provider_id, settings in toml_config.get("limits", {}).items():
        try:
            limits[provider_id] = LimiterSettings.from_dict(settings)
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid [limits.{provider_id}] in config.toml: {e}") from e

    config = Config(
        anthropic_api_key=api_key,
        alpha_vantage_api_key=os.getenv("ALPHA_VANTAGE_API_KEY") or None,
        fmp_api_key=os.getenv("FMP_API_KEY") or None,
        fred_api_key=os.getenv("FRED_API_KEY") or None,
        newsapi_key=os.getenv("NEWSAPI_KEY") or None,
        model=os.getenv("MODEL", general.get("default_model", DEFAULT_MODEL)),
        extraction_model=general.get("extraction_model", DEFAULT_EXTRACTION_MODEL),
        max_tokens=general.get("max_tokens", DEFAULT_MAX_TOKENS),
        log_level=os.getenv("LOG_LEVEL", general.get("log_level", DEFAULT_LOG_LEVEL)),
        provider_timeout=providers.get("timeout_seconds", DEFAULT_PROVIDER_TIMEOUT),
        provider_max_retries=providers.get("max_retries", DEFAULT_PROVIDER_MAX_RETRIES),
        provider_backoff=providers.get("backoff_seconds", DEFAULT_PROVIDER_BACKOFF),
        limits=limits,
        portfolio_assumed_shares=toml_config.get("portfolio", {}).get(
            "assumed_shares", DEFAULT_PORTFOLIO_ASSUMED_SHARES
        ),
    )

    config.ensure_dirs()

    return config


def _load_toml_config() -> dict[str, Any]:
    """Load config.toml if it exists."""
    config_path = Path.home() / ".marketdesk" / "config.toml"

    if not config_path.exists():
        return {}

    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid config.toml: {e}") from e


# Global config instance (lazy loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global config instance, loading it if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset the global config (useful for testing)."""
    global _config
    _config = None
