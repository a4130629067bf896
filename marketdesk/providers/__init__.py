"""Providers module - market data adapters, rate limiting and multi-provider resolution."""

from marketdesk.providers.base import (
    FailureReason,
    ProviderClient,
    ProviderError,
    ProviderResult,
    RetryPolicy,
    ensure_number,
    to_number,
)
from marketdesk.providers.company import CompanyCore, CompanySnapshot, company_snapshot
from marketdesk.providers.limiter import Permit, RateLimiters, TokenBucket
from marketdesk.providers.registry import Providers
from marketdesk.providers.resolver import Contribution, NamedProvider, ResolvedRecord, resolve

__all__ = [
    "FailureReason",
    "ProviderClient",
    "ProviderError",
    "ProviderResult",
    "RetryPolicy",
    "ensure_number",
    "to_number",
    "CompanyCore",
    "CompanySnapshot",
    "company_snapshot",
    "Permit",
    "RateLimiters",
    "TokenBucket",
    "Providers",
    "Contribution",
    "NamedProvider",
    "ResolvedRecord",
    "resolve",
]
