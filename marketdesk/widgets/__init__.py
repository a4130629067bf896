"""Analysis widgets and the task registry that exposes them to the router."""

from functools import partial

from marketdesk.agent.router import (
    Predicate,
    Task,
    always,
    has_company,
    has_company_name,
    has_positions,
    has_ticker,
    is_comparison,
    mentions_crypto,
    wants_day_trading,
    wants_ma,
    wants_sentiment,
)
from marketdesk.widgets import (
    analyst_consensus,
    company_snapshot,
    comparison,
    crypto,
    day_trader,
    financial_analyst,
    investment_thesis,
    ma_specialist,
    macro_sector,
    market_sentiment,
    news_impact,
    peer_comparison,
    portfolio,
    risk_flags,
)
from marketdesk.widgets.base import TaskFailure, WidgetContext

# (task id, label, progress text, predicate, module) in registration order
REGISTRY: list[tuple[str, str, str, Predicate, object]] = [
    ("comparison", "Comparison", "Comparing companies...", is_comparison, comparison),
    ("company-snapshot", "Company snapshot", "Fetching company snapshot...", has_company, company_snapshot),
    ("news-impact", "News analysis", "Analyzing news impact...", has_company_name, news_impact),
    ("macro-sector", "Macro analysis", "Fetching macro indicators...", always, macro_sector),
    ("risk-flags", "Risk screening", "Screening for risk flags...", has_company_name, risk_flags),
    ("crypto", "Crypto data", "Fetching crypto data...", mentions_crypto, crypto),
    ("financial-analyst", "Financial analysis", "Preparing financial analysis...", has_ticker, financial_analyst),
    ("day-trader", "Day trading analysis", "Analyzing intraday patterns...", wants_day_trading, day_trader),
    ("ma-specialist", "M&A analysis", "Analyzing M&A landscape...", wants_ma, ma_specialist),
    ("portfolio", "Portfolio analysis", "Analyzing portfolio...", has_positions, portfolio),
    ("market-sentiment", "Sentiment analysis", "Analyzing market sentiment...", wants_sentiment, market_sentiment),
    ("analyst-consensus", "Analyst consensus", "Gathering analyst consensus...", has_ticker, analyst_consensus),
    ("investment-thesis", "Investment thesis", "Generating investment thesis...", has_company, investment_thesis),
    ("peer-comparison", "Peer comparison", "Comparing to peers...", has_ticker, peer_comparison),
]


def build_tasks(ctx: WidgetContext) -> list[Task]:
    """Bind every widget to a shared context, in registration order."""
    return [
        Task(
            id=task_id,
            label=label,
            predicate=predicate,
            run=partial(module.run, ctx=ctx),  # type: ignore[attr-defined]
            progress=progress,
        )
        for task_id, label, progress, predicate, module in REGISTRY
    ]


__all__ = ["REGISTRY", "TaskFailure", "WidgetContext", "build_tasks"]
