"""
Task routing - decides which analysis tasks apply to a query.

Each predicate is a pure function of the extracted entity and the raw query.
Predicates overlap freely; macro-sector always runs so a query never
activates zero tasks.
"""

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from pydantic import BaseModel

from marketdesk.agent.entities import EntityDescriptor
from marketdesk.logging import log

Predicate = Callable[[EntityDescriptor, str], bool]

CRYPTO_PATTERN = re.compile(r"bitcoin|ethereum|crypto|btc|eth", re.IGNORECASE)
DAY_TRADING_PATTERN = re.compile(r"day.*trad|intraday|scalp|short.*term", re.IGNORECASE)
MA_PATTERN = re.compile(r"m&a|merger|acquisition|deal", re.IGNORECASE)
SENTIMENT_PATTERN = re.compile(r"sentiment|mood|feeling|emotion", re.IGNORECASE)


@dataclass(frozen=True)
class Task:
    """One analysis unit: id is the wire discriminator."""

    id: str
    label: str
    predicate: Predicate
    run: Callable[[EntityDescriptor], Awaitable[BaseModel]]
    progress: str = ""

    def applies(self, entity: EntityDescriptor, query: str) -> bool:
        return self.predicate(entity, query)


def is_comparison(entity: EntityDescriptor, query: str) -> bool:
    return entity.is_comparison and len(entity.companies) >= 2


def has_company(entity: EntityDescriptor, query: str) -> bool:
    return bool(entity.ticker or entity.company_name)


def has_company_name(entity: EntityDescriptor, query: str) -> bool:
    return bool(entity.company_name)


def has_ticker(entity: EntityDescriptor, query: str) -> bool:
    return bool(entity.ticker)


def always(entity: EntityDescriptor, query: str) -> bool:
    return True


def mentions_crypto(entity: EntityDescriptor, query: str) -> bool:
    return bool(CRYPTO_PATTERN.search(query))


def wants_sentiment(entity: EntityDescriptor, query: str) -> bool:
    return bool(entity.company_name) or bool(SENTIMENT_PATTERN.search(query))


def wants_day_trading(entity: EntityDescriptor, query: str) -> bool:
    return bool(entity.ticker) and bool(DAY_TRADING_PATTERN.search(query))


def wants_ma(entity: EntityDescriptor, query: str) -> bool:
    return bool(entity.ticker) and bool(MA_PATTERN.search(query))


def has_positions(entity: EntityDescriptor, query: str) -> bool:
    return len(entity.companies) > 0 or bool(entity.ticker)


class TaskRouter:
    """Filters a registered task list down to those whose predicate holds."""

    def __init__(self, tasks: list[Task]):
        ids = [task.id for task in tasks]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate task ids: {ids}")
        self.tasks = list(tasks)

    def route(self, entity: EntityDescriptor, query: str) -> list[Task]:
        """Activated tasks, in registration order."""
        active = [task for task in self.tasks if task.applies(entity, query)]
        log("router", "Routed query", tasks=[task.id for task in active])
        return active
