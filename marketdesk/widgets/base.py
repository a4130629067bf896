"""Shared widget plumbing: context, output model base, synthesis helper."""

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from marketdesk.agent.llm import SynthesisFormatError, TextGenerator, parse_json_object
from marketdesk.agent.prompts import PromptCatalog
from marketdesk.config import DEFAULT_PORTFOLIO_ASSUMED_SHARES
from marketdesk.logging import log
from marketdesk.providers.registry import Providers


class TaskFailure(Exception):
    """Raised by a widget that has nothing usable to synthesise from."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class WidgetContext:
    """Dependencies handed to every widget at construction time."""

    providers: Providers
    llm: TextGenerator
    prompts: PromptCatalog = field(default_factory=PromptCatalog)
    portfolio_assumed_shares: int = DEFAULT_PORTFOLIO_ASSUMED_SHARES
    clock: Callable[[], datetime] = utc_now

    def timestamp(self) -> str:
        return self.clock().isoformat()


class WidgetModel(BaseModel):
    """Base for widget outputs: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_data(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Source(WidgetModel):
    name: str
    timestamp: str
    url: str | None = None


class WidgetOutput(WidgetModel):
    sources: list[Source] = Field(default_factory=list)
    last_updated: str = ""


def source(ctx: WidgetContext, name: str, url: str | None = None) -> Source:
    return Source(name=name, timestamp=ctx.timestamp(), url=url)


def dumps(value: Any) -> str:
    """Compact JSON for prompt payloads."""
    return json.dumps(value, default=str)


def as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def as_dict(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None


async def synthesize(
    ctx: WidgetContext,
    prompt_id: str,
    default_prompt: str,
    user_prompt: str,
    fallback: dict[str, Any],
) -> dict[str, Any]:
    """
    Ask the model for a JSON object.

    A reply that is not a JSON object is a data-shape problem, not a task
    failure: the widget's fallback shape is returned instead. Generation
    errors propagate.
    """
    system_prompt = ctx.prompts.system_prompt(prompt_id, default_prompt)
    reply = await ctx.llm.generate(system_prompt, user_prompt, json_mode=True)
    try:
        return parse_json_object(reply)
    except SynthesisFormatError as e:
        log("runner", f"{prompt_id}: using fallback shape ({e})", level="warning")
        return dict(fallback)


async def summarize(
    ctx: WidgetContext, prompt_id: str, default_prompt: str, user_prompt: str, default: str
) -> str:
    """Free-text synthesis for widgets whose summary is prose."""
    system_prompt = ctx.prompts.system_prompt(prompt_id, default_prompt)
    reply = await ctx.llm.generate(system_prompt, user_prompt, json_mode=False)
    return reply.strip() or default
