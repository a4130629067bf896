"""
Stream aggregator - merges widget events, the narrative answer and follow-up
suggestions into one ordered event stream per query.

The stream is driven by a background producer writing into an EventChannel.
The channel is closed exactly once, whichever way the producer exits, and
the producer is cancelled if the consumer stops reading.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

from marketdesk.agent.entities import EntityExtractor
from marketdesk.agent.llm import (
    AnthropicGenerator,
    SynthesisFormatError,
    TextGenerator,
    parse_json,
)
from marketdesk.agent.prompts import DEFAULT_PROMPTS, PromptCatalog
from marketdesk.agent.router import TaskRouter
from marketdesk.agent.runner import TaskRunner, describe_failure
from marketdesk.agent.schemas import StreamEvent
from marketdesk.config import get_config
from marketdesk.logging import log
from marketdesk.providers.registry import Providers
from marketdesk.storage.history import ChatHistory

ACKNOWLEDGEMENT = "Analyzing your query..."
SUGGESTIONS_SYSTEM_PROMPT = "You are a helpful financial research assistant."
SUGGESTIONS_PROMPT = (
    'Based on this financial query: "{query}", suggest 3 relevant follow-up questions '
    "a user might ask. Return only a JSON array of strings."
)

_CLOSED = object()


class ChannelClosed(Exception):
    """Raised when sending on a channel that has already been closed."""


class EventChannel:
    """
    Single-consumer event queue with an idempotent close.

    Used as an async context manager by the producer so that close() runs on
    every exit path; iterating it yields events until the close marker.
    """

    def __init__(self):
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: StreamEvent) -> None:
        if self._closed:
            raise ChannelClosed(f"Cannot send {event.kind.value} on a closed channel")
        await self._queue.put(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        log("stream", "Channel closed")

    async def __aenter__(self) -> "EventChannel":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


def parse_suggestions(reply: str) -> list[str] | None:
    """Suggestions from a model reply, or None unless it is a JSON list of strings."""
    try:
        data = parse_json(reply)
    except SynthesisFormatError:
        return None
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        return None
    return data


class StreamAggregator:
    """Runs the three stages of a query concurrently and serialises their events."""

    def __init__(
        self,
        extractor: EntityExtractor,
        router: TaskRouter,
        runner: TaskRunner,
        llm: TextGenerator,
        prompts: PromptCatalog,
        history: ChatHistory | None = None,
        session_id: str | None = None,
    ):
        self.extractor = extractor
        self.router = router
        self.runner = runner
        self.llm = llm
        self.prompts = prompts
        self.history = history
        self.session_id = session_id

    async def run(self, query: str) -> AsyncIterator[StreamEvent]:
        """Yield every event for one query; ends when the channel closes."""
        channel = EventChannel()
        producer = asyncio.create_task(self._produce(query, channel))
        try:
            async for event in channel:
                yield event
        finally:
            if not producer.done():
                log("stream", "Consumer stopped early, cancelling producer")
                producer.cancel()
                # Let in-flight provider calls unwind before the caller closes clients
                await asyncio.wait([producer])

    async def _produce(self, query: str, channel: EventChannel) -> None:
        async with channel:
            log("stream", f"Query: {query[:100]}")
            await channel.send(StreamEvent.text(ACKNOWLEDGEMENT))
            self._record("user", query)

            results = await asyncio.gather(
                self._widgets(query, channel),
                self._narrative(query, channel),
                self._suggestions(query, channel),
                return_exceptions=True,
            )

            failures = [r for r in results if isinstance(r, Exception)]
            for failure in failures:
                log("stream", f"Stage failed: {failure!r}", level="error")
            if failures:
                await channel.send(StreamEvent.error(describe_failure(failures[0])))

    async def _widgets(self, query: str, channel: EventChannel) -> None:
        entity = await self.extractor.extract(query)
        tasks = self.router.route(entity, query)
        async for event in self.runner.run_all(tasks, entity):
            await channel.send(event)

    async def _narrative(self, query: str, channel: EventChannel) -> None:
        system_prompt = self.prompts.system_prompt("chat", DEFAULT_PROMPTS["chat"].system_prompt)
        answer = await self.llm.generate(system_prompt, query)
        await channel.send(StreamEvent.text(answer))
        self._record("assistant", answer)

    async def _suggestions(self, query: str, channel: EventChannel) -> None:
        reply = await self.llm.generate(
            SUGGESTIONS_SYSTEM_PROMPT, SUGGESTIONS_PROMPT.format(query=query), json_mode=True
        )
        suggestions = parse_suggestions(reply)
        if suggestions is None:
            log("stream", "Suggestions reply was not a list of strings, omitted")
            return
        await channel.send(StreamEvent.suggestions_event(suggestions))

    def _record(self, role: str, content: str) -> None:
        """Best-effort history write; storage problems never reach the stream."""
        if self.history is None:
            return
        try:
            if self.session_id is None:
                self.session_id = self.history.create_session(content[:80]).id
            self.history.add_message(self.session_id, role, content)
        except (OSError, ValueError) as e:
            log("history", f"Could not record {role} message: {e}", level="warning")


async def analyze(
    query: str,
    *,
    llm: TextGenerator | None = None,
    providers: Providers | None = None,
    prompts: PromptCatalog | None = None,
    history: ChatHistory | None = None,
    session_id: str | None = None,
) -> AsyncIterator[StreamEvent]:
    """
    Analyze a query and stream its events.

    Anything not supplied is built from the global config. Provider clients
    created here are closed when the stream ends.
    """
    # Deferred: widgets import the agent package
    from marketdesk.widgets import WidgetContext, build_tasks

    config = get_config()
    owns_providers = providers is None
    providers = providers or Providers.from_config(config)
    extraction_llm = llm or AnthropicGenerator(config, model=config.extraction_model)
    llm = llm or AnthropicGenerator(config)
    prompts = prompts or PromptCatalog(config.prompts_path)

    ctx = WidgetContext(
        providers=providers,
        llm=llm,
        prompts=prompts,
        portfolio_assumed_shares=config.portfolio_assumed_shares,
    )
    aggregator = StreamAggregator(
        extractor=EntityExtractor(extraction_llm),
        router=TaskRouter(build_tasks(ctx)),
        runner=TaskRunner(),
        llm=llm,
        prompts=prompts,
        history=history,
        session_id=session_id,
    )
    try:
        async with aclosing(aggregator.run(query)) as events:
            async for event in events:
                yield event
    finally:
        if owns_providers:
            await providers.aclose()
