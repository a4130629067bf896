"""Agent module - entity extraction, routing, task fan-out and the event stream."""

from marketdesk.agent.entities import CompanyRef, EntityDescriptor, EntityExtractor
from marketdesk.agent.llm import AnthropicGenerator, GenerationError, TextGenerator
from marketdesk.agent.prompts import PromptCatalog, WidgetPrompt
from marketdesk.agent.router import Task, TaskRouter
from marketdesk.agent.runner import TaskRunner
from marketdesk.agent.schemas import EventKind, StreamEvent, TaskOutcome
from marketdesk.agent.stream import EventChannel, StreamAggregator, analyze

__all__ = [
    "AnthropicGenerator",
    "CompanyRef",
    "EntityDescriptor",
    "EntityExtractor",
    "EventChannel",
    "EventKind",
    "GenerationError",
    "PromptCatalog",
    "StreamAggregator",
    "StreamEvent",
    "Task",
    "TaskOutcome",
    "TaskRouter",
    "TaskRunner",
    "TextGenerator",
    "WidgetPrompt",
    "analyze",
]
