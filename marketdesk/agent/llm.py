"""Text-generation capability - a thin async wrapper over Claude."""

import json
from typing import Any, Protocol

import anthropic
from anthropic import AsyncAnthropic

from marketdesk.config import Config, get_config
from marketdesk.logging import log, log_api_call

JSON_MODE_INSTRUCTION = (
    "\n\nRespond ONLY with valid JSON. Do not wrap it in prose or markdown."
)


class GenerationError(Exception):
    """Raised when the text-generation service is unavailable or errors."""


class SynthesisFormatError(ValueError):
    """Raised when a JSON-mode reply cannot be decoded into the expected shape."""


class TextGenerator(Protocol):
    async def generate(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        ...


class AnthropicGenerator:
    """TextGenerator backed by the Anthropic Messages API."""

    def __init__(
        self,
        config: Config | None = None,
        model: str | None = None,
        client: AsyncAnthropic | None = None,
    ):
        self.config = config or get_config()
        self.model = model or self.config.model
        self.client = client or AsyncAnthropic(api_key=self.config.anthropic_api_key)

    async def generate(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        system = system_prompt + JSON_MODE_INSTRUCTION if json_mode else system_prompt

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.config.max_tokens,
                system=system,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as e:
            log("api", f"Generation failed: {e}", level="error", model=self.model)
            raise GenerationError(f"Text generation failed: {e}") from e

        log_api_call(
            self.model,
            response.usage.input_tokens,
            response.usage.output_tokens,
            json_mode=json_mode,
        )

        return "".join(block.text for block in response.content if block.type == "text")


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if "```json" in text:
        start = text.find("```json") + 7
        end = text.find("```", start)
        if end > start:
            text = text[start:end].strip()
    elif "```" in text:
        start = text.find("```") + 3
        end = text.find("```", start)
        if end > start:
            text = text[start:end].strip()
    return text


def parse_json(text: str) -> Any:
    """Parse JSON from a model reply, handling markdown code blocks."""
    try:
        return json.loads(_strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise SynthesisFormatError(f"Reply is not valid JSON: {e}") from e


def parse_json_object(text: str) -> dict[str, Any]:
    data = parse_json(text)
    if not isinstance(data, dict):
        raise SynthesisFormatError(f"Expected a JSON object, got {type(data).__name__}")
    return data
