"""Extraction service clients: Claude tool use (default) and OpenAI JSON-schema output."""

from __future__ import annotations

import json
from typing import Any, Protocol

import anthropic
import openai
from anthropic import Anthropic
from openai import OpenAI

from src.config import Settings
from src.errors import ExtractionValidationError, UpstreamUnavailableError
from src.pipeline_config import LLMProvider

TOOL_NAME = "store_meeting_analysis"
MAX_OUTPUT_TOKENS = 8192
TEMPERATURE = 0.2


class ExtractionClient(Protocol):
    """Narrow interface to a structured-output LLM."""

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any],
        model: str,
    ) -> dict[str, Any]:
        """Return the structured payload produced for *schema*.

        Raises:
            UpstreamUnavailableError: The provider call failed.
            ExtractionValidationError: The response carried no structured payload.
        """
        ...


class AnthropicExtractionClient:
    """Structured extraction through a forced Claude tool call."""

    def __init__(self, api_key: str = "", client: Anthropic | None = None) -> None:
        self._api_key = api_key
        self._client = client

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any],
        model: str,
    ) -> dict[str, Any]:
        if self._client is None:
            self._client = Anthropic(api_key=self._api_key or None)
        tool: dict[str, Any] = {
            "name": TOOL_NAME,
            "description": (
                "Store the tasks, summary and decisions extracted from a meeting transcript. "
                "Call this once with all results."
            ),
            "input_schema": schema,
        }
        try:
            response = self._client.messages.create(
                model=model,
                max_tokens=MAX_OUTPUT_TOKENS,
                temperature=TEMPERATURE,
                system=system_prompt,
                tools=[tool],
                tool_choice={"type": "tool", "name": TOOL_NAME},
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as exc:
            raise UpstreamUnavailableError(f"Claude request failed ({model}): {exc}") from exc

        return _parse_tool_response(response)


def _parse_tool_response(response: Any) -> dict[str, Any]:
    """Pull the tool input out of a Claude response."""
    for block in response.content:
        if block.type != "tool_use" or block.name != TOOL_NAME:
            continue
        data = block.input
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as exc:
                raise ExtractionValidationError(f"Tool input is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ExtractionValidationError(f"Tool input is {type(data).__name__}, expected object")
        return data

    raise ExtractionValidationError("Response contained no store_meeting_analysis tool call")


class OpenAIExtractionClient:
    """Structured extraction through OpenAI ``json_schema`` response format."""

    def __init__(self, api_key: str = "", client: OpenAI | None = None) -> None:
        self._api_key = api_key
        self._client = client

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any],
        model: str,
    ) -> dict[str, Any]:
        try:
            # OpenAI() raises at construction when no key is configured
            if self._client is None:
                self._client = OpenAI(api_key=self._api_key or None)
            completion = self._client.chat.completions.create(
                model=model,
                temperature=TEMPERATURE,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": "meeting_analysis", "schema": schema},
                },
            )
        except openai.OpenAIError as exc:
            raise UpstreamUnavailableError(f"OpenAI request failed ({model}): {exc}") from exc

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ExtractionValidationError("OpenAI response had no content")
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ExtractionValidationError(f"OpenAI response is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ExtractionValidationError("OpenAI response is not a JSON object")
        return data


def get_extraction_client(settings: Settings) -> ExtractionClient:
    """Build the extraction client selected by ``settings.llm_provider``."""
    provider = LLMProvider(settings.llm_provider)
    if provider is LLMProvider.OPENAI:
        return OpenAIExtractionClient(api_key=settings.openai_api_key)
    return AnthropicExtractionClient(api_key=settings.anthropic_api_key)
