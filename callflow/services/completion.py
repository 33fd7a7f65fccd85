"""Completion adapter over Databricks-served chat models.

Used for agent identification, transcript refinement and call analysis.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from databricks_langchain import ChatDatabricks
from langchain_core.messages import HumanMessage, SystemMessage

from callflow.config import Settings

logger = logging.getLogger(__name__)

PROVIDER = "databricks"


class CompletionError(Exception):
    """Exception raised when the completion model fails or answers unusably."""

    pass


@dataclass
class CompletionOptions:
    """Sampling options for a completion call.

    Attributes:
        temperature: Sampling temperature. None uses the endpoint default.
        max_tokens: Maximum tokens to generate. None uses the endpoint default.
        endpoint: Serving endpoint to call. None uses LLM_ENDPOINT.
    """

    temperature: float | None = None
    max_tokens: int | None = None
    endpoint: str | None = None


@dataclass
class CompletionResult:
    """Text returned by the completion model with usage and model details."""

    text: str
    model: str
    usage: dict[str, Any] = field(default_factory=dict)


def _get_llm(endpoint: str, options: CompletionOptions) -> ChatDatabricks:
    """Get a ChatDatabricks instance for an endpoint and options."""
    kwargs: dict[str, Any] = {"endpoint": endpoint}
    if options.temperature is not None:
        kwargs["temperature"] = options.temperature
    if options.max_tokens is not None:
        kwargs["max_tokens"] = options.max_tokens
    return ChatDatabricks(**kwargs)


def complete(
    system_prompt: str,
    user_prompt: str,
    settings: Settings,
    options: CompletionOptions | None = None,
) -> CompletionResult:
    """Run a single chat completion.

    Args:
        system_prompt: Instructions for the model.
        user_prompt: The content to act on.
        settings: Application settings with the default LLM endpoint.
        options: Optional sampling options.

    Returns:
        CompletionResult: The response text, token usage and endpoint name.

    Raises:
        CompletionError: If the endpoint call fails or returns no text.
    """
    options = options or CompletionOptions()
    endpoint = options.endpoint or settings.LLM_ENDPOINT

    try:
        llm = _get_llm(endpoint, options)
        response = llm.invoke(
            [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        )
    except Exception as e:
        raise CompletionError(f"Completion via {endpoint} failed: {e}") from e

    text = response.content if isinstance(response.content, str) else ""
    if not text.strip():
        raise CompletionError(f"Completion via {endpoint} returned no text")

    usage = dict(getattr(response, "usage_metadata", None) or {})
    logger.debug(f"Completion via {endpoint} used {usage.get('total_tokens', '?')} tokens")
    return CompletionResult(text=text, model=endpoint, usage=usage)


def parse_json_response(text: str) -> Any:
    """Parse JSON from a model response, tolerating a markdown code fence.

    Args:
        text: Raw response text.

    Returns:
        The decoded JSON value.

    Raises:
        CompletionError: If the text is not valid JSON.
    """
    response_text = text.strip()
    if response_text.startswith("```"):
        lines = response_text.split("\n")
        json_lines = []
        in_block = False
        for line in lines:
            if line.startswith("```"):
                in_block = not in_block
                continue
            if in_block:
                json_lines.append(line)
        response_text = "\n".join(json_lines)

    try:
        return json.loads(response_text.strip())
    except json.JSONDecodeError as e:
        raise CompletionError(f"Failed to parse model response as JSON: {e}") from e
