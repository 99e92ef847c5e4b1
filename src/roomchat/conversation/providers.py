"""
Model transport abstractions for the roomchat conversation package.

Defines the `ModelProvider` Protocol so the `ConversationOrchestrator` can
work with any OpenAI-compatible chat-completions backend (OpenAI, Azure
OpenAI, a local Ollama server, etc.) without being tied to one vendor.

The concrete implementation, `OpenAICompatibleProvider`, uses the `openai`
SDK. Its ``azure()`` factory targets an Azure OpenAI deployment and obtains
a bearer token from an opaque async callable before each request.

SDK exceptions are translated into the ``TransportFailure`` family from
``roomchat.errors`` so callers never need to import ``openai``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from openai import (
    APIConnectionError,
    APIError,
    APIResponseValidationError,
    APIStatusError,
    AsyncAzureOpenAI,
    AsyncOpenAI,
    RateLimitError,
)

from roomchat.errors import (
    MalformedResponseError,
    TransportAPIError,
    TransportConnectionError,
    TransportRateLimitError,
)

logger = logging.getLogger(__name__)

# Async callable returning a bearer token for the model endpoint.
TokenProvider = Callable[[], Awaitable[str]]

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_AZURE_API_VERSION = "2024-10-21"


# ---------------------------------------------------------------------------
# Core data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolDefinition:
    """Describes a callable tool available to the model.

    Mirrors the OpenAI function-calling tool definition format.

    Attributes:
        name: The tool's unique name (used by the model to invoke it).
        description: Human-readable description shown in the tool prompt.
        parameters: JSON Schema dict describing the tool's input parameters.
        strict: Ask the model to follow ``parameters`` exactly.
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    strict: bool = False

    def to_openai_format(self) -> dict[str, Any]:
        """Serialise to OpenAI tool definition format."""
        function: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }
        if self.strict:
            function["strict"] = True
        return {"type": "function", "function": function}


@dataclass
class ToolCall:
    """A tool invocation requested by the model.

    Attributes:
        id: Unique call ID returned by the model (used to correlate the result).
        name: Name of the tool to invoke.
        arguments: Decoded JSON arguments.
    """

    id: str
    name: str
    arguments: Any


@dataclass
class CompletionChoice:
    """One choice of a chat-completions response.

    Attributes:
        finish_reason: ``"stop"`` for a final text answer, ``"tool_calls"``
            when the model wants to invoke tools.
        content: Assistant text (the final answer when finish_reason == "stop").
        tool_calls: Requested tool invocations, in the order the model sent them.
        raw_message: The assistant message dict, ready to append to history.
    """

    finish_reason: str
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    raw_message: dict[str, Any] = field(default_factory=dict)


@dataclass
class CompletionResult:
    """Result of a single round trip to the model.

    Attributes:
        choices: The response choices, in the order the API returned them.
    """

    choices: list[CompletionChoice]


# ---------------------------------------------------------------------------
# ModelProvider Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ModelProvider(Protocol):
    """Protocol for model backends used by ConversationOrchestrator."""

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[ToolDefinition],
    ) -> CompletionResult:
        """Send a completion request to the model.

        Args:
            messages: The full conversation history in OpenAI message format.
            tools: The available tool definitions.

        Returns:
            A `CompletionResult` with one or more choices.

        Raises:
            TransportFailure: If the round trip fails for any reason.
        """
        ...


# ---------------------------------------------------------------------------
# Concrete provider implementation
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """Model provider backed by any OpenAI-compatible endpoint.

    Attributes:
        model: The model (or Azure deployment) identifier.
        temperature: Sampling temperature, or ``None`` for the server default.
    """

    def __init__(
        self,
        base_url: str | None = None,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        temperature: float | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self._client = client or AsyncOpenAI(base_url=base_url, api_key=api_key)

    @classmethod
    def azure(
        cls,
        endpoint: str,
        token_provider: TokenProvider,
        deployment: str = DEFAULT_MODEL,
        api_version: str = DEFAULT_AZURE_API_VERSION,
        temperature: float | None = None,
    ) -> OpenAICompatibleProvider:
        """Build a provider for an Azure OpenAI deployment.

        Args:
            endpoint: Resource endpoint, e.g. ``https://my-res.openai.azure.com``.
            token_provider: Async callable returning a bearer token; it is
                awaited by the SDK whenever a request needs one.
            deployment: Deployment name, also sent as the request model.
            api_version: Azure OpenAI REST API version.
        """
        client = AsyncAzureOpenAI(
            azure_endpoint=endpoint,
            azure_deployment=deployment,
            api_version=api_version,
            azure_ad_token_provider=token_provider,
        )
        return cls(model=deployment, temperature=temperature, client=client)

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[ToolDefinition],
    ) -> CompletionResult:
        """Call the model and return a structured `CompletionResult`.

        Raises:
            TransportRateLimitError: If the API returns a 429 response.
            TransportConnectionError: If the API endpoint cannot be reached.
            TransportAPIError: For other API-level failures (e.g. 4xx/5xx).
            MalformedResponseError: If the response carries no choices or fails
                the SDK's schema validation.
        """
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
        }
        if tools:
            kwargs["tools"] = [t.to_openai_format() for t in tools]
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature

        logger.debug(
            "Model request: model=%s, messages=%d, tools=%d",
            self.model,
            len(messages),
            len(tools),
        )

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except RateLimitError as exc:
            logger.warning("Model rate limit exceeded: %s", exc)
            raise TransportRateLimitError(f"Rate limit exceeded: {exc}") from exc
        except APIConnectionError as exc:
            logger.error("Model connection failed: %s", exc)
            raise TransportConnectionError(
                f"Could not connect to model endpoint: {exc}"
            ) from exc
        except APIStatusError as exc:
            logger.error("Model API error %d: %s", exc.status_code, exc)
            raise TransportAPIError(
                f"Model API returned status {exc.status_code}: {exc}",
                status_code=exc.status_code,
            ) from exc
        except APIResponseValidationError as exc:
            logger.error("Model response failed validation: %s", exc)
            raise MalformedResponseError(f"Malformed model response: {exc}") from exc
        except APIError as exc:
            logger.error("Model API error: %s", exc)
            raise TransportAPIError(f"Model API error: {exc}") from exc

        if not getattr(response, "choices", None):
            raise MalformedResponseError("Model response contained no choices.")

        choices = [self._convert_choice(choice) for choice in response.choices]
        logger.debug(
            "Model response: finish_reasons=%s",
            [choice.finish_reason for choice in choices],
        )
        return CompletionResult(choices=choices)

    @staticmethod
    def _convert_choice(choice: Any) -> CompletionChoice:
        """Translate an SDK choice into a `CompletionChoice`."""
        message = choice.message
        raw_message: dict[str, Any] = {"role": "assistant"}
        if message.content is not None:
            raw_message["content"] = message.content

        tool_calls: list[ToolCall] = []
        raw_tool_calls: list[dict[str, Any]] = []
        for tc in message.tool_calls or []:
            try:
                args = json.loads(tc.function.arguments)
            except (TypeError, json.JSONDecodeError):
                logger.warning(
                    "Undecodable arguments for tool %r: %r",
                    tc.function.name,
                    tc.function.arguments,
                )
                args = {}
            tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=args))
            raw_tool_calls.append(
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.function.name,
                        "arguments": tc.function.arguments,
                    },
                }
            )
        if raw_tool_calls:
            raw_message["tool_calls"] = raw_tool_calls

        return CompletionChoice(
            finish_reason=choice.finish_reason or "stop",
            content=message.content,
            tool_calls=tool_calls,
            raw_message=raw_message,
        )
