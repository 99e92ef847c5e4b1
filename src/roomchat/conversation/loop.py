"""
ConversationOrchestrator: the tool-calling loop behind roomchat.

This module implements the core conversational behaviour: sending the
conversation to the model, executing the tool calls it requests against the
room dataset, feeding results back, and repeating until the model produces a
final text answer.

The loop moves between three states::

    AWAITING_MODEL --tool_calls--> EXECUTING_TOOLS --batch done--> AWAITING_MODEL
    AWAITING_MODEL --stop--> DONE

The only suspension point is the round trip to the model. Tool calls within
a batch run synchronously, one after another, in the order the model sent
them, so message history is always appended in a deterministic order.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from roomchat.conversation.providers import (
    CompletionChoice,
    CompletionResult,
    ModelProvider,
    ToolCall,
    ToolDefinition,
)
from roomchat.conversation.tools.registry import SelectionSink, ToolContext, ToolRegistry
from roomchat.errors import RoundTripLimitExceeded, UnknownTool
from roomchat.rooms.dataset import RoomDataset

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """You're an assistant that provides real-time insights about a building by querying an internal API.
Your goal is to interpret the user's request, call the appropriate function and generate a clear response.

Capabilities:
- search for rooms based on provided criteria
- select rooms in the building view

Instructions:
1. Understand user intent and extract relevant details.
2. Call API tools to fetch data.
3. Process and summarize results.
4. Generate a human-readable response.
5. Ask clarifying questions if needed.
6. Handle errors gracefully.
"""


class OrchestratorState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


@dataclass(frozen=True)
class OrchestratorConfig:
    """Immutable settings for a ``ConversationOrchestrator``.

    Attributes:
        system_prompt: Instruction text placed first in every conversation.
        tool_catalog: Tool definitions sent to the model on every round trip.
        max_round_trips: Maximum model calls per run (guard against a model
            that never stops calling tools).
    """

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    tool_catalog: tuple[ToolDefinition, ...] = ()
    max_round_trips: int = 10

    def __post_init__(self) -> None:
        if self.max_round_trips <= 0:
            raise ValueError("max_round_trips must be a positive integer.")


class ConversationOrchestrator:
    """Runs one question through the model + tool-calling loop.

    An orchestrator is not reentrant: ``run`` must not be awaited twice at
    the same time on the same instance. Independent conversations should use
    independent instances.

    Typical usage::

        registry = build_room_registry()
        orchestrator = ConversationOrchestrator(provider, registry)
        answer = await orchestrator.run(
            "How many rooms are occupied on level 3?",
            dataset,
            viewer.select,
        )

    Attributes:
        provider: The model backend (any `ModelProvider` implementation).
        registry: Tools the model may call.
        config: Prompt, tool catalog and round-trip cap.
        state: Current `OrchestratorState`.
        messages: Message history of the current (or last) run.
    """

    def __init__(
        self,
        provider: ModelProvider,
        registry: ToolRegistry,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.config = config or OrchestratorConfig(
            tool_catalog=tuple(registry.get_definitions())
        )
        self.state = OrchestratorState.DONE
        self.messages: list[dict[str, Any]] = []
        self._running = False

    async def run(
        self,
        prompt: str,
        dataset: RoomDataset,
        selection_sink: SelectionSink,
    ) -> str:
        """Answer *prompt* using the tools over *dataset*.

        Returns:
            The content of the first ``stop`` choice, verbatim.

        Raises:
            TransportFailure: If a round trip to the model fails. The run is
                over; nothing is retried.
            RoundTripLimitExceeded: If ``max_round_trips`` model calls pass
                without a final answer.
            RuntimeError: If the orchestrator is already running.
        """
        if self._running:
            raise RuntimeError("ConversationOrchestrator.run() is not reentrant.")
        self._running = True
        try:
            return await self._run(prompt, ToolContext(dataset=dataset, select=selection_sink))
        finally:
            self._running = False

    async def _run(self, prompt: str, context: ToolContext) -> str:
        self.messages = [
            {"role": "system", "content": self.config.system_prompt},
            {"role": "user", "content": prompt},
        ]
        self.state = OrchestratorState.AWAITING_MODEL
        tools = list(self.config.tool_catalog)
        max_round_trips = self.config.max_round_trips
        run_start = time.monotonic()

        for round_trip in range(1, max_round_trips + 1):
            logger.debug("Round trip %d/%d", round_trip, max_round_trips)

            t0 = time.monotonic()
            result: CompletionResult = await self.provider.complete(list(self.messages), tools)
            logger.debug(
                "Model call %d took %.3fs (finish_reasons=%s)",
                round_trip,
                time.monotonic() - t0,
                [choice.finish_reason for choice in result.choices],
            )

            for choice in result.choices:
                if choice.finish_reason == "tool_calls":
                    self.state = OrchestratorState.EXECUTING_TOOLS
                    self._execute_batch(choice, context)
                elif choice.finish_reason == "stop":
                    self.state = OrchestratorState.DONE
                    logger.info(
                        "Run complete after %d round trip(s) in %.3fs",
                        round_trip,
                        time.monotonic() - run_start,
                    )
                    return choice.content or ""
                else:
                    logger.warning(
                        "Ignoring choice with unexpected finish_reason=%r",
                        choice.finish_reason,
                    )

            self.state = OrchestratorState.AWAITING_MODEL

        raise RoundTripLimitExceeded(
            f"No final answer after max_round_trips={max_round_trips}. "
            "Check for tool call loops."
        )

    # ------------------------------------------------------------------
    # Tool execution
    # ------------------------------------------------------------------

    def _execute_batch(self, choice: CompletionChoice, context: ToolContext) -> None:
        """Execute a batch of tool calls and append their results to history.

        Calls without an outcome (unknown tools) are left out entirely; the
        assistant message only lists the calls that have a result.
        """
        answered: list[ToolCall] = []
        results: list[dict[str, Any]] = []

        for call in choice.tool_calls:
            outcome = self._execute_call(call, context)
            if outcome is None:
                continue
            answered.append(call)
            results.append(
                {
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": outcome,
                }
            )

        if not results:
            return
        self.messages.append(_assistant_message(choice, answered))
        self.messages.extend(results)

    def _execute_call(self, call: ToolCall, context: ToolContext) -> str | None:
        try:
            return self.registry.dispatch(call.name, call.arguments, context)
        except UnknownTool:
            logger.warning("Model requested unknown tool %r; skipping call %s", call.name, call.id)
            return None
        except Exception as exc:
            logger.error("Tool %r failed: %s", call.name, exc, exc_info=True)
            return json.dumps({"error": str(exc)})


def _assistant_message(choice: CompletionChoice, answered: list[ToolCall]) -> dict[str, Any]:
    """Copy the choice's assistant message, keeping only *answered* tool calls."""
    message = dict(choice.raw_message)
    message.setdefault("role", "assistant")
    ids = {call.id for call in answered}
    raw_calls = message.get("tool_calls")
    if raw_calls is None:
        raw_calls = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
            }
            for call in answered
        ]
    message["tool_calls"] = [tc for tc in raw_calls if tc.get("id") in ids]
    return message
