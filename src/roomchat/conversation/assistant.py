"""
RoomAssistant: the UI-facing side of the conversation loop.

Each question gets a fresh ``ConversationOrchestrator`` run over the current
room snapshot; nothing carries over from one question to the next. Transport
failures and runaway tool loops end that run and are turned into a fixed
"could not respond" answer here, so callers always get an ``AssistantReply``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from roomchat.conversation.loop import (
    DEFAULT_SYSTEM_PROMPT,
    ConversationOrchestrator,
    OrchestratorConfig,
)
from roomchat.conversation.providers import ModelProvider
from roomchat.conversation.tools import SelectionSink, ToolRegistry, build_room_registry
from roomchat.errors import (
    RoundTripLimitExceeded,
    TransportAPIError,
    TransportFailure,
    TransportRateLimitError,
)
from roomchat.rooms.dataset import RoomDataset

logger = logging.getLogger(__name__)

COULD_NOT_RESPOND = "I'm sorry, the assistant could not respond. Please try again."


@dataclass
class AssistantReply:
    """Answer to a single question.

    Attributes:
        text: Text to show the user.
        selected_rooms: Rooms the model selected during the run (the last
            selection wins), or an empty list.
        failed: ``True`` when the run ended without a model answer.
    """

    text: str
    selected_rooms: list[str] = field(default_factory=list)
    failed: bool = False


class RecordingSelectionSink:
    """Selection sink that remembers the last selection.

    Optionally forwards every selection to another sink (e.g. the viewer).
    """

    def __init__(self, forward: SelectionSink | None = None) -> None:
        self.forward = forward
        self.selected: list[str] = []

    def __call__(self, names: Sequence[str]) -> None:
        self.selected = list(names)
        if self.forward is not None:
            self.forward(self.selected)


class RoomAssistant:
    """Answers questions about a building's rooms.

    Attributes:
        name: Display name of the assistant.
        provider: The model backend shared by all runs.
        registry: Tools offered to the model.
        config: Orchestrator configuration shared by all runs.
    """

    def __init__(
        self,
        provider: ModelProvider,
        dataset: RoomDataset | None = None,
        registry: ToolRegistry | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_round_trips: int = 10,
        on_select: SelectionSink | None = None,
        name: str = "Room Assistant",
    ) -> None:
        self.name = name
        self.provider = provider
        self.registry = registry or build_room_registry()
        self.config = OrchestratorConfig(
            system_prompt=system_prompt,
            tool_catalog=tuple(self.registry.get_definitions()),
            max_round_trips=max_round_trips,
        )
        self.on_select = on_select
        self._dataset = dataset if dataset is not None else RoomDataset()

    @property
    def dataset(self) -> RoomDataset:
        return self._dataset

    def update_dataset(self, dataset: RoomDataset) -> None:
        """Replace the room snapshot; runs already in progress keep the old one."""
        self._dataset = dataset
        logger.info("Room dataset updated: %d room(s)", len(dataset))

    async def ask(self, prompt: str) -> AssistantReply:
        """Answer *prompt* in a new conversation run."""
        orchestrator = ConversationOrchestrator(self.provider, self.registry, self.config)
        sink = RecordingSelectionSink(forward=self.on_select)
        logger.info("Question: %r (%d room(s))", prompt, len(self._dataset))

        try:
            text = await orchestrator.run(prompt, self._dataset, sink)
        except RoundTripLimitExceeded as exc:
            logger.error("Conversation hit the round-trip limit: %s", exc)
            return AssistantReply(COULD_NOT_RESPOND, sink.selected, failed=True)
        except TransportRateLimitError as exc:
            logger.warning("Model rate limit hit: %s", exc)
            return AssistantReply(COULD_NOT_RESPOND, sink.selected, failed=True)
        except TransportAPIError as exc:
            logger.error("Model API error (status=%s): %s", exc.status_code, exc)
            return AssistantReply(COULD_NOT_RESPOND, sink.selected, failed=True)
        except TransportFailure as exc:
            logger.error("Model round trip failed: %s", exc)
            return AssistantReply(COULD_NOT_RESPOND, sink.selected, failed=True)

        logger.info("Answer: %r", text)
        return AssistantReply(text, sink.selected)
