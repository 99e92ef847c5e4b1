"""
Tool registry for the roomchat conversation loop.

The set of tools the model may call is closed: every tool is identified by a
``ToolName`` member, and only those names can be registered. A name the model
invents resolves to ``UnknownTool``, which the loop treats as "nothing to
report" rather than a failure.

Handlers are plain synchronous callables ``(arguments, context) -> payload``.
The payload is any JSON-compatible value (``None`` means no outcome) and is
serialised with ``json.dumps`` before it goes back to the model.

Typical usage::

    from roomchat.conversation.tools import build_room_registry

    registry = build_room_registry()
    context = ToolContext(dataset=dataset, select=viewer.select)
    outcome = registry.dispatch("query_rooms", {"type": "count"}, context)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from roomchat.conversation.providers import ToolDefinition
from roomchat.errors import InvalidRequest, UnknownTool
from roomchat.rooms.dataset import RoomDataset

logger = logging.getLogger(__name__)

# Receives the room names to select in the viewer; fire-and-forget.
SelectionSink = Callable[[Sequence[str]], None]


class ToolName(str, Enum):
    """Identifiers of the tools the model may call."""

    QUERY_ROOMS = "query_rooms"
    SELECT_ROOMS = "select_rooms"


@dataclass(frozen=True)
class ToolContext:
    """Per-conversation collaborators handed to every tool handler.

    Attributes:
        dataset: The room snapshot queries run against.
        select: Sink that selects rooms by name in the viewer.
    """

    dataset: RoomDataset
    select: SelectionSink


# Type alias for a single tool handler: (arguments, context) -> payload
ToolHandler = Callable[[Any, ToolContext], Any]


class ToolRegistry:
    """Registry mapping tool identifiers to their definitions and handlers.

    Use ``get_definitions()`` to obtain the tool catalog sent to the model,
    and ``dispatch()`` to execute a tool call.
    """

    def __init__(self) -> None:
        self._tools: dict[ToolName, tuple[ToolDefinition, ToolHandler]] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        """Register a tool with its handler.

        Raises:
            ValueError: If the name is not a ``ToolName`` or is already
                registered.
        """
        try:
            tool = ToolName(definition.name)
        except ValueError:
            raise ValueError(
                f"{definition.name!r} is not a known tool name; expected one of "
                f"{[t.value for t in ToolName]}."
            ) from None
        if tool in self._tools:
            raise ValueError(
                f"Tool {definition.name!r} is already registered. "
                "Deregister it first before re-registering."
            )
        self._tools[tool] = (definition, handler)
        logger.debug("Registered tool: %r", definition.name)

    def deregister(self, name: str) -> None:
        """Remove a registered tool by name.

        Raises:
            KeyError: If the tool is not registered.
        """
        tool = self._lookup(name)
        if tool is None:
            raise KeyError(f"Tool {name!r} is not registered.")
        del self._tools[tool]
        logger.debug("Deregistered tool: %r", name)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_definitions(self) -> list[ToolDefinition]:
        """Return all registered ``ToolDefinition`` objects (insertion order)."""
        return [defn for defn, _handler in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._lookup(name) is not None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, name: str, arguments: Any, context: ToolContext) -> str | None:
        """Execute one tool call and return its serialised outcome.

        Contract violations (``InvalidRequest``) are reported as an
        ``{"error": ...}`` payload so the model can correct itself.

        Returns:
            The JSON-encoded payload, or ``None`` if the handler produced
            no outcome.

        Raises:
            UnknownTool: If *name* is not registered.
        """
        tool = self._lookup(name)
        if tool is None:
            raise UnknownTool(name)
        _definition, handler = self._tools[tool]

        logger.debug("Dispatching tool: %s(%s)", name, arguments)
        try:
            payload = handler(arguments, context)
        except InvalidRequest as exc:
            logger.info("Rejected %s call: %s", name, exc)
            payload = {"error": str(exc)}

        if payload is None:
            return None
        return json.dumps(payload)

    def _lookup(self, name: str) -> ToolName | None:
        try:
            tool = ToolName(name)
        except ValueError:
            return None
        return tool if tool in self._tools else None
