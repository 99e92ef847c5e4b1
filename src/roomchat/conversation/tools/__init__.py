"""
Tools the model can call during a roomchat conversation.

- ``query_rooms``: filter rooms and compute count/sum/avg/min/max.
- ``select_rooms``: select rooms by name in the building view.

``build_room_registry()`` returns a ``ToolRegistry`` with both registered;
its ``get_definitions()`` is the tool catalog sent to the model.
"""

from roomchat.conversation.tools.registry import (
    SelectionSink,
    ToolContext,
    ToolHandler,
    ToolName,
    ToolRegistry,
)
from roomchat.conversation.tools.rooms import (
    QUERY_ROOMS_TOOL,
    SELECT_ROOMS_TOOL,
    TOOL_CATALOG_VERSION,
    build_room_registry,
)

__all__ = [
    "QUERY_ROOMS_TOOL",
    "SELECT_ROOMS_TOOL",
    "TOOL_CATALOG_VERSION",
    "SelectionSink",
    "ToolContext",
    "ToolHandler",
    "ToolName",
    "ToolRegistry",
    "build_room_registry",
]
