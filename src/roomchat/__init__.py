"""
roomchat - ask a language model about a building's rooms.

The model answers from live room data by calling local tools:

- ``query_rooms`` filters rooms by level/status and computes
  count/sum/avg/min/max over a sensor or geometry value.
- ``select_rooms`` selects rooms in the building view.

Quick Start:
    >>> from roomchat import RoomAssistant, RoomDataset
    >>> from roomchat.conversation import OpenAICompatibleProvider
    >>> assistant = RoomAssistant(
    ...     provider=OpenAICompatibleProvider(model="gpt-4o-mini"),
    ...     dataset=RoomDataset({"101": {"Level": "Level 1", "Area": 20.0}}),
    ... )
    >>> reply = await assistant.ask("What is the total area of level 1?")
"""

from roomchat.config import Settings, get_settings
from roomchat.conversation import RoomAssistant
from roomchat.rooms import RoomDataset, evaluate

__version__ = "0.1.0"
__all__ = ["RoomAssistant", "RoomDataset", "Settings", "evaluate", "get_settings"]
