"""
roomchat Conversation Package.

Implements the tool-calling loop that answers questions about a building's
rooms: the model asks for ``query_rooms`` / ``select_rooms`` calls, the loop
runs them locally and feeds the results back until a final answer arrives.
"""

from roomchat.conversation.assistant import AssistantReply, RoomAssistant
from roomchat.conversation.loop import (
    DEFAULT_SYSTEM_PROMPT,
    ConversationOrchestrator,
    OrchestratorConfig,
    OrchestratorState,
)
from roomchat.conversation.providers import (
    CompletionChoice,
    CompletionResult,
    ModelProvider,
    OpenAICompatibleProvider,
    ToolCall,
    ToolDefinition,
)

__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "AssistantReply",
    "CompletionChoice",
    "CompletionResult",
    "ConversationOrchestrator",
    "ModelProvider",
    "OpenAICompatibleProvider",
    "OrchestratorConfig",
    "OrchestratorState",
    "RoomAssistant",
    "ToolCall",
    "ToolDefinition",
]
