"""
Room tools exposed to the model: ``query_rooms`` and ``select_rooms``.

Both definitions are ``strict`` OpenAI function schemas. Arguments are
validated locally with pydantic before anything runs; values outside the
declared enums are rejected with ``InvalidRequest`` rather than trusted.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from roomchat.conversation.providers import ToolDefinition
from roomchat.conversation.tools.registry import ToolContext, ToolName, ToolRegistry
from roomchat.errors import InvalidRequest
from roomchat.rooms.query import (
    AggregationRequest,
    AggregationType,
    RoomFilter,
    evaluate,
)

logger = logging.getLogger(__name__)

# Bumped whenever a tool name, description or parameter shape changes.
TOOL_CATALOG_VERSION = "1"

QUERY_ROOMS_TOOL = ToolDefinition(
    name=ToolName.QUERY_ROOMS.value,
    description=(
        "Query rooms of the building. The result is a JSON object with an "
        "optional value and an optional list of room names. The value is "
        "calculated based on the type of the query. The result is in generic units."
    ),
    parameters={
        "type": "object",
        "properties": {
            "type": {
                "type": "string",
                "description": "The type of the query.",
                "enum": ["avg", "count", "filter", "max", "min", "sum"],
            },
            "filter": {
                "type": ["object", "null"],
                "description": "Optional filter to apply.",
                "properties": {
                    "level": {
                        "type": "string",
                        "description": "The level filter.",
                    },
                    "status": {
                        "type": ["string", "null"],
                        "description": "The status filter.",
                        "enum": ["available", "occupied", ""],
                    },
                },
                "required": ["level", "status"],
                "additionalProperties": False,
            },
            "parameter": {
                "type": ["string", "null"],
                "description": (
                    "Optional parameter to apply the query. "
                    "Can be used on avg, min, max, sum queries."
                ),
                "enum": ["area", "co2", "humidity", "temperature", ""],
            },
        },
        "required": ["type", "filter", "parameter"],
        "additionalProperties": False,
    },
    strict=True,
)

SELECT_ROOMS_TOOL = ToolDefinition(
    name=ToolName.SELECT_ROOMS.value,
    description="Select the specified rooms in the building view.",
    parameters={
        "type": "object",
        "properties": {
            "names": {
                "type": "array",
                "description": "List of room names to select.",
                "items": {"type": "string"},
            }
        },
        "required": ["names"],
        "additionalProperties": False,
    },
    strict=True,
)


# ---------------------------------------------------------------------------
# Argument schemas
# ---------------------------------------------------------------------------


class FilterArguments(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Optional[str] = None
    status: Optional[Literal["available", "occupied", ""]] = None


class QueryRoomsArguments(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: AggregationType
    filter: Optional[FilterArguments] = None
    parameter: Optional[Literal["area", "co2", "humidity", "temperature", ""]] = None

    def to_request(self) -> AggregationRequest:
        room_filter = None
        if self.filter is not None:
            room_filter = RoomFilter(level=self.filter.level, status=self.filter.status)
        return AggregationRequest(
            type=self.type,
            filter=room_filter,
            parameter=self.parameter or None,
        )


class SelectRoomsArguments(BaseModel):
    model_config = ConfigDict(extra="forbid")

    names: list[str]


_Args = TypeVar("_Args", bound=BaseModel)


def _validate(schema: type[_Args], arguments: Any) -> _Args:
    try:
        return schema.model_validate(arguments)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in exc.errors()
        )
        raise InvalidRequest(f"Invalid arguments: {errors}") from exc


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def query_rooms(arguments: Any, context: ToolContext) -> dict[str, Any]:
    """Run an aggregation query and return its JSON payload."""
    args = _validate(QueryRoomsArguments, arguments)
    result = evaluate(args.to_request(), context.dataset)
    logger.info(
        "query_rooms %s -> value=%s, rooms=%d",
        args.type.value,
        result.value,
        len(result.rooms),
    )
    return result.to_payload()


def select_rooms(arguments: Any, context: ToolContext) -> str:
    """Forward the names to the selection sink; names are not checked."""
    names = _validate(SelectRoomsArguments, arguments).names
    logger.info("select_rooms: %s", names)
    context.select(list(names))
    return "success"


def build_room_registry() -> ToolRegistry:
    """Return a registry with ``query_rooms`` and ``select_rooms`` registered."""
    registry = ToolRegistry()
    registry.register(QUERY_ROOMS_TOOL, query_rooms)
    registry.register(SELECT_ROOMS_TOOL, select_rooms)
    return registry
