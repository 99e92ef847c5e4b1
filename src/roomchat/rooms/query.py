"""
Filter and aggregate queries over a ``RoomDataset``.

``evaluate`` is a pure function: the same request over the same dataset
always yields the same result. A query runs in three steps:

1. **Selection**: keep rooms whose ``Level`` and ``Room Status`` match the
   filter (case-insensitive; an empty clause matches everything).
2. **Projection**: when a parameter is given, read its numeric value from
   each candidate. Candidates without a value stay candidates but take no
   part in the arithmetic (they are never counted as zero).
3. **Reduction**: ``count``, ``filter``, ``sum``, ``avg``, ``min`` or ``max``.

Ties in ``min``/``max`` are not broken: every tied room is reported, in
dataset iteration order.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from roomchat.errors import InvalidRequest
from roomchat.rooms.dataset import (
    LEVEL_ATTRIBUTE,
    STATUS_ATTRIBUTE,
    AttributeValue,
    RoomDataset,
)

logger = logging.getLogger(__name__)

Number = Union[int, float]

# Query parameter name -> room attribute it is read from.
PARAMETER_ATTRIBUTES: dict[str, str] = {
    "area": "Area",
    "co2": "CO2",
    "humidity": "Humidity",
    "temperature": "Temperature",
}


class AggregationType(str, Enum):
    """Supported query reductions."""

    COUNT = "count"
    FILTER = "filter"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"

    @property
    def needs_parameter(self) -> bool:
        return self in _PARAMETER_TYPES


_PARAMETER_TYPES = frozenset(
    {AggregationType.SUM, AggregationType.AVG, AggregationType.MIN, AggregationType.MAX}
)


@dataclass(frozen=True)
class RoomFilter:
    """Conjunctive room filter. ``None`` or ``""`` disables a clause."""

    level: str | None = None
    status: str | None = None

    def matches(self, attributes: Mapping[str, AttributeValue]) -> bool:
        return _clause_matches(self.level, attributes, LEVEL_ATTRIBUTE) and _clause_matches(
            self.status, attributes, STATUS_ATTRIBUTE
        )


@dataclass(frozen=True)
class AggregationRequest:
    """One query against the dataset.

    Attributes:
        type: Reduction to apply; an ``AggregationType`` or its string value.
        filter: Optional room filter; ``None`` selects every room.
        parameter: Query parameter name (see ``PARAMETER_ATTRIBUTES``).
            Required for ``sum``, ``avg``, ``min`` and ``max``; ignored by
            ``count`` and ``filter``.
    """

    type: AggregationType | str
    filter: RoomFilter | None = None
    parameter: str | None = None


@dataclass
class AggregationResult:
    """Outcome of a query.

    Attributes:
        value: Numeric result, or ``None`` for ``filter`` queries and for
            ``min``/``max`` over rooms that have no value.
        rooms: Names of the matching or contributing rooms, in dataset order.
    """

    value: Number | None = None
    rooms: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON object reported back to the model.

        ``value`` is present only when the reduction produced one and
        ``rooms`` only when it is non-empty.
        """
        payload: dict[str, Any] = {}
        if self.value is not None:
            payload["value"] = self.value
        if self.rooms:
            payload["rooms"] = list(self.rooms)
        return payload


def evaluate(
    request: AggregationRequest,
    dataset: Mapping[str, Mapping[str, AttributeValue]] | None,
) -> AggregationResult:
    """Run *request* over *dataset*.

    An absent or empty dataset is a valid input and yields an empty result
    (``count`` gives ``0``, ``sum`` gives ``0``, ``avg`` gives ``0.0``).

    Raises:
        InvalidRequest: If the type is unknown, or a ``sum``/``avg``/``min``/
            ``max`` request has a missing or unknown parameter. ``count`` and
            ``filter`` ignore the parameter.
    """
    query_type = _resolve_type(request.type)
    attribute = None
    if query_type.needs_parameter:
        attribute = _resolve_parameter(request.parameter)
        if attribute is None:
            raise InvalidRequest(f"Query type {query_type.value!r} requires a parameter.")

    rooms = dataset if dataset is not None else RoomDataset()

    # Step 1: selection
    if request.filter is None:
        candidates = list(rooms)
    else:
        candidates = [name for name, attrs in rooms.items() if request.filter.matches(attrs)]

    if query_type is AggregationType.COUNT:
        return AggregationResult(value=len(candidates), rooms=candidates)
    if query_type is AggregationType.FILTER:
        return AggregationResult(rooms=candidates)

    # Step 2: projection; rooms without a numeric value are left out.
    valued: list[tuple[str, Number]] = []
    for name in candidates:
        number = _numeric(rooms[name].get(attribute))
        if number is not None:
            valued.append((name, number))

    logger.debug(
        "Query %s(%s): %d candidate(s), %d with a value",
        query_type.value,
        request.parameter,
        len(candidates),
        len(valued),
    )

    # Step 3: reduction
    contributing = [name for name, _ in valued]
    if query_type is AggregationType.SUM:
        return AggregationResult(value=sum(number for _, number in valued), rooms=contributing)
    if query_type is AggregationType.AVG:
        if not valued:
            return AggregationResult(value=0.0)
        total = sum(number for _, number in valued)
        return AggregationResult(value=total / len(valued), rooms=contributing)

    if not valued:
        return AggregationResult()
    pick = max if query_type is AggregationType.MAX else min
    extreme = pick(number for _, number in valued)
    return AggregationResult(
        value=extreme,
        rooms=[name for name, number in valued if number == extreme],
    )


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _resolve_type(value: AggregationType | str) -> AggregationType:
    try:
        return AggregationType(value)
    except ValueError:
        raise InvalidRequest(f"Unknown query type: {value!r}") from None


def _resolve_parameter(parameter: str | None) -> str | None:
    """Map a query parameter to its attribute name; ``""`` means absent."""
    if not parameter:
        return None
    try:
        return PARAMETER_ATTRIBUTES[parameter.lower()]
    except KeyError:
        raise InvalidRequest(
            f"Unknown parameter {parameter!r}; expected one of "
            f"{sorted(PARAMETER_ATTRIBUTES)}."
        ) from None


def _clause_matches(
    expected: str | None, attributes: Mapping[str, AttributeValue], attribute: str
) -> bool:
    if not expected:
        return True
    actual = attributes.get(attribute)
    if actual is None:
        return False
    return str(actual).casefold() == expected.casefold()


def _numeric(value: AttributeValue | None) -> Number | None:
    """Return *value* as a number, or ``None`` when it has no numeric meaning.

    Numeric strings such as ``"21.5"`` count as numbers; booleans do not.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None
