"""
Read-only room snapshot used by the query engine.

A dataset maps each room name to an open attribute bag such as::

    {
        "Level": "2nd Floor",
        "Room Status": "Occupied",
        "Area": 24.5,
        "Temperature": 21.3,
    }

Absent attributes are simply missing from the bag; there are no ``None``
placeholders. Iteration follows insertion order, which is also the order
query results are reported in.

Room properties and live sensor readings usually come from two different
sources; ``merge_room_maps`` combines them before the snapshot is built.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Union

logger = logging.getLogger(__name__)

AttributeValue = Union[str, int, float]

LEVEL_ATTRIBUTE = "Level"
STATUS_ATTRIBUTE = "Room Status"


class RoomDataset(Mapping[str, Mapping[str, AttributeValue]]):
    """Immutable mapping of room name -> read-only attribute bag.

    The dataset copies its input, so later changes to the source dicts are
    not visible to a running conversation.
    """

    def __init__(
        self, rooms: Mapping[str, Mapping[str, AttributeValue]] | None = None
    ) -> None:
        self._rooms: dict[str, Mapping[str, AttributeValue]] = {}
        for name, attributes in (rooms or {}).items():
            self._rooms[str(name)] = MappingProxyType(
                {
                    key: value
                    for key, value in attributes.items()
                    if value is not None
                }
            )

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> RoomDataset:
        """Build a dataset from ``{"name": ..., <attributes>}`` records.

        Raises:
            ValueError: If a record has no name or a name appears twice.
        """
        rooms: dict[str, dict[str, AttributeValue]] = {}
        for record in records:
            attributes = dict(record)
            name = attributes.pop("name", None)
            if not name:
                raise ValueError(f"Room record without a name: {record!r}")
            name = str(name)
            if name in rooms:
                raise ValueError(f"Duplicate room name: {name!r}")
            rooms[name] = attributes
        return cls(rooms)

    # ------------------------------------------------------------------
    # Mapping protocol
    # ------------------------------------------------------------------

    def __getitem__(self, name: str) -> Mapping[str, AttributeValue]:
        return self._rooms[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rooms)

    def __len__(self) -> int:
        return len(self._rooms)

    def __repr__(self) -> str:
        return f"RoomDataset({len(self._rooms)} rooms)"

    # ------------------------------------------------------------------
    # Listing helpers
    # ------------------------------------------------------------------

    def names(self, level: str | None = None) -> list[str]:
        """Return room names in iteration order, optionally for one level only.

        The level comparison is case-insensitive, like query filters.
        """
        if not level:
            return list(self._rooms)
        wanted = level.casefold()
        return [
            name
            for name, attributes in self._rooms.items()
            if str(attributes.get(LEVEL_ATTRIBUTE, "")).casefold() == wanted
        ]

    def levels(self) -> list[str]:
        """Return the sorted distinct ``Level`` values."""
        return sorted(
            {
                str(attributes[LEVEL_ATTRIBUTE])
                for attributes in self._rooms.values()
                if LEVEL_ATTRIBUTE in attributes
            }
        )


def merge_room_maps(
    first: Mapping[str, Mapping[str, AttributeValue]],
    second: Mapping[str, Mapping[str, AttributeValue]],
) -> dict[str, dict[str, AttributeValue]]:
    """Merge *second* (e.g. sensor readings) into *first* (room properties).

    Only rooms present in *first* are kept. For rooms present in both,
    attributes from *second* overwrite attributes of the same name.

    Returns:
        A new dict; neither input is mutated.
    """
    merged: dict[str, dict[str, AttributeValue]] = {}
    for name, attributes in first.items():
        combined = dict(attributes)
        readings = second.get(name)
        if readings:
            combined.update(readings)
        merged[name] = combined
    return merged


def load_dataset(path: str | Path) -> RoomDataset:
    """Load a dataset from a JSON file.

    The file holds either an object mapping room names to attribute objects,
    or a list of records each carrying a ``"name"`` key.

    Raises:
        ValueError: If the JSON document has neither shape.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)

    if isinstance(data, list):
        dataset = RoomDataset.from_records(data)
    elif isinstance(data, dict):
        dataset = RoomDataset(data)
    else:
        raise ValueError(
            f"{path}: expected a JSON object or list of rooms, got {type(data).__name__}"
        )
    logger.info("Loaded %d room(s) from %s", len(dataset), path)
    return dataset
