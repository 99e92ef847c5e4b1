"""
Room data for roomchat.

A ``RoomDataset`` is a read-only snapshot of room name -> attribute bag,
and ``evaluate`` runs filter/aggregate queries over it.
"""

from roomchat.rooms.dataset import RoomDataset, load_dataset, merge_room_maps
from roomchat.rooms.query import (
    PARAMETER_ATTRIBUTES,
    AggregationRequest,
    AggregationResult,
    AggregationType,
    RoomFilter,
    evaluate,
)

__all__ = [
    "PARAMETER_ATTRIBUTES",
    "AggregationRequest",
    "AggregationResult",
    "AggregationType",
    "RoomDataset",
    "RoomFilter",
    "evaluate",
    "load_dataset",
    "merge_room_maps",
]
