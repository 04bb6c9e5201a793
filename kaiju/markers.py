"""
Board markers: fire, rubble and webs, keyed by node id.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MarkerType(Enum):
    FIRE = "fire"
    RUBBLE = "rubble"
    WEB = "web"


MAX_FIRE_INTENSITY = 3


@dataclass
class Marker:
    """A marker on a node. Only fires carry an intensity (1-3)."""
    type: MarkerType
    node_id: str
    intensity: int = 0
    placed_turn: int = 0

    def intensify(self) -> int:
        self.intensity = min(MAX_FIRE_INTENSITY, self.intensity + 1)
        return self.intensity

    def reduce(self, amount: int) -> bool:
        """Lower fire intensity. Returns True when the fire is out."""
        self.intensity = max(0, self.intensity - amount)
        return self.intensity == 0

    def to_dict(self) -> dict:
        data = {"type": self.type.value, "node": self.node_id, "placed_turn": self.placed_turn}
        if self.type == MarkerType.FIRE:
            data["intensity"] = self.intensity
        return data


class MarkerBoard:
    """At most one marker of each type per node."""

    def __init__(self):
        self.markers: dict[str, dict[MarkerType, Marker]] = {}

    def place(self, marker_type: MarkerType, node_id: str, turn: int = 0) -> Marker:
        existing = self.get(node_id, marker_type)
        if existing is not None:
            return existing
        marker = Marker(
            type=marker_type,
            node_id=node_id,
            intensity=1 if marker_type == MarkerType.FIRE else 0,
            placed_turn=turn,
        )
        self.markers.setdefault(node_id, {})[marker_type] = marker
        return marker

    def remove(self, node_id: str, marker_type: MarkerType) -> Optional[Marker]:
        on_node = self.markers.get(node_id)
        if not on_node:
            return None
        marker = on_node.pop(marker_type, None)
        if not on_node:
            del self.markers[node_id]
        return marker

    def get(self, node_id: str, marker_type: MarkerType) -> Optional[Marker]:
        return self.markers.get(node_id, {}).get(marker_type)

    def has(self, node_id: str, marker_type: MarkerType) -> bool:
        return self.get(node_id, marker_type) is not None

    def at(self, node_id: str) -> list[Marker]:
        return list(self.markers.get(node_id, {}).values())

    def of_type(self, marker_type: MarkerType) -> list[Marker]:
        return [
            on_node[marker_type]
            for _, on_node in sorted(self.markers.items())
            if marker_type in on_node
        ]

    def fires(self) -> list[Marker]:
        return self.of_type(MarkerType.FIRE)

    def burning(self, node_id: str) -> bool:
        return self.has(node_id, MarkerType.FIRE)

    def to_dict(self) -> dict:
        return {
            node_id: [m.to_dict() for m in on_node.values()]
            for node_id, on_node in sorted(self.markers.items())
        }

    def load(self, data: dict):
        """Replace the board with markers rebuilt from to_dict() output."""
        self.markers.clear()
        for node_id, on_node in data.items():
            for item in on_node:
                marker = self.place(MarkerType(item["type"]), node_id, item.get("placed_turn", 0))
                if marker.type == MarkerType.FIRE:
                    marker.intensity = item.get("intensity", 1)
