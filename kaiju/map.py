"""
City map graph for the kaiju wargame.

The board is an irregular graph of nodes (city blocks, parks, bridges, river
reaches). Coordinates are planar with x growing east and y growing south;
they feed the pathfinding heuristic, line of sight and wind direction, never
movement cost.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml

from .errors import ScenarioError

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = Path(__file__).parent / "data"


class TerrainType(Enum):
    STREET = "street"
    PARK = "park"
    LOW_BUILDING = "low_building"
    HIGH_BUILDING = "high_building"
    BRIDGE = "bridge"
    TUNNEL = "tunnel"
    RIVER = "river"
    RUBBLE = "rubble"
    DESTROYED_BRIDGE = "destroyed_bridge"


BUILDINGS = (TerrainType.LOW_BUILDING, TerrainType.HIGH_BUILDING)


@dataclass
class TerrainInfo:
    """Terrain type properties loaded from schema."""
    id: str
    name: str
    movement_cost: dict[str, Optional[int]]  # by entity kind, "default" fallback, None = impassable
    defense_multiplier: int = 1
    blocks_los: bool = False
    flammable: bool = False
    destruct_strength: Optional[int] = None
    destroyed_as: Optional[str] = None
    destruction_vp: int = 0


@dataclass
class Node:
    """One irregular board area."""
    id: str
    x: float
    y: float
    terrain: TerrainType
    neighbors: set[str] = field(default_factory=set)
    boundary: bool = False
    lane_of: Optional[str] = None  # river node this bridge/tunnel overlaps

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "terrain": self.terrain.value,
            "neighbors": sorted(self.neighbors),
            "boundary": self.boundary,
            "lane_of": self.lane_of,
        }


class CityMap:
    """
    Node graph for the simulation.

    Built once per scenario. After load only terrain changes
    (building -> rubble, bridge -> destroyed bridge).
    """

    MIN_DEGREE = 3
    MAX_DEGREE = 6

    def __init__(
        self,
        data_path: Path | str = DEFAULT_DATA_PATH,
        map_name: Optional[str] = "midtown",
        nodes: Optional[list[dict]] = None,
    ):
        self.data_path = Path(data_path)
        self.name = map_name or "custom"
        self.nodes: dict[str, Node] = {}
        self.terrain_info: dict[str, TerrainInfo] = {}
        self.warnings: list[str] = []
        self.min_edge_length = 1.0
        self.max_edge_length = 1.0

        self._load_terrain_schema()
        if nodes is None:
            nodes = self._load_map_file(map_name)
        self._build_nodes(nodes)
        self._validate()

    @classmethod
    def from_nodes(cls, nodes: list[dict], data_path: Path | str = DEFAULT_DATA_PATH) -> "CityMap":
        """Build a map straight from node dicts (same shape as the YAML file)."""
        return cls(data_path=data_path, map_name=None, nodes=nodes)

    def _load_terrain_schema(self):
        """Load terrain type definitions from schema."""
        schema_path = self.data_path / "schema" / "terrain.yaml"
        if not schema_path.exists():
            logger.warning(f"Terrain schema not found: {schema_path}, using defaults")
            self._create_default_terrain_info()
            return

        with open(schema_path) as f:
            schema = yaml.safe_load(f) or {}

        for terrain_id, info in schema.get("terrain_types", {}).items():
            self.terrain_info[terrain_id] = TerrainInfo(
                id=terrain_id,
                name=info.get("name", terrain_id.replace("_", " ").title()),
                movement_cost=info.get("movement_cost", {"default": 1}),
                defense_multiplier=info.get("defense_multiplier", 1),
                blocks_los=info.get("blocks_los", False),
                flammable=info.get("flammable", False),
                destruct_strength=info.get("destruct_strength"),
                destroyed_as=info.get("destroyed_as"),
                destruction_vp=info.get("destruction_vp", 0),
            )

        missing = [t.value for t in TerrainType if t.value not in self.terrain_info]
        if missing:
            raise ScenarioError(f"Terrain schema missing types: {', '.join(missing)}")

    def _create_default_terrain_info(self):
        """Create default terrain info if schema not found."""
        no_vehicles = {"monster": None, "armor": None, "artillery": None}
        defaults = {
            # id: (costs, defense multiplier, blocks LOS, flammable, destruct strength, destroyed as, VP)
            "street": ({"default": 1}, 1, False, False, None, None, 0),
            "park": ({"default": 2}, 1, False, True, None, None, 0),
            "low_building": ({"default": 3, **no_vehicles}, 2, True, True, 2, "rubble", 3),
            "high_building": ({"default": 3, **no_vehicles}, 2, True, True, 4, "rubble", 5),
            "bridge": ({"default": 1}, 1, False, False, 2, "destroyed_bridge", 5),
            "tunnel": ({"default": 1}, 2, False, False, None, None, 0),
            "river": ({"default": None, "monster": 2, "fireboat": 1}, 1, False, False, None, None, 0),
            "rubble": ({"default": 2}, 1, False, False, None, None, 0),
            "destroyed_bridge": ({"default": 2, "armor": None, "artillery": None}, 1, False, False, None, None, 0),
        }
        for tid, (costs, defense, los, flammable, strength, destroyed_as, vp) in defaults.items():
            costs = {**costs, "helicopter": 1}
            costs.setdefault("fireboat", None)
            self.terrain_info[tid] = TerrainInfo(
                id=tid, name=tid.replace("_", " ").title(),
                movement_cost=costs, defense_multiplier=defense, blocks_los=los,
                flammable=flammable, destruct_strength=strength,
                destroyed_as=destroyed_as, destruction_vp=vp,
            )

    def _load_map_file(self, map_name: str) -> list[dict]:
        map_path = self.data_path / "map" / f"{map_name}.yaml"
        if not map_path.exists():
            raise ScenarioError(f"Map file not found: {map_path}")

        with open(map_path) as f:
            data = yaml.safe_load(f) or {}

        section = data.get("map", data)
        self.name = section.get("name", map_name)
        return section.get("nodes", [])

    def _build_nodes(self, raw_nodes: list[dict]):
        if not raw_nodes:
            raise ScenarioError("Map has no nodes")

        for raw in raw_nodes:
            if not isinstance(raw, dict):
                raise ScenarioError(f"Malformed node entry: {raw!r}")
            for required in ("id", "terrain", "neighbors"):
                if required not in raw:
                    raise ScenarioError(f"Node {raw.get('id', '?')} missing field '{required}'")

            node_id = str(raw["id"])
            if node_id in self.nodes:
                raise ScenarioError(f"Duplicate node id: {node_id}")

            try:
                terrain = TerrainType(raw["terrain"])
            except ValueError:
                raise ScenarioError(f"Node {node_id} has unknown terrain '{raw['terrain']}'") from None

            if raw.get("lane_of") is None and ("x" not in raw or "y" not in raw):
                raise ScenarioError(f"Node {node_id} missing coordinates")

            self.nodes[node_id] = Node(
                id=node_id,
                x=float(raw.get("x", 0.0)),
                y=float(raw.get("y", 0.0)),
                terrain=terrain,
                neighbors={str(n) for n in raw["neighbors"] or []},
                boundary=bool(raw.get("boundary", False)),
                lane_of=str(raw["lane_of"]) if raw.get("lane_of") is not None else None,
            )

    def _validate(self):
        """Reject broken graphs, repair one-way edges, warn on odd degrees."""
        for node in self.nodes.values():
            if node.id in node.neighbors:
                raise ScenarioError(f"Node {node.id} lists itself as a neighbor")
            unknown = node.neighbors - self.nodes.keys()
            if unknown:
                raise ScenarioError(f"Node {node.id} references unknown neighbors: {sorted(unknown)}")

            if node.lane_of is not None:
                river = self.nodes.get(node.lane_of)
                if river is None:
                    raise ScenarioError(f"Node {node.id} is a lane of unknown node {node.lane_of}")
                if river.terrain != TerrainType.RIVER:
                    self._warn(f"Node {node.id} is a lane of non-river node {river.id}")
                # Lanes sit on top of their river reach
                node.x, node.y = river.x, river.y

        for node in self.nodes.values():
            for neighbor_id in sorted(node.neighbors):
                neighbor = self.nodes[neighbor_id]
                if node.id not in neighbor.neighbors:
                    neighbor.neighbors.add(node.id)
                    self._warn(f"Repaired one-way edge {node.id} -> {neighbor_id}")

        if len(self.nodes) > 1:
            isolated = [n.id for n in self.nodes.values() if not n.neighbors]
            if isolated:
                raise ScenarioError(f"Isolated nodes: {isolated}")

        for node in self.nodes.values():
            degree = len(node.neighbors)
            if not node.boundary and not self.MIN_DEGREE <= degree <= self.MAX_DEGREE:
                self._warn(f"Node {node.id} has {degree} neighbors (expected {self.MIN_DEGREE}-{self.MAX_DEGREE})")

        lengths = [
            self.distance(a.id, b_id)
            for a in self.nodes.values()
            for b_id in a.neighbors
        ]
        lengths = [length for length in lengths if length > 0]
        if lengths:
            self.min_edge_length = min(lengths)
            self.max_edge_length = max(lengths)

        logger.info(f"Loaded map '{self.name}': {len(self.nodes)} nodes, {len(self.warnings)} warnings")

    def _warn(self, message: str):
        self.warnings.append(message)
        logger.warning(message)

    # Graph queries
    def get_node(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def neighbors_of(self, node_id: str) -> set[str]:
        return set(self.nodes[node_id].neighbors)

    def are_adjacent(self, a: str, b: str) -> bool:
        return b in self.nodes[a].neighbors

    def terrain_of(self, node_id: str) -> TerrainType:
        return self.nodes[node_id].terrain

    def info_for(self, node_id: str) -> TerrainInfo:
        return self.terrain_info[self.nodes[node_id].terrain.value]

    def movement_cost(self, terrain: TerrainType, kind: str) -> Optional[int]:
        """Cost for an entity kind to enter terrain, or None if impassable."""
        info = self.terrain_info[terrain.value]
        if kind in info.movement_cost:
            return info.movement_cost[kind]
        return info.movement_cost.get("default")

    def set_terrain(self, node_id: str, terrain: TerrainType):
        node = self.nodes[node_id]
        if node.terrain != terrain:
            logger.info(f"Node {node_id}: {node.terrain.value} -> {terrain.value}")
            node.terrain = terrain

    def is_flammable(self, node_id: str) -> bool:
        return self.info_for(node_id).flammable

    def defense_multiplier(self, node_id: str) -> int:
        return self.info_for(node_id).defense_multiplier

    # Geometry
    def distance(self, a: str, b: str) -> float:
        na, nb = self.nodes[a], self.nodes[b]
        return math.hypot(na.x - nb.x, na.y - nb.y)

    def heuristic(self, a: str, b: str) -> float:
        """Lower bound on hops between two nodes."""
        return self.distance(a, b) / self.max_edge_length

    def hop_distance(self, a: str, b: str, limit: Optional[int] = None) -> Optional[int]:
        """Breadth-first hop count, or None if unreachable within limit."""
        if a == b:
            return 0
        return self.nodes_within(a, limit if limit is not None else len(self.nodes)).get(b)

    def nodes_within(self, node_id: str, hops: int) -> dict[str, int]:
        """All nodes within a hop radius, mapped to their hop count."""
        seen = {node_id: 0}
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            if seen[current] >= hops:
                continue
            for neighbor in self.nodes[current].neighbors:
                if neighbor not in seen:
                    seen[neighbor] = seen[current] + 1
                    queue.append(neighbor)
        return seen

    def compass_direction(self, a: str, b: str) -> Optional[str]:
        """Dominant compass direction from a to b, None if co-located."""
        na, nb = self.nodes[a], self.nodes[b]
        dx, dy = nb.x - na.x, nb.y - na.y
        if dx == 0 and dy == 0:
            return None
        if abs(dx) >= abs(dy):
            return "east" if dx > 0 else "west"
        return "south" if dy > 0 else "north"

    # Line of sight
    def has_line_of_sight(self, a: str, b: str) -> bool:
        """Check the straight segment a-b against intermediate building nodes."""
        na, nb = self.nodes[a], self.nodes[b]
        dx, dy = nb.x - na.x, nb.y - na.y
        length_sq = dx * dx + dy * dy
        if length_sq == 0:
            return True

        radius = self.min_edge_length / 2
        for node in self.nodes.values():
            if node.id in (a, b) or not self.terrain_info[node.terrain.value].blocks_los:
                continue
            t = ((node.x - na.x) * dx + (node.y - na.y) * dy) / length_sq
            if t <= 0 or t >= 1:
                continue
            px, py = na.x + t * dx, na.y + t * dy
            if math.hypot(node.x - px, node.y - py) < radius:
                return False

        return True

    # Utility
    def get_stats(self) -> dict:
        """Get map statistics."""
        terrain_counts: dict[str, int] = {}
        for node in self.nodes.values():
            terrain = node.terrain.value
            terrain_counts[terrain] = terrain_counts.get(terrain, 0) + 1

        return {
            "name": self.name,
            "total_nodes": len(self.nodes),
            "total_edges": sum(len(n.neighbors) for n in self.nodes.values()) // 2,
            "terrain_distribution": terrain_counts,
            "warnings": len(self.warnings),
        }

    def to_dict(self) -> dict:
        return {"name": self.name, "nodes": [n.to_dict() for n in self.nodes.values()]}
