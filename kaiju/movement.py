"""
Movement and pathfinding over the city graph.

Reachability is a budget-bounded Dijkstra expansion; pathfinding is A*
with a straight-line heuristic. Two rule extensions sit on top of the
plain cost table:

- forced entry: a human unit with any budget left may always step into an
  adjacent node whose cost exceeds what remains, spending all of it
- fording: foot units cross into or out of a river only as a single
  full-budget step

Stacking limits are not considered here, only where a move ends.
"""

import heapq
import itertools
import logging
from dataclasses import dataclass
from typing import Optional

from .map import CityMap, TerrainType
from .markers import MarkerBoard, MarkerType
from .units import Capability, EntityKind, EntityRegistry, Entity, Faction, INFANTRY_KINDS

logger = logging.getLogger(__name__)

FORCED_ENTRY = "forced_entry"
FORD = "ford"


@dataclass
class MovementProfile:
    """What one entity may enter during the current phase."""
    kind: EntityKind
    budget: int
    full_budget: int
    human: bool = True
    airborne: bool = False
    amphibious: bool = False
    blocked: frozenset = frozenset()  # never entered
    no_stop: frozenset = frozenset()  # passed over, never ended in

    @property
    def fords(self) -> bool:
        return self.kind in INFANTRY_KINDS and not self.airborne and not self.amphibious

    @classmethod
    def for_entity(
        cls,
        entity: Entity,
        registry: EntityRegistry,
        markers: MarkerBoard,
        budget: Optional[int] = None,
    ) -> "MovementProfile":
        """Build the profile from the live board around an entity."""
        human = entity.faction == Faction.HUMAN
        airborne = entity.is_airborne
        flame_proof = airborne or entity.kind == EntityKind.FIREMEN or (
            not human and entity.has_ability("flame_immunity")
        )

        blocked, no_stop = set(), set()
        for node_id in list(registry.occupancy):
            if registry.occupied_by(node_id, entity.faction.opponent):
                (no_stop if airborne else blocked).add(node_id)
        if human and not airborne:
            blocked.update(m.node_id for m in markers.of_type(MarkerType.WEB))
        if not flame_proof:
            blocked.update(m.node_id for m in markers.fires())
        blocked.discard(entity.node_id)

        return cls(
            kind=entity.kind,
            budget=entity.movement_left if budget is None else budget,
            full_budget=entity.movement_allowance,
            human=human,
            airborne=airborne,
            amphibious=entity.has_capability(Capability.AMPHIBIOUS),
            blocked=frozenset(blocked),
            no_stop=frozenset(no_stop),
        )


def step_cost(city_map: CityMap, profile: MovementProfile, node_id: str) -> Optional[int]:
    """Cost to enter a node, or None if it cannot be entered normally."""
    if node_id in profile.blocked:
        return None
    if profile.airborne:
        return 1
    terrain = city_map.terrain_of(node_id)
    cost = city_map.movement_cost(terrain, profile.kind.value)
    if cost is None and profile.amphibious and terrain == TerrainType.RIVER:
        return 1
    return cost


def _fording_out(city_map: CityMap, start: str, profile: MovementProfile) -> bool:
    return profile.fords and city_map.terrain_of(start) == TerrainType.RIVER


def special_steps(city_map: CityMap, start: str, profile: MovementProfile) -> dict[str, str]:
    """Single steps that spend the whole remaining budget: forced entry or fording."""
    if profile.budget <= 0:
        return {}

    steps = {}
    full = profile.budget >= profile.full_budget
    leaving_river = _fording_out(city_map, start, profile)
    for neighbor in sorted(city_map.neighbors_of(start)):
        if neighbor in profile.blocked or neighbor in profile.no_stop:
            continue

        cost = step_cost(city_map, profile, neighbor)
        if profile.fords and city_map.terrain_of(neighbor) == TerrainType.RIVER:
            if full:
                steps[neighbor] = FORD
        elif leaving_river:
            if full and cost is not None:
                steps[neighbor] = FORD
        elif profile.human and cost is not None and cost > profile.budget:
            steps[neighbor] = FORCED_ENTRY

    return steps


def reachable_nodes(city_map: CityMap, start: str, profile: MovementProfile) -> dict[str, int]:
    """Every node the entity can end its move in, with the cheapest cost."""
    costs = {start: 0}
    if profile.budget <= 0:
        return costs

    if not _fording_out(city_map, start, profile):
        counter = itertools.count()
        frontier = [(0, next(counter), start)]
        while frontier:
            cost, _, current = heapq.heappop(frontier)
            if cost > costs.get(current, cost):
                continue
            for neighbor in sorted(city_map.neighbors_of(current)):
                move_cost = step_cost(city_map, profile, neighbor)
                if move_cost is None:
                    continue
                total = cost + move_cost
                if total > profile.budget:
                    continue
                if total < costs.get(neighbor, total + 1):
                    costs[neighbor] = total
                    heapq.heappush(frontier, (total, next(counter), neighbor))

    endpoints = {node: cost for node, cost in costs.items() if node not in profile.no_stop}
    for node in special_steps(city_map, start, profile):
        endpoints.setdefault(node, profile.budget)
    return endpoints


def find_path(
    city_map: CityMap,
    start: str,
    goal: str,
    profile: MovementProfile,
    max_iterations: Optional[int] = None,
) -> list[str]:
    """Find the cheapest path within budget using A*. Empty if none exists."""
    if start == goal:
        return [start]
    if not city_map.has_node(goal) or goal in profile.no_stop:
        return []

    if not _fording_out(city_map, start, profile):
        path = _astar(city_map, start, goal, profile, max_iterations)
        if path:
            return path

    if goal in special_steps(city_map, start, profile):
        return [start, goal]
    return []


def _astar(
    city_map: CityMap,
    start: str,
    goal: str,
    profile: MovementProfile,
    max_iterations: Optional[int],
) -> list[str]:
    max_iterations = max_iterations or len(city_map.nodes) * 8
    counter = itertools.count()
    open_set = [(city_map.heuristic(start, goal), next(counter), start)]
    came_from: dict[str, str] = {}
    g_score = {start: 0}
    closed: set[str] = set()
    iterations = 0

    while open_set:
        iterations += 1
        if iterations > max_iterations:
            logger.warning(f"Pathfinding {start} -> {goal} gave up after {max_iterations} iterations")
            return []

        _, _, current = heapq.heappop(open_set)
        if current == goal:
            path = [current]
            while current in came_from:
                current = came_from[current]
                path.append(current)
            return list(reversed(path))

        if current in closed:
            continue
        closed.add(current)

        for neighbor in sorted(city_map.neighbors_of(current)):
            if neighbor in closed:
                continue
            move_cost = step_cost(city_map, profile, neighbor)
            if move_cost is None:
                continue

            tentative_g = g_score[current] + move_cost
            if tentative_g > profile.budget:
                continue

            if neighbor not in g_score or tentative_g < g_score[neighbor]:
                came_from[neighbor] = current
                g_score[neighbor] = tentative_g
                f_score = tentative_g + city_map.heuristic(neighbor, goal)
                heapq.heappush(open_set, (f_score, next(counter), neighbor))

    return []


def path_cost(city_map: CityMap, path: list[str], profile: MovementProfile) -> Optional[int]:
    """Sum of entry costs along a path, None if any step is impassable."""
    total = 0
    for node_id in path[1:]:
        cost = step_cost(city_map, profile, node_id)
        if cost is None:
            return None
        total += cost
    return total
