"""
Building and bridge demolition by the monster.

Uses the same odds/die mechanism as attacks, with the allocated
destruction points against the terrain's destruct strength.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..dice import Dice
from ..errors import InvalidTarget, RuleViolation
from ..map import CityMap, TerrainType
from ..markers import MarkerBoard, MarkerType
from ..units import Monster
from .base import CombatResolver, CombatTables, odds_ratio

logger = logging.getLogger(__name__)


@dataclass
class DemolitionReport:
    """Result of one demolition attempt."""
    monster_id: str
    node_id: str
    turn: int
    points: int
    destruct_strength: int
    odds: str
    die: int
    destroyed: bool
    terrain_before: str
    terrain_after: str
    victory_points: int = 0

    def to_dict(self) -> dict:
        return dict(self.__dict__)


class DemolitionCombat(CombatResolver):
    """Resolves demolition attempts."""

    MAX_ATTEMPTS_PER_TURN = 3
    CITY_EATING_BONUS = 2

    def __init__(
        self,
        city_map: CityMap,
        markers: MarkerBoard,
        tables: CombatTables,
        dice: Optional[Dice] = None,
        city_eating: bool = False,
    ):
        super().__init__(tables, dice)
        self.map = city_map
        self.markers = markers
        self.city_eating = city_eating

    def check_attempt(self, monster: Monster, node_id: str, points: int):
        if not self.map.has_node(node_id):
            raise InvalidTarget(f"Unknown node '{node_id}'")
        if node_id != monster.node_id and not self.map.are_adjacent(monster.node_id, node_id):
            raise InvalidTarget(f"{node_id} is not adjacent to {monster.id}")
        if self.map.info_for(node_id).destruct_strength is None:
            raise InvalidTarget(f"{node_id} ({self.map.terrain_of(node_id).value}) cannot be demolished")
        if points < 1:
            raise RuleViolation("At least one destruction point must be allocated")
        if monster.destruction_attempts_left <= 0:
            raise RuleViolation(f"No destruction attempts left this turn (max {self.MAX_ATTEMPTS_PER_TURN})")
        if points > monster.destruction_points_left:
            raise RuleViolation(
                f"Allocating {points} exceeds remaining destruction points ({monster.destruction_points_left})"
            )

    def resolve(self, monster: Monster, node_id: str, points: int, turn: int) -> DemolitionReport:
        info = self.map.info_for(node_id)
        before = self.map.terrain_of(node_id)

        monster.destruction_attempts_left -= 1
        monster.destruction_points_spent += points

        odds = odds_ratio(points, info.destruct_strength)
        die = self.roll()
        destroyed = self.tables.destroys(odds, die)

        report = DemolitionReport(
            monster_id=monster.id,
            node_id=node_id,
            turn=turn,
            points=points,
            destruct_strength=info.destruct_strength,
            odds=odds,
            die=die,
            destroyed=destroyed,
            terrain_before=before.value,
            terrain_after=before.value,
        )

        if destroyed:
            report.victory_points = self.demolish(node_id, turn)
            report.terrain_after = self.map.terrain_of(node_id).value
            if self.city_eating:
                monster.attack += self.CITY_EATING_BONUS
                monster.max_attack += self.CITY_EATING_BONUS

        logger.info(
            f"{monster.id} demolition on {node_id} with {points} pts at {odds}, die {die}: "
            f"{'destroyed' if destroyed else 'holds'}"
        )
        return report

    def demolish(self, node_id: str, turn: int) -> int:
        """Convert a node to its destroyed terrain. Returns victory points earned."""
        info = self.map.info_for(node_id)
        if info.destroyed_as is None:
            return 0

        after = TerrainType(info.destroyed_as)
        self.map.set_terrain(node_id, after)
        self.markers.remove(node_id, MarkerType.FIRE)
        if after == TerrainType.RUBBLE:
            self.markers.place(MarkerType.RUBBLE, node_id, turn)
        return info.destruction_vp
