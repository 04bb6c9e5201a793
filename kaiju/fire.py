"""
Fire simulation: ignition, wind-driven spread, burn-out and firefighting.

A fire lives on one flammable node (buildings, parks) with an intensity of
1-3. The fire phase runs once per game turn, after the human side has had
its fire-control actions:

1. roll the wind die (1 N, 2 E, 3 S, 4 W, 5-6 calm)
2. spread from the fires burning at the start of the phase
3. advance those fires one stage; a fire already at stage 3 burns out,
   leaving rubble where it stood on a building
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .dice import Dice
from .errors import InsufficientBudget, InvalidTarget, RuleViolation
from .map import CityMap, TerrainType
from .markers import MAX_FIRE_INTENSITY, Marker, MarkerBoard, MarkerType
from .units import Monster, Unit

logger = logging.getLogger(__name__)

WIND_DIRECTIONS = {1: "north", 2: "east", 3: "south", 4: "west"}


@dataclass
class FireReport:
    """Everything that happened in one fire phase."""
    turn: int
    wind: Optional[str] = None
    wind_die: Optional[int] = None
    spread_rolls: list[dict] = field(default_factory=list)
    ignited: list[str] = field(default_factory=list)
    intensified: dict[str, int] = field(default_factory=dict)
    burned_out: list[str] = field(default_factory=list)
    rubble: list[str] = field(default_factory=list)
    victory_points: int = 0

    def to_dict(self) -> dict:
        return {
            "turn": self.turn,
            "wind": self.wind or "calm",
            "wind_die": self.wind_die,
            "spread_rolls": list(self.spread_rolls),
            "ignited": list(self.ignited),
            "intensified": dict(self.intensified),
            "burned_out": list(self.burned_out),
            "rubble": list(self.rubble),
            "victory_points": self.victory_points,
        }


class FireSystem:
    """Owns fire rules; fire markers themselves live on the MarkerBoard."""

    MAX_IGNITIONS_PER_TURN = 3
    IGNITION_MAX_DIE = 3
    MIN_SPREAD_THRESHOLD = 2

    def __init__(self, city_map: CityMap, markers: MarkerBoard, dice: Optional[Dice] = None,
                 wind: Optional[str] = None):
        self.map = city_map
        self.markers = markers
        self.dice = dice or Dice()
        self.wind = wind

    def can_burn(self, node_id: str) -> bool:
        return self.map.is_flammable(node_id) and not self.markers.burning(node_id)

    def ignite(self, node_id: str, turn: int) -> Marker:
        marker = self.markers.place(MarkerType.FIRE, node_id, turn)
        logger.info(f"Fire breaks out at {node_id}")
        return marker

    # Monster fire breathing
    def check_ignition(self, monster: Monster, node_id: str):
        if not self.map.has_node(node_id):
            raise InvalidTarget(f"Unknown node '{node_id}'")
        if node_id != monster.node_id and not self.map.are_adjacent(monster.node_id, node_id):
            raise InvalidTarget(f"{node_id} is not adjacent to {monster.id}")
        if not self.map.is_flammable(node_id):
            raise InvalidTarget(f"{node_id} ({self.map.terrain_of(node_id).value}) cannot burn")
        if self.markers.burning(node_id):
            raise InvalidTarget(f"{node_id} is already burning")
        if monster.ignition_attempts_left <= 0:
            raise RuleViolation(f"No ignition attempts left this turn (max {self.MAX_IGNITIONS_PER_TURN})")

    def attempt_ignition(self, monster: Monster, node_id: str, turn: int) -> dict:
        monster.ignition_attempts_left -= 1
        die = self.dice.roll()
        ignited = die <= self.IGNITION_MAX_DIE
        if ignited:
            self.ignite(node_id, turn)
        return {"node": node_id, "die": die, "ignited": ignited}

    # Firefighting
    def check_extinguish(self, unit: Unit, node_id: str):
        if not unit.is_firefighter:
            raise InvalidTarget(f"{unit.id} cannot fight fires")
        if not self.map.has_node(node_id):
            raise InvalidTarget(f"Unknown node '{node_id}'")
        if not self.markers.burning(node_id):
            raise InvalidTarget(f"No fire at {node_id}")
        hops = self.map.hop_distance(unit.node_id, node_id, limit=unit.unit_type.extinguish_range)
        if hops is None:
            raise InvalidTarget(f"{node_id} is out of reach of {unit.id}")
        if node_id in unit.fires_fought:
            raise InsufficientBudget(f"{unit.id} already fought the fire at {node_id} this turn")
        if unit.firefighting_actions_left == 0:
            raise InsufficientBudget(f"{unit.id} has no firefighting actions left this turn")

    def extinguish(self, unit: Unit, node_id: str) -> dict:
        marker = self.markers.get(node_id, MarkerType.FIRE)
        before = marker.intensity
        amount = unit.extinguish_amount
        unit.fires_fought.add(node_id)

        cleared = marker.reduce(amount)
        if cleared:
            self.markers.remove(node_id, MarkerType.FIRE)
            logger.info(f"{unit.id} puts out the fire at {node_id}")

        return {
            "unit": unit.id,
            "node": node_id,
            "amount": amount,
            "intensity_before": before,
            "intensity_after": marker.intensity,
            "cleared": cleared,
        }

    # Fire phase
    def roll_wind(self) -> tuple[int, Optional[str]]:
        die = self.dice.roll()
        self.wind = WIND_DIRECTIONS.get(die)
        return die, self.wind

    def spread_threshold(self, adjacent_fires: int, downwind: bool) -> int:
        """Lowest die face that catches. One fire, no wind: only a 6."""
        threshold = 6 - (adjacent_fires - 1) - (1 if downwind else 0)
        return max(self.MIN_SPREAD_THRESHOLD, threshold)

    def is_downwind(self, fire_node: str, target: str) -> bool:
        return self.wind is not None and self.map.compass_direction(fire_node, target) == self.wind

    def run_phase(self, turn: int) -> FireReport:
        report = FireReport(turn=turn)
        burning = [m.node_id for m in self.markers.fires()]
        if not burning:
            return report

        report.wind_die, report.wind = self.roll_wind()

        candidates = sorted({
            neighbor
            for node_id in burning
            for neighbor in self.map.neighbors_of(node_id)
            if self.can_burn(neighbor)
        })
        for target in candidates:
            sources = sorted(n for n in self.map.neighbors_of(target) if n in burning)
            caught = False
            for source in sources:
                downwind = self.is_downwind(source, target)
                threshold = self.spread_threshold(len(sources), downwind)
                die = self.dice.roll()
                success = die >= threshold
                caught = caught or success
                report.spread_rolls.append({
                    "from": source, "to": target, "die": die,
                    "threshold": threshold, "downwind": downwind, "caught": success,
                })
            if caught:
                report.ignited.append(target)

        for node_id in burning:
            marker = self.markers.get(node_id, MarkerType.FIRE)
            if marker.intensity >= MAX_FIRE_INTENSITY:
                report.victory_points += self._burn_out(node_id, turn, report)
            else:
                report.intensified[node_id] = marker.intensify()

        for node_id in report.ignited:
            self.ignite(node_id, turn)

        logger.info(
            f"Fire phase turn {turn}: wind {report.wind or 'calm'}, "
            f"{len(report.ignited)} new, {len(report.burned_out)} burned out"
        )
        return report

    def _burn_out(self, node_id: str, turn: int, report: FireReport) -> int:
        self.markers.remove(node_id, MarkerType.FIRE)
        report.burned_out.append(node_id)

        info = self.map.info_for(node_id)
        if info.destroyed_as != TerrainType.RUBBLE.value:
            return 0
        self.map.set_terrain(node_id, TerrainType.RUBBLE)
        self.markers.place(MarkerType.RUBBLE, node_id, turn)
        report.rubble.append(node_id)
        return info.destruction_vp
