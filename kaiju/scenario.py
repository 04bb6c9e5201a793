"""
Scenario descriptors.

A scenario fixes the monster's build, the garrison roster, victory
thresholds, starting wind and the reinforcement schedule. It is immutable
once a game starts.
"""

import copy
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .abilities import Ability
from .errors import RuleViolation, ScenarioError
from .fire import WIND_DIRECTIONS
from .map import DEFAULT_DATA_PATH

logger = logging.getLogger(__name__)

STRENGTHS = ("attack", "defense", "destruction", "movement")


@dataclass
class MonsterSetup:
    node: str
    attack: int
    defense: int
    destruction: int
    movement: int
    abilities: list[str] = field(default_factory=list)
    name: str = "Monster"
    id: str = "monster"

    @property
    def strength_points(self) -> int:
        return self.attack + self.defense + self.destruction + self.movement


@dataclass
class RosterEntry:
    type: str
    node: str
    quantity: int = 1
    id: Optional[str] = None


@dataclass
class Reinforcement(RosterEntry):
    turn: int = 1


@dataclass
class VictoryThresholds:
    monster_vp: int = 80
    human_vp: int = 50
    max_turns: int = 10


@dataclass
class Scenario:
    """Load-time scenario descriptor."""
    name: str
    monster: MonsterSetup
    roster: list[RosterEntry]
    victory: VictoryThresholds = field(default_factory=VictoryThresholds)
    map_name: Optional[str] = "midtown"
    map_nodes: Optional[list[dict]] = None  # inline map instead of a map file
    wind: Optional[str] = None
    reinforcements: list[Reinforcement] = field(default_factory=list)
    monster_points: Optional[int] = None
    stacking_limit: int = 5
    city_eating: bool = False
    free_firefighters: bool = True
    source: dict = field(default_factory=dict, repr=False)  # the mapping it was built from

    MAX_DEFENSE = 15
    MIN_ABILITY_SHARE = 0.25

    @classmethod
    def load(cls, name_or_path: Path | str, data_path: Path | str = DEFAULT_DATA_PATH) -> "Scenario":
        """Load by scenario name (from data/scenarios) or by file path."""
        path = Path(name_or_path)
        if not path.suffix:
            path = Path(data_path) / "scenarios" / f"{name_or_path}.yaml"
        if not path.exists():
            raise ScenarioError(f"Scenario not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        scenario = cls.from_dict(data.get("scenario", data))
        logger.info(f"Loaded scenario '{scenario.name}' from {path}")
        return scenario

    @classmethod
    def from_dict(cls, data: dict) -> "Scenario":
        if not isinstance(data, dict):
            raise ScenarioError("Scenario must be a mapping")

        monster = data.get("monster")
        if not isinstance(monster, dict):
            raise ScenarioError("Scenario missing 'monster' section")
        missing = [k for k in ("node", *STRENGTHS) if k not in monster]
        if missing:
            raise ScenarioError(f"Monster missing fields: {', '.join(missing)}")

        wind = data.get("wind")
        if wind in ("calm", None):
            wind = None
        elif wind not in WIND_DIRECTIONS.values():
            raise ScenarioError(f"Unknown wind direction '{wind}'")

        if data.get("map") is None and not data.get("nodes"):
            raise ScenarioError("Scenario needs a 'map' name or inline 'nodes'")

        victory = data.get("victory", {})
        try:
            return cls(
                name=data.get("name", "Untitled"),
                monster=MonsterSetup(
                    node=str(monster["node"]),
                    attack=int(monster["attack"]),
                    defense=int(monster["defense"]),
                    destruction=int(monster["destruction"]),
                    movement=int(monster["movement"]),
                    abilities=list(monster.get("abilities", [])),
                    name=monster.get("name", "Monster"),
                    id=monster.get("id", "monster"),
                ),
                roster=[cls._roster_entry(e) for e in data.get("roster", [])],
                victory=VictoryThresholds(
                    monster_vp=int(victory.get("monster_vp", 80)),
                    human_vp=int(victory.get("human_vp", 50)),
                    max_turns=int(victory.get("max_turns", 10)),
                ),
                map_name=data.get("map"),
                map_nodes=data.get("nodes"),
                wind=wind,
                reinforcements=[cls._reinforcement(e) for e in data.get("reinforcements", [])],
                monster_points=data.get("monster_points"),
                stacking_limit=int(data.get("stacking_limit", 5)),
                city_eating=bool(data.get("city_eating", False)),
                free_firefighters=bool(data.get("free_firefighters", True)),
                source=copy.deepcopy(data),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ScenarioError(f"Malformed scenario: {e}") from None

    @staticmethod
    def _roster_entry(entry: dict) -> RosterEntry:
        return RosterEntry(
            type=entry["type"],
            node=str(entry["node"]),
            quantity=int(entry.get("quantity", 1)),
            id=entry.get("id"),
        )

    @staticmethod
    def _reinforcement(entry: dict) -> Reinforcement:
        return Reinforcement(
            type=entry["type"],
            node=str(entry["node"]),
            quantity=int(entry.get("quantity", 1)),
            id=entry.get("id"),
            turn=int(entry["turn"]),
        )

    def validate_setup(self, catalog: dict[str, Ability]):
        """Check the monster build against the setup point rules."""
        unknown = [a for a in self.monster.abilities if a not in catalog]
        if unknown:
            raise ScenarioError(f"Unknown abilities: {', '.join(unknown)}")
        if len(set(self.monster.abilities)) != len(self.monster.abilities):
            raise ScenarioError("Monster abilities listed more than once")
        for name in STRENGTHS:
            if getattr(self.monster, name) < 0:
                raise ScenarioError(f"Monster {name} cannot be negative")
        if self.monster.defense < 1:
            raise ScenarioError("Monster defense must be at least 1")

        if self.monster.defense > self.MAX_DEFENSE:
            raise RuleViolation(f"Monster defense {self.monster.defense} exceeds maximum {self.MAX_DEFENSE}")

        if self.monster_points is None:
            return

        ability_points = sum(catalog[a].cost for a in self.monster.abilities)
        total = self.monster.strength_points + ability_points
        if total > self.monster_points:
            raise RuleViolation(f"Monster build costs {total} points, budget is {self.monster_points}")

        required = math.ceil(self.monster_points * self.MIN_ABILITY_SHARE)
        if ability_points < required:
            raise RuleViolation(f"At least {required} points must go to abilities, got {ability_points}")
