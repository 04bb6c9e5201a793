"""
Monster special abilities.

Costs and phase rules come from data/schema/abilities.yaml. Active
abilities are triggered through use_ability; passive ones change the
monster's capabilities at setup or hook into other rules.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import IllegalPhase, InsufficientBudget, InvalidTarget, RuleViolation, ScenarioError
from .fire import FireSystem
from .map import CityMap, DEFAULT_DATA_PATH, TerrainType
from .markers import MarkerBoard, MarkerType
from .units import Capability, EntityRegistry, Faction, Monster

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ability:
    """Ability definition loaded from schema."""
    name: str
    cost: int
    phases: tuple = ()
    cooldown: int = 1
    max_uses: Optional[int] = None
    range: int = 1
    description: str = ""

    @property
    def passive(self) -> bool:
        return not self.phases


def load_abilities(data_path: Path | str = DEFAULT_DATA_PATH) -> dict[str, Ability]:
    schema_path = Path(data_path) / "schema" / "abilities.yaml"
    if not schema_path.exists():
        raise ScenarioError(f"Ability schema not found: {schema_path}")

    with open(schema_path) as f:
        data = yaml.safe_load(f) or {}

    catalog = {}
    for name, info in data.get("abilities", {}).items():
        if "cost" not in info:
            raise ScenarioError(f"Ability {name} has no cost")
        catalog[name] = Ability(
            name=name,
            cost=info["cost"],
            phases=tuple(info.get("phases", [])),
            cooldown=info.get("cooldown", 1),
            max_uses=info.get("max_uses"),
            range=info.get("range", 1),
            description=info.get("description", ""),
        )
    return catalog


class AbilitySystem:
    """Validates and applies monster abilities."""

    def __init__(
        self,
        city_map: CityMap,
        registry: EntityRegistry,
        markers: MarkerBoard,
        fire: FireSystem,
        catalog: dict[str, Ability],
    ):
        self.map = city_map
        self.registry = registry
        self.markers = markers
        self.fire = fire
        self.catalog = catalog

    def grant_passives(self, monster: Monster):
        """Apply capability changes from passive abilities."""
        if monster.has_ability("lightning_throwing"):
            monster.capabilities.add(Capability.RANGED_ATTACK)
            monster.attack_range = self.catalog["lightning_throwing"].range
        if monster.has_ability("flying"):
            monster.capabilities.add(Capability.FLIGHT)

    def check_use(self, monster: Monster, name: str, target: Any, sub_phase: str):
        ability = self.catalog.get(name)
        if ability is None or not monster.has_ability(name):
            raise InvalidTarget(f"{monster.id} does not have ability '{name}'")
        if ability.passive:
            raise RuleViolation(f"'{name}' is passive and cannot be activated")
        if sub_phase not in ability.phases:
            raise IllegalPhase(f"'{name}' can only be used in: {', '.join(ability.phases)}")
        if monster.abilities[name] > 0:
            raise InsufficientBudget(f"'{name}' is recharging for {monster.abilities[name]} more turn(s)")
        if ability.max_uses is not None and monster.ability_uses.get(name, 0) >= ability.max_uses:
            raise RuleViolation(f"'{name}' already used {ability.max_uses} times this game")

        checker = getattr(self, f"_check_{name}", None)
        if checker:
            checker(monster, target)

    def use(self, monster: Monster, name: str, target: Any, turn: int) -> dict:
        """Apply an ability already validated by check_use."""
        ability = self.catalog[name]
        result = getattr(self, f"_use_{name}")(monster, target, turn)
        monster.abilities[name] = ability.cooldown
        monster.ability_uses[name] = monster.ability_uses.get(name, 0) + 1
        logger.info(f"{monster.id} uses {name}: {result}")
        return {"ability": name, **result}

    # Flying
    def _check_flying(self, monster: Monster, target):
        if monster.is_flying:
            raise RuleViolation(f"{monster.id} is already airborne")

    def _use_flying(self, monster: Monster, target, turn: int) -> dict:
        monster.is_flying = True
        return {"airborne": True}

    # Fire breathing
    def _check_fire_breathing(self, monster: Monster, target):
        self.fire.check_ignition(monster, self._node(target))

    def _use_fire_breathing(self, monster: Monster, target, turn: int) -> dict:
        return self.fire.attempt_ignition(monster, target, turn)

    # Web spinning
    def _check_web_spinning(self, monster: Monster, target):
        node_id = self._node(target)
        if node_id != monster.node_id and not self.map.are_adjacent(monster.node_id, node_id):
            raise InvalidTarget(f"{node_id} is not adjacent to {monster.id}")
        if self.markers.has(node_id, MarkerType.WEB):
            raise InvalidTarget(f"{node_id} is already webbed")
        if monster.movement_left <= 0:
            raise InsufficientBudget(f"{monster.id} has no movement left to spin a web")

    def _use_web_spinning(self, monster: Monster, target, turn: int) -> dict:
        self.markers.place(MarkerType.WEB, target, turn)
        spent = monster.movement_left
        monster.movement_left = 0
        return {"node": target, "movement_spent": spent}

    # Fear immobilization
    def _targets(self, target) -> list[str]:
        if isinstance(target, str):
            return [target]
        if isinstance(target, (list, tuple)) and target:
            return [str(t) for t in target]
        raise InvalidTarget("Expected one or more unit ids")

    def _check_fear_immobilization(self, monster: Monster, target):
        for unit_id in self._targets(target):
            unit = self.registry.require(unit_id)
            if unit.faction != Faction.HUMAN:
                raise InvalidTarget(f"{unit_id} is not a human unit")
            if unit.node_id != monster.node_id and not self.map.are_adjacent(monster.node_id, unit.node_id):
                raise InvalidTarget(f"{unit_id} is not adjacent to {monster.id}")

    def _use_fear_immobilization(self, monster: Monster, target, turn: int) -> dict:
        unit_ids = self._targets(target)
        for unit_id in unit_ids:
            self.registry.get(unit_id).immobilized = True
        return {"units": unit_ids}

    # Blinding light
    def _use_blinding_light(self, monster: Monster, target, turn: int) -> dict:
        monster.untargetable_until_turn = turn
        return {"untargetable_turn": turn}

    # Great height
    def crush(self, monster: Monster, turn: int) -> Optional[dict]:
        """Collapse the fallen monster's node."""
        if not monster.has_ability("great_height"):
            return None

        node_id = monster.node_id
        before = self.map.terrain_of(node_id)
        if before in (TerrainType.RIVER, TerrainType.RUBBLE, TerrainType.DESTROYED_BRIDGE):
            return None

        after = TerrainType(self.map.info_for(node_id).destroyed_as or TerrainType.RUBBLE.value)
        self.map.set_terrain(node_id, after)
        self.markers.remove(node_id, MarkerType.FIRE)
        if after == TerrainType.RUBBLE:
            self.markers.place(MarkerType.RUBBLE, node_id, turn)

        crushed = [e.id for e in self.registry.at(node_id) if e.faction == Faction.HUMAN]
        for unit_id in crushed:
            self.registry.eliminate(unit_id)

        logger.info(f"{monster.id} falls and crushes {node_id}")
        return {"node": node_id, "terrain_before": before.value, "terrain_after": after.value, "crushed": crushed}

    def _node(self, target) -> str:
        if not isinstance(target, str) or not self.map.has_node(target):
            raise InvalidTarget(f"Unknown node '{target}'")
        return target
