"""
Entity model and registry for the kaiju wargame.

Two factions: the monster (a single creature with four strength pools) and
the human garrison (stacks of identical units). Faction and kind are plain
fields on every entity; nothing dispatches on the Python class.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml

from .errors import InvalidTarget, ScenarioError
from .map import DEFAULT_DATA_PATH

logger = logging.getLogger(__name__)


class Faction(Enum):
    MONSTER = "monster"
    HUMAN = "human"

    @property
    def opponent(self) -> "Faction":
        return Faction.HUMAN if self == Faction.MONSTER else Faction.MONSTER


class EntityKind(Enum):
    MONSTER = "monster"
    INFANTRY = "infantry"
    POLICE = "police"
    FIREMEN = "firemen"
    ARMOR = "armor"
    ARTILLERY = "artillery"
    HELICOPTER = "helicopter"
    FIREBOAT = "fireboat"


INFANTRY_KINDS = frozenset({EntityKind.INFANTRY, EntityKind.POLICE, EntityKind.FIREMEN})
VEHICLE_KINDS = frozenset({EntityKind.ARMOR, EntityKind.ARTILLERY})


class Capability(Enum):
    FLIGHT = "flight"
    AMPHIBIOUS = "amphibious"
    RANGED_ATTACK = "ranged_attack"
    TOW_CAPABLE = "tow_capable"


class EntityStatus(Enum):
    ACTIVE = "active"
    ELIMINATED = "eliminated"


class StrengthPool(Enum):
    ATTACK = "attack"
    DEFENSE = "defense"
    DESTRUCTION = "destruction"
    MOVEMENT = "movement"


@dataclass
class UnitType:
    """Human unit type definition loaded from schema."""
    id: str
    name: str
    kind: EntityKind
    attack: int
    defense: int
    movement: int
    capabilities: frozenset = frozenset()
    attack_range: int = 1
    combat_capable: bool = True
    extinguish_power: int = 0
    extinguish_range: int = 1
    extinguish_targets: Optional[int] = None  # None = every fire in reach once
    victory_points: int = 0


@dataclass
class Entity(ABC):
    """Anything that occupies a node: a unit stack or the monster."""
    id: str
    name: str
    faction: Faction
    kind: EntityKind
    node_id: str
    movement_left: int = 0
    capabilities: set[Capability] = field(default_factory=set)
    attack_range: int = 1
    status: EntityStatus = EntityStatus.ACTIVE

    @property
    @abstractmethod
    def attack_strength(self) -> int:
        ...

    @property
    @abstractmethod
    def defense_strength(self) -> int:
        ...

    @property
    @abstractmethod
    def movement_allowance(self) -> int:
        ...

    @property
    def is_active(self) -> bool:
        return self.status == EntityStatus.ACTIVE

    @property
    def is_airborne(self) -> bool:
        return Capability.FLIGHT in self.capabilities

    @property
    def combat_capable(self) -> bool:
        return True

    def has_capability(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def reset_movement(self):
        self.movement_left = self.movement_allowance

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "faction": self.faction.value,
            "kind": self.kind.value,
            "node": self.node_id,
            "movement_left": self.movement_left,
            "attack": self.attack_strength,
            "defense": self.defense_strength,
            "capabilities": sorted(c.value for c in self.capabilities),
            "attack_range": self.attack_range,
            "status": self.status.value,
        }


@dataclass
class Unit(Entity):
    """A stack of identical human units."""
    unit_type: Optional[UnitType] = None
    quantity: int = 1
    max_quantity: int = 1
    immobilized: bool = False
    towed_with: Optional[str] = None  # partner id while coupled for towing
    fires_fought: set[str] = field(default_factory=set)

    @property
    def attack_strength(self) -> int:
        return self.unit_type.attack * self.quantity

    @property
    def defense_strength(self) -> int:
        return self.unit_type.defense * self.quantity

    @property
    def movement_allowance(self) -> int:
        if self.towed_with:
            return 3
        return self.unit_type.movement

    @property
    def combat_capable(self) -> bool:
        return self.unit_type.combat_capable

    @property
    def is_firefighter(self) -> bool:
        return self.unit_type.extinguish_power > 0

    @property
    def extinguish_amount(self) -> int:
        return self.unit_type.extinguish_power * self.quantity

    @property
    def firefighting_actions_left(self) -> Optional[int]:
        """Remaining distinct fires this stack may fight, None if only reach limits it."""
        if self.unit_type.extinguish_targets is None:
            return None
        return max(0, self.unit_type.extinguish_targets - len(self.fires_fought))

    def take_losses(self, count: int) -> int:
        """Remove units from the stack. Returns how many were actually lost."""
        lost = min(count, self.quantity)
        self.quantity -= lost
        if self.quantity <= 0:
            self.status = EntityStatus.ELIMINATED
        return lost

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            "type": self.unit_type.id,
            "quantity": self.quantity,
            "max_quantity": self.max_quantity,
            "immobilized": self.immobilized,
            "towed_with": self.towed_with,
            "fires_fought": sorted(self.fires_fought),
        })
        return data


@dataclass
class Monster(Entity):
    """The creature. Each strength pool takes damage independently."""
    attack: int = 0
    defense: int = 0
    destruction: int = 0
    movement: int = 0
    max_attack: int = 0
    max_defense: int = 0
    max_destruction: int = 0
    max_movement: int = 0
    abilities: dict[str, int] = field(default_factory=dict)  # ability -> cooldown turns left
    ability_uses: dict[str, int] = field(default_factory=dict)
    is_flying: bool = False
    untargetable_until_turn: int = 0
    destruction_attempts_left: int = 0
    destruction_points_spent: int = 0
    ignition_attempts_left: int = 0

    @property
    def attack_strength(self) -> int:
        return self.attack

    @property
    def defense_strength(self) -> int:
        return self.defense

    @property
    def movement_allowance(self) -> int:
        return self.movement

    @property
    def is_airborne(self) -> bool:
        return self.is_flying

    @property
    def destruction_points_left(self) -> int:
        return max(0, self.destruction - self.destruction_points_spent)

    def has_ability(self, name: str) -> bool:
        return name in self.abilities

    def take_damage(self, amount: int, pool: StrengthPool = StrengthPool.DEFENSE) -> int:
        """Reduce one strength pool. Returns the damage actually applied."""
        current = getattr(self, pool.value)
        applied = min(amount, current)
        setattr(self, pool.value, current - applied)
        if pool == StrengthPool.MOVEMENT:
            self.movement_left = min(self.movement_left, self.movement)
        if self.defense <= 0:
            self.status = EntityStatus.ELIMINATED
        return applied

    def tick_cooldowns(self):
        for name, cooldown in self.abilities.items():
            if cooldown > 0:
                self.abilities[name] = cooldown - 1

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            "pools": {
                "attack": [self.attack, self.max_attack],
                "defense": [self.defense, self.max_defense],
                "destruction": [self.destruction, self.max_destruction],
                "movement": [self.movement, self.max_movement],
            },
            "abilities": dict(self.abilities),
            "ability_uses": dict(self.ability_uses),
            "is_flying": self.is_flying,
            "untargetable_until_turn": self.untargetable_until_turn,
            "destruction_attempts_left": self.destruction_attempts_left,
            "destruction_points_spent": self.destruction_points_spent,
            "destruction_points_left": self.destruction_points_left,
            "ignition_attempts_left": self.ignition_attempts_left,
        })
        return data


class EntityRegistry:
    """
    Owns every entity and the node occupancy index.

    Entity.node_id and the occupancy index are only ever changed together,
    through place/move/eliminate.
    """

    def __init__(self, data_path: Path | str = DEFAULT_DATA_PATH):
        self.data_path = Path(data_path)
        self.entities: dict[str, Entity] = {}
        self.occupancy: dict[str, set[str]] = {}
        self.eliminated: dict[str, Entity] = {}
        self.unit_types: dict[str, UnitType] = {}
        self._counters: dict[str, int] = {}

        self._load_unit_types()

    def _load_unit_types(self):
        """Load human unit type definitions."""
        schema_path = self.data_path / "schema" / "units.yaml"
        if not schema_path.exists():
            raise ScenarioError(f"Unit schema not found: {schema_path}")

        with open(schema_path) as f:
            data = yaml.safe_load(f) or {}

        for type_id, info in data.get("unit_types", {}).items():
            try:
                kind = EntityKind(info.get("kind", type_id))
                capabilities = frozenset(Capability(c) for c in info.get("capabilities", []))
            except ValueError as e:
                raise ScenarioError(f"Unit type {type_id}: {e}") from None

            self.unit_types[type_id] = UnitType(
                id=type_id,
                name=info.get("name", type_id.title()),
                kind=kind,
                attack=info.get("attack", 0),
                defense=info.get("defense", 1),
                movement=info.get("movement", 1),
                capabilities=capabilities,
                attack_range=info.get("range", 1),
                combat_capable=info.get("combat_capable", True),
                extinguish_power=info.get("extinguish_power", 0),
                extinguish_range=info.get("extinguish_range", 1),
                extinguish_targets=info.get("extinguish_targets"),
                victory_points=info.get("victory_points", 0),
            )

        logger.info(f"Loaded {len(self.unit_types)} unit types")

    def _next_id(self, prefix: str) -> str:
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return f"{prefix}-{self._counters[prefix]}"

    # Creation
    def create_unit(
        self,
        type_id: str,
        node_id: str,
        quantity: int = 1,
        unit_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Unit:
        unit_type = self.unit_types.get(type_id)
        if unit_type is None:
            raise ScenarioError(f"Unknown unit type: {type_id}")
        if quantity < 1:
            raise ScenarioError(f"Unit {type_id} at {node_id} has quantity {quantity}")

        unit_id = unit_id or self._next_id(type_id)
        if unit_id in self.entities or unit_id in self.eliminated:
            raise ScenarioError(f"Duplicate entity id: {unit_id}")

        unit = Unit(
            id=unit_id,
            name=name or f"{unit_type.name} {unit_id}",
            faction=Faction.HUMAN,
            kind=unit_type.kind,
            node_id=node_id,
            capabilities=set(unit_type.capabilities),
            attack_range=unit_type.attack_range,
            unit_type=unit_type,
            quantity=quantity,
            max_quantity=quantity,
        )
        self.place(unit)
        return unit

    def place(self, entity: Entity):
        if entity.id in self.entities:
            raise ScenarioError(f"Duplicate entity id: {entity.id}")
        self.entities[entity.id] = entity
        self.occupancy.setdefault(entity.node_id, set()).add(entity.id)

    def load_entities(self, entities: list[dict], eliminated: Optional[list[dict]] = None):
        """Replace every entity with ones rebuilt from their to_dict() form."""
        self.entities.clear()
        self.occupancy.clear()
        self.eliminated.clear()

        for data in entities:
            self.place(self._entity_from_dict(data))
        for data in eliminated or []:
            entity = self._entity_from_dict(data)
            entity.status = EntityStatus.ELIMINATED
            self.eliminated[entity.id] = entity

        # keep generated ids clear of the restored ones
        self._counters.clear()
        for entity_id in list(self.entities) + list(self.eliminated):
            prefix, _, number = entity_id.rpartition("-")
            if prefix and number.isdigit():
                self._counters[prefix] = max(self._counters.get(prefix, 0), int(number))

    def _entity_from_dict(self, data: dict) -> Entity:
        common = dict(
            id=data["id"],
            name=data["name"],
            faction=Faction(data["faction"]),
            kind=EntityKind(data["kind"]),
            node_id=data["node"],
            movement_left=data["movement_left"],
            capabilities={Capability(c) for c in data.get("capabilities", [])},
            attack_range=data.get("attack_range", 1),
            status=EntityStatus(data.get("status", "active")),
        )

        if common["kind"] == EntityKind.MONSTER:
            pools = data["pools"]
            return Monster(
                **common,
                attack=pools["attack"][0], max_attack=pools["attack"][1],
                defense=pools["defense"][0], max_defense=pools["defense"][1],
                destruction=pools["destruction"][0], max_destruction=pools["destruction"][1],
                movement=pools["movement"][0], max_movement=pools["movement"][1],
                abilities=dict(data.get("abilities", {})),
                ability_uses=dict(data.get("ability_uses", {})),
                is_flying=data.get("is_flying", False),
                untargetable_until_turn=data.get("untargetable_until_turn", 0),
                destruction_attempts_left=data.get("destruction_attempts_left", 0),
                destruction_points_spent=data.get("destruction_points_spent", 0),
                ignition_attempts_left=data.get("ignition_attempts_left", 0),
            )

        unit_type = self.unit_types.get(data["type"])
        if unit_type is None:
            raise ScenarioError(f"Unknown unit type: {data['type']}")
        return Unit(
            **common,
            unit_type=unit_type,
            quantity=data["quantity"],
            max_quantity=data.get("max_quantity", data["quantity"]),
            immobilized=data.get("immobilized", False),
            towed_with=data.get("towed_with"),
            fires_fought=set(data.get("fires_fought", [])),
        )

    # Mutation
    def move(self, entity_id: str, node_id: str):
        entity = self.entities[entity_id]
        self.occupancy[entity.node_id].discard(entity_id)
        if not self.occupancy[entity.node_id]:
            del self.occupancy[entity.node_id]
        entity.node_id = node_id
        self.occupancy.setdefault(node_id, set()).add(entity_id)

    def eliminate(self, entity_id: str):
        entity = self.entities.pop(entity_id)
        entity.status = EntityStatus.ELIMINATED
        self.occupancy[entity.node_id].discard(entity_id)
        if not self.occupancy[entity.node_id]:
            del self.occupancy[entity.node_id]
        self.eliminated[entity_id] = entity
        logger.info(f"{entity.name} eliminated at {entity.node_id}")

    # Queries
    def get(self, entity_id: str) -> Optional[Entity]:
        return self.entities.get(entity_id)

    def require(self, entity_id: str) -> Entity:
        entity = self.entities.get(entity_id)
        if entity is None:
            raise InvalidTarget(f"No active entity '{entity_id}'")
        return entity

    @property
    def monster(self) -> Optional[Monster]:
        for entity in self.entities.values():
            if entity.kind == EntityKind.MONSTER:
                return entity
        return None

    def at(self, node_id: str) -> list[Entity]:
        return [self.entities[i] for i in sorted(self.occupancy.get(node_id, ()))]

    def by_faction(self, faction: Faction) -> list[Entity]:
        return [e for e in self.entities.values() if e.faction == faction]

    def human_units(self) -> list[Unit]:
        return [e for e in self.entities.values() if e.faction == Faction.HUMAN]

    def combat_units(self) -> list[Unit]:
        return [u for u in self.human_units() if u.combat_capable]

    def occupied_by(self, node_id: str, faction: Faction) -> bool:
        return any(e.faction == faction for e in self.at(node_id))

    def stack_size(self, node_id: str, exclude: tuple[str, ...] = ()) -> int:
        """Combat-capable human units on a node."""
        return sum(
            e.quantity for e in self.at(node_id)
            if e.faction == Faction.HUMAN and e.combat_capable and e.id not in exclude
        )

    def is_consistent(self) -> bool:
        """Entity positions and the occupancy index agree both ways."""
        for entity in self.entities.values():
            if entity.id not in self.occupancy.get(entity.node_id, ()):
                return False
        for node_id, ids in self.occupancy.items():
            for entity_id in ids:
                entity = self.entities.get(entity_id)
                if entity is None or entity.node_id != node_id:
                    return False
        return True

    def get_stats(self) -> dict:
        humans = self.human_units()
        return {
            "total_entities": len(self.entities),
            "human_stacks": len(humans),
            "human_units": sum(u.quantity for u in humans),
            "eliminated": len(self.eliminated),
        }
