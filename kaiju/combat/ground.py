"""
Attack resolution between the monster and the garrison.

Handles:
- Adjacent assaults in either direction
- Ranged fire (artillery, lightning throwing) with line of sight
- Terrain defense multipliers
- Forced retreats and their fallbacks
"""

import logging
from typing import Optional

from ..dice import Dice
from ..errors import InsufficientBudget, InvalidTarget
from ..map import CityMap
from ..markers import MarkerBoard
from ..movement import MovementProfile, step_cost
from ..units import Capability, Entity, EntityRegistry, Faction, Monster, Unit
from .base import CombatOutcome, CombatReport, CombatResolver, CombatTables, OutcomeType

logger = logging.getLogger(__name__)


class GroundCombat(CombatResolver):
    """Resolves attacks on the city board."""

    DEFAULT_STACKING_LIMIT = 5

    def __init__(
        self,
        city_map: CityMap,
        registry: EntityRegistry,
        markers: MarkerBoard,
        tables: CombatTables,
        dice: Optional[Dice] = None,
        stacking_limit: int = DEFAULT_STACKING_LIMIT,
    ):
        super().__init__(tables, dice)
        self.map = city_map
        self.registry = registry
        self.markers = markers
        self.stacking_limit = stacking_limit

    # Preconditions
    def check_attack(self, attacker: Entity, defender: Entity, turn: int):
        """Raise if the attack is not legal right now."""
        if attacker.faction == defender.faction:
            raise InvalidTarget(f"{attacker.id} cannot attack friendly {defender.id}")
        if attacker.movement_left <= 0:
            raise InsufficientBudget(f"{attacker.id} has no movement points left to attack")
        if attacker.attack_strength <= 0:
            raise InvalidTarget(f"{attacker.id} has no attack strength")
        if isinstance(defender, Monster) and defender.untargetable_until_turn == turn:
            raise InvalidTarget(f"{defender.id} is shielded by blinding light this turn")
        if not self.in_reach(attacker, defender):
            raise InvalidTarget(f"{defender.id} is out of reach of {attacker.id}")

    def in_reach(self, attacker: Entity, defender: Entity) -> bool:
        a, d = attacker.node_id, defender.node_id
        if a == d or self.map.are_adjacent(a, d):
            return True
        if not attacker.has_capability(Capability.RANGED_ATTACK):
            return False
        hops = self.map.hop_distance(a, d, limit=attacker.attack_range)
        return hops is not None and self.map.has_line_of_sight(a, d)

    def defense_value(self, defender: Entity) -> int:
        return defender.defense_strength * self.map.defense_multiplier(defender.node_id)

    # Resolution
    def resolve(self, attacker: Entity, defender: Entity, turn: int, phase: str) -> CombatReport:
        """Roll the attack and apply both outcomes, defender first."""
        attack = attacker.attack_strength
        defense = self.defense_value(defender)
        odds, die, cell = self.resolve_odds(attack, defense)

        report = CombatReport(
            attacker_id=attacker.id,
            defender_id=defender.id,
            turn=turn,
            phase=phase,
            odds=odds,
            die=die,
            attacker_strength=attack,
            defender_strength=defense,
            defender_outcome=cell.defender,
            attacker_outcome=cell.attacker,
            location=defender.node_id,
        )
        self.spend_budget(attacker)

        report.defender_losses = self._apply(defender, cell.defender, report)
        if attacker.is_active:
            report.attacker_losses = self._apply(attacker, cell.attacker, report)

        logger.info(
            f"{attacker.id} ({attack}) attacks {defender.id} ({defense}) at {odds}, "
            f"die {die}: {cell.defender.code}/{cell.attacker.code}"
        )
        return report

    def spend_budget(self, attacker: Entity):
        attacker.movement_left = 0
        if isinstance(attacker, Unit) and attacker.towed_with:
            partner = self.registry.get(attacker.towed_with)
            if partner:
                partner.movement_left = 0

    def _apply(self, entity: Entity, outcome: CombatOutcome, report: CombatReport) -> int:
        """Apply one side's outcome. Returns units lost or damage taken."""
        if outcome.type == OutcomeType.NONE:
            return 0
        if outcome.type == OutcomeType.RETREAT:
            return self.retreat(entity, report)
        amount = outcome.amount if outcome.type == OutcomeType.DAMAGE else None
        return self.inflict(entity, amount, report)

    def inflict(self, entity: Entity, amount: Optional[int], report: CombatReport) -> int:
        """Remove units or strength. amount None means eliminate outright."""
        if isinstance(entity, Monster):
            lost = entity.take_damage(entity.defense if amount is None else amount)
            if not entity.is_active:
                report.eliminated.append(entity.id)
            return lost

        lost = entity.take_losses(entity.quantity if amount is None else amount)
        if not entity.is_active:
            self._uncouple(entity)
            self.registry.eliminate(entity.id)
            report.eliminated.append(entity.id)
        return lost

    # Retreat
    def retreat_options(self, entity: Entity) -> list[str]:
        """Neighbors the entity may fall back into."""
        profile = MovementProfile.for_entity(entity, self.registry, self.markers)
        options = []
        for neighbor in sorted(self.map.neighbors_of(entity.node_id)):
            if self.registry.occupied_by(neighbor, entity.faction.opponent):
                continue
            if step_cost(self.map, profile, neighbor) is None:
                continue
            if entity.faction == Faction.HUMAN and entity.combat_capable:
                if self.registry.stack_size(neighbor) + entity.quantity > self.stacking_limit:
                    continue
            options.append(neighbor)
        return options

    def retreat(self, entity: Entity, report: CombatReport) -> int:
        options = self.retreat_options(entity)
        if options:
            destination = self.dice.choice(options)
            self._uncouple(entity)
            self.registry.move(entity.id, destination)
            report.retreats[entity.id] = destination
            report.notes.append(f"{entity.id} retreats to {destination}")
            return 0

        if isinstance(entity, Monster):
            report.notes.append(f"{entity.id} cannot retreat and holds, taking 1 damage")
            return self.inflict(entity, 1, report)

        report.notes.append(f"{entity.id} cannot retreat and is eliminated")
        return self.inflict(entity, None, report)

    def _uncouple(self, entity: Entity):
        if isinstance(entity, Unit) and entity.towed_with:
            partner = self.registry.get(entity.towed_with)
            if partner is not None:
                partner.towed_with = None
            entity.towed_with = None
