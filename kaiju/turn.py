"""
Turn sequencing for the kaiju wargame.

Each game turn is two player-turns:
    monster: movement -> combat -> destruction
    human:   movement -> combat -> fire control -> fire phase
then the turn counter increments. Exactly one side and one sub-phase are
active at a time; every command is checked against them before it touches
any state.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from .abilities import AbilitySystem, load_abilities
from .combat import CombatTables, DemolitionCombat, GroundCombat
from .dice import Dice
from .errors import EngineError, IllegalPhase, InsufficientBudget, InvalidTarget, ScenarioError
from .events import ActionResult, GameEvent
from .fire import FireSystem
from .map import CityMap, DEFAULT_DATA_PATH, TerrainType
from .markers import MarkerBoard
from .movement import MovementProfile, find_path, reachable_nodes, special_steps
from .scenario import Scenario
from .units import Capability, Entity, EntityKind, EntityRegistry, Faction, Monster, Unit

logger = logging.getLogger(__name__)


class SubPhase(Enum):
    MOVEMENT = "movement"
    COMBAT = "combat"
    DESTRUCTION = "destruction"
    FIRE_CONTROL = "fire_control"


@dataclass
class TurnState:
    """State of the current player-turn."""
    turn_number: int
    side: Faction
    sub_phase: SubPhase
    events: list[GameEvent] = field(default_factory=list)
    combat_reports: list[dict] = field(default_factory=list)
    actions_in_phase: int = 0


@dataclass
class GameState:
    """Complete game state."""
    turn: int = 0
    max_turns: int = 10
    monster_vp: int = 0
    human_vp: int = 0
    started: bool = False
    game_over: bool = False
    winner: Optional[str] = None  # "monster", "human" or "draw"
    end_reason: str = ""
    turn_history: list[TurnState] = field(default_factory=list)


class TurnManager:
    """Owns the board, the entity registry and the rules; sequences play."""

    PHASES = {
        Faction.MONSTER: [SubPhase.MOVEMENT, SubPhase.COMBAT, SubPhase.DESTRUCTION],
        Faction.HUMAN: [SubPhase.MOVEMENT, SubPhase.COMBAT, SubPhase.FIRE_CONTROL],
    }

    HUMAN_VP_PER_DAMAGE = 5
    FREE_FIREMEN = 3
    FREE_FIREBOATS = 1

    # Everything restore() replaces
    RESTORED_ATTRIBUTES = (
        "scenario", "map", "registry", "markers", "ground_combat", "demolition",
        "fire", "abilities", "pending_reinforcements", "game_state", "current_turn",
    )

    def __init__(
        self,
        data_path: Path | str = DEFAULT_DATA_PATH,
        dice: Optional[Dice] = None,
        seed: Optional[int] = None,
    ):
        self.data_path = Path(data_path)
        self.dice = dice or Dice(seed)
        self.tables = CombatTables(self.data_path)
        self.ability_catalog = load_abilities(self.data_path)

        self.scenario: Optional[Scenario] = None
        self.map: Optional[CityMap] = None
        self.registry: Optional[EntityRegistry] = None
        self.markers = MarkerBoard()
        self.ground_combat: Optional[GroundCombat] = None
        self.demolition: Optional[DemolitionCombat] = None
        self.fire: Optional[FireSystem] = None
        self.abilities: Optional[AbilitySystem] = None
        self.pending_reinforcements: list = []

        self.game_state = GameState()
        self.current_turn: Optional[TurnState] = None

        # Callbacks for the presentation layer
        self.on_turn_start: Optional[Callable] = None
        self.on_phase_start: Optional[Callable] = None
        self.on_phase_end: Optional[Callable] = None
        self.on_turn_end: Optional[Callable] = None
        self.on_action: Optional[Callable] = None

    # Command plumbing
    def _run(self, action: Callable[[list[GameEvent]], None]) -> ActionResult:
        """Run a command, turning rule errors into a failed result."""
        events: list[GameEvent] = []
        try:
            action(events)
        except EngineError as e:
            logger.info(f"Rejected ({e.kind}): {e.reason}")
            result = ActionResult(success=False, error=e.kind, reason=e.reason)
        else:
            self._check_victory(events)
            if not self.game_state.game_over:
                self._auto_advance(events)
            result = ActionResult(success=True, events=events)

        if self.on_action:
            self.on_action(result)
        return result

    def _emit(self, events: list[GameEvent], event_type: str, **data: Any) -> GameEvent:
        event = GameEvent(type=event_type, turn=self.game_state.turn, data=data)
        events.append(event)
        if self.current_turn is not None:
            self.current_turn.events.append(event)
        return event

    def _require_play(self):
        if not self.game_state.started:
            raise IllegalPhase("No game in progress")
        if self.game_state.game_over:
            raise IllegalPhase(f"Game is over ({self.game_state.winner})")

    def _require_actor(self, entity_id: str, sub_phase: SubPhase) -> Entity:
        self._require_play()
        entity = self.registry.require(entity_id)
        if entity.faction != self.current_turn.side:
            raise IllegalPhase(f"{entity_id} cannot act during the {self.current_turn.side.value} turn")
        if self.current_turn.sub_phase != sub_phase:
            raise IllegalPhase(
                f"{sub_phase.value} actions are not allowed in the {self.current_turn.sub_phase.value} phase"
            )
        return entity

    def _require_monster(self, monster_id: str, sub_phase: Optional[SubPhase] = None) -> Monster:
        self._require_play()
        monster = self.registry.require(monster_id)
        if monster.kind != EntityKind.MONSTER:
            raise InvalidTarget(f"{monster_id} is not the monster")
        if self.current_turn.side != Faction.MONSTER:
            raise IllegalPhase("Monster actions are only allowed during the monster turn")
        if sub_phase is not None and self.current_turn.sub_phase != sub_phase:
            raise IllegalPhase(
                f"{sub_phase.value} actions are not allowed in the {self.current_turn.sub_phase.value} phase"
            )
        return monster

    # Game setup
    def start_game(self, scenario: Scenario | Path | str) -> ActionResult:
        """Load a scenario and open the monster movement phase of turn 1."""
        events: list[GameEvent] = []
        try:
            if not isinstance(scenario, Scenario):
                scenario = Scenario.load(scenario, self.data_path)
            self._setup(scenario)
        except ScenarioError as e:
            logger.error(f"Scenario rejected: {e}")
            result = ActionResult(success=False, error="scenario_error", reason=str(e))
        except EngineError as e:
            logger.error(f"Scenario rejected: {e.reason}")
            result = ActionResult(success=False, error=e.kind, reason=e.reason)
        else:
            self._emit(events, "game_started", scenario=scenario.name, map=self.map.name)
            self._begin_side(Faction.MONSTER, events)
            self._check_victory(events)
            if not self.game_state.game_over:
                self._auto_advance(events)
            result = ActionResult(success=True, events=events)

        if self.on_action:
            self.on_action(result)
        return result

    def _setup(self, scenario: Scenario):
        """Build every component for a scenario. Nothing is kept on failure."""
        scenario.validate_setup(self.ability_catalog)

        city_map = CityMap(self.data_path, scenario.map_name, nodes=scenario.map_nodes)
        registry = EntityRegistry(self.data_path)
        markers = MarkerBoard()

        setup = scenario.monster
        self._check_node(city_map, setup.node, "Monster start")
        monster = Monster(
            id=setup.id,
            name=setup.name,
            faction=Faction.MONSTER,
            kind=EntityKind.MONSTER,
            node_id=setup.node,
            attack=setup.attack,
            defense=setup.defense,
            destruction=setup.destruction,
            movement=setup.movement,
            max_attack=setup.attack,
            max_defense=setup.defense,
            max_destruction=setup.destruction,
            max_movement=setup.movement,
            abilities={name: 0 for name in setup.abilities},
        )
        registry.place(monster)

        for entry in scenario.roster:
            self._check_node(city_map, entry.node, f"Roster {entry.type}")
            registry.create_unit(entry.type, entry.node, entry.quantity, unit_id=entry.id)

        if "fire_breathing" in setup.abilities and scenario.free_firefighters and scenario.roster:
            registry.create_unit("firemen", scenario.roster[0].node, self.FREE_FIREMEN)
            rivers = sorted(n.id for n in city_map.nodes.values() if n.terrain.value == "river")
            if rivers:
                for _ in range(self.FREE_FIREBOATS):
                    registry.create_unit("fireboat", rivers[0], 1)

        for node_id in registry.occupancy:
            if registry.occupied_by(node_id, Faction.HUMAN) and registry.occupied_by(node_id, Faction.MONSTER):
                raise ScenarioError(f"Monster and garrison both start on {node_id}")
            if registry.stack_size(node_id) > scenario.stacking_limit:
                raise ScenarioError(f"Starting stack on {node_id} exceeds the stacking limit")

        for entry in scenario.reinforcements:
            self._check_node(city_map, entry.node, f"Reinforcement {entry.type}")
            if entry.type not in registry.unit_types:
                raise ScenarioError(f"Unknown unit type: {entry.type}")

        self.scenario = scenario
        self.map = city_map
        self.registry = registry
        self.markers = markers
        self.ground_combat = GroundCombat(
            city_map, registry, markers, self.tables, self.dice, scenario.stacking_limit
        )
        self.demolition = DemolitionCombat(city_map, markers, self.tables, self.dice, scenario.city_eating)
        self.fire = FireSystem(city_map, markers, self.dice, wind=scenario.wind)
        self.abilities = AbilitySystem(city_map, registry, markers, self.fire, self.ability_catalog)
        self.abilities.grant_passives(monster)
        self.pending_reinforcements = sorted(scenario.reinforcements, key=lambda r: r.turn)

        self.game_state = GameState(turn=1, max_turns=scenario.victory.max_turns, started=True)
        self.current_turn = None
        logger.info(
            f"Game initialized: scenario={scenario.name}, "
            f"{len(registry.human_units())} human stacks, max_turns={scenario.victory.max_turns}"
        )

    @staticmethod
    def _check_node(city_map: CityMap, node_id: str, what: str):
        if not city_map.has_node(node_id):
            raise ScenarioError(f"{what} placed on unknown node {node_id}")

    def restore(self, snapshot: dict) -> ActionResult:
        """
        Resume a game from snapshot() output.

        The scenario is rebuilt from the embedded source, then terrain,
        entities, markers, wind, victory points, the turn position and the
        reinforcement schedule are laid over it. The dice carry on from their
        current state. A snapshot that does not load leaves the game as it was.
        """
        saved = {name: getattr(self, name) for name in self.RESTORED_ATTRIBUTES}
        events: list[GameEvent] = []
        try:
            self._setup(Scenario.from_dict(snapshot["scenario"]))
            self._load_snapshot(snapshot)
        except ScenarioError as e:
            self.__dict__.update(saved)
            logger.error(f"Snapshot rejected: {e}")
            result = ActionResult(success=False, error="scenario_error", reason=str(e))
        except EngineError as e:
            self.__dict__.update(saved)
            logger.error(f"Snapshot rejected: {e.reason}")
            result = ActionResult(success=False, error=e.kind, reason=e.reason)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            self.__dict__.update(saved)
            logger.error(f"Snapshot rejected: {e!r}")
            result = ActionResult(success=False, error="scenario_error", reason=f"Malformed snapshot: {e!r}")
        else:
            self._emit(events, "game_restored", scenario=self.scenario.name,
                       turn=self.game_state.turn, side=self.current_turn.side.value,
                       sub_phase=self.current_turn.sub_phase.value)
            result = ActionResult(success=True, events=events)

        if self.on_action:
            self.on_action(result)
        return result

    def _load_snapshot(self, snapshot: dict):
        for node_id, terrain in snapshot["terrain"].items():
            self.map.set_terrain(node_id, TerrainType(terrain))
        self.registry.load_entities(snapshot["entities"], snapshot.get("eliminated", []))
        for entity in self.registry.entities.values():
            self._check_node(self.map, entity.node_id, entity.id)
        if self.registry.monster is None:
            raise ScenarioError("Snapshot has no monster")
        self.markers.load(snapshot.get("markers", {}))

        state = snapshot["state"]
        wind = state.get("wind")
        self.fire.wind = None if wind in ("calm", None) else wind
        self.game_state = GameState(
            turn=int(state["turn"]),
            max_turns=int(state["max_turns"]),
            monster_vp=int(state["monster_vp"]),
            human_vp=int(state["human_vp"]),
            started=True,
            game_over=bool(state["game_over"]),
            winner=state.get("winner"),
            end_reason=state.get("end_reason", ""),
        )
        self.current_turn = TurnState(
            turn_number=self.game_state.turn,
            side=Faction(state["side"]),
            sub_phase=SubPhase(state["sub_phase"]),
            actions_in_phase=int(state.get("actions_in_phase", 0)),
        )
        self.pending_reinforcements = [
            Scenario._reinforcement(entry) for entry in snapshot.get("pending_reinforcements", [])
        ]
        logger.info(
            f"Game restored: scenario={self.scenario.name}, turn {self.game_state.turn}, "
            f"{self.current_turn.side.value} {self.current_turn.sub_phase.value}"
        )

    # Turn flow
    def _begin_side(self, side: Faction, events: list[GameEvent]):
        self.current_turn = TurnState(
            turn_number=self.game_state.turn,
            side=side,
            sub_phase=self.PHASES[side][0],
        )
        if side == Faction.MONSTER:
            self._reset_monster()
        else:
            self._arrive_reinforcements(events)
            self._reset_garrison(events)

        logger.info(f"Turn {self.game_state.turn}: {side.value} player-turn begins")
        self._emit(events, "turn_started", side=side.value)
        self._emit(events, "phase_started", side=side.value, phase=self.current_turn.sub_phase.value)
        if self.on_turn_start:
            self.on_turn_start(self.current_turn)
        if self.on_phase_start:
            self.on_phase_start(self.current_turn)

    def _reset_monster(self):
        monster = self.registry.monster
        monster.reset_movement()
        monster.tick_cooldowns()
        monster.is_flying = False
        monster.destruction_attempts_left = DemolitionCombat.MAX_ATTEMPTS_PER_TURN
        monster.destruction_points_spent = 0
        monster.ignition_attempts_left = (
            FireSystem.MAX_IGNITIONS_PER_TURN if monster.has_ability("fire_breathing") else 0
        )

    def _reset_garrison(self, events: list[GameEvent]):
        units = sorted(self.registry.human_units(), key=lambda u: u.id)
        frozen = {u.id for u in units if u.immobilized}
        for unit in units:
            unit.immobilized = False
            unit.towed_with = None
            unit.fires_fought.clear()

        by_node: dict[str, list[Unit]] = {}
        for unit in units:
            if unit.id not in frozen:
                by_node.setdefault(unit.node_id, []).append(unit)
        for node_id, here in sorted(by_node.items()):
            tows = [u for u in here if u.has_capability(Capability.TOW_CAPABLE)]
            guns = [u for u in here if u.kind == EntityKind.ARTILLERY]
            for tow, gun in zip(tows, guns):
                tow.towed_with, gun.towed_with = gun.id, tow.id
                self._emit(events, "units_coupled", tow=tow.id, towed=gun.id, node=node_id)

        for unit in units:
            unit.reset_movement()
            if unit.id in frozen:
                unit.movement_left = 0
                self._emit(events, "unit_immobilized", unit=unit.id)

    def _arrive_reinforcements(self, events: list[GameEvent]):
        due = [r for r in self.pending_reinforcements if r.turn <= self.game_state.turn]
        for entry in due:
            self.pending_reinforcements.remove(entry)
            unit_type = self.registry.unit_types[entry.type]
            blocked = self.registry.occupied_by(entry.node, Faction.MONSTER)
            crowded = unit_type.combat_capable and (
                self.registry.stack_size(entry.node) + entry.quantity > self.scenario.stacking_limit
            )
            if blocked or crowded:
                self.pending_reinforcements.append(replace(entry, turn=self.game_state.turn + 1))
                self._emit(events, "reinforcement_delayed", type=entry.type, node=entry.node)
                continue

            unit = self.registry.create_unit(entry.type, entry.node, entry.quantity, unit_id=entry.id)
            self._emit(events, "reinforcement_arrived", unit=unit.id, type=entry.type,
                       node=entry.node, quantity=entry.quantity)

    def _advance(self, events: list[GameEvent]):
        """Close the current sub-phase and open the next one."""
        turn_state = self.current_turn
        self._emit(events, "phase_ended", side=turn_state.side.value, phase=turn_state.sub_phase.value)
        if self.on_phase_end:
            self.on_phase_end(turn_state)

        phases = self.PHASES[turn_state.side]
        index = phases.index(turn_state.sub_phase)
        if index + 1 < len(phases):
            turn_state.sub_phase = phases[index + 1]
            turn_state.actions_in_phase = 0
            self._emit(events, "phase_started", side=turn_state.side.value, phase=turn_state.sub_phase.value)
            if self.on_phase_start:
                self.on_phase_start(turn_state)
            return

        self._end_side(events)

    def _end_side(self, events: list[GameEvent]):
        turn_state = self.current_turn
        if turn_state.side == Faction.HUMAN:
            report = self.fire.run_phase(self.game_state.turn)
            if report.wind_die is not None:
                self.game_state.monster_vp += report.victory_points
                self._emit(events, "fire_phase", **report.to_dict())

        self._emit(events, "turn_ended", side=turn_state.side.value)
        self.game_state.turn_history.append(turn_state)
        if self.on_turn_end:
            self.on_turn_end(turn_state)

        if turn_state.side == Faction.MONSTER:
            self.registry.monster.is_flying = False
            self._begin_side(Faction.HUMAN, events)
            return

        self._check_victory(events)
        if self.game_state.game_over:
            return

        self.game_state.turn += 1
        if self.game_state.turn > self.game_state.max_turns:
            gs = self.game_state
            if gs.monster_vp > gs.human_vp:
                winner = "monster"
            elif gs.human_vp > gs.monster_vp:
                winner = "human"
            else:
                winner = "draw"
            self._finish(winner, "turn limit reached", events)
            return

        self._begin_side(Faction.MONSTER, events)

    def _phase_exhausted(self) -> bool:
        """True when no controlled entity has budget left for the current sub-phase."""
        side, sub_phase = self.current_turn.side, self.current_turn.sub_phase
        if sub_phase in (SubPhase.MOVEMENT, SubPhase.COMBAT):
            return all(e.movement_left <= 0 for e in self.registry.by_faction(side))

        # Destruction only closes on end_phase
        if sub_phase == SubPhase.DESTRUCTION:
            return False

        # Fire control only closes itself after firefighting has happened
        if self.current_turn.actions_in_phase == 0:
            return False
        return not any(self._can_fight_fire(u) for u in self.registry.human_units())

    def _can_fight_fire(self, unit: Unit) -> bool:
        if not unit.is_firefighter or unit.firefighting_actions_left == 0:
            return False
        reach = self.map.nodes_within(unit.node_id, unit.unit_type.extinguish_range)
        return any(m.node_id in reach and m.node_id not in unit.fires_fought for m in self.markers.fires())

    def _auto_advance(self, events: list[GameEvent]):
        while self.current_turn and not self.game_state.game_over and self._phase_exhausted():
            self._advance(events)

    # Victory
    def _check_victory(self, events: list[GameEvent]):
        gs = self.game_state
        if gs.game_over or not gs.started:
            return

        victory = self.scenario.victory
        monster = self.registry.monster
        if monster.defense <= 0:
            self._finish("human", "monster destroyed", events)
        elif not self.registry.combat_units():
            self._finish("monster", "garrison destroyed", events)
        elif gs.monster_vp >= victory.monster_vp:
            winner = "draw" if gs.monster_vp == victory.monster_vp else "monster"
            self._finish(winner, "monster victory point threshold reached", events)
        elif gs.human_vp >= victory.human_vp:
            self._finish("human", "human victory point threshold reached", events)

    def _finish(self, winner: str, reason: str, events: list[GameEvent]):
        self.game_state.game_over = True
        self.game_state.winner = winner
        self.game_state.end_reason = reason
        logger.info(f"Game over on turn {self.game_state.turn}: {winner} ({reason})")
        self._emit(events, "game_over", winner=winner, reason=reason,
                   monster_vp=self.game_state.monster_vp, human_vp=self.game_state.human_vp)

    # Phase commands
    def end_phase(self) -> ActionResult:
        """Close the active sub-phase."""
        def action(events):
            self._require_play()
            self._advance(events)
        return self._run(action)

    def end_turn(self) -> ActionResult:
        """Close every remaining sub-phase of the active side."""
        def action(events):
            self._require_play()
            side = self.current_turn.side
            turn = self.game_state.turn
            while (not self.game_state.game_over
                   and self.current_turn.side == side
                   and self.game_state.turn == turn):
                self._advance(events)
        return self._run(action)

    # Movement
    def _profile(self, entity: Entity, budget: Optional[int] = None) -> MovementProfile:
        return MovementProfile.for_entity(entity, self.registry, self.markers, budget=budget)

    def move_entity(self, entity_id: str, target_node: str) -> ActionResult:
        def action(events):
            entity = self._require_actor(entity_id, SubPhase.MOVEMENT)
            if not self.map.has_node(target_node):
                raise InvalidTarget(f"Unknown node '{target_node}'")
            if target_node == entity.node_id:
                raise InvalidTarget(f"{entity_id} is already at {target_node}")

            profile = self._profile(entity)
            reachable = reachable_nodes(self.map, entity.node_id, profile)
            if target_node not in reachable:
                unbounded = replace(profile, budget=len(self.map.nodes) * 10, full_budget=0)
                if profile.budget <= 0 or find_path(self.map, entity.node_id, target_node, unbounded):
                    raise InsufficientBudget(
                        f"{entity_id} cannot reach {target_node} with {entity.movement_left} movement points"
                    )
                raise InvalidTarget(f"{entity_id} cannot enter {target_node}")

            partner = self.registry.get(entity.towed_with) if isinstance(entity, Unit) and entity.towed_with else None
            movers = [entity] + ([partner] if partner else [])
            if entity.faction == Faction.HUMAN:
                incoming = sum(u.quantity for u in movers if u.combat_capable)
                if incoming and self.registry.stack_size(target_node) + incoming > self.scenario.stacking_limit:
                    raise InvalidTarget(
                        f"Moving {entity_id} to {target_node} exceeds the stacking limit of {self.scenario.stacking_limit}"
                    )

            path = find_path(self.map, entity.node_id, target_node, profile)
            cost = reachable[target_node]
            special = special_steps(self.map, entity.node_id, profile).get(target_node)
            if cost != profile.budget:
                special = None

            origin = entity.node_id
            remaining = max(0, entity.movement_left - cost)
            for mover in movers:
                self.registry.move(mover.id, target_node)
                mover.movement_left = remaining

            self.current_turn.actions_in_phase += 1
            self._emit(events, "entity_moved", entity=entity_id, origin=origin, destination=target_node,
                       path=path, cost=cost, special=special, movement_left=entity.movement_left,
                       towed=partner.id if partner else None)

        return self._run(action)

    # Combat
    def attempt_attack(self, attacker_id: str, defender_id: str) -> ActionResult:
        def action(events):
            attacker = self._require_actor(attacker_id, SubPhase.COMBAT)
            defender = self.registry.require(defender_id)
            self.ground_combat.check_attack(attacker, defender, self.game_state.turn)

            report = self.ground_combat.resolve(
                attacker, defender, self.game_state.turn, self.current_turn.sub_phase.value
            )
            self._award_combat_vp(attacker, report.attacker_losses)
            self._award_combat_vp(defender, report.defender_losses)
            self.current_turn.actions_in_phase += 1
            self.current_turn.combat_reports.append(report.to_dict())

            self._emit(events, "attack_resolved", **report.to_dict())
            for entity_id, node_id in report.retreats.items():
                self._emit(events, "entity_retreated", entity=entity_id, destination=node_id)
            for entity_id in report.eliminated:
                self._emit(events, "entity_eliminated", entity=entity_id)

            monster = self.registry.monster
            if not monster.is_active:
                crush = self.abilities.crush(monster, self.game_state.turn)
                if crush:
                    self._emit(events, "monster_crushed_node", **crush)
                    for entity_id in crush["crushed"]:
                        self._emit(events, "entity_eliminated", entity=entity_id, cause="crushed")

        return self._run(action)

    def _award_combat_vp(self, entity: Entity, losses: int):
        if losses <= 0:
            return
        if isinstance(entity, Monster):
            self.game_state.human_vp += losses * self.HUMAN_VP_PER_DAMAGE
        else:
            self.game_state.monster_vp += losses * entity.unit_type.victory_points

    # Destruction
    def attempt_destruction(self, monster_id: str, target_node: str, points: int) -> ActionResult:
        def action(events):
            monster = self._require_monster(monster_id, SubPhase.DESTRUCTION)
            self.demolition.check_attempt(monster, target_node, points)

            report = self.demolition.resolve(monster, target_node, points, self.game_state.turn)
            self.game_state.monster_vp += report.victory_points
            self.current_turn.actions_in_phase += 1

            self._emit(events, "destruction_attempted", **report.to_dict())
            if report.destroyed:
                self._emit(events, "terrain_changed", node=target_node,
                           terrain_before=report.terrain_before, terrain_after=report.terrain_after)

        return self._run(action)

    # Abilities
    def use_ability(self, monster_id: str, ability: str, target: Any = None) -> ActionResult:
        def action(events):
            monster = self._require_monster(monster_id)
            self.abilities.check_use(monster, ability, target, self.current_turn.sub_phase.value)

            result = self.abilities.use(monster, ability, target, self.game_state.turn)
            self.current_turn.actions_in_phase += 1
            self._emit(events, "ability_used", monster=monster_id, **result)
            if result.get("ignited"):
                self._emit(events, "fire_started", node=result["node"], intensity=1)

        return self._run(action)

    # Firefighting
    def extinguish(self, unit_id: str, target_node: str) -> ActionResult:
        def action(events):
            unit = self._require_actor(unit_id, SubPhase.FIRE_CONTROL)
            self.fire.check_extinguish(unit, target_node)

            result = self.fire.extinguish(unit, target_node)
            self.current_turn.actions_in_phase += 1
            self._emit(events, "fire_extinguished" if result["cleared"] else "fire_reduced", **result)

        return self._run(action)

    # Queries
    def reachable_from(self, entity_id: str) -> dict[str, int]:
        if self.registry is None:
            return {}
        entity = self.registry.require(entity_id)
        return reachable_nodes(self.map, entity.node_id, self._profile(entity))

    def path_between(self, entity_id: str, target_node: str) -> list[str]:
        if self.registry is None:
            return []
        entity = self.registry.require(entity_id)
        return find_path(self.map, entity.node_id, target_node, self._profile(entity))

    def entities_at(self, node_id: str) -> list[dict]:
        if self.registry is None:
            return []
        return [e.to_dict() for e in self.registry.at(node_id)]

    def markers_at(self, node_id: str) -> list[dict]:
        return [m.to_dict() for m in self.markers.at(node_id)]

    def current_phase_state(self) -> dict:
        gs = self.game_state
        state = {
            "started": gs.started,
            "turn": gs.turn,
            "max_turns": gs.max_turns,
            "side": self.current_turn.side.value if self.current_turn else None,
            "sub_phase": self.current_turn.sub_phase.value if self.current_turn else None,
            "monster_vp": gs.monster_vp,
            "human_vp": gs.human_vp,
            "game_over": gs.game_over,
            "winner": gs.winner,
            "end_reason": gs.end_reason,
            "wind": (self.fire.wind or "calm") if self.fire else None,
        }
        if self.registry is not None and self.current_turn is not None:
            monster = self.registry.monster
            state["budgets"] = {
                e.id: e.movement_left for e in self.registry.by_faction(self.current_turn.side)
            }
            state["destruction_attempts_left"] = monster.destruction_attempts_left
            state["destruction_points_left"] = monster.destruction_points_left
            state["ignition_attempts_left"] = monster.ignition_attempts_left
            state["actions_in_phase"] = self.current_turn.actions_in_phase
        return state

    def snapshot(self) -> dict:
        """Whole-game view for the presentation layer; restore() accepts it back."""
        if self.registry is None:
            return {"state": self.current_phase_state()}
        return {
            "scenario": self.scenario.source,
            "state": self.current_phase_state(),
            "terrain": {n.id: n.terrain.value for n in self.map.nodes.values()},
            "entities": [e.to_dict() for e in self.registry.entities.values()],
            "eliminated": [self.registry.eliminated[i].to_dict() for i in sorted(self.registry.eliminated)],
            "markers": self.markers.to_dict(),
            "pending_reinforcements": [
                {"turn": r.turn, "type": r.type, "node": r.node, "quantity": r.quantity, "id": r.id}
                for r in self.pending_reinforcements
            ],
        }
