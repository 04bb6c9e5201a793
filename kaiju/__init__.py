"""
Rules engine for a turn-based monster-versus-city wargame.

Core modules:
- map: City node graph and terrain rules
- units: Entities (monster, unit stacks) and the entity registry
- movement: Reachability and pathfinding
- combat/: Odds/die attack and demolition resolution
- fire: Fire ignition, spread and firefighting
- abilities: Monster special abilities
- scenario: Scenario descriptors
- turn: Turn/phase state machine and engine API
- session: Message dispatch for the server and CLI
"""

from .map import CityMap, Node, TerrainType, TerrainInfo, DEFAULT_DATA_PATH
from .units import (
    EntityRegistry, Entity, Unit, Monster, UnitType,
    Faction, EntityKind, Capability, EntityStatus, StrengthPool,
)
from .markers import MarkerBoard, Marker, MarkerType
from .movement import MovementProfile, reachable_nodes, find_path, special_steps
from .combat import CombatTables, CombatOutcome, GroundCombat, DemolitionCombat, odds_ratio
from .fire import FireSystem, FireReport
from .abilities import AbilitySystem, Ability, load_abilities
from .scenario import Scenario, MonsterSetup, RosterEntry, Reinforcement, VictoryThresholds
from .dice import Dice, ScriptedDice
from .events import ActionResult, GameEvent
from .errors import (
    EngineError, IllegalPhase, InsufficientBudget, InvalidTarget, RuleViolation, ScenarioError,
)
from .turn import TurnManager, GameState, TurnState, SubPhase
from .session import GameSession, SessionError

__all__ = [
    # Map
    "CityMap", "Node", "TerrainType", "TerrainInfo", "DEFAULT_DATA_PATH",
    # Entities
    "EntityRegistry", "Entity", "Unit", "Monster", "UnitType",
    "Faction", "EntityKind", "Capability", "EntityStatus", "StrengthPool",
    # Markers
    "MarkerBoard", "Marker", "MarkerType",
    # Movement
    "MovementProfile", "reachable_nodes", "find_path", "special_steps",
    # Combat
    "CombatTables", "CombatOutcome", "GroundCombat", "DemolitionCombat", "odds_ratio",
    # Fire and abilities
    "FireSystem", "FireReport", "AbilitySystem", "Ability", "load_abilities",
    # Scenario
    "Scenario", "MonsterSetup", "RosterEntry", "Reinforcement", "VictoryThresholds",
    # Randomness and results
    "Dice", "ScriptedDice", "ActionResult", "GameEvent",
    # Errors
    "EngineError", "IllegalPhase", "InsufficientBudget", "InvalidTarget", "RuleViolation", "ScenarioError",
    # Turn Management
    "TurnManager", "GameState", "TurnState", "SubPhase",
    # Sessions
    "GameSession", "SessionError",
]
