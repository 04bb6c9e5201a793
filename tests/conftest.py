"""
Shared fixtures for the kaiju test suite.

Unit tests build small inline maps so every cost and adjacency is visible in
the test itself; integration tests use the packaged midtown data. All dice
are scripted so results never depend on real randomness.
"""

import copy

import pytest

from kaiju import (
    CityMap, CombatTables, EntityKind, EntityRegistry, Faction, MarkerBoard, Monster,
    Scenario, ScriptedDice, TurnManager,
)

# 3x3 block; river along the south edge.
#
#   A(street)    B(street)       C(park)
#   D(low bldg)  E(street)       F(high bldg)
#   G(river)     H(river)        I(street)
GRID_NODES = [
    {"id": "A", "terrain": "street", "x": 0, "y": 0, "neighbors": ["B", "D"], "boundary": True},
    {"id": "B", "terrain": "street", "x": 10, "y": 0, "neighbors": ["A", "C", "E"], "boundary": True},
    {"id": "C", "terrain": "park", "x": 20, "y": 0, "neighbors": ["B", "F"], "boundary": True},
    {"id": "D", "terrain": "low_building", "x": 0, "y": 10, "neighbors": ["A", "E", "G"], "boundary": True},
    {"id": "E", "terrain": "street", "x": 10, "y": 10, "neighbors": ["B", "D", "F", "H"]},
    {"id": "F", "terrain": "high_building", "x": 20, "y": 10, "neighbors": ["C", "E", "I"], "boundary": True},
    {"id": "G", "terrain": "river", "x": 0, "y": 20, "neighbors": ["D", "H"], "boundary": True},
    {"id": "H", "terrain": "river", "x": 10, "y": 20, "neighbors": ["G", "E", "I"], "boundary": True},
    {"id": "I", "terrain": "street", "x": 20, "y": 20, "neighbors": ["F", "H"], "boundary": True},
]

# Street strip used by the end-to-end scenario.
STRIP_NODES = [
    {"id": "M0", "terrain": "street", "x": 0, "y": 0, "neighbors": ["M1", "X1"], "boundary": True},
    {"id": "M1", "terrain": "street", "x": 10, "y": 0, "neighbors": ["M0", "M2", "X1", "X2"], "boundary": True},
    {"id": "M2", "terrain": "street", "x": 20, "y": 0, "neighbors": ["M1", "X2"], "boundary": True},
    {"id": "X1", "terrain": "park", "x": 0, "y": 10, "neighbors": ["M0", "M1", "X2"], "boundary": True},
    {"id": "X2", "terrain": "street", "x": 10, "y": 10, "neighbors": ["M1", "M2", "X1"], "boundary": True},
]


def grid_nodes() -> list[dict]:
    return copy.deepcopy(GRID_NODES)


def strip_scenario_data(**overrides) -> dict:
    """Monster 5/10/3/4 with flying, one 2-strength infantry stack."""
    data = {
        "name": "Strip",
        "nodes": copy.deepcopy(STRIP_NODES),
        "monster_points": 30,
        "victory": {"monster_vp": 80, "human_vp": 50, "max_turns": 10},
        "monster": {
            "node": "M0", "attack": 5, "defense": 10, "destruction": 3, "movement": 4,
            "abilities": ["flying"],
        },
        "roster": [{"type": "infantry", "node": "M2", "quantity": 2, "id": "inf"}],
    }
    data.update(overrides)
    return data


@pytest.fixture
def grid_data() -> list[dict]:
    return grid_nodes()


@pytest.fixture
def scenario_data():
    return strip_scenario_data


@pytest.fixture
def grid_map() -> CityMap:
    return CityMap.from_nodes(grid_nodes())


@pytest.fixture
def registry() -> EntityRegistry:
    return EntityRegistry()


@pytest.fixture
def markers() -> MarkerBoard:
    return MarkerBoard()


@pytest.fixture(scope="session")
def tables() -> CombatTables:
    return CombatTables()


@pytest.fixture
def make_monster(registry):
    """Factory placing a monster on the registry."""
    def _make(node="E", attack=5, defense=10, destruction=3, movement=4, abilities=()):
        monster = Monster(
            id="monster",
            name="Test Monster",
            faction=Faction.MONSTER,
            kind=EntityKind.MONSTER,
            node_id=node,
            attack=attack,
            defense=defense,
            destruction=destruction,
            movement=movement,
            max_attack=attack,
            max_defense=defense,
            max_destruction=destruction,
            max_movement=movement,
            abilities={name: 0 for name in abilities},
        )
        monster.reset_movement()
        registry.place(monster)
        return monster
    return _make


@pytest.fixture
def make_game():
    """Factory for a started TurnManager on an inline scenario with scripted dice."""
    def _make(rolls=(), choices=(), **overrides):
        dice = ScriptedDice(rolls, choices)
        manager = TurnManager(dice=dice)
        result = manager.start_game(Scenario.from_dict(strip_scenario_data(**overrides)))
        assert result.success, result.reason
        return manager, dice
    return _make
