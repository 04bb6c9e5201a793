"""
Tests for the monster ability catalog and its effects.
"""

import pytest

from kaiju import (
    AbilitySystem, Capability, FireSystem, IllegalPhase, InsufficientBudget, InvalidTarget,
    MarkerType, RuleViolation, ScriptedDice, TerrainType, load_abilities,
)


@pytest.fixture(scope="module")
def catalog():
    return load_abilities()


@pytest.fixture
def abilities(grid_map, registry, markers, catalog):
    def _make(*rolls):
        fire = FireSystem(grid_map, markers, ScriptedDice(rolls))
        return AbilitySystem(grid_map, registry, markers, fire, catalog)
    return _make


class TestCatalog:

    def test_costs(self, catalog):
        assert catalog["flying"].cost == 8
        assert catalog["fire_breathing"].cost == 8
        assert catalog["flame_immunity"].cost == 2
        assert len(catalog) == 8

    def test_passive_abilities(self, catalog):
        passive = {name for name, ability in catalog.items() if ability.passive}
        assert passive == {"lightning_throwing", "great_height", "flame_immunity"}


class TestActivation:

    def test_must_own_ability(self, abilities, make_monster):
        monster = make_monster(abilities=("flying",))
        with pytest.raises(InvalidTarget):
            abilities().check_use(monster, "web_spinning", "B", "movement")

    def test_passive_cannot_be_triggered(self, abilities, make_monster):
        monster = make_monster(abilities=("flame_immunity",))
        with pytest.raises(RuleViolation, match="passive"):
            abilities().check_use(monster, "flame_immunity", None, "movement")

    def test_wrong_phase(self, abilities, make_monster):
        monster = make_monster(abilities=("flying",))
        with pytest.raises(IllegalPhase):
            abilities().check_use(monster, "flying", None, "combat")

    def test_flying_then_cooldown(self, abilities, make_monster):
        monster = make_monster(abilities=("flying",))
        system = abilities()

        system.check_use(monster, "flying", None, "movement")
        system.use(monster, "flying", None, turn=1)

        assert monster.is_flying
        assert monster.is_airborne
        assert monster.abilities["flying"] == 1
        with pytest.raises(InsufficientBudget, match="recharging"):
            system.check_use(monster, "flying", None, "movement")

        monster.tick_cooldowns()
        monster.is_flying = False
        system.check_use(monster, "flying", None, "movement")

    def test_blinding_light_use_cap(self, abilities, make_monster):
        monster = make_monster(abilities=("blinding_light",))
        system = abilities()

        for turn in (1, 2):
            system.check_use(monster, "blinding_light", None, "combat")
            system.use(monster, "blinding_light", None, turn=turn)
            assert monster.untargetable_until_turn == turn
            monster.tick_cooldowns()

        with pytest.raises(RuleViolation, match="2 times"):
            system.check_use(monster, "blinding_light", None, "combat")


class TestEffects:

    def test_web_spinning(self, abilities, markers, make_monster):
        monster = make_monster(node="E", movement=4, abilities=("web_spinning",))
        system = abilities()

        system.check_use(monster, "web_spinning", "B", "movement")
        result = system.use(monster, "web_spinning", "B", turn=1)

        assert markers.has("B", MarkerType.WEB)
        assert result["movement_spent"] == 4
        assert monster.movement_left == 0

    def test_web_needs_adjacent_node(self, abilities, make_monster):
        monster = make_monster(node="E", abilities=("web_spinning",))
        with pytest.raises(InvalidTarget, match="not adjacent"):
            abilities().check_use(monster, "web_spinning", "I", "movement")

    def test_fear_immobilizes_adjacent_units(self, abilities, registry, make_monster):
        monster = make_monster(node="E", abilities=("fear_immobilization",))
        near = registry.create_unit("infantry", "B", unit_id="near")
        registry.create_unit("infantry", "I", unit_id="far")
        system = abilities()

        with pytest.raises(InvalidTarget, match="not adjacent"):
            system.check_use(monster, "fear_immobilization", ["near", "far"], "combat")

        system.check_use(monster, "fear_immobilization", ["near"], "combat")
        system.use(monster, "fear_immobilization", ["near"], turn=1)
        assert near.immobilized
        assert not registry.get("far").immobilized

    def test_fire_breathing_ignites(self, abilities, markers, make_monster):
        monster = make_monster(node="E", abilities=("fire_breathing",))
        monster.ignition_attempts_left = 3
        system = abilities(1)

        system.check_use(monster, "fire_breathing", "F", "destruction")
        result = system.use(monster, "fire_breathing", "F", turn=1)

        assert result["ignited"]
        assert markers.burning("F")
        assert monster.abilities["fire_breathing"] == 0

    def test_lightning_grants_ranged_attack(self, abilities, make_monster):
        monster = make_monster(abilities=("lightning_throwing",))
        abilities().grant_passives(monster)
        assert monster.has_capability(Capability.RANGED_ATTACK)
        assert monster.attack_range == 3

    def test_great_height_crushes_node(self, abilities, registry, grid_map, make_monster):
        monster = make_monster(node="E", defense=1, abilities=("great_height",))
        monster.take_damage(1)

        crush = abilities().crush(monster, turn=1)

        assert not monster.is_active
        assert crush["terrain_after"] == "rubble"
        assert grid_map.terrain_of("E") == TerrainType.RUBBLE

    def test_no_crush_without_great_height(self, abilities, make_monster):
        monster = make_monster(node="E", defense=1)
        monster.take_damage(1)
        assert abilities().crush(monster, turn=1) is None
