"""
Tests for monster demolition attempts.
"""

import pytest

from kaiju import CityMap, DemolitionCombat, InvalidTarget, MarkerType, RuleViolation, ScriptedDice, TerrainType


@pytest.fixture
def demolition(grid_map, markers, tables):
    def _make(*rolls, city_eating=False, city_map=None):
        return DemolitionCombat(city_map or grid_map, markers, tables, ScriptedDice(rolls), city_eating)
    return _make


def ready(monster):
    monster.destruction_attempts_left = DemolitionCombat.MAX_ATTEMPTS_PER_TURN
    monster.destruction_points_spent = 0
    return monster


class TestChecks:

    def test_target_must_be_adjacent(self, demolition, make_monster):
        monster = ready(make_monster(node="E"))
        with pytest.raises(InvalidTarget, match="not adjacent"):
            demolition().check_attempt(monster, "I", 1)

    def test_streets_cannot_be_demolished(self, demolition, make_monster):
        monster = ready(make_monster(node="E"))
        with pytest.raises(InvalidTarget, match="cannot be demolished"):
            demolition().check_attempt(monster, "B", 1)

    def test_unknown_node(self, demolition, make_monster):
        monster = ready(make_monster(node="E"))
        with pytest.raises(InvalidTarget):
            demolition().check_attempt(monster, "Z", 1)

    def test_points_must_be_positive(self, demolition, make_monster):
        monster = ready(make_monster(node="E"))
        with pytest.raises(RuleViolation):
            demolition().check_attempt(monster, "D", 0)

    def test_points_cannot_exceed_pool(self, demolition, make_monster):
        monster = ready(make_monster(node="E", destruction=3))
        with pytest.raises(RuleViolation, match="exceeds remaining"):
            demolition().check_attempt(monster, "D", 4)


class TestResolution:

    def test_even_odds_six_destroys(self, demolition, markers, make_monster):
        monster = ready(make_monster(node="E", destruction=3))

        report = demolition(6).resolve(monster, "D", 2, turn=1)

        assert report.odds == "1:1"
        assert report.destroyed
        assert report.victory_points == 3
        assert report.terrain_after == "rubble"
        assert markers.has("D", MarkerType.RUBBLE)
        assert monster.destruction_points_left == 1
        assert monster.destruction_attempts_left == 2

    def test_failed_attempt_still_spends(self, demolition, make_monster, grid_map):
        monster = ready(make_monster(node="E", destruction=3))

        report = demolition(6).resolve(monster, "F", 3, turn=1)

        assert report.odds == "1:2"
        assert not report.destroyed
        assert grid_map.terrain_of("F") == TerrainType.HIGH_BUILDING
        assert monster.destruction_points_left == 0

    def test_fourth_attempt_rejected(self, demolition, make_monster):
        monster = ready(make_monster(node="E", destruction=6))
        demo = demolition(1, 1, 1)

        for target in ("D", "F", "D"):
            demo.check_attempt(monster, target, 1)
            demo.resolve(monster, target, 1, turn=1)

        assert monster.destruction_points_left == 3
        with pytest.raises(RuleViolation, match="No destruction attempts left"):
            demo.check_attempt(monster, "D", 1)

    def test_pool_spent_across_attempts(self, demolition, make_monster):
        monster = ready(make_monster(node="E", destruction=3))
        demo = demolition(1)

        demo.resolve(monster, "F", 2, turn=1)
        demo.check_attempt(monster, "D", 1)
        with pytest.raises(RuleViolation):
            demo.check_attempt(monster, "D", 2)

    def test_demolition_puts_out_fire(self, demolition, markers, make_monster):
        monster = ready(make_monster(node="E", destruction=4))
        markers.place(MarkerType.FIRE, "D")

        demolition(6).resolve(monster, "D", 4, turn=1)

        assert not markers.burning("D")

    def test_city_eating_feeds_attack(self, demolition, make_monster):
        monster = ready(make_monster(node="E", attack=5, destruction=3))

        demolition(6, city_eating=True).resolve(monster, "D", 2, turn=1)

        assert monster.attack == 5 + DemolitionCombat.CITY_EATING_BONUS
        assert monster.max_attack == monster.attack

    def test_bridge_becomes_destroyed_bridge(self, demolition):
        city = CityMap()
        vp = demolition(city_map=city).demolish("BR2", turn=1)
        assert vp == 5
        assert city.terrain_of("BR2") == TerrainType.DESTROYED_BRIDGE
