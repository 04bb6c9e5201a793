"""
Tests for fire ignition, spread, burn-out and firefighting.
"""

import pytest

from kaiju import FireSystem, InsufficientBudget, InvalidTarget, MarkerType, RuleViolation, ScriptedDice, TerrainType
from kaiju.markers import MAX_FIRE_INTENSITY, Marker


@pytest.fixture
def fire(grid_map, markers):
    def _make(*rolls, wind=None):
        return FireSystem(grid_map, markers, ScriptedDice(rolls), wind=wind)
    return _make


def set_fire(markers, node_id, intensity=1):
    marker = markers.place(MarkerType.FIRE, node_id)
    marker.intensity = intensity
    return marker


class TestMarkers:

    def test_intensity_stays_in_bounds(self):
        marker = Marker(MarkerType.FIRE, "C", intensity=1)
        for _ in range(5):
            marker.intensify()
        assert marker.intensity == MAX_FIRE_INTENSITY
        assert not marker.reduce(2)
        assert marker.intensity == 1
        assert marker.reduce(5)
        assert marker.intensity == 0

    def test_one_marker_per_type_per_node(self, markers):
        first = markers.place(MarkerType.FIRE, "C")
        assert markers.place(MarkerType.FIRE, "C") is first
        markers.place(MarkerType.WEB, "C")
        assert len(markers.at("C")) == 2


class TestIgnition:

    def test_only_flammable_nodes_burn(self, fire, make_monster):
        monster = make_monster(node="E")
        monster.ignition_attempts_left = 3
        with pytest.raises(InvalidTarget, match="cannot burn"):
            fire().check_ignition(monster, "B")

    def test_target_must_be_adjacent(self, fire, make_monster):
        monster = make_monster(node="E")
        monster.ignition_attempts_left = 3
        with pytest.raises(InvalidTarget, match="not adjacent"):
            fire().check_ignition(monster, "C")

    def test_low_roll_ignites(self, fire, markers, make_monster):
        monster = make_monster(node="E")
        monster.ignition_attempts_left = 3
        system = fire(2, 5)

        assert system.attempt_ignition(monster, "D", turn=1)["ignited"]
        assert not system.attempt_ignition(monster, "F", turn=1)["ignited"]
        assert markers.get("D", MarkerType.FIRE).intensity == 1
        assert not markers.burning("F")
        assert monster.ignition_attempts_left == 1

    def test_attempts_are_capped(self, fire, make_monster):
        monster = make_monster(node="E")
        monster.ignition_attempts_left = 0
        with pytest.raises(RuleViolation):
            fire().check_ignition(monster, "D")


class TestFirePhase:

    def test_no_fires_no_rolls(self, fire):
        report = fire().run_phase(turn=1)
        assert report.wind_die is None
        assert report.ignited == []

    def test_spread_threshold(self, fire):
        system = fire()
        assert system.spread_threshold(1, downwind=False) == 6
        assert system.spread_threshold(2, downwind=False) == 5
        assert system.spread_threshold(1, downwind=True) == 5
        assert system.spread_threshold(5, downwind=True) == 2

    def test_downwind_spread(self, fire, markers):
        set_fire(markers, "F")
        # wind north, then the spread roll into C
        report = fire(1, 5).run_phase(turn=1)

        assert report.wind == "north"
        assert report.spread_rolls[0]["threshold"] == 5
        assert report.ignited == ["C"]
        assert report.intensified == {"F": 2}
        assert markers.get("C", MarkerType.FIRE).intensity == 1

    def test_calm_spread_needs_a_six(self, fire, markers):
        set_fire(markers, "F")
        report = fire(6, 5).run_phase(turn=1)

        assert report.wind is None
        assert report.ignited == []
        assert not markers.burning("C")

    def test_building_burns_out_to_rubble(self, fire, markers, grid_map):
        set_fire(markers, "F", intensity=3)
        report = fire(5, 1).run_phase(turn=2)

        assert report.burned_out == ["F"]
        assert report.rubble == ["F"]
        assert report.victory_points == 5
        assert grid_map.terrain_of("F") == TerrainType.RUBBLE
        assert markers.has("F", MarkerType.RUBBLE)
        assert not markers.burning("F")

    def test_park_burns_out_and_stays_park(self, fire, markers, grid_map):
        set_fire(markers, "C", intensity=3)
        report = fire(5, 1).run_phase(turn=2)

        assert report.burned_out == ["C"]
        assert report.victory_points == 0
        assert grid_map.terrain_of("C") == TerrainType.PARK

    def test_intensity_never_exceeds_three(self, fire, markers):
        set_fire(markers, "D", intensity=1)
        system = fire(5, 5, 5)
        for turn in (1, 2):
            system.run_phase(turn)
            assert 1 <= markers.get("D", MarkerType.FIRE).intensity <= MAX_FIRE_INTENSITY
        assert markers.get("D", MarkerType.FIRE).intensity == 3


class TestFirefighting:

    def test_firemen_reduce_by_quantity(self, fire, markers, registry):
        set_fire(markers, "C", intensity=3)
        crew = registry.create_unit("firemen", "B", quantity=2)
        system = fire()

        system.check_extinguish(crew, "C")
        result = system.extinguish(crew, "C")

        assert result["intensity_after"] == 1
        assert not result["cleared"]
        with pytest.raises(InsufficientBudget, match="already fought"):
            system.check_extinguish(crew, "C")

    def test_full_clear_removes_marker(self, fire, markers, registry):
        set_fire(markers, "C", intensity=3)
        crew = registry.create_unit("firemen", "B", quantity=3)

        result = fire().extinguish(crew, "C")

        assert result["cleared"]
        assert not markers.burning("C")
        assert markers.at("C") == []

    def test_fireboat_reach_and_target_cap(self, fire, markers, registry):
        for node_id in ("D", "F", "C"):
            set_fire(markers, node_id)
        boat = registry.create_unit("fireboat", "H")
        system = fire()

        for node_id in ("D", "F"):
            system.check_extinguish(boat, node_id)
            system.extinguish(boat, node_id)

        with pytest.raises(InsufficientBudget, match="no firefighting actions"):
            system.check_extinguish(boat, "C")

    def test_out_of_reach(self, fire, markers, registry):
        set_fire(markers, "F")
        crew = registry.create_unit("firemen", "A")
        with pytest.raises(InvalidTarget, match="out of reach"):
            fire().check_extinguish(crew, "F")

    def test_only_firefighters(self, fire, markers, registry):
        set_fire(markers, "C")
        troops = registry.create_unit("infantry", "B")
        with pytest.raises(InvalidTarget, match="cannot fight fires"):
            fire().check_extinguish(troops, "C")

    def test_nothing_to_put_out(self, fire, registry):
        crew = registry.create_unit("firemen", "B")
        with pytest.raises(InvalidTarget, match="No fire"):
            fire().check_extinguish(crew, "C")
