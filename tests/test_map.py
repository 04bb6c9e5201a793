"""
Tests for the city map graph: loading, validation, geometry and line of sight.
"""

import pytest

from kaiju import CityMap, ScenarioError, TerrainType


class TestLoading:

    def test_grid_loads_clean(self, grid_map):
        assert len(grid_map.nodes) == 9
        assert grid_map.warnings == []
        assert grid_map.min_edge_length == 10
        assert grid_map.max_edge_length == 10

    def test_midtown_loads_without_warnings(self):
        city = CityMap()
        assert city.name == "Midtown"
        assert len(city.nodes) == 32
        assert city.warnings == []

    def test_lane_takes_river_coordinates(self):
        city = CityMap()
        bridge, river = city.get_node("BR2"), city.get_node("R2")
        assert bridge.lane_of == "R2"
        assert (bridge.x, bridge.y) == (river.x, river.y)
        assert city.terrain_of("BR2") == TerrainType.BRIDGE

    def test_every_edge_is_symmetric(self):
        city = CityMap()
        for node in city.nodes.values():
            for neighbor in node.neighbors:
                assert city.are_adjacent(neighbor, node.id)

    def test_one_way_edge_is_repaired(self, grid_data):
        grid_data[1]["neighbors"] = ["A", "C"]  # B forgets E
        city = CityMap.from_nodes(grid_data)
        assert city.are_adjacent("B", "E")
        assert city.are_adjacent("E", "B")
        assert any("E -> B" in w for w in city.warnings)

    def test_degree_outside_bounds_warns(self, grid_data):
        grid_data[0]["boundary"] = False  # A has two neighbors
        city = CityMap.from_nodes(grid_data)
        assert any("Node A has 2 neighbors" in w for w in city.warnings)

    def test_boundary_nodes_skip_degree_check(self, grid_map):
        assert not any("neighbors (expected" in w for w in grid_map.warnings)


class TestValidationErrors:

    def test_unknown_neighbor(self, grid_data):
        grid_data[0]["neighbors"].append("Z")
        with pytest.raises(ScenarioError, match="unknown neighbors"):
            CityMap.from_nodes(grid_data)

    def test_self_loop(self, grid_data):
        grid_data[0]["neighbors"].append("A")
        with pytest.raises(ScenarioError, match="itself"):
            CityMap.from_nodes(grid_data)

    def test_duplicate_id(self, grid_data):
        grid_data.append(dict(grid_data[0]))
        with pytest.raises(ScenarioError, match="Duplicate"):
            CityMap.from_nodes(grid_data)

    def test_unknown_terrain(self, grid_data):
        grid_data[0]["terrain"] = "lava"
        with pytest.raises(ScenarioError, match="unknown terrain"):
            CityMap.from_nodes(grid_data)

    def test_missing_coordinates(self, grid_data):
        del grid_data[0]["x"]
        with pytest.raises(ScenarioError, match="coordinates"):
            CityMap.from_nodes(grid_data)

    def test_missing_neighbors_field(self, grid_data):
        del grid_data[0]["neighbors"]
        with pytest.raises(ScenarioError, match="neighbors"):
            CityMap.from_nodes(grid_data)

    def test_isolated_node(self, grid_data):
        grid_data.append({"id": "Z", "terrain": "street", "x": 50, "y": 50, "neighbors": []})
        with pytest.raises(ScenarioError, match="Isolated"):
            CityMap.from_nodes(grid_data)

    def test_empty_map(self):
        with pytest.raises(ScenarioError):
            CityMap.from_nodes([])

    def test_missing_map_file(self):
        with pytest.raises(ScenarioError, match="not found"):
            CityMap(map_name="atlantis")


class TestTerrain:

    def test_movement_costs(self, grid_map):
        assert grid_map.movement_cost(TerrainType.STREET, "infantry") == 1
        assert grid_map.movement_cost(TerrainType.LOW_BUILDING, "infantry") == 3
        assert grid_map.movement_cost(TerrainType.LOW_BUILDING, "monster") is None
        assert grid_map.movement_cost(TerrainType.RIVER, "infantry") is None
        assert grid_map.movement_cost(TerrainType.RIVER, "monster") == 2
        assert grid_map.movement_cost(TerrainType.RIVER, "fireboat") == 1
        assert grid_map.movement_cost(TerrainType.HIGH_BUILDING, "helicopter") == 1

    def test_defense_multiplier_and_flammability(self, grid_map):
        assert grid_map.defense_multiplier("D") == 2
        assert grid_map.defense_multiplier("E") == 1
        assert grid_map.is_flammable("C")
        assert grid_map.is_flammable("F")
        assert not grid_map.is_flammable("B")

    def test_set_terrain(self, grid_map):
        grid_map.set_terrain("D", TerrainType.RUBBLE)
        assert grid_map.terrain_of("D") == TerrainType.RUBBLE
        assert grid_map.info_for("D").destruct_strength is None
        assert grid_map.get_stats()["terrain_distribution"]["rubble"] == 1


class TestGeometry:

    def test_hop_distance(self, grid_map):
        assert grid_map.hop_distance("A", "A") == 0
        assert grid_map.hop_distance("A", "E") == 2
        assert grid_map.hop_distance("A", "I") == 4
        assert grid_map.hop_distance("A", "I", limit=2) is None

    def test_nodes_within(self, grid_map):
        assert set(grid_map.nodes_within("E", 1)) == {"E", "B", "D", "F", "H"}

    def test_compass_direction(self, grid_map):
        assert grid_map.compass_direction("A", "B") == "east"
        assert grid_map.compass_direction("B", "A") == "west"
        assert grid_map.compass_direction("A", "D") == "south"
        assert grid_map.compass_direction("E", "B") == "north"

    def test_heuristic_never_exceeds_hops(self, grid_map):
        for a in grid_map.nodes:
            for b in grid_map.nodes:
                assert grid_map.heuristic(a, b) <= grid_map.hop_distance(a, b)


class TestLineOfSight:

    def test_clear_over_streets(self, grid_map):
        assert grid_map.has_line_of_sight("B", "H")
        assert grid_map.has_line_of_sight("A", "C")

    def test_diagonal_passes_beside_building(self, grid_map):
        assert grid_map.has_line_of_sight("A", "I")

    def test_buildings_block(self, grid_map):
        assert not grid_map.has_line_of_sight("A", "G")  # through D
        assert not grid_map.has_line_of_sight("C", "I")  # through F

    def test_rubble_no_longer_blocks(self, grid_map):
        grid_map.set_terrain("D", TerrainType.RUBBLE)
        assert grid_map.has_line_of_sight("A", "G")
