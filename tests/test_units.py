"""
Tests for the entity model and the registry's save/load round trip.
"""

import pytest

from kaiju import Entity, EntityKind, EntityRegistry, EntityStatus, Faction, MarkerBoard, MarkerType, ScenarioError


class TestEntityModel:

    def test_entity_is_abstract(self):
        with pytest.raises(TypeError):
            Entity(id="x", name="X", faction=Faction.HUMAN, kind=EntityKind.INFANTRY, node_id="A")

    def test_unit_strength_scales_with_quantity(self, registry):
        stack = registry.create_unit("infantry", "A", 3)
        assert stack.attack_strength == 3
        assert stack.defense_strength == 3


class TestLoadEntities:

    def test_rebuilds_units_and_monster(self, registry, make_monster):
        monster = make_monster(node="E", abilities=("flying",))
        monster.is_flying = True
        monster.destruction_points_spent = 2
        monster.ability_uses["flying"] = 1
        stack = registry.create_unit("infantry", "A", 3, unit_id="inf")
        stack.take_losses(1)
        stack.fires_fought.add("C")
        gun = registry.create_unit("artillery", "B")
        lost = registry.create_unit("police", "D")
        registry.eliminate(lost.id)

        saved = [e.to_dict() for e in registry.entities.values()]
        gone = [e.to_dict() for e in registry.eliminated.values()]
        registry.move("inf", "B")

        registry.load_entities(saved, gone)

        assert [e.to_dict() for e in registry.entities.values()] == saved
        assert registry.get("inf").node_id == "A"
        assert registry.get("inf").max_quantity == 3
        assert registry.monster.is_flying
        assert registry.monster.destruction_points_left == 1
        assert registry.eliminated[lost.id].status == EntityStatus.ELIMINATED
        assert registry.get(gun.id).unit_type.id == "artillery"
        assert registry.is_consistent()

    def test_generated_ids_skip_restored_ones(self, registry):
        registry.create_unit("infantry", "A")
        registry.create_unit("infantry", "B")
        saved = [e.to_dict() for e in registry.entities.values()]

        fresh = EntityRegistry()
        fresh.load_entities(saved)

        assert fresh.create_unit("infantry", "C").id == "infantry-3"

    def test_unknown_unit_type(self, registry):
        saved = registry.create_unit("infantry", "A").to_dict()
        saved["type"] = "mecha"

        with pytest.raises(ScenarioError):
            registry.load_entities([saved])


class TestMarkerBoardLoad:

    def test_keeps_fire_intensity(self):
        board = MarkerBoard()
        board.place(MarkerType.FIRE, "C", turn=2).intensify()
        board.place(MarkerType.RUBBLE, "D", turn=1)
        saved = board.to_dict()

        restored = MarkerBoard()
        restored.load(saved)

        assert restored.to_dict() == saved
        assert restored.get("C", MarkerType.FIRE).intensity == 2
