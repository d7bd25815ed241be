"""ConnectionMap 单元测试

重点：槽位下标在删除 / 改接时保持不变，只裁掉末尾空槽位。
"""

import pytest

from workflow_guard.domain.entities.connection_map import ConnectionMap
from workflow_guard.domain.exceptions import DomainError
from workflow_guard.domain.value_objects.connection import ConnectionTarget


def _target(name: str) -> dict:
    return {"node": name, "type": "main", "index": 0}


def _if_map() -> ConnectionMap:
    return ConnectionMap.from_dict(
        {"Check": {"main": [[_target("Yes")], [_target("No")]]}}
    )


class TestConnectionMapParsing:
    """测试：从文档解析连接表"""

    def test_null_slot_becomes_hole(self):
        connections = ConnectionMap.from_dict({"Check": {"main": [None, [_target("No")]]}})

        assert connections.slots("Check", "main")[0] == []
        assert connections.to_dict() == {"Check": {"main": [[], [_target("No")]]}}

    def test_null_hole_serializes_as_empty_list_and_reparses_identically(self):
        original = ConnectionMap.from_dict({"Check": {"main": [None, [_target("No")]], "error": [None]}})

        written = original.to_dict()
        reparsed = ConnectionMap.from_dict(written)

        assert written["Check"]["main"][0] == []
        assert None not in written["Check"]["error"]
        assert reparsed.to_dict() == written
        assert reparsed.slots("Check", "main")[1] == [ConnectionTarget(node="No", type="main", index=0)]

    def test_missing_type_and_index_default_to_main_zero(self):
        connections = ConnectionMap.from_dict({"A": {"main": [[{"node": "B"}]]}})

        assert connections.slots("A", "main")[0] == [ConnectionTarget(node="B", type="main", index=0)]

    def test_none_is_empty(self):
        assert ConnectionMap.from_dict(None).is_empty()

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"A": []},
            {"A": {"main": {}}},
            {"A": {"main": ["B"]}},
            {"A": {"main": [["B"]]}},
        ],
    )
    def test_malformed_shapes_raise(self, data):
        with pytest.raises(DomainError):
            ConnectionMap.from_dict(data)


class TestConnectionMapMutation:
    """测试：增删改连接时的槽位语义"""

    def test_add_pads_missing_slots(self):
        connections = ConnectionMap()

        connections.add("Route", "main", 2, ConnectionTarget(node="C"))

        assert connections.to_dict() == {"Route": {"main": [[], [], [_target("C")]]}}

    def test_add_negative_slot_raises(self):
        with pytest.raises(DomainError):
            ConnectionMap().add("A", "main", -1, ConnectionTarget(node="B"))

    def test_remove_keeps_hole_in_the_middle(self):
        connections = _if_map()

        removed = connections.remove("Check", "Yes")

        assert removed == 1
        assert connections.to_dict() == {"Check": {"main": [[], [_target("No")]]}}

    def test_remove_trims_trailing_empty_slots(self):
        connections = _if_map()

        connections.remove("Check", "No")

        assert connections.to_dict() == {"Check": {"main": [[_target("Yes")]]}}

    def test_remove_last_connection_drops_source(self):
        connections = ConnectionMap.from_dict({"A": {"main": [[_target("B")]]}})

        connections.remove("A", "B")

        assert connections.sources() == []

    def test_remove_respects_slot_filter(self):
        connections = ConnectionMap.from_dict(
            {"Check": {"main": [[_target("Same")], [_target("Same")]]}}
        )

        removed = connections.remove("Check", "Same", slot_index=1)

        assert removed == 1
        assert connections.to_dict() == {"Check": {"main": [[_target("Same")]]}}

    def test_replace_target_keeps_slot_index(self):
        connections = _if_map()

        replaced = connections.replace_target("Check", "main", 1, "No", ConnectionTarget(node="Fallback"))

        assert replaced is True
        assert connections.to_dict() == {"Check": {"main": [[_target("Yes")], [_target("Fallback")]]}}

    def test_rename_node_updates_sources_and_targets(self):
        connections = ConnectionMap.from_dict(
            {
                "A": {"main": [[_target("B")]]},
                "B": {"main": [[_target("C")]]},
            }
        )

        connections.rename_node("B", "Renamed")

        assert connections.sources() == ["A", "Renamed"]
        assert connections.slots("A", "main")[0][0].node == "Renamed"

    def test_remove_node_references(self):
        connections = ConnectionMap.from_dict(
            {
                "A": {"main": [[_target("B"), _target("C")]]},
                "B": {"main": [[_target("C")]]},
            }
        )

        removed = connections.remove_node_references("B")

        assert removed == 2
        assert connections.to_dict() == {"A": {"main": [[_target("C")]]}}


def test_len_counts_individual_targets():
    connections = ConnectionMap.from_dict(
        {"A": {"main": [[_target("B"), _target("C")], [_target("D")]]}}
    )

    assert len(connections) == 3
    assert connections.outgoing_count("A", "main") == 3


def test_copy_is_independent():
    original = _if_map()
    clone = original.copy()

    clone.remove("Check", "Yes")

    assert original.to_dict() == {"Check": {"main": [[_target("Yes")], [_target("No")]]}}
