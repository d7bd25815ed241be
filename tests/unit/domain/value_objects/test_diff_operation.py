"""Diff 操作解析测试"""

import pytest

from workflow_guard.domain.exceptions import InvalidOperationError
from workflow_guard.domain.value_objects.diff_operation import (
    AddConnectionOperation,
    CleanStaleConnectionsOperation,
    OperationType,
    RewireConnectionOperation,
    UpdateNodeOperation,
    parse_operation,
)
from workflow_guard.domain.value_objects.diff_result import DiffMode


class TestParseOperation:
    """测试：字典 -> 强类型操作"""

    def test_add_connection_defaults(self):
        operation = parse_operation({"type": "addConnection", "source": "A", "target": "B"})

        assert isinstance(operation, AddConnectionOperation)
        assert operation.source_output == "main"
        assert operation.target_input is None
        assert operation.source_index is None
        assert operation.target_index == 0

    def test_smart_parameters_are_kept_raw(self):
        operation = parse_operation(
            {"type": "addConnection", "source": "Check", "target": "B", "branch": "false", "case": 2}
        )

        assert operation.branch == "false"
        assert operation.case == 2

    def test_rewire_reads_from_and_to(self):
        operation = parse_operation({"type": "rewireConnection", "source": "A", "from": "B", "to": "C"})

        assert isinstance(operation, RewireConnectionOperation)
        assert (operation.from_node, operation.to_node) == ("B", "C")

    def test_update_node_accepts_legacy_changes_field(self):
        operation = parse_operation(
            {"type": "updateNode", "nodeName": "Set", "changes": {"parameters.value": 1}}
        )

        assert isinstance(operation, UpdateNodeOperation)
        assert operation.updates == {"parameters.value": 1}
        assert operation.reference == "Set"

    def test_clean_stale_connections_dry_run(self):
        operation = parse_operation({"type": "cleanStaleConnections", "dryRun": True})

        assert isinstance(operation, CleanStaleConnectionsOperation)
        assert operation.dry_run is True

    def test_node_operations_are_flagged(self):
        assert OperationType.ADD_NODE.is_node_operation
        assert OperationType.DISABLE_NODE.is_node_operation
        assert not OperationType.ADD_CONNECTION.is_node_operation
        assert not OperationType.UPDATE_SETTINGS.is_node_operation


class TestParseOperationErrors:
    """测试：不合法的操作"""

    def test_unknown_type(self):
        with pytest.raises(InvalidOperationError) as exc_info:
            parse_operation({"type": "explodeNode"})

        assert exc_info.value.code == "UNKNOWN_OPERATION_TYPE"

    @pytest.mark.parametrize(
        "data",
        [
            "addNode",
            {"type": "addConnection", "source": "A"},
            {"type": "addConnection", "source": "", "target": "B"},
            {"type": "addConnection", "source": "A", "target": "B", "sourceIndex": -1},
            {"type": "addConnection", "source": "A", "target": "B", "sourceIndex": True},
            {"type": "removeNode"},
            {"type": "updateNode", "nodeName": "A", "updates": {}},
            {"type": "updateNode", "nodeName": "A", "updates": ["name"]},
            {"type": "moveNode", "nodeName": "A"},
            {"type": "removeConnection", "source": "A", "target": "B", "ignoreErrors": "yes"},
            {"type": "updateName"},
            {"type": "addTag", "tag": 3},
            {"type": "updateSettings", "settings": "fast"},
            {"type": "addNode", "node": {}, "description": 42},
        ],
    )
    def test_invalid_operation_raises(self, data):
        with pytest.raises(InvalidOperationError) as exc_info:
            parse_operation(data)

        assert exc_info.value.code == "INVALID_OPERATION"


class TestDiffMode:
    """测试：旧版布尔字段 -> 模式"""

    def test_validate_only_wins(self):
        assert DiffMode.from_flags(validate_only=True, continue_on_error=True) is DiffMode.VALIDATE_ONLY

    def test_continue_on_error_flag(self):
        assert DiffMode.from_flags(continue_on_error=True) is DiffMode.CONTINUE_ON_ERROR

    def test_default_mode(self):
        assert DiffMode.from_flags() is DiffMode.ATOMIC
        assert DiffMode.from_flags(default=DiffMode.CONTINUE_ON_ERROR) is DiffMode.CONTINUE_ON_ERROR

    def test_only_validate_only_does_not_commit(self):
        assert DiffMode.ATOMIC.commits
        assert DiffMode.CONTINUE_ON_ERROR.commits
        assert not DiffMode.VALIDATE_ONLY.commits
