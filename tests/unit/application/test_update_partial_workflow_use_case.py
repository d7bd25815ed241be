"""UpdatePartialWorkflowUseCase 单元测试

测试目标：
1. 工作流不存在时抛出 NotFoundError
2. 只有批次成功、模式允许提交且有操作被应用时才保存
3. validate_only 永不修改已保存的文档
4. 结果文档的校验 error 不阻止保存
"""

import logging
from unittest.mock import Mock

import pytest

from tests.builders import CODE, node, simple_workflow_doc
from workflow_guard.application.use_cases.update_partial_workflow import (
    UpdatePartialWorkflowInput,
    UpdatePartialWorkflowUseCase,
)
from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.exceptions import NotFoundError
from workflow_guard.domain.value_objects.diff_result import DiffMode


@pytest.fixture
def stored_repository(repository):
    repository.save(Workflow.from_dict(simple_workflow_doc()))
    return repository


@pytest.fixture
def use_case(stored_repository, diff_engine) -> UpdatePartialWorkflowUseCase:
    return UpdatePartialWorkflowUseCase(workflow_repository=stored_repository, diff_engine=diff_engine)


class TestUpdatePartialWorkflowUseCase:
    """测试：diff 更新用例"""

    def test_missing_workflow(self, diff_engine):
        # Arrange
        mock_repo = Mock()
        mock_repo.get_by_id.side_effect = NotFoundError("Workflow", "missing")
        use_case = UpdatePartialWorkflowUseCase(workflow_repository=mock_repo, diff_engine=diff_engine)

        # Act / Assert
        with pytest.raises(NotFoundError):
            use_case.execute(UpdatePartialWorkflowInput(workflow_id="missing", operations=[]))
        mock_repo.save.assert_not_called()

    def test_atomic_success_is_saved(self, use_case, stored_repository):
        result = use_case.execute(
            UpdatePartialWorkflowInput(workflow_id="wf-1", operations=[{"type": "updateName", "name": "Renamed"}])
        )

        assert result.success is True
        assert result.saved is True
        assert stored_repository.get_by_id("wf-1").name == "Renamed"

    def test_failure_is_not_saved(self, use_case, stored_repository):
        result = use_case.execute(
            UpdatePartialWorkflowInput(
                workflow_id="wf-1",
                operations=[
                    {"type": "updateName", "name": "Renamed"},
                    {"type": "removeNode", "nodeName": "Missing"},
                ],
            )
        )

        assert result.success is False
        assert result.saved is False
        assert stored_repository.get_by_id("wf-1").name == "Test workflow"

    def test_validate_only_never_saves(self, use_case, stored_repository):
        result = use_case.execute(
            UpdatePartialWorkflowInput(
                workflow_id="wf-1",
                operations=[{"type": "updateNode", "nodeName": "Set", "updates": {"name": "Prepare"}}],
                mode=DiffMode.VALIDATE_ONLY,
            )
        )

        assert result.success is True
        assert result.saved is False
        assert result.workflow.get_node_by_name("Prepare") is not None
        assert stored_repository.get_by_id("wf-1").to_dict() == simple_workflow_doc()

    def test_empty_batch_is_not_saved(self, diff_engine):
        mock_repo = Mock()
        mock_repo.get_by_id.return_value = Workflow.from_dict(simple_workflow_doc())
        use_case = UpdatePartialWorkflowUseCase(workflow_repository=mock_repo, diff_engine=diff_engine)

        result = use_case.execute(UpdatePartialWorkflowInput(workflow_id="wf-1"))

        assert result.success is True
        mock_repo.save.assert_not_called()

    def test_continue_on_error_saves_partial_result(self, use_case, stored_repository):
        result = use_case.execute(
            UpdatePartialWorkflowInput(
                workflow_id="wf-1",
                operations=[
                    {"type": "removeNode", "nodeName": "Missing"},
                    {"type": "addTag", "tag": "prod"},
                ],
                mode=DiffMode.CONTINUE_ON_ERROR,
            )
        )

        assert result.saved is True
        assert stored_repository.get_by_id("wf-1").tags == ["prod"]

    def test_validation_errors_do_not_block_saving(self, use_case, stored_repository):
        result = use_case.execute(
            UpdatePartialWorkflowInput(
                workflow_id="wf-1",
                operations=[
                    {"type": "addNode", "node": {**node("Code", CODE, {"jsCode": ""}), "id": None}},
                    {"type": "addConnection", "source": "Set", "target": "Code"},
                ],
            )
        )

        assert result.validation.valid is False
        assert result.saved is True
        assert stored_repository.get_by_id("wf-1").get_node_by_name("Code") is not None

    def test_logs_saved_event(self, use_case, caplog):
        with caplog.at_level(logging.INFO, logger="workflow_guard.application.use_cases.update_partial_workflow"):
            use_case.execute(
                UpdatePartialWorkflowInput(workflow_id="wf-1", operations=[{"type": "addTag", "tag": "prod"}])
            )

        record = next(r for r in caplog.records if r.getMessage() == "workflow_diff_saved")
        assert record.workflow_id == "wf-1"
        assert record.applied_count == 1
