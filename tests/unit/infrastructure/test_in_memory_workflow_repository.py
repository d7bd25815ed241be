"""InMemoryWorkflowRepository 测试"""

import pytest

from tests.builders import simple_workflow_doc
from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.exceptions import DomainError, NotFoundError
from workflow_guard.infrastructure.adapters.in_memory_workflow_repository import InMemoryWorkflowRepository


@pytest.fixture
def stored() -> Workflow:
    return Workflow.from_dict(simple_workflow_doc())


class TestInMemoryWorkflowRepository:
    """测试：保存 / 读取 / 删除，读写都是深拷贝"""

    def test_save_and_get(self, stored):
        repo = InMemoryWorkflowRepository()
        repo.save(stored)

        assert repo.get_by_id("wf-1").to_dict() == simple_workflow_doc()

    def test_save_requires_id(self):
        with pytest.raises(DomainError):
            InMemoryWorkflowRepository().save(Workflow(id=None, name="draft"))

    def test_get_missing(self):
        with pytest.raises(NotFoundError) as exc_info:
            InMemoryWorkflowRepository().get_by_id("missing")

        assert exc_info.value.entity_id == "missing"

    def test_find_missing_returns_none(self):
        assert InMemoryWorkflowRepository().find_by_id("missing") is None

    def test_mutating_saved_instance_does_not_change_store(self, stored):
        repo = InMemoryWorkflowRepository()
        repo.save(stored)

        stored.name = "changed after save"
        loaded = repo.get_by_id("wf-1")
        loaded.nodes.clear()

        assert repo.get_by_id("wf-1").name == "Test workflow"
        assert len(repo.get_by_id("wf-1").nodes) == 2

    def test_save_overwrites(self, stored):
        repo = InMemoryWorkflowRepository()
        repo.save(stored)
        stored.name = "v2"
        repo.save(stored)

        assert [w.name for w in repo.list_all()] == ["v2"]

    def test_delete(self, stored):
        repo = InMemoryWorkflowRepository()
        repo.save(stored)

        repo.delete("wf-1")

        assert repo.list_all() == []
        with pytest.raises(NotFoundError):
            repo.delete("wf-1")
