"""In-memory WorkflowRepository adapter (Infrastructure).

Stores deep copies so callers never share mutable state with the store.
"""

from __future__ import annotations

import threading

from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.exceptions import DomainError, NotFoundError


class InMemoryWorkflowRepository:
    def __init__(self) -> None:
        self._data: dict[str, Workflow] = {}
        self._lock = threading.Lock()

    def save(self, workflow: Workflow) -> None:
        if not workflow.id:
            raise DomainError("workflow.id 不能为空")
        with self._lock:
            self._data[workflow.id] = workflow.copy()

    def get_by_id(self, workflow_id: str) -> Workflow:
        workflow = self.find_by_id(workflow_id)
        if workflow is None:
            raise NotFoundError("Workflow", workflow_id)
        return workflow

    def find_by_id(self, workflow_id: str) -> Workflow | None:
        with self._lock:
            stored = self._data.get(workflow_id)
            return stored.copy() if stored is not None else None

    def list_all(self) -> list[Workflow]:
        with self._lock:
            return [workflow.copy() for workflow in self._data.values()]

    def delete(self, workflow_id: str) -> None:
        with self._lock:
            if workflow_id not in self._data:
                raise NotFoundError("Workflow", workflow_id)
            del self._data[workflow_id]
