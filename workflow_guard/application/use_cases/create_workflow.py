"""CreateWorkflowUseCase - 保存一份完整的工作流文档

没有 id 的文档会分配一个 UUID；已存在的 id 会被覆盖（与编辑器的"保存"语义一致）。
保存前不做强校验，调用方可以先存草稿再用 diff 逐步修复。
"""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.ports.workflow_repository import WorkflowRepository


class CreateWorkflowUseCase:
    def __init__(self, workflow_repository: WorkflowRepository):
        self.workflow_repository = workflow_repository

    def execute(self, document: dict[str, Any]) -> Workflow:
        """抛出：DomainError（文档形状不合法）"""
        workflow = Workflow.from_dict(document)
        if not workflow.id:
            workflow.id = str(uuid4())
        self.workflow_repository.save(workflow)
        return workflow
