"""ValidateWorkflowUseCase - 校验整个工作流文档

业务场景：
- 调用方提交完整的工作流文档（不需要先保存）
- 返回结构化的校验结果：errors / warnings / info / summary

设计原则：
- Use Case 只做编排：文档 -> 实体 -> WorkflowValidator
- 文档形状错误（nodes 不是数组等）以 DomainError 抛出，由 API 层转换为 400
"""

from __future__ import annotations

from typing import Any

from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.services.workflow_validator import WorkflowValidator
from workflow_guard.domain.value_objects.validation_issue import ValidationResult


class ValidateWorkflowUseCase:
    """ValidateWorkflow Use Case

    依赖：
    - WorkflowValidator: 组合校验器（结构 + 节点规则 + AI 子系统）
    """

    def __init__(self, validator: WorkflowValidator):
        self.validator = validator

    def execute(self, document: dict[str, Any]) -> ValidationResult:
        """执行校验

        参数：
            document: 工作流文档（nodes / connections / ...）

        返回：
            ValidationResult

        抛出：
            DomainError: 文档形状不合法，无法构建 Workflow
        """
        workflow = Workflow.from_dict(document)
        return self.validator.validate(workflow)
