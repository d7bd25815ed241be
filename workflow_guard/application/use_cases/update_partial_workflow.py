"""UpdatePartialWorkflowUseCase - 通过 diff 操作增量更新工作流

业务场景：
- 调用方只提交一组操作（addNode / addConnection / updateName ...），而不是整份文档
- 引擎在副本上执行，按模式决定是否提交

业务流程：
1. 从仓储获取工作流（不存在抛出 NotFoundError）
2. 交给 WorkflowDiffEngine 执行，并对结果文档做校验
3. 模式允许提交且批次成功时保存

说明：
- 结果文档的校验 error 只体现在 DiffResult.validation 中，不阻止保存；
  编辑器按"先保存再检查"的流程工作，用户随后修复即可
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from workflow_guard.domain.ports.workflow_repository import WorkflowRepository
from workflow_guard.domain.services.workflow_diff_engine import WorkflowDiffEngine
from workflow_guard.domain.value_objects.diff_result import DiffMode, DiffResult

logger = logging.getLogger(__name__)


@dataclass
class UpdatePartialWorkflowInput:
    """UpdatePartialWorkflow 输入参数

    属性说明：
    - workflow_id: 工作流 ID
    - operations: 操作字典列表（按请求顺序）
    - mode: 执行模式，默认 atomic
    """

    workflow_id: str
    operations: list[dict[str, Any]] = field(default_factory=list)
    mode: DiffMode = DiffMode.ATOMIC


class UpdatePartialWorkflowUseCase:
    """UpdatePartialWorkflow Use Case

    依赖：
    - WorkflowRepository: 工作流仓储接口
    - WorkflowDiffEngine: diff 引擎（带校验器）
    """

    def __init__(self, workflow_repository: WorkflowRepository, diff_engine: WorkflowDiffEngine):
        self.workflow_repository = workflow_repository
        self.diff_engine = diff_engine

    def execute(self, input_data: UpdatePartialWorkflowInput) -> DiffResult:
        """执行 Use Case

        返回：
            DiffResult（saved 表示是否已持久化）

        抛出：
            NotFoundError: 当 Workflow 不存在时
        """
        workflow = self.workflow_repository.get_by_id(input_data.workflow_id)

        result = self.diff_engine.apply(workflow, input_data.operations, input_data.mode)

        if result.success and input_data.mode.commits and result.applied:
            self.workflow_repository.save(result.workflow)
            result.saved = True
            logger.info(
                "workflow_diff_saved",
                extra={
                    "workflow_id": input_data.workflow_id,
                    "mode": input_data.mode.value,
                    "applied_count": len(result.applied),
                    "validation_valid": result.validation.valid if result.validation else None,
                },
            )
        return result
