"""WorkflowValidator - 工作流完整校验（Domain Service）

把三类检查合并成一份 ValidationResult：
1. StructuralValidator：图结构
2. 节点规则分发：规范化类型 -> NodeRuleRegistry -> 专用规则或通用规则
3. AIValidator：AI 编排子系统（基于反向连接索引）

校验只收集问题，不因预期内的失败抛异常；同一问题经两条路径到达时只保留一条。
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.exceptions import DomainValidationError
from workflow_guard.domain.ports.node_type_catalog import NodeTypeCatalog
from workflow_guard.domain.services.ai_validator import AIValidator
from workflow_guard.domain.services.node_rules import NodeRuleRegistry, RuleContext, create_rule_registry
from workflow_guard.domain.services.node_type_normalizer import normalize_node_type
from workflow_guard.domain.services.reverse_connection_index import build_reverse_connection_index
from workflow_guard.domain.services.structural_validator import StructuralValidator
from workflow_guard.domain.value_objects.validation_issue import ValidationIssue, ValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WorkflowValidator:
    """组合校验器

    参数：
        catalog: 节点类型目录
        rules: 节点规则注册表（默认 create_rule_registry()）
        ai_validator: AI 子系统校验器（默认使用同一个 catalog）
    """

    catalog: NodeTypeCatalog
    rules: NodeRuleRegistry = field(default_factory=create_rule_registry)
    ai_validator: AIValidator | None = None

    def validate(self, workflow: Workflow) -> ValidationResult:
        started = time.perf_counter()

        issues: list[ValidationIssue] = []
        issues.extend(StructuralValidator(self.catalog).validate(workflow))
        if workflow.nodes:
            issues.extend(self.run_node_rules(workflow))
            ai_validator = self.ai_validator or AIValidator(catalog=self.catalog)
            issues.extend(ai_validator.validate(workflow, build_reverse_connection_index(workflow)))

        result = ValidationResult.from_issues(
            issues,
            node_count=len(workflow.nodes),
            connection_count=len(workflow.connections),
        )

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "workflow_validation_completed",
            extra={
                "workflow_id": workflow.id,
                "validation_ms": elapsed_ms,
                "valid": result.valid,
                "error_count": len(result.errors),
                "warning_count": len(result.warnings),
            },
        )
        return result

    def validate_or_raise(self, workflow: Workflow) -> ValidationResult:
        """有 error 时抛 DomainValidationError（errors 为问题字典列表）"""
        result = self.validate(workflow)
        if not result.valid:
            raise DomainValidationError(
                "Workflow validation failed",
                code="workflow_invalid",
                errors=[issue.to_dict() for issue in result.errors],
            )
        return result

    def run_node_rules(self, workflow: Workflow) -> list[ValidationIssue]:
        """对每个启用的节点分发规则；禁用节点不参与节点级检查"""
        issues: list[ValidationIssue] = []
        for node in workflow.nodes:
            if node.is_disabled:
                continue
            node_type = normalize_node_type(node.type)
            rule = self.rules.resolve(node_type)
            context = RuleContext(
                node=node,
                node_type=node_type,
                info=self.catalog.lookup(node_type),
                workflow=workflow,
            )
            issues.extend(rule(context))
        return issues
