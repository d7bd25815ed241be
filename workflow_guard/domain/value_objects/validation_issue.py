"""校验问题与校验结果值对象

业务定义：
- ValidationIssue：一条校验问题（稳定错误码 + 可读消息 + 出问题的节点）
- ValidationResult：一次校验的完整输出 {valid, errors, warnings, info, summary}

设计原则：
- 预期内的校验失败都用 ValidationIssue 表达，不抛异常
- 只有 severity=error 会让 valid=False，warning/info 只是建议
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueCategory(str, Enum):
    """问题分类（错误分类法）

    - STRUCTURAL: 悬空引用、重名、退化的单节点工作流等
    - CARDINALITY: 某个通道上的连接数量不对
    - DIRECTION: 通道和节点组合不合法
    - CONDITIONAL_REQUIREMENT: 某个标记要求的配套连接或参数缺失
    - CROSS_NODE_CONSTRAINT: 跨两个相连节点的约束（如 streaming 规则）
    - OPERATION: 单个 diff 操作无法应用
    - RULE_VIOLATION: 节点专属规则
    - ADVISORY: 非阻塞的建议
    """

    STRUCTURAL = "StructuralError"
    CARDINALITY = "CardinalityError"
    DIRECTION = "DirectionError"
    CONDITIONAL_REQUIREMENT = "ConditionalRequirementError"
    CROSS_NODE_CONSTRAINT = "CrossNodeConstraintError"
    OPERATION = "OperationError"
    RULE_VIOLATION = "RuleViolation"
    ADVISORY = "Advisory"


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    severity: Severity = Severity.ERROR
    category: IssueCategory = IssueCategory.STRUCTURAL
    node_name: str | None = None
    node_id: str | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def error(cls, code: str, message: str, category: IssueCategory, **kwargs: Any) -> ValidationIssue:
        return cls(code=code, message=message, severity=Severity.ERROR, category=category, **kwargs)

    @classmethod
    def warning(
        cls,
        code: str,
        message: str,
        category: IssueCategory = IssueCategory.ADVISORY,
        **kwargs: Any,
    ) -> ValidationIssue:
        return cls(code=code, message=message, severity=Severity.WARNING, category=category, **kwargs)

    @classmethod
    def info(
        cls,
        code: str,
        message: str,
        category: IssueCategory = IssueCategory.ADVISORY,
        **kwargs: Any,
    ) -> ValidationIssue:
        return cls(code=code, message=message, severity=Severity.INFO, category=category, **kwargs)

    @property
    def is_blocking(self) -> bool:
        return self.severity is Severity.ERROR

    def dedup_key(self) -> tuple[str, str, str | None, str]:
        return (self.severity.value, self.code, self.node_name, self.message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
        }
        if self.node_name is not None:
            payload["nodeName"] = self.node_name
        if self.node_id is not None:
            payload["nodeId"] = self.node_id
        if self.details:
            payload["details"] = self.details
        return payload


def dedupe_issues(issues: Iterable[ValidationIssue]) -> list[ValidationIssue]:
    """按 (severity, code, node, message) 去重，保持首次出现的顺序"""
    seen: set[tuple[str, str, str | None, str]] = set()
    unique: list[ValidationIssue] = []
    for issue in issues:
        key = issue.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(issue)
    return unique


@dataclass
class ValidationResult:
    """一次完整校验的结果

    字段：
        errors / warnings / info: 按严重程度拆分的问题列表
        node_count / connection_count: 统计信息，放在 summary 中
    """

    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    info: list[ValidationIssue] = field(default_factory=list)
    node_count: int = 0
    connection_count: int = 0

    @classmethod
    def from_issues(
        cls,
        issues: Iterable[ValidationIssue],
        *,
        node_count: int = 0,
        connection_count: int = 0,
    ) -> ValidationResult:
        result = cls(node_count=node_count, connection_count=connection_count)
        for issue in dedupe_issues(issues):
            if issue.severity is Severity.ERROR:
                result.errors.append(issue)
            elif issue.severity is Severity.WARNING:
                result.warnings.append(issue)
            else:
                result.info.append(issue)
        return result

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def issues(self) -> list[ValidationIssue]:
        return [*self.errors, *self.warnings, *self.info]

    def codes(self) -> set[str]:
        return {issue.code for issue in self.issues}

    def summary(self) -> dict[str, int]:
        return {
            "errorCount": len(self.errors),
            "warningCount": len(self.warnings),
            "infoCount": len(self.info),
            "nodeCount": self.node_count,
            "connectionCount": self.connection_count,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
            "info": [issue.to_dict() for issue in self.info],
            "summary": self.summary(),
        }
