"""领域层异常定义

为什么需要领域异常？
1. 业务语义清晰：DomainError 表示业务规则违反，不是技术错误
2. 异常分层：Domain 异常 vs Infrastructure 异常 vs API 异常
3. 统一处理：上层可以统一捕获 DomainError 并转换为 4xx 错误

注意：
- 校验失败（悬空引用、基数错误等）不是异常，而是 ValidationIssue
- OperationError 只在 diff 引擎内部抛出，由引擎转换为失败记录
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """领域层异常基类

    用途：
    - 表示业务规则违反（如：工作流名称为空）
    - 表示领域不变式违反（如：节点名称重复）
    """

    pass


class NotFoundError(DomainError):
    """实体不存在异常

    用于 Repository 的 get_by_id()，API 层统一转换为 404。

    参数：
        entity_type: 实体类型（如："Workflow"）
        entity_id: 实体 ID
    """

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} 不存在: {entity_id}")


class DomainValidationError(DomainError):
    """结构化校验异常

    errors 中每一项都是 {"code", "message", ...} 字典，可以直接返回给调用方。
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "validation_failed",
        errors: list[dict[str, Any]] | None = None,
    ):
        self.code = code
        self.errors = errors or []
        super().__init__(message)


class OperationError(DomainError):
    """单个 diff 操作无法应用

    属性：
        code: 稳定的机器可读错误码
        operation_index: 操作在请求中的下标（由引擎在捕获后补全）
        details: 附加上下文
    """

    default_code = "OPERATION_FAILED"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        operation_index: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.operation_index = operation_index
        self.details = details or {}
        super().__init__(message)


class NodeNotFoundError(OperationError):
    default_code = "NODE_NOT_FOUND"

    def __init__(self, reference: str, *, role: str = "Node"):
        self.reference = reference
        super().__init__(f"{role} not found: {reference}", details={"reference": reference})


class DuplicateNodeNameError(OperationError):
    default_code = "DUPLICATE_NODE_NAME"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Node with name "{name}" already exists', details={"name": name})


class ConnectionNotFoundError(OperationError):
    default_code = "CONNECTION_NOT_FOUND"


class InvalidOperationError(OperationError):
    """操作参数不合法（类型缺失、smart parameter 越界等）"""

    default_code = "INVALID_OPERATION"

