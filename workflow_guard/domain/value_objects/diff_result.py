"""Diff 执行结果值对象"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.value_objects.validation_issue import ValidationResult


class DiffMode(str, Enum):
    """执行模式

    - ATOMIC：全部成功才提交，任何失败都回到原文档
    - CONTINUE_ON_ERROR：逐个应用，失败的操作被跳过并记录
    - VALIDATE_ONLY：完整执行 + 校验，但永不提交
    """

    ATOMIC = "atomic"
    CONTINUE_ON_ERROR = "continue_on_error"
    VALIDATE_ONLY = "validate_only"

    @property
    def commits(self) -> bool:
        return self is not DiffMode.VALIDATE_ONLY

    @classmethod
    def from_flags(
        cls,
        *,
        validate_only: bool = False,
        continue_on_error: bool = False,
        default: DiffMode | None = None,
    ) -> DiffMode:
        """兼容旧请求里的 validateOnly / continueOnError 布尔字段"""
        if validate_only:
            return cls.VALIDATE_ONLY
        if continue_on_error:
            return cls.CONTINUE_ON_ERROR
        return default or cls.ATOMIC


@dataclass(frozen=True)
class OperationFailure:
    index: int
    type: str | None
    code: str
    message: str
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "index": self.index,
            "type": self.type,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


@dataclass
class DiffResult:
    """一次 diff 请求的结果

    字段：
        success: 批次是否成功（continue_on_error 下：至少一个操作成功，或没有失败）
        mode: 执行模式
        workflow: 结果文档；atomic 失败时是原文档
        applied: 成功应用的操作下标
        failed: 失败记录
        validation: 对结果文档的校验（有校验器时）
        notes: 操作附带的报告（如 cleanStaleConnections 删除了哪些连接）
        saved: 结果是否已持久化（由用例设置）
    """

    success: bool
    mode: DiffMode
    workflow: Workflow
    applied: list[int] = field(default_factory=list)
    failed: list[OperationFailure] = field(default_factory=list)
    validation: ValidationResult | None = None
    notes: list[dict[str, Any]] = field(default_factory=list)
    message: str = ""
    saved: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "mode": self.mode.value,
            "message": self.message,
            "applied": list(self.applied),
            "failed": [failure.to_dict() for failure in self.failed],
            "saved": self.saved,
        }
        # continue_on_error 的结果文档放在 result 下，其它模式放在 workflow 下
        document_key = "result" if self.mode is DiffMode.CONTINUE_ON_ERROR else "workflow"
        payload[document_key] = self.workflow.to_dict()
        if not self.success and self.failed:
            payload["error"] = self.failed[0].message
        if self.validation is not None:
            payload["validation"] = self.validation.to_dict()
        if self.notes:
            payload["notes"] = list(self.notes)
        return payload
