"""Workflow DTO（Data Transfer Objects）

定义工作流文档、diff 请求的请求模型。

注意：
- 文档里的未建模字段（pinData、meta、节点上的 webhookId 等）原样保留（extra="allow"）
- 字段名保持文档中的 camelCase（typeVersion、sourceOutput ...），不做别名转换
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from workflow_guard.domain.value_objects.diff_result import DiffMode


class NodeDocumentDTO(BaseModel):
    """节点文档

    字段：
    - name / type: 必填（缺失时请求返回 422）
    - parameters: 节点参数，内容对 DTO 不透明
    - position: [x, y]
    """

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str = Field(..., min_length=1, description="节点名称（图内唯一）")
    type: str = Field(..., min_length=1, description="节点类型（完整形式）")
    typeVersion: int | float | None = None
    position: list[int | float] | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)


class WorkflowDocumentDTO(BaseModel):
    """工作流文档（校验 / 保存请求体）"""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str = ""
    nodes: list[NodeDocumentDTO] = Field(default_factory=list)
    connections: dict[str, Any] = Field(default_factory=dict)
    settings: dict[str, Any] | None = None
    tags: list[Any] | None = None
    active: bool | None = None

    def to_document(self) -> dict[str, Any]:
        # 只去掉未提供的可选字段；参数和连接里的 null 原样保留
        document = self.model_dump()
        for key in ("id", "settings", "tags", "active"):
            if document.get(key) is None:
                document.pop(key, None)
        for node in document["nodes"]:
            for key in ("id", "typeVersion", "position"):
                if node.get(key) is None:
                    node.pop(key, None)
        return document


class WorkflowDiffRequest(BaseModel):
    """diff 请求

    mode 优先；没有 mode 时兼容旧字段 validateOnly / continueOnError。
    """

    model_config = ConfigDict(populate_by_name=True)

    operations: list[dict[str, Any]] = Field(default_factory=list)
    mode: Literal["atomic", "continue_on_error", "validate_only"] | None = None
    validate_only: bool = Field(default=False, alias="validateOnly")
    continue_on_error: bool = Field(default=False, alias="continueOnError")

    def resolve_mode(self, default: str = DiffMode.ATOMIC.value) -> DiffMode:
        if self.mode is not None:
            return DiffMode(self.mode)
        return DiffMode.from_flags(
            validate_only=self.validate_only,
            continue_on_error=self.continue_on_error,
            default=DiffMode(default),
        )


class WorkflowSummary(BaseModel):
    id: str
    name: str
    nodeCount: int
    connectionCount: int
