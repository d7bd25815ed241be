"""WorkflowNode 实体 - 工作流图中的一个处理节点

业务定义：
- 节点由 id（稳定标识）、name（图内唯一，连接按 name 引用）、
  type + typeVersion、parameters（不透明的嵌套文档）组成
- parameters 的结构由节点类型决定，领域层只通过窄访问器读取需要的字段

设计原则：
- 纯 Python 实现，不依赖任何框架
- 未建模的字段保存在 extra 中，序列化时原样写回
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from workflow_guard.domain.exceptions import DomainError
from workflow_guard.domain.value_objects.error_handling_mode import ErrorHandlingMode
from workflow_guard.domain.value_objects.position import Position

# 有专门字段的文档键，其余键进入 extra
_MODELED_KEYS = frozenset(
    {
        "id",
        "name",
        "type",
        "typeVersion",
        "position",
        "parameters",
        "disabled",
        "credentials",
        "onError",
        "continueOnFail",
        "retryOnFail",
    }
)


@dataclass
class WorkflowNode:
    """WorkflowNode 实体

    属性说明：
    - id: 稳定标识
    - name: 图内唯一名称
    - type: 带命名空间的类型标识（如 n8n-nodes-base.slack）
    - type_version: 类型版本号（缺省为 None，序列化时不补写）
    - parameters: 节点参数
    - position: 画布坐标
    - disabled: 是否禁用（None 表示文档中未声明）
    - credentials: 凭证映射
    - on_error / continue_on_fail: 错误处理字段原值
    - retry_on_fail: 是否失败重试
    - extra: 其他字段（notes、maxTries、executeOnce 等）
    """

    id: str
    name: str
    type: str
    type_version: int | float | None = None
    parameters: dict[str, Any] = field(default_factory=dict)
    position: Position | None = None
    disabled: bool | None = None
    credentials: dict[str, Any] | None = None
    on_error: str | None = None
    continue_on_fail: bool | None = None
    retry_on_fail: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowNode:
        if not isinstance(data, dict):
            raise DomainError(f"节点必须是对象: {data!r}")
        name = data.get("name")
        node_type = data.get("type")
        if not isinstance(name, str) or not name:
            raise DomainError(f"节点缺少 name: {data.get('id')!r}")
        if not isinstance(node_type, str) or not node_type:
            raise DomainError(f"节点缺少 type: {name}")

        parameters = data.get("parameters")
        raw_position = data.get("position")
        return cls(
            id=str(data.get("id") or ""),
            name=name,
            type=node_type,
            type_version=data.get("typeVersion"),
            parameters=copy.deepcopy(parameters) if isinstance(parameters, dict) else {},
            position=Position.from_list(raw_position) if raw_position is not None else None,
            disabled=data.get("disabled"),
            credentials=copy.deepcopy(data.get("credentials")),
            on_error=data.get("onError"),
            continue_on_fail=data.get("continueOnFail"),
            retry_on_fail=data.get("retryOnFail"),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in _MODELED_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name, "type": self.type}
        if self.type_version is not None:
            payload["typeVersion"] = self.type_version
        if self.position is not None:
            payload["position"] = self.position.to_list()
        payload["parameters"] = copy.deepcopy(self.parameters)
        optional = {
            "disabled": self.disabled,
            "credentials": copy.deepcopy(self.credentials),
            "onError": self.on_error,
            "continueOnFail": self.continue_on_fail,
            "retryOnFail": self.retry_on_fail,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        payload.update(copy.deepcopy(self.extra))
        return payload

    @property
    def is_disabled(self) -> bool:
        return self.disabled is True

    @property
    def error_handling_mode(self) -> ErrorHandlingMode | None:
        return ErrorHandlingMode.from_node_fields(self.on_error, self.continue_on_fail)

    @property
    def has_credentials(self) -> bool:
        return bool(self.credentials)

    # --- 参数窄访问器 -------------------------------------------------

    def param(self, path: str, default: Any = None) -> Any:
        """按点路径读取参数，如 param("options.streamResponse")"""
        current: Any = self.parameters
        for part in path.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def str_param(self, path: str, default: str = "") -> str:
        value = self.param(path)
        return value if isinstance(value, str) else default

    def bool_param(self, path: str) -> bool:
        return self.param(path) is True

    def version_at_least(self, minimum: float) -> bool:
        version = self.type_version
        if isinstance(version, bool) or not isinstance(version, int | float):
            return False
        return version >= minimum
