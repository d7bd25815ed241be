"""连接相关值对象 - 通道类型与连接目标

业务定义：
- main / error 通道：数据从 source 流向 target（上游产出，下游消费）
- ai_* 辅助通道：记录在供应方（如语言模型节点）的输出上，
  但能力被下游的编排节点（如 AI Agent）消费，
  所以"谁在给 X 供给 Y"必须通过反向索引查询
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ConnectionChannel(str, Enum):
    """连接通道枚举"""

    MAIN = "main"
    ERROR = "error"

    # AI 辅助通道（供应方 -> 消费方）
    AI_LANGUAGE_MODEL = "ai_languageModel"
    AI_MEMORY = "ai_memory"
    AI_TOOL = "ai_tool"
    AI_OUTPUT_PARSER = "ai_outputParser"
    AI_VECTOR_STORE = "ai_vectorStore"
    AI_EMBEDDING = "ai_embedding"
    AI_DOCUMENT = "ai_document"
    AI_TEXT_SPLITTER = "ai_textSplitter"
    AI_RETRIEVER = "ai_retriever"

    @property
    def is_auxiliary(self) -> bool:
        return self.value.startswith("ai_")

    @classmethod
    def parse(cls, value: str) -> ConnectionChannel | None:
        """字符串转枚举，未知通道返回 None（由校验器报告）"""
        try:
            return cls(value)
        except ValueError:
            return None


AUXILIARY_CHANNELS = frozenset(c for c in ConnectionChannel if c.is_auxiliary)


@dataclass(frozen=True)
class ConnectionTarget:
    """连接目标描述 {node, type, index}

    属性说明：
    - node: 目标节点名称（连接按名称引用节点，而不是 id）
    - type: 目标输入通道
    - index: 目标输入下标
    """

    node: str
    type: str = ConnectionChannel.MAIN.value
    index: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> ConnectionTarget:
        if not isinstance(data, dict):
            raise ValueError(f"connection target must be an object, got {type(data).__name__}")
        return cls(
            node=str(data.get("node", "")),
            type=str(data.get("type") or ConnectionChannel.MAIN.value),
            index=int(data.get("index") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"node": self.node, "type": self.type, "index": self.index}


@dataclass(frozen=True)
class ReverseConnection:
    """反向连接索引条目：target <- source

    - source_name: 供应方节点名称
    - source_type: 供应方节点类型（规范化后）
    - channel: 连接所在的通道
    - index: 在供应方输出上的槽位下标
    """

    source_name: str
    source_type: str
    channel: str
    index: int
