"""反向连接索引

ai_* 通道记录在供应方节点的输出上，但语义上是被下游编排节点消费的：

    workflow.connections["OpenAI Model"]["ai_languageModel"] = [[{"node": "Agent", ...}]]

所以"Agent 的语言模型是谁"必须反向查：index["Agent"] -> [ReverseConnection(...)]。
索引是派生的只读数据，每次校验开始时重新构建。
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field

from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.services.node_type_normalizer import normalize_node_type
from workflow_guard.domain.value_objects.connection import ConnectionChannel, ReverseConnection


@dataclass(frozen=True)
class ReverseConnectionIndex:
    """target 名称 -> 指向它的所有连接"""

    _incoming: dict[str, tuple[ReverseConnection, ...]] = field(default_factory=dict)

    def incoming(
        self,
        node_name: str,
        channel: ConnectionChannel | str | None = None,
    ) -> list[ReverseConnection]:
        entries = self._incoming.get(node_name, ())
        if channel is None:
            return list(entries)
        wanted = channel.value if isinstance(channel, ConnectionChannel) else channel
        return [entry for entry in entries if entry.channel == wanted]

    def count(self, node_name: str, channel: ConnectionChannel | str) -> int:
        return len(self.incoming(node_name, channel))


def build_reverse_connection_index(workflow: Workflow) -> ReverseConnectionIndex:
    """从连接表构建反向索引

    - 空名称的 source / target 被跳过（由结构校验报告）
    - source_type 使用规范化后的类型；source 不存在时为空字符串
    """
    types_by_name = {node.name: normalize_node_type(node.type) for node in workflow.nodes}
    incoming: dict[str, list[ReverseConnection]] = defaultdict(list)

    for source, channel, slot_index, target in workflow.connections.iter_connections():
        if not source or not source.strip() or not target.node or not target.node.strip():
            continue
        incoming[target.node].append(
            ReverseConnection(
                source_name=source,
                source_type=types_by_name.get(source, ""),
                channel=channel,
                index=slot_index,
            )
        )

    return ReverseConnectionIndex({name: tuple(entries) for name, entries in incoming.items()})
