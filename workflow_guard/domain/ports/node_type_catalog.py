"""NodeTypeCatalog Port（节点类型目录端口）

Domain 层端口：给定规范化后的节点类型标识，返回其必填参数、必需凭证与能力标记。

约束：
- 同步、只读，被校验器当作纯函数使用（不做重试、不做退避）
- 未知类型返回 NodeTypeInfo.unknown(...)，不抛异常
- 目录本身的故障（文件损坏等）属于意外情况，直接向上抛出
"""

from __future__ import annotations

from typing import Protocol

from workflow_guard.domain.value_objects.node_type_info import NodeTypeInfo


class NodeTypeCatalog(Protocol):
    """节点类型目录的抽象来源。"""

    def lookup(self, node_type: str) -> NodeTypeInfo:
        """查询节点类型声明（入参可以是完整形式或规范化形式）。"""
        ...
