"""NodeRuleRegistry - 节点类型 -> 规则函数 的扁平注册表

不用类继承层次：每个规范化类型对应一个规则函数，
查不到时退回到通用规则（fallback）。
"""

from __future__ import annotations

from collections.abc import Callable

from workflow_guard.domain.services.node_rules.base import NodeRule
from workflow_guard.domain.services.node_type_normalizer import normalize_node_type


class NodeRuleRegistry:
    """节点规则注册表

    键一律是规范化类型（nodes-base.slack），注册与查询时都会规范化。
    """

    def __init__(self, fallback: NodeRule):
        self._rules: dict[str, NodeRule] = {}
        self._fallback = fallback

    def register(self, node_type: str, rule: NodeRule) -> None:
        self._rules[normalize_node_type(node_type)] = rule

    def rule(self, *node_types: str) -> Callable[[NodeRule], NodeRule]:
        """装饰器形式的注册：@registry.rule("nodes-base.postgres", "nodes-base.mySql")"""

        def decorator(func: NodeRule) -> NodeRule:
            for node_type in node_types:
                self.register(node_type, func)
            return func

        return decorator

    def get(self, node_type: str) -> NodeRule | None:
        return self._rules.get(normalize_node_type(node_type))

    def has(self, node_type: str) -> bool:
        return normalize_node_type(node_type) in self._rules

    def resolve(self, node_type: str) -> NodeRule:
        """查不到专用规则时返回通用规则"""
        return self.get(node_type) or self._fallback
