"""AIValidator - AI 编排子系统校验（Domain Service）

ai_* 辅助通道是"反向"的：连接记录在供应方（语言模型、记忆、工具……）的输出上，
但被下游的编排节点消费。所以这里所有"X 有几个语言模型"之类的问题
都基于 ReverseConnectionIndex 回答。

| 节点               | 通道             | 基数                               |
|--------------------|------------------|------------------------------------|
| AI Agent           | ai_languageModel | 恰好 1；needsFallback 时恰好 2     |
| AI Agent           | ai_memory        | 0 或 1                             |
| AI Agent           | ai_tool          | 0..N，每个工具应有描述             |
| AI Agent           | ai_outputParser  | 0 或 1；hasOutputParser 时必须 1   |
| Basic LLM Chain    | ai_languageModel | 恰好 1；不允许 memory / tool       |
| Vector Store Tool  | ai_vectorStore   | 恰好 1；向量库需要恰好 1 个 embedding |
| Chat Trigger       | main             | streaming 时下游 Agent 不能有 main 输出 |
"""

from __future__ import annotations

from dataclasses import dataclass

from workflow_guard.domain.entities.node import WorkflowNode
from workflow_guard.domain.entities.workflow import Workflow
from workflow_guard.domain.ports.node_type_catalog import NodeTypeCatalog
from workflow_guard.domain.services.node_rules.ai_tools import tool_description_issue
from workflow_guard.domain.services.node_type_normalizer import (
    is_langchain_node,
    normalize_node_type,
    short_name,
)
from workflow_guard.domain.services.reverse_connection_index import (
    ReverseConnectionIndex,
    build_reverse_connection_index,
)
from workflow_guard.domain.value_objects.connection import AUXILIARY_CHANNELS, ConnectionChannel
from workflow_guard.domain.value_objects.node_type import KnownNodeType
from workflow_guard.domain.value_objects.validation_issue import IssueCategory, ValidationIssue

AGENT = KnownNodeType.AGENT.value
CHAIN_LLM = KnownNodeType.CHAIN_LLM.value
CHAT_TRIGGER = KnownNodeType.CHAT_TRIGGER.value
TOOL_VECTOR_STORE = KnownNodeType.TOOL_VECTOR_STORE.value

_AUXILIARY_VALUES = frozenset(channel.value for channel in AUXILIARY_CHANNELS)
_MAIN = ConnectionChannel.MAIN.value

# 供应方子节点的类型名前缀（nodes-langchain.<prefix>...）
_SUB_NODE_PREFIXES = (
    "lmChat",
    "lm",
    "memory",
    "embeddings",
    "vectorStore",
    "outputParser",
    "textSplitter",
    "documentDefaultDataLoader",
    "documentBinaryInputLoader",
    "documentGithubLoader",
    "retriever",
    "tool",
    "agentTool",
    "mcpClientTool",
)


def _is_sub_node(node_type: str) -> bool:
    return is_langchain_node(node_type) and short_name(node_type).startswith(_SUB_NODE_PREFIXES)


def _node_issue(factory, node: WorkflowNode, code: str, message: str, category: IssueCategory, **kwargs):
    return factory(code, message, category, node_name=node.name, node_id=node.id or None, **kwargs)


def _error(node: WorkflowNode, code: str, message: str, category: IssueCategory, **kwargs) -> ValidationIssue:
    return _node_issue(ValidationIssue.error, node, code, message, category, **kwargs)


def _warning(node: WorkflowNode, code: str, message: str, category: IssueCategory = IssueCategory.ADVISORY, **kwargs) -> ValidationIssue:
    return _node_issue(ValidationIssue.warning, node, code, message, category, **kwargs)


def _info(node: WorkflowNode, code: str, message: str, **kwargs) -> ValidationIssue:
    return _node_issue(ValidationIssue.info, node, code, message, IssueCategory.ADVISORY, **kwargs)


def _streaming_response_mode(trigger: WorkflowNode) -> bool:
    mode = trigger.str_param("options.responseMode") or trigger.str_param("responseMode")
    return mode == "streaming"


@dataclass(frozen=True, slots=True)
class AIValidator:
    """AI 子系统校验器

    参数：
        catalog: 节点目录（可选，用于判断普通节点能否作为 AI 工具）
        fallback_min_type_version: needsFallback 需要的最低 typeVersion
        system_message_min_length: systemMessage 推荐最小长度
        max_iterations_warning: maxIterations 超过该值给 warning
    """

    catalog: NodeTypeCatalog | None = None
    fallback_min_type_version: float = 2.1
    system_message_min_length: int = 20
    max_iterations_warning: int = 50

    def validate(self, workflow: Workflow, index: ReverseConnectionIndex | None = None) -> list[ValidationIssue]:
        index = index or build_reverse_connection_index(workflow)
        issues: list[ValidationIssue] = []

        for node in workflow.nodes:
            if node.is_disabled:
                continue
            node_type = normalize_node_type(node.type)
            if node_type == AGENT:
                issues.extend(self._validate_agent(workflow, node, index))
            elif node_type == CHAIN_LLM:
                issues.extend(self._validate_chain(workflow, node, index))
            elif node_type == CHAT_TRIGGER:
                issues.extend(self._validate_chat_trigger(workflow, node))
            elif node_type == TOOL_VECTOR_STORE:
                issues.extend(self._validate_retrieval_tool(workflow, node, index))

            if _is_sub_node(node_type):
                issues.extend(self._validate_sub_node_connected(workflow, node, index))

        issues.extend(self._validate_directions(workflow))
        return issues

    # --- AI Agent ------------------------------------------------------

    def _validate_agent(
        self, workflow: Workflow, node: WorkflowNode, index: ReverseConnectionIndex
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        issues.extend(self._validate_language_models(node, index))

        memory_count = index.count(node.name, ConnectionChannel.AI_MEMORY)
        if memory_count > 1:
            issues.append(
                _error(
                    node,
                    "MULTIPLE_MEMORY_CONNECTIONS",
                    f'AI Agent "{node.name}" has {memory_count} ai_memory connections. Only 1 memory is allowed.',
                    IssueCategory.CARDINALITY,
                )
            )

        tools = index.incoming(node.name, ConnectionChannel.AI_TOOL)
        if not tools:
            issues.append(
                _info(node, "NO_TOOLS", f'AI Agent "{node.name}" has no ai_tool connections.')
            )
        for entry in tools:
            tool = workflow.get_node_by_name(entry.source_name)
            if tool is None:
                continue
            missing = tool_description_issue(tool, entry.source_type)
            if missing is not None:
                issues.append(missing)

        issues.extend(self._validate_output_parser(node, index, label="AI Agent"))
        issues.extend(self._validate_prompt(node, index, label="AI Agent"))
        issues.extend(self._validate_system_message(node))
        issues.extend(self._validate_max_iterations(node))
        issues.extend(self._validate_streaming(workflow, node, index))
        return issues

    def _validate_language_models(self, node: WorkflowNode, index: ReverseConnectionIndex) -> list[ValidationIssue]:
        count = index.count(node.name, ConnectionChannel.AI_LANGUAGE_MODEL)
        needs_fallback = node.bool_param("needsFallback")
        issues: list[ValidationIssue] = []

        if needs_fallback and not node.version_at_least(self.fallback_min_type_version):
            issues.append(
                _error(
                    node,
                    "FALLBACK_REQUIRES_NEWER_VERSION",
                    f'AI Agent "{node.name}" sets needsFallback but typeVersion {node.type_version} '
                    f"is below {self.fallback_min_type_version}",
                    IssueCategory.CONDITIONAL_REQUIREMENT,
                )
            )

        if count == 0:
            issues.append(
                _error(
                    node,
                    "MISSING_LANGUAGE_MODEL",
                    f'AI Agent "{node.name}" requires an ai_languageModel connection.',
                    IssueCategory.CARDINALITY,
                )
            )
        elif count > 2:
            issues.append(
                _error(
                    node,
                    "TOO_MANY_LANGUAGE_MODELS",
                    f'AI Agent "{node.name}" has {count} ai_languageModel connections. '
                    "Maximum is 2 (for fallback model support).",
                    IssueCategory.CARDINALITY,
                )
            )
        elif count == 2 and not needs_fallback:
            issues.append(
                _error(
                    node,
                    "FALLBACK_NOT_ENABLED",
                    f'AI Agent "{node.name}" has 2 language models but needsFallback is not enabled.',
                    IssueCategory.CARDINALITY,
                )
            )
        elif count == 1 and needs_fallback:
            issues.append(
                _error(
                    node,
                    "FALLBACK_MISSING_SECOND_MODEL",
                    f'AI Agent "{node.name}" has needsFallback=true but only 1 language model connected.',
                    IssueCategory.CARDINALITY,
                )
            )
        return issues

    def _validate_output_parser(
        self, node: WorkflowNode, index: ReverseConnectionIndex, *, label: str
    ) -> list[ValidationIssue]:
        parsers = index.incoming(node.name, ConnectionChannel.AI_OUTPUT_PARSER)
        flag = node.bool_param("hasOutputParser")
        issues: list[ValidationIssue] = []

        if flag and not parsers:
            issues.append(
                _error(
                    node,
                    "MISSING_OUTPUT_PARSER",
                    f'{label} "{node.name}" has hasOutputParser=true but no ai_outputParser connection.',
                    IssueCategory.CONDITIONAL_REQUIREMENT,
                )
            )
        if len(parsers) > 1:
            # 第一个连接视为有效，其余忽略
            issues.append(
                _warning(
                    node,
                    "MULTIPLE_OUTPUT_PARSERS",
                    f'{label} "{node.name}" has {len(parsers)} output parsers. '
                    f'Only "{parsers[0].source_name}" is used; the others are ignored.',
                    IssueCategory.CARDINALITY,
                    details={
                        "authoritative": parsers[0].source_name,
                        "ignored": [p.source_name for p in parsers[1:]],
                    },
                )
            )
        if parsers and not flag:
            issues.append(
                _warning(
                    node,
                    "OUTPUT_PARSER_NOT_ENABLED",
                    f'{label} "{node.name}" has an output parser connected but hasOutputParser is not true.',
                    IssueCategory.CONDITIONAL_REQUIREMENT,
                )
            )
        return issues

    def _validate_prompt(
        self, node: WorkflowNode, index: ReverseConnectionIndex, *, label: str
    ) -> list[ValidationIssue]:
        prompt_type = node.str_param("promptType") or "auto"
        if prompt_type == "define":
            if not node.str_param("text").strip():
                return [
                    _error(
                        node,
                        "MISSING_PROMPT_TEXT",
                        f'{label} "{node.name}" has promptType="define" but the text field is empty.',
                        IssueCategory.CONDITIONAL_REQUIREMENT,
                    )
                ]
            return []

        from_chat_trigger = any(
            entry.source_type == CHAT_TRIGGER for entry in index.incoming(node.name, ConnectionChannel.MAIN)
        )
        if not from_chat_trigger:
            return [
                _info(
                    node,
                    "PROMPT_WITHOUT_CHAT_TRIGGER",
                    f'{label} "{node.name}" takes its prompt from upstream (promptType="auto") '
                    "but is not connected to a Chat Trigger. Ensure the input provides a chatInput field.",
                )
            ]
        return []

    def _validate_system_message(self, node: WorkflowNode) -> list[ValidationIssue]:
        message = node.str_param("options.systemMessage").strip()
        if not message:
            return [
                _info(
                    node,
                    "NO_SYSTEM_MESSAGE",
                    f'AI Agent "{node.name}" has no systemMessage. Consider defining its role and constraints.',
                )
            ]
        if len(message) < self.system_message_min_length:
            return [
                _info(
                    node,
                    "SHORT_SYSTEM_MESSAGE",
                    f'AI Agent "{node.name}" systemMessage is very short '
                    f"(minimum {self.system_message_min_length} characters recommended).",
                )
            ]
        return []

    def _validate_max_iterations(self, node: WorkflowNode) -> list[ValidationIssue]:
        value = node.param("options.maxIterations")
        if value is None:
            return []
        if isinstance(value, bool) or not isinstance(value, int | float):
            return [
                _error(
                    node,
                    "INVALID_MAX_ITERATIONS_TYPE",
                    f'AI Agent "{node.name}" has invalid maxIterations type. Must be a number.',
                    IssueCategory.RULE_VIOLATION,
                )
            ]
        if value < 1:
            return [
                _error(
                    node,
                    "MAX_ITERATIONS_TOO_LOW",
                    f'AI Agent "{node.name}" has maxIterations={value}. Must be at least 1.',
                    IssueCategory.RULE_VIOLATION,
                )
            ]
        if value > self.max_iterations_warning:
            return [
                _warning(
                    node,
                    "HIGH_MAX_ITERATIONS",
                    f'AI Agent "{node.name}" has maxIterations={value}. '
                    f"Values above {self.max_iterations_warning} may cause long execution times and high costs.",
                )
            ]
        return []

    def _validate_streaming(
        self, workflow: Workflow, node: WorkflowNode, index: ReverseConnectionIndex
    ) -> list[ValidationIssue]:
        streaming_triggers = []
        for entry in index.incoming(node.name, ConnectionChannel.MAIN):
            if entry.source_type != CHAT_TRIGGER:
                continue
            trigger = workflow.get_node_by_name(entry.source_name)
            if trigger is not None and not trigger.is_disabled and _streaming_response_mode(trigger):
                streaming_triggers.append(trigger.name)
        own_streaming = node.bool_param("options.streamResponse")

        if not streaming_triggers and not own_streaming:
            return []
        outgoing = workflow.connections.outgoing_count(node.name, _MAIN)
        if outgoing == 0:
            return []

        source = (
            f'connected from Chat Trigger "{streaming_triggers[0]}" with responseMode="streaming"'
            if streaming_triggers
            else "has streamResponse=true in options"
        )
        return [
            _error(
                node,
                "STREAMING_WITH_MAIN_OUTPUT",
                f'AI Agent "{node.name}" is in streaming mode ({source}) but has {outgoing} outgoing main '
                "connection(s). Streaming responses flow back through the Chat Trigger; remove the main outputs.",
                IssueCategory.CROSS_NODE_CONSTRAINT,
                details={"triggers": streaming_triggers, "outgoingMainConnections": outgoing},
            )
        ]

    # --- Basic LLM Chain -----------------------------------------------

    def _validate_chain(
        self, workflow: Workflow, node: WorkflowNode, index: ReverseConnectionIndex
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        count = index.count(node.name, ConnectionChannel.AI_LANGUAGE_MODEL)
        if count == 0:
            issues.append(
                _error(
                    node,
                    "MISSING_LANGUAGE_MODEL",
                    f'Basic LLM Chain "{node.name}" requires an ai_languageModel connection.',
                    IssueCategory.CARDINALITY,
                )
            )
        elif count > 1:
            issues.append(
                _error(
                    node,
                    "MULTIPLE_LANGUAGE_MODELS",
                    f'Basic LLM Chain "{node.name}" has {count} ai_languageModel connections. '
                    "Only 1 language model is supported (no fallback).",
                    IssueCategory.CARDINALITY,
                )
            )

        for channel, code, what in (
            (ConnectionChannel.AI_MEMORY, "MEMORY_NOT_SUPPORTED", "memory"),
            (ConnectionChannel.AI_TOOL, "TOOLS_NOT_SUPPORTED", "tools"),
        ):
            suppliers = index.incoming(node.name, channel)
            if suppliers:
                issues.append(
                    _error(
                        node,
                        code,
                        f'Basic LLM Chain "{node.name}" has {channel.value} connections. '
                        f"Basic LLM Chain does not support {what}; use an AI Agent instead.",
                        IssueCategory.DIRECTION,
                        details={"sources": [s.source_name for s in suppliers]},
                    )
                )

        issues.extend(self._validate_output_parser(node, index, label="Basic LLM Chain"))
        issues.extend(self._validate_prompt(node, index, label="Basic LLM Chain"))
        return issues

    # --- Chat Trigger --------------------------------------------------

    def _validate_chat_trigger(self, workflow: Workflow, node: WorkflowNode) -> list[ValidationIssue]:
        targets = [target for slot in workflow.connections.slots(node.name, _MAIN) for target in slot]
        if not targets:
            if len(workflow.nodes) == 1:
                return []
            return [
                _error(
                    node,
                    "CHAT_TRIGGER_NOT_CONNECTED",
                    f'Chat Trigger "{node.name}" has no outgoing connections. Connect it to an AI Agent.',
                    IssueCategory.STRUCTURAL,
                )
            ]

        issues: list[ValidationIssue] = []
        streaming = _streaming_response_mode(node)
        for target in targets:
            target_node = workflow.get_node_by_name(target.node)
            if target_node is None:
                # 悬空引用由结构校验报告
                continue
            target_type = normalize_node_type(target_node.type)
            if streaming and target_type != AGENT:
                issues.append(
                    _error(
                        node,
                        "STREAMING_WRONG_TARGET",
                        f'Chat Trigger "{node.name}" has responseMode="streaming" but connects to '
                        f'"{target_node.name}" ({target_node.type}). Streaming only works with an AI Agent.',
                        IssueCategory.CROSS_NODE_CONSTRAINT,
                    )
                )
            elif not streaming and target_type == AGENT:
                issues.append(
                    _info(
                        node,
                        "STREAMING_RECOMMENDED",
                        f'Chat Trigger "{node.name}" feeds an AI Agent; responseMode="streaming" '
                        "gives real-time responses.",
                    )
                )
        return issues

    # --- Vector Store Tool ---------------------------------------------

    def _validate_retrieval_tool(
        self, workflow: Workflow, node: WorkflowNode, index: ReverseConnectionIndex
    ) -> list[ValidationIssue]:
        stores = index.incoming(node.name, ConnectionChannel.AI_VECTOR_STORE)
        if not stores:
            return [
                _error(
                    node,
                    "MISSING_VECTOR_STORE",
                    f'Vector Store Tool "{node.name}" requires exactly 1 ai_vectorStore connection.',
                    IssueCategory.CARDINALITY,
                )
            ]
        if len(stores) > 1:
            return [
                _error(
                    node,
                    "MULTIPLE_VECTOR_STORES",
                    f'Vector Store Tool "{node.name}" has {len(stores)} ai_vectorStore connections. Only 1 is allowed.',
                    IssueCategory.CARDINALITY,
                )
            ]

        store = workflow.get_node_by_name(stores[0].source_name)
        if store is None:
            return []
        issues: list[ValidationIssue] = []
        embeddings = index.count(store.name, ConnectionChannel.AI_EMBEDDING)
        if embeddings != 1:
            code = "MISSING_EMBEDDING" if embeddings == 0 else "MULTIPLE_EMBEDDINGS"
            issues.append(
                _error(
                    store,
                    code,
                    f'Vector store "{store.name}" used by "{node.name}" must have exactly 1 ai_embedding '
                    f"connection (found {embeddings}).",
                    IssueCategory.CARDINALITY,
                )
            )
        if index.count(store.name, ConnectionChannel.AI_DOCUMENT) == 0:
            issues.append(
                _info(
                    store,
                    "DOCUMENT_LOADER_RECOMMENDED",
                    f'Vector store "{store.name}" has no ai_document loader. '
                    "This is fine when it reads an existing index.",
                )
            )
        return issues

    # --- 子节点与方向 ---------------------------------------------------

    def _validate_sub_node_connected(
        self, workflow: Workflow, node: WorkflowNode, index: ReverseConnectionIndex
    ) -> list[ValidationIssue]:
        channels = workflow.connections.channels(node.name)
        supplies = any(channel in _AUXILIARY_VALUES and any(slots) for channel, slots in channels.items())
        in_main_flow = workflow.connections.outgoing_count(node.name, _MAIN) > 0 or bool(
            index.incoming(node.name, ConnectionChannel.MAIN)
        )
        if supplies or in_main_flow:
            return []
        return [
            _error(
                node,
                "DISCONNECTED_AI_SUB_NODE",
                f'AI sub-node "{node.name}" is not connected to any consumer. '
                "Connect it to an AI Agent, chain or vector store through its ai_* output.",
                IssueCategory.STRUCTURAL,
            )
        ]

    def _validate_directions(self, workflow: Workflow) -> list[ValidationIssue]:
        """ai_* 连接的两端必须合法：供应方能提供该能力，消费方是 AI 节点"""
        issues: list[ValidationIssue] = []
        for source_name, channel, _slot, target in workflow.connections.iter_connections():
            if channel not in _AUXILIARY_VALUES:
                continue
            source = workflow.get_node_by_name(source_name)
            consumer = workflow.get_node_by_name(target.node)
            if source is None or consumer is None:
                continue
            source_type = normalize_node_type(source.type)

            if not is_langchain_node(normalize_node_type(consumer.type)):
                issues.append(
                    _error(
                        source,
                        "INVALID_AI_CONNECTION_TARGET",
                        f'"{source.name}" connects to "{consumer.name}" on {channel}, '
                        f"but {consumer.type} cannot consume AI capabilities.",
                        IssueCategory.DIRECTION,
                    )
                )
                continue

            if is_langchain_node(source_type):
                continue
            if channel != ConnectionChannel.AI_TOOL.value:
                issues.append(
                    _error(
                        source,
                        "INVALID_AI_CONNECTION_SOURCE",
                        f'"{source.name}" ({source.type}) cannot supply {channel}.',
                        IssueCategory.DIRECTION,
                    )
                )
            elif self.catalog is not None:
                info = self.catalog.lookup(source_type)
                if info.known and not info.is_ai_tool:
                    issues.append(
                        _error(
                            source,
                            "NOT_USABLE_AS_TOOL",
                            f'"{source.name}" ({source.type}) is not usable as an AI tool.',
                            IssueCategory.DIRECTION,
                        )
                    )
        return issues
