"""KnownNodeType 枚举 - 校验与变更逻辑需要特别识别的节点类型

所有值都是规范化形式（nodes-base.* / nodes-langchain.*），
比较前先调用 normalize_node_type()。
"""

from enum import Enum


class KnownNodeType(str, Enum):
    """需要特殊处理的节点类型

    - IF / SWITCH: 多输出节点，槽位下标代表分支 / case
    - AGENT / CHAIN_LLM: AI 编排节点
    - CHAT_TRIGGER: 对话触发器（支持 streaming 响应）
    - TOOL_VECTOR_STORE: 检索工具（需要一个向量库）
    """

    # 流程控制
    IF = "nodes-base.if"
    SWITCH = "nodes-base.switch"
    SPLIT_IN_BATCHES = "nodes-base.splitInBatches"
    MERGE = "nodes-base.merge"

    # 触发器
    WEBHOOK = "nodes-base.webhook"
    MANUAL_TRIGGER = "nodes-base.manualTrigger"
    SCHEDULE_TRIGGER = "nodes-base.scheduleTrigger"
    FORM_TRIGGER = "nodes-base.formTrigger"
    CRON = "nodes-base.cron"
    CHAT_TRIGGER = "nodes-langchain.chatTrigger"

    # 集成
    HTTP_REQUEST = "nodes-base.httpRequest"
    CODE = "nodes-base.code"
    SLACK = "nodes-base.slack"
    GOOGLE_SHEETS = "nodes-base.googleSheets"
    POSTGRES = "nodes-base.postgres"
    MYSQL = "nodes-base.mySql"
    MICROSOFT_SQL = "nodes-base.microsoftSql"

    # AI 编排
    AGENT = "nodes-langchain.agent"
    CHAIN_LLM = "nodes-langchain.chainLlm"

    # AI 工具子节点
    TOOL_HTTP_REQUEST = "nodes-langchain.toolHttpRequest"
    TOOL_CODE = "nodes-langchain.toolCode"
    TOOL_VECTOR_STORE = "nodes-langchain.toolVectorStore"
    TOOL_WORKFLOW = "nodes-langchain.toolWorkflow"
    AGENT_TOOL = "nodes-langchain.agentTool"
    MCP_CLIENT_TOOL = "nodes-langchain.mcpClientTool"
    TOOL_CALCULATOR = "nodes-langchain.toolCalculator"
    TOOL_THINK = "nodes-langchain.toolThink"
    TOOL_SERP_API = "nodes-langchain.toolSerpApi"
    TOOL_WIKIPEDIA = "nodes-langchain.toolWikipedia"
    TOOL_SEARXNG = "nodes-langchain.toolSearXng"
    TOOL_WOLFRAM_ALPHA = "nodes-langchain.toolWolframAlpha"


AI_TOOL_TYPES = frozenset(
    {
        KnownNodeType.TOOL_HTTP_REQUEST,
        KnownNodeType.TOOL_CODE,
        KnownNodeType.TOOL_VECTOR_STORE,
        KnownNodeType.TOOL_WORKFLOW,
        KnownNodeType.AGENT_TOOL,
        KnownNodeType.MCP_CLIENT_TOOL,
        KnownNodeType.TOOL_CALCULATOR,
        KnownNodeType.TOOL_THINK,
        KnownNodeType.TOOL_SERP_API,
        KnownNodeType.TOOL_WIKIPEDIA,
        KnownNodeType.TOOL_SEARXNG,
        KnownNodeType.TOOL_WOLFRAM_ALPHA,
    }
)

# 合法的循环回边起点（SplitInBatches 的 loop 输出会连回上游）
LOOP_NODE_TYPES = frozenset({KnownNodeType.SPLIT_IN_BATCHES})
