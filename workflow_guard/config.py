"""应用配置模块 - 使用 Pydantic Settings 管理环境变量"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置类

    所有字段都可以通过 WORKFLOW_GUARD_ 前缀的环境变量或 .env 覆盖，
    例如 WORKFLOW_GUARD_LOG_LEVEL=DEBUG。
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="WORKFLOW_GUARD_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Workflow Guard", description="应用名称")
    app_version: str = Field(default="0.1.0", description="应用版本")
    env: Literal["development", "production", "test"] = Field(
        default="development", description="运行环境"
    )
    debug: bool = Field(default=False, description="调试模式")

    # Server
    host: str = Field(default="0.0.0.0", description="服务器地址")
    port: int = Field(default=8000, description="服务器端口")
    reload: bool = Field(default=False, description="热重载")

    # Logging
    log_level: str = Field(default="INFO", description="日志级别")
    log_format: Literal["json", "text"] = Field(default="json", description="日志格式")

    # Node catalog
    node_definitions_dir: str | None = Field(
        default=None,
        description="节点类型定义目录（为空时使用包内置的 YAML 定义）",
    )

    # Diff engine
    default_diff_mode: Literal["atomic", "continue_on_error", "validate_only"] = Field(
        default="atomic", description="默认的 diff 应用模式"
    )
    max_operations_per_request: int = Field(
        default=100, ge=1, description="单次请求允许的最大操作数"
    )

    # AI validation
    agent_fallback_min_type_version: float = Field(
        default=2.1, description="AI Agent 启用 needsFallback 所需的最低 typeVersion"
    )
    system_message_min_length: int = Field(
        default=20, description="systemMessage 推荐的最小长度"
    )
    agent_max_iterations_warning: int = Field(
        default=50, description="maxIterations 超过该值时给出警告"
    )


# 全局配置实例
settings = Settings()
