"""
Configuration settings for the Bilibili comments MCP server.
"""
import copy
import json
import os
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Environment variable -> (section, field)
ENV_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "MCP_TRANSPORT": ("server", "transport"),
    "MCP_HOST": ("server", "host"),
    "MCP_PORT": ("server", "port"),
    "MCP_LOG_LEVEL": ("server", "log_level"),
    "MCP_LOG_DIR": ("server", "log_dir"),
    "MCP_TIMEOUT_SECONDS": ("server", "timeout_seconds"),
    "BILIBILI_COOKIE": ("bilibili", "cookie"),
    "BILIBILI_API_BASE": ("bilibili", "api_base"),
    "BILIBILI_REPLY_CONCURRENCY": ("bilibili", "reply_concurrency"),
}


class ServerConfig(BaseModel):
    """Server configuration for the MCP server."""
    transport: Literal["stdio", "http"] = Field(
        default="stdio",
        description="Transport used to talk to the MCP client"
    )
    host: str = Field(
        default="127.0.0.1",
        description="Host IP to bind the HTTP transport to"
    )
    port: int = Field(
        default=8000,
        description="Port to bind the HTTP transport to"
    )
    debug: bool = Field(
        default=False,
        description="Run server in debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_dir: Optional[str] = Field(
        default=None,
        description="Directory for rotating log files; file logging is off when unset"
    )
    timeout_seconds: int = Field(
        default=120,
        description="Request timeout in seconds for tool calls"
    )

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


class BilibiliConfig(BaseModel):
    """Settings for talking to the Bilibili web API."""
    cookie: Optional[str] = Field(
        default=None,
        description="Default Bilibili cookie; must contain SESSDATA"
    )
    api_base: str = Field(
        default="https://api.bilibili.com",
        description="Base URL of the Bilibili API"
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent header sent with every request"
    )
    request_timeout: float = Field(
        default=15.0,
        gt=0,
        description="Total timeout in seconds for ordinary requests"
    )
    reply_timeout: float = Field(
        default=8.0,
        gt=0,
        description="Timeout in seconds for a single nested-replies request"
    )
    replies_per_comment: int = Field(
        default=10,
        ge=1,
        description="Number of nested replies fetched per comment"
    )
    reply_concurrency: int = Field(
        default=5,
        ge=1,
        description="Maximum number of nested-reply requests in flight"
    )
    max_page_size: int = Field(
        default=49,
        ge=1,
        description="Largest page size the comment API accepts"
    )


class MCPServerConfig(BaseModel):
    """Main configuration for the MCP server."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    bilibili: BilibiliConfig = Field(default_factory=BilibiliConfig)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "MCPServerConfig":
        """Create a config object from a dictionary."""
        return cls.model_validate(config_dict)

    @classmethod
    def from_env(
        cls,
        base: Optional[Dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "MCPServerConfig":
        """
        Load configuration from environment variables.

        Args:
            base: Optional configuration dictionary the variables are applied on top of
            environ: Mapping to read instead of os.environ

        Returns:
            MCPServerConfig object
        """
        env = os.environ if environ is None else environ
        config_dict = copy.deepcopy(base) if base else {}
        for variable, (section, key) in ENV_OVERRIDES.items():
            value = env.get(variable)
            if value:
                config_dict.setdefault(section, {})[key] = value
        return cls.from_dict(config_dict)

    @classmethod
    def from_file(cls, filepath: str) -> "MCPServerConfig":
        """Load configuration from a JSON file, with environment overrides applied."""
        with open(filepath, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
        return cls.from_env(base=config_dict)
