"""
Configuration handling for the MCP server.
"""
import os
import json
import logging
from typing import Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from bilibili_comments.config.settings import BilibiliConfig, MCPServerConfig, ServerConfig

logger = logging.getLogger(__name__)

__all__ = [
    "BilibiliConfig",
    "MCPServerConfig",
    "ServerConfig",
    "load_config",
    "get_config",
    "set_config",
]


def load_config(config_path: Optional[str] = None) -> MCPServerConfig:
    """
    Load the server configuration from various sources.
    
    Order of precedence:
    1. Explicit config file path
    2. Environment variable MCP_CONFIG_PATH
    3. Default config file locations
    4. Environment variables (also applied on top of any file)
    5. Default values
    
    Args:
        config_path: Optional path to config file
        
    Returns:
        MCPServerConfig object
    """
    # Pick up a local .env without overriding the real environment
    load_dotenv()

    if config_path:
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return _load_from_file(config_path)
    
    # Check for config path in environment
    env_config_path = os.environ.get("MCP_CONFIG_PATH")
    if env_config_path and os.path.exists(env_config_path):
        return _load_from_file(env_config_path)
    
    # Check default locations
    default_locations = [
        os.path.join(os.getcwd(), "mcp_config.json"),
        os.path.join(os.getcwd(), "config", "mcp_config.json"),
        os.path.expanduser("~/.config/bilibili_comments/mcp_config.json"),
    ]
    
    for location in default_locations:
        if os.path.exists(location):
            return _load_from_file(location)
    
    # Fall back to environment variables
    logger.info("No config file found, using environment variables and defaults")
    return MCPServerConfig.from_env()


def _load_from_file(filepath: str) -> MCPServerConfig:
    """Load configuration from a file."""
    try:
        logger.info(f"Loading config from {filepath}")
        return MCPServerConfig.from_file(filepath)
    except (json.JSONDecodeError, IOError, ValidationError) as e:
        logger.error(f"Error loading config from {filepath}: {e}")
        logger.warning("Falling back to environment variables and defaults")
        return MCPServerConfig.from_env()


# Singleton config instance
_config: Optional[MCPServerConfig] = None


def get_config() -> MCPServerConfig:
    """Get the singleton config instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[MCPServerConfig]) -> None:
    """Set the singleton config instance (None forces a reload on next access)."""
    global _config
    _config = config
