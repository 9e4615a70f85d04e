"""
Shared types for MCP tool handlers.
"""
from dataclasses import dataclass


@dataclass
class ToolResult:
    """Text produced by a tool, flagged when it describes a failure."""
    text: str
    is_error: bool = False
