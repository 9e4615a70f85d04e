"""
Tool implementations exposed by the MCP server.
"""

from bilibili_comments.mcp_server.handlers import comment_tools

__all__ = ["comment_tools"]
