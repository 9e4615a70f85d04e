"""
Model Context Protocol (MCP) Server for Bilibili comments.

This module implements the Model Context Protocol (MCP) specification defined at:
https://modelcontextprotocol.io/

It exposes a single tool, ``get_video_comments``, that LLMs and other agents
can call to read the comments of a Bilibili video as a Markdown report.
"""

from bilibili_comments.mcp_server.mcp_standalone import app as mcp_app, main, run_stdio

__all__ = ["mcp_app", "main", "run_stdio"]
