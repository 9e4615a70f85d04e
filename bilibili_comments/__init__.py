"""
bilibili-comments: an MCP tool server for reading Bilibili video comments.

This package fetches the comments of a Bilibili video, optionally pulls the
nested replies of each comment through a bounded task pool, and renders the
result as a Markdown report for LLM clients speaking the Model Context Protocol.
"""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("bilibili-comments")
except PackageNotFoundError:
    # Package is not installed
    __version__ = "unknown"
