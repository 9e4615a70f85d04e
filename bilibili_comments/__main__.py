"""Allow ``python -m bilibili_comments`` to start the MCP server."""
from bilibili_comments.mcp_server.mcp_standalone import main

if __name__ == "__main__":
    main()
