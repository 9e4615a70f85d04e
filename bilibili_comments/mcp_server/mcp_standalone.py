#!/usr/bin/env python
"""
Standalone MCP (Model Context Protocol) server for Bilibili comments.

Two transports are available: newline-delimited JSON-RPC over stdin/stdout
(what desktop MCP clients spawn), and a FastAPI JSON-RPC endpoint served by
uvicorn.
"""
import asyncio
import argparse
import json
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Set, TextIO

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from bilibili_comments import __version__
from bilibili_comments.config import load_config, set_config
from bilibili_comments.mcp_server.handlers import comment_tools
from bilibili_comments.mcp_server.logging_setup import setup_logging
from bilibili_comments.mcp_server.protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    REQUEST_TIMEOUT,
    SERVER_NAME,
    TOOLS,
    handle_payload,
    handle_raw,
    make_error,
)


# Initialize logging
logger = logging.getLogger(__name__)

# HTTP status used for a single error response
ERROR_STATUS: Dict[int, int] = {
    PARSE_ERROR: 400,
    INVALID_REQUEST: 400,
    INVALID_PARAMS: 400,
    METHOD_NOT_FOUND: 404,
    INTERNAL_ERROR: 500,
    REQUEST_TIMEOUT: 504,  # Gateway Timeout
}


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    await comment_tools.close_api()


# Create FastAPI app
app = FastAPI(title="Bilibili Comments MCP Server", version=__version__, lifespan=lifespan)


@app.get("/health")
async def health() -> Dict[str, Any]:
    """Report server status and the available tools."""
    return {
        "status": "online",
        "server": SERVER_NAME,
        "version": __version__,
        "tools": [tool["name"] for tool in TOOLS],
    }


@app.post("/mcp/jsonrpc")
async def handle_jsonrpc(request: Request) -> Response:
    """
    Handle MCP JSON-RPC requests.

    This is the main entry point for MCP clients using the HTTP transport.
    Accepts a single message or a batch array.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as json_err:
        logger.error(f"❌ Failed to parse JSON: {json_err}")
        return JSONResponse(status_code=400, content=make_error(None, PARSE_ERROR, "Parse error"))

    result = await handle_payload(body)
    if result is None:
        # Only notifications were received
        return Response(status_code=204)

    status_code = 200
    if isinstance(result, dict) and "error" in result:
        status_code = ERROR_STATUS.get(result["error"]["code"], 500)
    return JSONResponse(status_code=status_code, content=result)


async def run_stdio(stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
    """
    Serve MCP over newline-delimited JSON on stdin/stdout until EOF.

    Each request is handled in its own task so a slow tool call does not block
    pings or other requests; responses are written as they complete.

    Args:
        stdin: Stream to read requests from (defaults to sys.stdin)
        stdout: Stream to write responses to (defaults to sys.stdout)
    """
    reader = stdin or sys.stdin
    writer = stdout or sys.stdout
    loop = asyncio.get_running_loop()
    in_flight: Set["asyncio.Task[None]"] = set()

    async def respond(line: str) -> None:
        response = await handle_raw(line)
        if response is not None:
            writer.write(json.dumps(response, ensure_ascii=False) + "\n")
            writer.flush()

    logger.info("🚀 Bilibili comments tool listening on stdio")
    try:
        while True:
            line = await loop.run_in_executor(None, reader.readline)
            if not line:
                break
            if not line.strip():
                continue
            task = asyncio.create_task(respond(line))
            in_flight.add(task)
            task.add_done_callback(in_flight.discard)

        if in_flight:
            await asyncio.gather(*in_flight)
    finally:
        await comment_tools.close_api()
    logger.info("stdin closed, shutting down")


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Bilibili comments MCP server")

    parser.add_argument(
        "--config",
        type=str,
        help="Path to a JSON configuration file"
    )

    parser.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "http"],
        help="Transport to serve on"
    )

    parser.add_argument(
        "--host",
        type=str,
        help="Host address to bind to (http transport)"
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Port to bind to (http transport)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Run in debug mode"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level"
    )

    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    config = load_config(args.config)

    # Override config with command line arguments
    if args.transport:
        config.server.transport = args.transport

    if args.host:
        config.server.host = args.host

    if args.port:
        config.server.port = args.port

    if args.debug:
        config.server.debug = True
        config.server.log_level = "DEBUG"

    if args.log_level:
        config.server.log_level = args.log_level

    set_config(config)

    # Setup logging
    setup_logging(config.server.log_level, config.server.log_dir)

    cookie_configured = bool(config.bilibili.cookie or os.environ.get("BILIBILI_COOKIE"))
    logger.info(f"Starting Bilibili comments MCP server v{__version__} ({config.server.transport})")
    logger.info(f"🔍 BILIBILI_COOKIE configured: {'yes' if cookie_configured else 'no'}")

    if config.server.transport == "stdio":
        try:
            asyncio.run(run_stdio())
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        return

    logger.info(f"Server running at http://{config.server.host}:{config.server.port}")

    # Run the server with uvicorn
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower()
    )


if __name__ == "__main__":
    main()
