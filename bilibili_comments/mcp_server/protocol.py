"""
JSON-RPC message handling for the Model Context Protocol.

This module is transport independent: the stdio loop and the HTTP endpoint both
hand decoded messages to ``handle_payload`` and send back whatever it returns.
"""
import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from bilibili_comments import __version__
from bilibili_comments.config import get_config
from bilibili_comments.mcp_server.handlers import comment_tools
from bilibili_comments.mcp_server.types import ToolResult

logger = logging.getLogger(__name__)

SERVER_NAME = "bilibili-comments-tool"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
REQUEST_TIMEOUT = -32001

# Tool definitions
TOOLS: List[Dict[str, Any]] = [comment_tools.TOOL_DEFINITION]

# Define tool function type
ToolFunc = Callable[..., Awaitable[Any]]

# Tool implementations mapping
TOOL_IMPLEMENTATIONS: Dict[str, ToolFunc] = {
    "get_video_comments": comment_tools.get_video_comments,
}

Message = Dict[str, Any]


class JSONRPCError(Exception):
    """An error that maps directly onto a JSON-RPC error object."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def make_response(request_id: Any, result: Any) -> Message:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def make_error(request_id: Any, code: int, message: str) -> Message:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def format_tool_result(result: Any) -> Dict[str, Any]:
    """
    Format a tool result into the MCP ``tools/call`` result shape.

    Args:
        result: The tool result

    Returns:
        A dict with the content items and the isError flag
    """
    if isinstance(result, ToolResult):
        return {"content": [{"type": "text", "text": result.text}], "isError": result.is_error}

    # Handle None values safely
    if result is None:
        text = ""
    elif isinstance(result, (dict, list)):
        try:
            text = json.dumps(result, indent=2, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as e:
            logger.warning(f"Error serializing result to JSON: {e}")
            text = f"Result (not JSON serializable): {result}"
    elif isinstance(result, (str, int, float, bool)):
        text = str(result)
    else:
        text = f"Result ({type(result).__name__}): {result}"

    return {"content": [{"type": "text", "text": text}], "isError": False}


async def _call_tool(params: Dict[str, Any]) -> Dict[str, Any]:
    """Run a tool with the configured timeout."""
    tool_name = params.get("name")
    args = params.get("arguments") or {}

    if not tool_name:
        raise JSONRPCError(INVALID_PARAMS, "Tool name not provided")
    if not isinstance(args, dict):
        raise JSONRPCError(INVALID_PARAMS, "Tool arguments must be an object")

    tool_func = TOOL_IMPLEMENTATIONS.get(tool_name)
    if tool_func is None:
        raise JSONRPCError(METHOD_NOT_FOUND, f"Tool not found: {tool_name}")

    timeout_seconds = get_config().server.timeout_seconds
    start_time = time.time()
    logger.debug(f"⏱️ Starting tool '{tool_name}' (timeout {timeout_seconds}s)")

    async def log_progress() -> None:
        while True:
            await asyncio.sleep(5.0)
            logger.debug(f"⏳ Tool '{tool_name}' still running after {time.time() - start_time:.2f}s")

    progress_task = asyncio.create_task(log_progress())
    try:
        result = await asyncio.wait_for(tool_func(**args), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.error(f"⏱️ Tool '{tool_name}' timed out after {time.time() - start_time:.2f}s")
        raise JSONRPCError(REQUEST_TIMEOUT, f"Request timed out after {timeout_seconds} seconds")
    finally:
        progress_task.cancel()

    logger.debug(f"✅ Tool '{tool_name}' completed in {time.time() - start_time:.2f}s")
    return format_tool_result(result)


async def _dispatch(method: str, params: Dict[str, Any]) -> Any:
    if method == "initialize":
        return {
            "protocolVersion": params.get("protocolVersion") or DEFAULT_PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }
    if method == "ping":
        return {}
    if method == "tools/list":
        return {"tools": TOOLS}
    if method == "tools/call":
        return await _call_tool(params)
    raise JSONRPCError(METHOD_NOT_FOUND, f"Method not found: {method}")


async def handle_message(message: Any) -> Optional[Message]:
    """
    Handle one decoded JSON-RPC message.

    Args:
        message: The decoded message

    Returns:
        The response, or None for notifications and client responses
    """
    if not isinstance(message, dict):
        return make_error(None, INVALID_REQUEST, "Request must be a JSON object")

    request_id = message.get("id")
    method = message.get("method")

    if method is None and ("result" in message or "error" in message):
        # A response to a server-initiated request; nothing to answer
        return None
    if message.get("jsonrpc") != "2.0" or not isinstance(method, str):
        return make_error(request_id, INVALID_REQUEST, "Invalid Request")

    if "id" not in message:
        logger.info(f"Received notification: {method}")
        return None

    params = message.get("params") or {}
    if not isinstance(params, dict):
        return make_error(request_id, INVALID_PARAMS, "params must be an object")

    logger.debug(f"🔍 Processing request: method={method}, id={request_id}")
    try:
        result = await _dispatch(method, params)
    except JSONRPCError as e:
        return make_error(request_id, e.code, e.message)
    except Exception as e:
        logger.exception(f"❌ Error handling {method}: {e}")
        return make_error(request_id, INTERNAL_ERROR, f"Internal error: {e}")
    return make_response(request_id, result)


async def handle_payload(payload: Any) -> Union[Message, List[Message], None]:
    """
    Handle a decoded payload, which may be a single message or a batch.

    Returns:
        A response, a list of responses, or None when nothing is to be sent
    """
    if isinstance(payload, list):
        if not payload:
            return make_error(None, INVALID_REQUEST, "Empty batch")
        responses = await asyncio.gather(*(handle_message(item) for item in payload))
        batch = [response for response in responses if response is not None]
        return batch or None
    return await handle_message(payload)


async def handle_raw(raw: Union[str, bytes]) -> Union[Message, List[Message], None]:
    """Decode a raw JSON text and handle it."""
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"❌ Failed to parse JSON: {e}")
        return make_error(None, PARSE_ERROR, "Parse error")
    return await handle_payload(payload)
