"""
Configure pytest environment.

This file is automatically loaded by pytest and used to set up the test environment.
"""
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add the project root directory to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from bilibili_comments.config import MCPServerConfig, set_config
from bilibili_comments.mcp_server.handlers import comment_tools

TEST_COOKIE = "buvid3=abc; SESSDATA=test-session; bili_jct=xyz"


class AsyncMockResponse:
    """Mock aiohttp response for testing."""

    def __init__(self, status: int = 200, json_data: Any = None, error: Optional[Exception] = None):
        self.status = status
        self._json_data = json_data if json_data is not None else {}
        self._error = error

    def raise_for_status(self) -> None:
        if self._error is not None:
            raise self._error

    async def json(self, content_type: Optional[str] = None) -> Any:
        """Return mock JSON data."""
        return self._json_data

    async def __aenter__(self) -> "AsyncMockResponse":
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


class AsyncMockSession:
    """Mock aiohttp session that replays queued responses and records calls."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def get(self, url: str, params: Optional[Dict[str, Any]] = None,
            headers: Optional[Dict[str, str]] = None, **kwargs: Any) -> AsyncMockResponse:
        """Mock get request; queued exceptions are raised instead of answered."""
        self.calls.append({"url": url, "params": params, "headers": headers, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected request to {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


def make_comment(rpid: int, message: str = "hello", rcount: int = 0, uname: str = "user",
                 like: int = 0, ctime: int = 1700000000, level: int = 5) -> Dict[str, Any]:
    """Build a comment object shaped like the API's."""
    return {
        "rpid": rpid,
        "ctime": ctime,
        "like": like,
        "rcount": rcount,
        "member": {"uname": uname, "level_info": {"current_level": level}},
        "content": {"message": message},
    }


def make_comment_envelope(replies: List[Dict[str, Any]], hots: Optional[List[Dict[str, Any]]] = None,
                          num: int = 1, size: int = 20, count: Optional[int] = None) -> Dict[str, Any]:
    """Build a successful comment listing response."""
    return {
        "code": 0,
        "message": "0",
        "data": {
            "page": {"num": num, "size": size, "count": len(replies) if count is None else count},
            "hots": hots,
            "replies": replies,
        },
    }


@pytest.fixture
def cookie() -> str:
    return TEST_COOKIE


@pytest.fixture(autouse=True)
def default_config(monkeypatch):
    """Give every test a fresh default config and no shared API client."""
    monkeypatch.delenv("BILIBILI_COOKIE", raising=False)
    monkeypatch.delenv("MCP_CONFIG_PATH", raising=False)
    config = MCPServerConfig()
    set_config(config)
    comment_tools.set_api(None)
    yield config
    set_config(None)
    comment_tools.set_api(None)
