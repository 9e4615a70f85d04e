"""
Tests for the get_video_comments MCP tool.

The API client is replaced with AsyncMock objects; the pool and report code
run for real.
"""
import asyncio
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest

from bilibili_comments.api.client import REPLIES_FETCH_FAILED, BilibiliAPI
from bilibili_comments.api.errors import BilibiliAPIError, BilibiliRequestError, InvalidArgumentsError
from bilibili_comments.api.models import Comment, VideoInfo
from bilibili_comments.config import MCPServerConfig, set_config
from bilibili_comments.mcp_server.handlers import comment_tools
from bilibili_comments.mcp_server.handlers.comment_tools import (
    collect_replies,
    fetch_comment_report,
    get_video_comments,
    parse_arguments,
    validate_cookie,
)
from bilibili_comments.mcp_server.types import ToolResult
from conftest import TEST_COOKIE, make_comment, make_comment_envelope


def mock_api(envelope=None, replies=None) -> MagicMock:
    api = MagicMock(spec=BilibiliAPI)
    api.get_video_info = AsyncMock(return_value=VideoInfo(aid=170001, title="Demo"))
    api.fetch_comments = AsyncMock(return_value=envelope or make_comment_envelope([]))
    api.fetch_replies = AsyncMock(return_value=replies if replies is not None else [])
    return api


def comments(*rcounts: int) -> List[Comment]:
    return [Comment.model_validate(make_comment(i + 1, rcount=rcount)) for i, rcount in enumerate(rcounts)]


# --- argument validation ---------------------------------------------------

@pytest.mark.parametrize("cookie,expected", [
    (TEST_COOKIE, True),
    ("SESSDATA=abc", True),
    ("buvid3=abc", False),
    ("", False),
    (None, False),
    (12345, False),
])
def test_validate_cookie(cookie, expected):
    assert validate_cookie(cookie) is expected


def test_parse_arguments_defaults():
    args = parse_arguments({"bvid": "BV1xx411c7mD"})
    assert args.page == 1
    assert args.page_size == 20
    assert args.sort == 0
    assert args.include_replies is True
    assert args.video_id_for_ref == "BV1xx411c7mD"


@pytest.mark.parametrize("aid", ["170001", "av170001", "AV170001", 170001])
def test_parse_arguments_aid_forms(aid):
    args = parse_arguments({"aid": aid})
    assert args.aid == 170001
    assert args.video_id_for_ref == "av170001"


@pytest.mark.parametrize("arguments,fragment", [
    ({}, "Either bvid or aid must be provided"),
    ({"bvid": "  "}, "Either bvid or aid must be provided"),
    ({"bvid": "BV1", "pageSize": 0}, "pageSize"),
    ({"bvid": "BV1", "pageSize": 50}, "pageSize"),
    ({"bvid": "BV1", "sort": 2}, "sort"),
    ({"bvid": "BV1", "page": 0}, "page"),
    ({"aid": "abc"}, "aid"),
])
def test_parse_arguments_rejects(arguments, fragment):
    with pytest.raises(InvalidArgumentsError, match=fragment):
        parse_arguments(arguments)


# --- reply fan-out ---------------------------------------------------------

@pytest.mark.asyncio
async def test_collect_replies_only_for_comments_with_replies():
    reply = Comment.model_validate(make_comment(100, "r"))
    api = mock_api(replies=[reply])

    results = await collect_replies(api, comments(0, 2, 0, 1), 170001, TEST_COOKIE, "BV1", concurrency=5)

    assert results == [[], [reply], [], [reply]]
    assert [call.args for call in api.fetch_replies.await_args_list] == [
        (170001, 2, TEST_COOKIE, "BV1"),
        (170001, 4, TEST_COOKIE, "BV1"),
    ]


@pytest.mark.asyncio
async def test_collect_replies_disabled():
    api = mock_api()

    results = await collect_replies(api, comments(3, 3), 1, TEST_COOKIE, "av1", concurrency=5, include_replies=False)

    assert results == [[], []]
    api.fetch_replies.assert_not_called()


@pytest.mark.asyncio
async def test_collect_replies_respects_concurrency():
    running = 0
    peak = 0

    async def slow_replies(oid, rpid, cookie, video_id):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        return []

    api = mock_api()
    api.fetch_replies = AsyncMock(side_effect=slow_replies)

    await collect_replies(api, comments(*([1] * 12)), 1, TEST_COOKIE, "av1", concurrency=3)

    assert api.fetch_replies.await_count == 12
    assert peak == 3


@pytest.mark.asyncio
async def test_collect_replies_isolates_unexpected_failures():
    ok = Comment.model_validate(make_comment(100, "fine"))
    api = mock_api()
    api.fetch_replies = AsyncMock(side_effect=[[ok], RuntimeError("boom"), REPLIES_FETCH_FAILED])

    results = await collect_replies(api, comments(1, 1, 1), 1, TEST_COOKIE, "av1", concurrency=1)

    assert results == [[ok], REPLIES_FETCH_FAILED, REPLIES_FETCH_FAILED]


# --- full workflow ---------------------------------------------------------

@pytest.mark.asyncio
async def test_report_with_bvid_resolves_aid_first():
    envelope = make_comment_envelope([make_comment(1, "great video", rcount=1)])
    reply = Comment.model_validate(make_comment(2, "agreed"))
    api = mock_api(envelope, replies=[reply])

    report = await fetch_comment_report(
        {"bvid": "BV1xx411c7mD", "cookie": TEST_COOKIE, "pageSize": 10, "sort": 1}, api=api
    )

    api.get_video_info.assert_awaited_once_with("BV1xx411c7mD", TEST_COOKIE)
    api.fetch_comments.assert_awaited_once_with(170001, 1, 10, 1, TEST_COOKIE, "BV1xx411c7mD")
    api.fetch_replies.assert_awaited_once_with(170001, 1, TEST_COOKIE, "BV1xx411c7mD")
    assert "great video" in report
    assert "agreed" in report


@pytest.mark.asyncio
async def test_report_with_aid_skips_lookup():
    api = mock_api(make_comment_envelope([make_comment(1)]))

    await fetch_comment_report({"aid": "av42", "cookie": TEST_COOKIE, "includeReplies": False}, api=api)

    api.get_video_info.assert_not_called()
    api.fetch_comments.assert_awaited_once_with(42, 1, 20, 0, TEST_COOKIE, "av42")
    api.fetch_replies.assert_not_called()


@pytest.mark.asyncio
async def test_cookie_from_config_and_environment(monkeypatch):
    api = mock_api()

    config = MCPServerConfig.from_dict({"bilibili": {"cookie": "SESSDATA=from-config"}})
    set_config(config)
    await fetch_comment_report({"aid": 1}, api=api)
    assert api.fetch_comments.await_args.args[4] == "SESSDATA=from-config"

    set_config(MCPServerConfig())
    monkeypatch.setenv("BILIBILI_COOKIE", "SESSDATA=from-env")
    await fetch_comment_report({"aid": 1}, api=api)
    assert api.fetch_comments.await_args.args[4] == "SESSDATA=from-env"


@pytest.mark.asyncio
async def test_missing_cookie_is_checked_before_arguments():
    api = mock_api()

    with pytest.raises(InvalidArgumentsError, match="valid Bilibili cookie"):
        await fetch_comment_report({}, api=api)
    api.fetch_comments.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("code,message", [
    (-101, "Not logged in or cookie expired"),
    (-403, "Access denied"),
    (-404, "Video does not exist or was deleted"),
    (-500, "server busy"),
])
async def test_api_error_codes(code, message):
    api = mock_api({"code": code, "message": "server busy"})

    with pytest.raises(BilibiliAPIError) as exc_info:
        await fetch_comment_report({"aid": 1, "cookie": TEST_COOKIE}, api=api)

    assert exc_info.value.code == code
    assert str(exc_info.value) == f"Bilibili API error ({code}): {message}"


@pytest.mark.asyncio
async def test_tool_success_result():
    comment_tools.set_api(mock_api(make_comment_envelope([make_comment(1, "hello there")])))

    result = await get_video_comments(aid="1", cookie=TEST_COOKIE)

    assert isinstance(result, ToolResult)
    assert result.is_error is False
    assert "hello there" in result.text


@pytest.mark.asyncio
async def test_tool_reports_errors_as_text():
    api = mock_api()
    api.fetch_comments = AsyncMock(side_effect=BilibiliRequestError("Request timed out, please try again later"))
    comment_tools.set_api(api)

    result = await get_video_comments(aid="1", cookie=TEST_COOKIE)

    assert result.is_error is True
    assert result.text == "❌ Failed to fetch comments: Request timed out, please try again later"


@pytest.mark.asyncio
async def test_tool_reports_validation_errors_as_text():
    result = await get_video_comments(bvid="BV1", cookie=TEST_COOKIE, pageSize=100)

    assert result.is_error is True
    assert result.text.startswith("❌ Failed to fetch comments: pageSize")


@pytest.mark.asyncio
async def test_shared_client_uses_config():
    config = MCPServerConfig.from_dict({"bilibili": {"api_base": "http://localhost:1234"}})
    set_config(config)

    api = comment_tools.get_api()
    try:
        assert api is comment_tools.get_api()
        assert api.api_endpoints["reply"] == "http://localhost:1234/x/v2/reply"
    finally:
        await comment_tools.close_api()
    assert comment_tools._api is None
