"""
MCP tools for reading Bilibili comments.

This module implements the ``get_video_comments`` tool: it validates the
arguments, resolves the video, fetches a page of comments, fans out the
nested-reply requests through a bounded task pool and renders the report.
"""
import asyncio
import functools
import logging
import os
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from bilibili_comments.api.client import REPLIES_FETCH_FAILED, BilibiliAPI, RepliesResult
from bilibili_comments.api.errors import BilibiliAPIError, BilibiliError, InvalidArgumentsError
from bilibili_comments.api.models import Comment, CommentPage
from bilibili_comments.config import get_config
from bilibili_comments.mcp_server.types import ToolResult
from bilibili_comments.report import render_report
from bilibili_comments.utils.pool import BoundedTaskPool

logger = logging.getLogger(__name__)

# Friendlier wording for well-known API error codes
API_ERROR_MESSAGES: Dict[int, str] = {
    -101: "Not logged in or cookie expired",
    -403: "Access denied",
    -404: "Video does not exist or was deleted",
}

TOOL_DEFINITION: Dict[str, Any] = {
    "name": "get_video_comments",
    "description": (
        "Fetch the comments of a Bilibili video, with paging, sorting and nested "
        "replies. Requires a valid Bilibili cookie."
    ),
    "inputSchema": {
        "type": "object",
        "properties": {
            "bvid": {"type": "string", "description": "Video BV id (either bvid or aid is required)"},
            "aid": {"type": "string", "description": "Video AV number (either bvid or aid is required)"},
            "page": {"type": "number", "default": 1, "description": "Page number, defaults to 1"},
            "pageSize": {"type": "number", "default": 20, "description": "Comments per page, 1-49, defaults to 20"},
            "sort": {"type": "number", "default": 0, "description": "Sort order: 0 by time, 1 by popularity"},
            "includeReplies": {"type": "boolean", "default": True, "description": "Include nested replies"},
            "cookie": {
                "type": "string",
                "description": "Bilibili cookie (optional when BILIBILI_COOKIE is set in the environment)"
            },
        },
    },
}


class GetVideoCommentsArgs(BaseModel):
    """Validated arguments of the get_video_comments tool."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    bvid: Optional[str] = None
    aid: Optional[int] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=49, alias="pageSize")
    sort: Literal[0, 1] = 0
    include_replies: bool = Field(default=True, alias="includeReplies")

    @field_validator("bvid", mode="before")
    @classmethod
    def _blank_bvid(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator("aid", mode="before")
    @classmethod
    def _strip_av_prefix(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
            if value.lower().startswith("av"):
                value = value[2:]
        return value

    @model_validator(mode="after")
    def _require_video_id(self) -> "GetVideoCommentsArgs":
        if not self.bvid and self.aid is None:
            raise ValueError("Either bvid or aid must be provided")
        return self

    @property
    def video_id_for_ref(self) -> str:
        """Id used in the Referer header: the BV id, else ``av<aid>``."""
        return self.bvid or f"av{self.aid}"


# Client shared across tool calls; created on first use
_api: Optional[BilibiliAPI] = None


def get_api() -> BilibiliAPI:
    """Get the shared API client."""
    global _api
    if _api is None:
        _api = BilibiliAPI(get_config().bilibili)
    return _api


def set_api(api: Optional[BilibiliAPI]) -> None:
    """Replace the shared API client."""
    global _api
    _api = api


async def close_api() -> None:
    """Close and forget the shared API client."""
    global _api
    if _api is not None:
        await _api.close()
        _api = None


def validate_cookie(cookie: Optional[str]) -> bool:
    """A usable cookie is a string carrying the SESSDATA login token."""
    return isinstance(cookie, str) and "SESSDATA" in cookie


def parse_arguments(arguments: Dict[str, Any]) -> GetVideoCommentsArgs:
    """
    Validate raw tool arguments.

    Raises:
        InvalidArgumentsError: With a readable summary of every problem found
    """
    try:
        return GetVideoCommentsArgs.model_validate(arguments)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            message = error["msg"].removeprefix("Value error, ")
            problems.append(f"{location}: {message}" if location else message)
        raise InvalidArgumentsError("; ".join(problems)) from e


async def collect_replies(
    api: BilibiliAPI,
    comments: Sequence[Comment],
    oid: int,
    cookie: str,
    video_id: str,
    concurrency: int,
    include_replies: bool = True,
) -> List[RepliesResult]:
    """
    Fetch nested replies for every comment that has any.

    Requests go through a fresh BoundedTaskPool so at most ``concurrency`` of
    them are in flight. The result lists replies in the same order as
    ``comments``; comments without replies get an empty list.
    """
    results: List[RepliesResult] = [[] for _ in comments]
    if not include_replies:
        return results

    pool = BoundedTaskPool(concurrency)
    scheduled: Dict[int, "asyncio.Future[RepliesResult]"] = {}
    for index, comment in enumerate(comments):
        if comment.rcount > 0:
            scheduled[index] = pool.schedule(
                functools.partial(api.fetch_replies, oid, comment.rpid, cookie, video_id)
            )

    if not scheduled:
        return results

    logger.debug(f"Fetching replies for {len(scheduled)} comments (concurrency={concurrency})")
    outcomes = await asyncio.gather(*scheduled.values(), return_exceptions=True)
    for index, outcome in zip(scheduled.keys(), outcomes):
        if isinstance(outcome, BaseException):
            logger.warning(f"Reply fetch for rpid {comments[index].rpid} failed: {outcome!r}")
            results[index] = REPLIES_FETCH_FAILED
        else:
            results[index] = outcome
    return results


async def fetch_comment_report(arguments: Dict[str, Any], api: Optional[BilibiliAPI] = None) -> str:
    """
    Run the whole comment workflow and return the Markdown report.

    Args:
        arguments: Raw tool arguments as sent by the MCP client
        api: Client to use; the shared client by default

    Returns:
        The rendered report

    Raises:
        InvalidArgumentsError: If the cookie or arguments are invalid
        BilibiliAPIError: If the API reports an error
        BilibiliRequestError: If a request fails
    """
    config = get_config().bilibili
    api = api or get_api()

    cookie = arguments.get("cookie") or config.cookie or os.environ.get("BILIBILI_COOKIE")
    if not validate_cookie(cookie):
        raise InvalidArgumentsError(
            "A valid Bilibili cookie is required. Pass it as an argument or set "
            "the BILIBILI_COOKIE environment variable."
        )

    args = parse_arguments(arguments)
    video_id = args.video_id_for_ref

    oid = args.aid
    if oid is None:
        # Only a BV id was given, resolve it to the numeric aid first
        video_info = await api.get_video_info(args.bvid, cookie)
        oid = video_info.aid
        logger.debug(f"Resolved {args.bvid} to aid {oid} ({video_info.title})")

    payload = await api.fetch_comments(oid, args.page, args.page_size, args.sort, cookie, video_id)
    code = payload.get("code")
    if code != 0:
        code = code if isinstance(code, int) else -1
        raise BilibiliAPIError(code, API_ERROR_MESSAGES.get(code, payload.get("message")))

    try:
        page = CommentPage.model_validate(payload.get("data") or {})
    except ValidationError as e:
        raise BilibiliAPIError(-1, f"Unexpected comment payload ({e.error_count()} errors)") from e

    replies = await collect_replies(
        api,
        page.all_comments,
        oid,
        cookie,
        video_id,
        concurrency=config.reply_concurrency,
        include_replies=args.include_replies,
    )
    return render_report(page, replies)


async def get_video_comments(**arguments: Any) -> ToolResult:
    """
    MCP tool: fetch the comments of a Bilibili video as a Markdown report.

    Failures are reported to the caller as text rather than raised, so the
    LLM sees what went wrong.
    """
    logger.info(
        f"get_video_comments called: bvid={arguments.get('bvid')}, aid={arguments.get('aid')}, "
        f"page={arguments.get('page', 1)}"
    )
    try:
        report = await fetch_comment_report(arguments)
    except BilibiliError as e:
        logger.warning(f"get_video_comments failed: {e}")
        return ToolResult(text=f"❌ Failed to fetch comments: {e}", is_error=True)
    return ToolResult(text=report)
