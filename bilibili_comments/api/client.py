"""
Async client for the Bilibili web API.

This module wraps the handful of public endpoints needed to read the comments
of a video: video metadata (to turn a BV id into an aid), the top-level comment
listing, and the nested replies under a single comment.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import aiohttp
from pydantic import ValidationError

from bilibili_comments.api.errors import BilibiliAPIError, BilibiliRequestError
from bilibili_comments.api.models import Comment, VideoInfo
from bilibili_comments.config.settings import BilibiliConfig

logger = logging.getLogger(__name__)


class FetchStatus(str, Enum):
    """Markers returned in place of data when a best-effort fetch fails."""
    FAILED = "fetch_failed"


REPLIES_FETCH_FAILED = FetchStatus.FAILED

# Either the replies of a comment or the failure marker
RepliesResult = Union[List[Comment], FetchStatus]


def _describe(error: Exception) -> str:
    """Readable text for an exception whose message may be empty."""
    return str(error) or type(error).__name__


class BilibiliAPI:
    """Wraps all network interaction with the Bilibili API."""

    def __init__(
        self,
        config: Optional[BilibiliConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the client.

        Args:
            config: API settings; defaults are used when omitted
            session: Optional externally managed aiohttp session. The client
                never closes a session it did not create.
        """
        self.config = config or BilibiliConfig()
        self._session = session
        self._owns_session = session is None

        base = self.config.api_base.rstrip("/")
        self.api_endpoints = {
            "view": f"{base}/x/web-interface/view",
            "reply": f"{base}/x/v2/reply",
            "reply_reply": f"{base}/x/v2/reply/reply",
        }
        self.default_headers = {
            "User-Agent": self.config.user_agent,
            "Accept": "application/json, text/plain, */*",
            "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
            "Origin": "https://www.bilibili.com",
        }

    async def __aenter__(self) -> "BilibiliAPI":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
                headers=self.default_headers,
            )
            self._owns_session = True
        return self._session

    @staticmethod
    def _request_headers(cookie: str, video_id: str) -> Dict[str, str]:
        return {
            "Cookie": cookie,
            "Referer": f"https://www.bilibili.com/video/{video_id}",
        }

    async def _get_json(
        self,
        url: str,
        params: Dict[str, Any],
        headers: Dict[str, str],
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Perform a GET request and decode the JSON envelope.

        Raises:
            asyncio.TimeoutError: If the request times out
            aiohttp.ClientError: On connection or HTTP status errors
            ValueError: If the body is not a JSON object
        """
        session = self._get_session()
        kwargs: Dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)

        logger.debug(f"GET {url} params={params}")
        async with session.get(url, params=params, headers=headers, **kwargs) as response:
            response.raise_for_status()
            payload = await response.json(content_type=None)

        if not isinstance(payload, dict):
            raise ValueError(f"Expected a JSON object from {url}, got {type(payload).__name__}")
        return payload

    async def get_video_info(self, bvid: str, cookie: str) -> VideoInfo:
        """
        Look up the basic information of a video (mainly its aid and title).

        Args:
            bvid: The BV id of the video
            cookie: The user's Bilibili cookie

        Returns:
            VideoInfo with aid and title

        Raises:
            BilibiliAPIError: If the API reports an error code
            BilibiliRequestError: If the request fails
        """
        try:
            payload = await self._get_json(
                self.api_endpoints["view"],
                params={"bvid": bvid},
                headers=self._request_headers(cookie, bvid),
            )
        except asyncio.TimeoutError as e:
            raise BilibiliRequestError("Failed to fetch video info: request timed out") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise BilibiliRequestError(f"Failed to fetch video info: {_describe(e)}") from e

        code = payload.get("code")
        if code != 0:
            raise BilibiliAPIError(code if isinstance(code, int) else -1, payload.get("message"))

        try:
            return VideoInfo.model_validate(payload.get("data") or {})
        except ValidationError as e:
            raise BilibiliRequestError(f"Failed to fetch video info: unexpected payload ({e.error_count()} errors)") from e

    async def fetch_comments(
        self,
        oid: int,
        page: int,
        page_size: int,
        sort: int,
        cookie: str,
        video_id: str,
    ) -> Dict[str, Any]:
        """
        Fetch one page of top-level comments.

        The response envelope is returned as-is; checking its ``code`` is left
        to the caller so it can translate known codes into friendly messages.

        Args:
            oid: The aid of the video
            page: Page number (1-based)
            page_size: Comments per page, capped at the API maximum
            sort: 0 for newest first, 1 for most liked
            cookie: The user's Bilibili cookie
            video_id: BV id or ``av<aid>`` used for the Referer header

        Returns:
            The decoded JSON envelope

        Raises:
            BilibiliRequestError: If the request fails or times out
        """
        params = {
            "type": 1,
            "oid": oid,
            "pn": page,
            "ps": min(page_size, self.config.max_page_size),
            "sort": sort,
        }
        try:
            return await self._get_json(
                self.api_endpoints["reply"],
                params=params,
                headers=self._request_headers(cookie, video_id),
            )
        except asyncio.TimeoutError as e:
            raise BilibiliRequestError("Request timed out, please try again later") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise BilibiliRequestError(f"Failed to fetch comments: {_describe(e)}") from e

    async def fetch_replies(
        self,
        oid: int,
        parent_rpid: int,
        cookie: str,
        video_id: str,
    ) -> RepliesResult:
        """
        Fetch the first nested replies under a top-level comment.

        This call is best effort and never raises: any failure is logged and
        reported through the ``REPLIES_FETCH_FAILED`` marker so the report can
        still be rendered.

        Args:
            oid: The aid of the video
            parent_rpid: The rpid of the parent comment
            cookie: The user's Bilibili cookie
            video_id: BV id or ``av<aid>`` used for the Referer header

        Returns:
            List of replies, or REPLIES_FETCH_FAILED
        """
        params = {
            "type": 1,
            "oid": oid,
            "root": parent_rpid,
            "ps": self.config.replies_per_comment,
        }
        try:
            payload = await self._get_json(
                self.api_endpoints["reply_reply"],
                params=params,
                headers=self._request_headers(cookie, video_id),
                timeout=self.config.reply_timeout,
            )
            data = payload.get("data") or {}
            if payload.get("code") == 0 and data.get("replies"):
                return [Comment.model_validate(reply) for reply in data["replies"]]
            # Request succeeded but there is nothing to show
            return []
        except Exception as e:
            logger.warning(f"Failed to fetch replies (rpid: {parent_rpid}): {e!r}")
            return REPLIES_FETCH_FAILED
