"""
Client and data models for the Bilibili web API.
"""

from bilibili_comments.api.client import BilibiliAPI, REPLIES_FETCH_FAILED, FetchStatus, RepliesResult
from bilibili_comments.api.errors import (
    BilibiliAPIError,
    BilibiliError,
    BilibiliRequestError,
    InvalidArgumentsError,
)
from bilibili_comments.api.models import Comment, CommentPage, PageInfo, VideoInfo

__all__ = [
    "BilibiliAPI",
    "REPLIES_FETCH_FAILED",
    "FetchStatus",
    "RepliesResult",
    "BilibiliError",
    "BilibiliAPIError",
    "BilibiliRequestError",
    "InvalidArgumentsError",
    "Comment",
    "CommentPage",
    "PageInfo",
    "VideoInfo",
]
