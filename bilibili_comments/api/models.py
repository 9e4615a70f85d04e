"""
Data models for Bilibili API payloads.

Only the fields used to render reports are declared; everything else the API
returns is ignored.
"""
import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _APIModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class LevelInfo(_APIModel):
    current_level: int = 0


class Member(_APIModel):
    """Author of a comment."""
    uname: str = ""
    level_info: Optional[LevelInfo] = None

    @property
    def level(self) -> int:
        return self.level_info.current_level if self.level_info else 0


class CommentContent(_APIModel):
    message: str = ""


class Comment(_APIModel):
    """A top-level comment or a nested reply."""
    rpid: int
    ctime: int = 0
    like: int = 0
    rcount: int = 0
    member: Member = Field(default_factory=Member)
    content: CommentContent = Field(default_factory=CommentContent)


class PageInfo(_APIModel):
    """Pagination block of a comment listing."""
    num: int = 1
    size: int = 20
    count: int = 0

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 1
        # An empty listing still has one (empty) page
        return max(1, math.ceil(self.count / self.size))


class CommentPage(_APIModel):
    """The ``data`` object of a comment listing response."""
    page: PageInfo = Field(default_factory=PageInfo)
    hots: List[Comment] = Field(default_factory=list)
    replies: List[Comment] = Field(default_factory=list)

    @field_validator("page", mode="before")
    @classmethod
    def _default_page(cls, value: Any) -> Any:
        return PageInfo() if value is None else value

    @field_validator("hots", "replies", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        # The API sends null instead of [] for empty lists
        return [] if value is None else value

    @property
    def all_comments(self) -> List[Comment]:
        """Pinned/hot comments first, then the regular listing."""
        return [*self.hots, *self.replies]


class VideoInfo(_APIModel):
    aid: int
    title: str = ""
