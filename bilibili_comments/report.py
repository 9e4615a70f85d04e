"""
Markdown rendering of comment pages.

The report is meant to be read by an LLM, so it favours a flat, predictable
layout: a header with pagination info, one block per comment with its nested
replies, and a footer telling the reader how to get the next page.
"""
from datetime import datetime
from typing import List, Sequence

from bilibili_comments.api.client import REPLIES_FETCH_FAILED, RepliesResult
from bilibili_comments.api.models import Comment, CommentPage

COMMENT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
REPLY_TIME_FORMAT = "%m-%d %H:%M"


def format_timestamp(ctime: int, fmt: str = COMMENT_TIME_FORMAT) -> str:
    """Render a Unix timestamp in local time."""
    return datetime.fromtimestamp(ctime).strftime(fmt)


def format_comment_content(comment: Comment) -> str:
    """Author line plus the message as a blockquote."""
    time_str = format_timestamp(comment.ctime)
    quoted = comment.content.message.replace("\n", "\n> ")

    md = f"**👤 {comment.member.uname}** (Lv.{comment.member.level}) | 👍 {comment.like} | 🕐 {time_str}\n"
    md += f"> {quoted}\n"
    return md


def format_comment(comment: Comment, replies: RepliesResult) -> str:
    """
    Format a comment block together with its nested replies.

    Args:
        comment: The top-level comment
        replies: Its fetched replies, or REPLIES_FETCH_FAILED

    Returns:
        Markdown for the block, ending with a horizontal rule
    """
    md = format_comment_content(comment)

    if replies is REPLIES_FETCH_FAILED:
        md += "  ↳ ⚠️ *Failed to load replies for this comment, please retry later.*\n"
    elif replies:
        md += f"\n**📝 Replies** ({comment.rcount} total, showing first {len(replies)}):\n"
        for reply in replies:
            reply_time = format_timestamp(reply.ctime, REPLY_TIME_FORMAT)
            md += f"  ↳ **{reply.member.uname}**: {reply.content.message} *(👍{reply.like} | {reply_time})*\n"
        if comment.rcount > len(replies):
            md += f"  ↳ *...{comment.rcount - len(replies)} more replies*\n"

    md += "\n---\n\n"
    return md


def render_report(page: CommentPage, replies: Sequence[RepliesResult]) -> str:
    """
    Build the full Markdown report for one page of comments.

    Args:
        page: Parsed comment listing
        replies: One entry per comment in ``page.all_comments`` order

    Returns:
        The complete report
    """
    current_page = page.page.num or 1
    total_pages = page.page.total_pages

    md = "## 📺 Bilibili Comment Report\n\n"
    md += f"📄 **Showing**: page {current_page} / {total_pages}\n"
    md += f"📊 **Total comments**: {page.page.count}\n\n"

    comments: List[Comment] = page.all_comments
    if not comments:
        md += "😴 **No comments on this page.**\n\n"
        md += "✅ Done. If the video has more comments, try requesting another page."
        return md

    md += "### 💬 Comments\n"
    for index, comment in enumerate(comments):
        comment_replies = replies[index] if index < len(replies) else []
        md += format_comment(comment, comment_replies)

    md += "---\n\n"
    md += f"✅ **Loaded comments for page {current_page}.**\n"
    if current_page < total_pages:
        md += f"💡 To read the next page (page {current_page + 1}), pass `page: {current_page + 1}` in the next request."
    else:
        md += "🏁 Reached the last page."

    return md
