"""
Utility classes shared across the bilibili_comments package.
"""

from typing import List

from bilibili_comments.utils.pool import BoundedTaskPool

__all__: List[str] = ["BoundedTaskPool"]
