"""
Exceptions raised while talking to the Bilibili web API.
"""
from typing import Optional


class BilibiliError(Exception):
    """Base class for all errors raised by this package."""


class BilibiliRequestError(BilibiliError):
    """The HTTP request itself failed (network error, timeout, bad payload)."""


class BilibiliAPIError(BilibiliError):
    """The API answered with a non-zero ``code`` in its JSON envelope."""

    def __init__(self, code: int, message: Optional[str] = None) -> None:
        self.code = code
        self.api_message = message or "unknown error"
        super().__init__(f"Bilibili API error ({code}): {self.api_message}")


class InvalidArgumentsError(BilibiliError, ValueError):
    """Tool arguments or credentials failed validation."""
