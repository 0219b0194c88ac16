from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    URL_FORMAT = "URL_FORMAT"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    CONTENT_ERROR = "CONTENT_ERROR"
    CONTENT_BLOCKED = "CONTENT_BLOCKED"
    CONVERSION_ERROR = "CONVERSION_ERROR"
    TIMEOUT = "TIMEOUT"
    SEARCH_FAILED = "SEARCH_FAILED"
    UNEXPECTED = "UNEXPECTED"


class WebSiftError(Exception):
    """Raised by orchestrators and tool handlers for all expected failure conditions.

    Caught by server.py and serialised into the MCP error response, or by the
    batch reader and rendered per URL. ``recoverable`` tells the agent whether
    retrying the same URL later may succeed; ``UNEXPECTED`` marks a pipeline
    bug rather than a problem with the URL itself.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable
        self.status_code = status_code
        self.body = body

    def to_dict(self) -> dict:
        error: dict = {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "recoverable": self.recoverable,
        }
        if self.status_code is not None:
            error["status_code"] = self.status_code
        if self.body:
            error["body"] = self.body
        return {"error": error}
