"""
Relay error taxonomy.

Every failure surfaced to the client carries one machine-readable code and
a human-readable message.
"""
import asyncio
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Codes carried by ``error`` frames."""

    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    EMPTY_RESPONSE = "empty_response"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.TIMEOUT: "Response took too long. Please try again.",
    ErrorCode.CONNECTION_ERROR: "The coach is offline. Make sure the model server is running.",
    ErrorCode.EMPTY_RESPONSE: "Got an empty response. Please try again.",
    ErrorCode.SERVER_ERROR: "Server error",
    ErrorCode.NETWORK_ERROR: "Network error. Is the server running?",
    ErrorCode.UNKNOWN: "Something went wrong.",
}


class RelayError(Exception):
    """Base exception for relay failures."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class UpstreamTimeoutError(RelayError):
    """Upstream exceeded its wall-clock budget."""

    code = ErrorCode.TIMEOUT


class UpstreamConnectionError(RelayError):
    """Upstream refused or dropped the connection."""

    code = ErrorCode.CONNECTION_ERROR


class EmptyResponseError(RelayError):
    """Upstream produced no tokens."""

    code = ErrorCode.EMPTY_RESPONSE


class UpstreamStatusError(RelayError):
    """Upstream answered with a non-success status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Upstream returned {status_code}")


def classify_error(error: BaseException) -> tuple[ErrorCode, str]:
    """
    Map an exception onto the error taxonomy.

    Returns (code, human message). Anything that is not a RelayError is
    reported as ``unknown``.
    """
    if isinstance(error, RelayError):
        code = error.code
    elif isinstance(error, asyncio.TimeoutError):
        code = ErrorCode.TIMEOUT
    else:
        code = ErrorCode.UNKNOWN
    return code, ERROR_MESSAGES[code]
