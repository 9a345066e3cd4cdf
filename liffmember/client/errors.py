"""Error taxonomy for the chat client and its user-facing descriptions.

Network and service errors flow through the retry executor; validation errors
stop at the input boundary; storage errors are recovered by the conversation
store and only ever surface as warnings.
"""

from typing import Literal, Optional

import httpx
from pydantic import BaseModel

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class ChatError(Exception):
    """Base class for every error raised by the chat client."""


class NetworkError(ChatError):
    """Connectivity or transport failure (including detected offline state)."""


class RequestTimeoutError(ChatError):
    """An attempt exceeded its timeout."""


class ServiceError(ChatError):
    """Non-2xx response from the chat endpoint."""

    def __init__(
        self,
        message: str,
        status_code: int,
        code: str = "",
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.retry_after = retry_after

    @classmethod
    def from_status(
        cls,
        status_code: int,
        message: str = "",
        code: str = "",
        retry_after: Optional[float] = None,
    ) -> "ServiceError":
        message = message or f"HTTP {status_code}"
        if status_code == 400:
            return BadRequestError(message, status_code, code)
        if status_code in (401, 403):
            return AuthError(message, status_code, code)
        if status_code == 429:
            return RateLimitError(message, status_code, code, retry_after)
        if status_code >= 500:
            return ServiceUnavailableError(message, status_code, code, retry_after)
        return cls(message, status_code, code, retry_after)


class BadRequestError(ServiceError):
    pass


class AuthError(ServiceError):
    pass


class RateLimitError(ServiceError):
    pass


class ServiceUnavailableError(ServiceError):
    pass


class ValidationError(ChatError):
    """Bad user input. Terminal, never retried."""


class StorageError(ChatError):
    """A persistence backend refused a read or write."""


class StorageQuotaError(StorageError):
    """The backend is out of space; pruning may help."""


class StorageAccessError(StorageError):
    """The backend denies access altogether (sandboxed / private mode)."""


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, (NetworkError, RequestTimeoutError, httpx.TransportError)):
        return True
    if isinstance(error, ServiceError):
        return error.status_code in RETRYABLE_STATUS_CODES
    return False


# ---------------------------------------------------------------------------
# User-facing descriptions
# ---------------------------------------------------------------------------

class UserFacingError(BaseModel):
    title: str
    message: str
    actionable: bool = True
    retryable: bool
    suggestions: list[str] = []


class ErrorState(BaseModel):
    type: Literal["network", "service", "validation", "storage"]
    message: str
    retryable: bool
    retry_count: int = 0


def describe_error(error: BaseException, online: bool = True) -> UserFacingError:
    """Turn an exception into a title/description/suggestions block for the UI."""
    if isinstance(error, NetworkError) or not online:
        return UserFacingError(
            title="Connection Problem",
            message="Unable to connect to the internet. Please check your connection and try again.",
            retryable=True,
            suggestions=[
                "Check your internet connection",
                "Try again in a moment",
                "Switch to a different network if available",
            ],
        )

    if isinstance(error, ServiceError):
        if isinstance(error, AuthError):
            return UserFacingError(
                title="Authentication Error",
                message="There was a problem with authentication. Please reopen the app.",
                retryable=False,
                suggestions=["Reopen the app", "Sign in to LINE again if the problem persists"],
            )
        if isinstance(error, RateLimitError):
            return UserFacingError(
                title="Too Many Requests",
                message="You're sending messages too quickly. Please wait a moment before trying again.",
                retryable=True,
                suggestions=["Wait a few seconds before sending another message"],
            )
        if isinstance(error, ServiceUnavailableError):
            return UserFacingError(
                title="Service Temporarily Unavailable",
                message="The AI service is temporarily unavailable. We'll retry automatically.",
                retryable=True,
                suggestions=[
                    "The system will retry automatically",
                    "Try again in a few minutes if the problem persists",
                ],
            )
        return UserFacingError(
            title="Service Error",
            message="There was a problem with the AI service. Please try again.",
            retryable=True,
            suggestions=["Try sending your message again", "Check your internet connection"],
        )

    if isinstance(error, ValidationError):
        return UserFacingError(
            title="Invalid Input",
            message=str(error),
            retryable=False,
            suggestions=["Please check your message and try again"],
        )

    if isinstance(error, StorageError):
        return UserFacingError(
            title="Storage Problem",
            message="Unable to save your conversation. Your messages may not be preserved.",
            retryable=False,
            suggestions=[
                "Your conversation will continue but may not be saved",
                "Free up some disk space if this persists",
            ],
        )

    if isinstance(error, RequestTimeoutError):
        return UserFacingError(
            title="Request Timeout",
            message="The request took too long to complete. Please try again.",
            retryable=True,
            suggestions=["Try again with a shorter message", "Check your internet connection"],
        )

    return UserFacingError(
        title="Unexpected Error",
        message="Something unexpected happened. Please try again.",
        retryable=True,
        suggestions=[
            "Try again in a moment",
            "Restart the app if the problem persists",
            "Check your internet connection",
        ],
    )


def classify_error(
    error: BaseException, retry_count: int = 0, online: bool = True
) -> ErrorState:
    if isinstance(error, NetworkError) or not online:
        kind = "network"
    elif isinstance(error, ValidationError):
        kind = "validation"
    elif isinstance(error, StorageError):
        kind = "storage"
    else:
        kind = "service"
    return ErrorState(
        type=kind,
        message=str(error),
        retryable=is_retryable(error),
        retry_count=retry_count,
    )
