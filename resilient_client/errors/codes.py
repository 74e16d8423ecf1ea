"""
Error code catalog for the resilient API client.

Every terminal error surfaced to a caller carries one of these codes.
Intermediate outcomes (retryable failures, expired access tokens) are
absorbed by the resilience layer and never reach the caller, so they
have no code here.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all terminal error codes raised by the client.

    Codes fall into two categories:
    - Fatal request errors: the request itself cannot succeed
    - Session errors: the credential could not be refreshed and the
      user must authenticate again
    """

    # Fatal request errors
    CLIENT_ERROR = "CLIENT_ERROR"
    """Backend rejected the request with a 4xx status"""

    UNAUTHORIZED = "UNAUTHORIZED"
    """Still unauthorized after one credential refresh (HTTP 401)"""

    REQUEST_ERROR = "REQUEST_ERROR"
    """Request failed locally without a transient cause (redirect loop, bad payload)"""

    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    """Transient failures persisted past the retry budget"""

    # Session errors
    SESSION_EXPIRED = "SESSION_EXPIRED"
    """Credential refresh failed; stored credentials were cleared"""


class ErrorCategory(str, Enum):
    """Terminal error categories visible to callers."""
    FATAL = "fatal"
    REFRESH_FAILED = "refresh_failed"


# Mapping of error codes to the category a caller should react to
ERROR_CODE_CATEGORY_MAP: dict[ErrorCode, ErrorCategory] = {
    ErrorCode.CLIENT_ERROR: ErrorCategory.FATAL,
    ErrorCode.UNAUTHORIZED: ErrorCategory.FATAL,
    ErrorCode.REQUEST_ERROR: ErrorCategory.FATAL,
    ErrorCode.RETRIES_EXHAUSTED: ErrorCategory.FATAL,
    ErrorCode.SESSION_EXPIRED: ErrorCategory.REFRESH_FAILED,
}


def get_error_category(error_code: ErrorCode) -> ErrorCategory:
    """
    Get the category for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        The category of the error code, FATAL for unknown codes
    """
    return ERROR_CODE_CATEGORY_MAP.get(error_code, ErrorCategory.FATAL)
