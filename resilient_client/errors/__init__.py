"""
Error handling module for the resilient API client.

This module provides structured terminal errors with:
- ErrorCode enum for standardized error codes
- ErrorCategory enum separating fatal errors from session expiry
- ApiClientException hierarchy raised to callers
"""

from resilient_client.errors.codes import ErrorCategory, ErrorCode, get_error_category
from resilient_client.errors.exceptions import (
    ApiClientException,
    RequestFailedError,
    SessionExpiredError,
    client_error,
    request_error,
    session_expired,
    unauthorized,
)

__all__ = [
    "ErrorCategory",
    "ErrorCode",
    "get_error_category",
    "ApiClientException",
    "RequestFailedError",
    "SessionExpiredError",
    "client_error",
    "request_error",
    "session_expired",
    "unauthorized",
]
