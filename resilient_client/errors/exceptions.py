"""
Exception classes for the resilient API client.

This module provides the ApiClientException hierarchy and convenience
factory functions for building terminal errors with the proper error
code, HTTP status and diagnostic context.
"""

from typing import Any, Optional

import httpx

from resilient_client.errors.codes import ErrorCategory, ErrorCode, get_error_category


class ApiClientException(Exception):
    """
    Base exception class for all terminal client errors.

    This exception provides structured error information including:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message
    - status_code: The HTTP status of the last response, if one was received
    - details: Optional additional context (method, url, attempts)
    - response: The last httpx.Response, if one was received

    Example:
        try:
            response = await client.get("/api/teams")
        except SessionExpiredError:
            show_login(reason="session_expired")
        except ApiClientException as exc:
            show_error(exc.to_dict())
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        response: Optional[httpx.Response] = None
    ):
        """
        Initialize an ApiClientException.

        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            status_code: The HTTP status code (defaults to the response's status)
            details: Optional dictionary with additional error context
            response: The last response received from the backend, if any
        """
        self.error_code = error_code
        self.message = message
        self.response = response
        if status_code is None and response is not None:
            status_code = response.status_code
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    @property
    def category(self) -> ErrorCategory:
        return get_error_category(self.error_code)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for JSON serialization.

        Returns:
            Dictionary containing error_code, category, message, status_code
            and details
        """
        result = {
            "error_code": self.error_code.value,
            "category": self.category.value,
            "message": self.message,
        }
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.details is not None:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"details={self.details!r})"
        )


class RequestFailedError(ApiClientException):
    """A request that cannot succeed: 4xx, repeated 401, or a local request error."""


class SessionExpiredError(ApiClientException):
    """
    Raised to every request waiting on a credential refresh that failed.

    By the time this is raised the credential store has already been
    cleared, so later requests go out unauthenticated.
    """

    def __init__(
        self,
        message: str = "Session expired, please sign in again",
        details: Optional[dict[str, Any]] = None,
        response: Optional[httpx.Response] = None
    ):
        super().__init__(
            error_code=ErrorCode.SESSION_EXPIRED,
            message=message,
            details=details,
            response=response
        )


# Convenience factory functions for common error types

def client_error(
    response: httpx.Response,
    details: Optional[dict[str, Any]] = None
) -> RequestFailedError:
    """Create an exception for a 4xx response other than a refreshable 401."""
    request = response.request
    return RequestFailedError(
        error_code=ErrorCode.CLIENT_ERROR,
        message=f"{request.method} {request.url} failed with status {response.status_code}",
        details=details,
        response=response
    )


def unauthorized(
    response: httpx.Response,
    details: Optional[dict[str, Any]] = None
) -> RequestFailedError:
    """Create an exception for a 401 received after a credential refresh."""
    request = response.request
    return RequestFailedError(
        error_code=ErrorCode.UNAUTHORIZED,
        message=f"{request.method} {request.url} is unauthorized after credential refresh",
        details=details,
        response=response
    )


def request_error(
    message: str,
    details: Optional[dict[str, Any]] = None
) -> RequestFailedError:
    """Create an exception for a request that failed before a response arrived."""
    return RequestFailedError(
        error_code=ErrorCode.REQUEST_ERROR,
        message=message,
        details=details
    )


def session_expired(
    message: str = "Session expired, please sign in again",
    details: Optional[dict[str, Any]] = None,
    response: Optional[httpx.Response] = None
) -> SessionExpiredError:
    """Create a session expired exception."""
    return SessionExpiredError(message=message, details=details, response=response)
