"""
Unit tests for the error catalog and exception factories.
"""

import httpx

from resilient_client.errors.codes import (
    ERROR_CODE_CATEGORY_MAP,
    ErrorCategory,
    ErrorCode,
    get_error_category,
)
from resilient_client.errors.exceptions import (
    ApiClientException,
    RequestFailedError,
    SessionExpiredError,
    client_error,
    request_error,
    session_expired,
    unauthorized,
)


def _response(status: int) -> httpx.Response:
    return httpx.Response(
        status,
        json={"status": status},
        request=httpx.Request("DELETE", "https://api.test/teams/3"),
    )


class TestErrorCodes:
    def test_every_code_has_a_category(self):
        assert set(ERROR_CODE_CATEGORY_MAP) == set(ErrorCode)

    def test_only_session_expired_is_refresh_failure(self):
        refresh_failed = [
            code for code in ErrorCode
            if get_error_category(code) is ErrorCategory.REFRESH_FAILED
        ]
        assert refresh_failed == [ErrorCode.SESSION_EXPIRED]


class TestFactories:
    def test_client_error(self):
        exc = client_error(_response(404), details={"attempts": 1})

        assert isinstance(exc, RequestFailedError)
        assert exc.error_code is ErrorCode.CLIENT_ERROR
        assert exc.status_code == 404
        assert exc.message == "DELETE https://api.test/teams/3 failed with status 404"
        assert exc.category is ErrorCategory.FATAL

    def test_unauthorized(self):
        exc = unauthorized(_response(401))

        assert exc.error_code is ErrorCode.UNAUTHORIZED
        assert exc.status_code == 401
        assert exc.response.status_code == 401

    def test_request_error_has_no_response(self):
        exc = request_error("Exceeded maximum allowed redirects.")

        assert exc.error_code is ErrorCode.REQUEST_ERROR
        assert exc.status_code is None
        assert exc.response is None

    def test_session_expired(self):
        exc = session_expired(details={"reason": "session_expired"}, response=_response(500))

        assert isinstance(exc, SessionExpiredError)
        assert isinstance(exc, ApiClientException)
        assert exc.category is ErrorCategory.REFRESH_FAILED
        assert exc.status_code == 500
        assert str(exc) == "Session expired, please sign in again"


class TestToDict:
    def test_includes_optional_fields_when_set(self):
        exc = client_error(_response(409), details={"attempts": 1})

        assert exc.to_dict() == {
            "error_code": "CLIENT_ERROR",
            "category": "fatal",
            "message": "DELETE https://api.test/teams/3 failed with status 409",
            "status_code": 409,
            "details": {"attempts": 1},
        }

    def test_omits_missing_fields(self):
        data = request_error("boom").to_dict()

        assert "status_code" not in data
        assert "details" not in data

    def test_repr_names_subclass(self):
        assert repr(session_expired()).startswith("SessionExpiredError(error_code='SESSION_EXPIRED'")
