"""Tests for the client error taxonomy."""
import httpx
import pytest

from liffmember.client.errors import (
    AuthError,
    BadRequestError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ServiceError,
    ServiceUnavailableError,
    StorageQuotaError,
    ValidationError,
    classify_error,
    describe_error,
    is_retryable,
)


class TestFromStatus:
    """Tests for ServiceError.from_status."""

    @pytest.mark.parametrize(
        "status,cls",
        [
            (400, BadRequestError),
            (401, AuthError),
            (403, AuthError),
            (429, RateLimitError),
            (500, ServiceUnavailableError),
            (503, ServiceUnavailableError),
            (404, ServiceError),
        ],
    )
    def test_subclass_per_status(self, status, cls):
        """Test that each status maps to its error class."""
        error = ServiceError.from_status(status)
        assert type(error) is cls
        assert error.status_code == status

    def test_retry_after_kept(self):
        """Test that rate limit errors carry the server's Retry-After."""
        error = ServiceError.from_status(429, "slow", "RATE_LIMITED", retry_after=12)
        assert error.retry_after == 12
        assert error.code == "RATE_LIMITED"


class TestIsRetryable:
    """Tests for is_retryable."""

    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        """Test the transient status codes."""
        assert is_retryable(ServiceError.from_status(status))

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 501])
    def test_terminal_statuses(self, status):
        """Test that client errors are not retried."""
        assert not is_retryable(ServiceError.from_status(status))

    def test_transport_errors(self):
        """Test that network failures and timeouts are retryable."""
        assert is_retryable(NetworkError("down"))
        assert is_retryable(RequestTimeoutError("slow"))
        assert is_retryable(httpx.ConnectError("refused"))

    def test_other_errors(self):
        """Test that validation and unknown errors are terminal."""
        assert not is_retryable(ValidationError("bad"))
        assert not is_retryable(ValueError("x"))


class TestDescribeError:
    """Tests for the user-facing descriptions."""

    @pytest.mark.parametrize(
        "error,title,retryable",
        [
            (NetworkError("down"), "Connection Problem", True),
            (AuthError("no", 401), "Authentication Error", False),
            (RateLimitError("slow", 429), "Too Many Requests", True),
            (ServiceUnavailableError("503", 503), "Service Temporarily Unavailable", True),
            (ServiceError("418", 418), "Service Error", True),
            (ValidationError("Please enter a message"), "Invalid Input", False),
            (StorageQuotaError("full"), "Storage Problem", False),
            (RequestTimeoutError("slow"), "Request Timeout", True),
            (RuntimeError("boom"), "Unexpected Error", True),
        ],
    )
    def test_titles(self, error, title, retryable):
        """Test the title and retry hint for each error kind."""
        described = describe_error(error)
        assert described.title == title
        assert described.retryable is retryable
        assert described.suggestions

    def test_offline_overrides(self):
        """Test that being offline always reads as a connection problem."""
        assert describe_error(RuntimeError("x"), online=False).title == "Connection Problem"

    def test_validation_message_passed_through(self):
        """Test that the validation reason is shown verbatim."""
        assert describe_error(ValidationError("Too long")).message == "Too long"


class TestClassifyError:
    """Tests for classify_error."""

    def test_kinds(self):
        """Test the coarse error categories."""
        assert classify_error(NetworkError("x")).type == "network"
        assert classify_error(ValidationError("x")).type == "validation"
        assert classify_error(StorageQuotaError("x")).type == "storage"
        assert classify_error(ServiceError.from_status(502)).type == "service"
        assert classify_error(ServiceError.from_status(502), online=False).type == "network"

    def test_retry_count_and_flag(self):
        """Test that the state records retry count and retryability."""
        state = classify_error(ServiceError.from_status(503), retry_count=2)
        assert state.retry_count == 2
        assert state.retryable is True
