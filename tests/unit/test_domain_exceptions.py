"""Unit tests for domain exceptions."""

from waffle_intel.domain.exceptions import (
    AuthenticationRequiredError,
    DomainException,
    ForbiddenError,
    GenerationError,
    InvalidRequestError,
    InvalidSearchQueryError,
    InvalidTokenError,
    NotGroupMemberError,
    SearchTaskNotFoundError,
    ThrottledError,
)


class TestDomainException:
    """Tests for base DomainException."""

    def test_message(self):
        assert str(DomainException("Custom message")) == "Custom message"


class TestAuthErrors:
    def test_authentication_required_default_reason(self):
        exc = AuthenticationRequiredError()
        assert exc.reason == "Missing bearer token"
        assert isinstance(exc, DomainException)

    def test_invalid_token_reason(self):
        assert InvalidTokenError("Token has expired").reason == "Token has expired"


class TestNotGroupMemberError:
    def test_attributes(self):
        exc = NotGroupMemberError("user-1", "group-1")
        assert exc.user_id == "user-1"
        assert exc.group_id == "group-1"
        assert isinstance(exc, ForbiddenError)


class TestInvalidSearchQueryError:
    def test_is_invalid_request_on_query_field(self):
        exc = InvalidSearchQueryError("a", "too short")
        assert isinstance(exc, InvalidRequestError)
        assert exc.field == "query"
        assert exc.query == "a"
        assert "too short" in str(exc)


class TestOtherErrors:
    def test_search_task_not_found(self):
        exc = SearchTaskNotFoundError("search-1")
        assert exc.search_id == "search-1"
        assert "search-1" in str(exc)

    def test_throttled(self):
        exc = ThrottledError(30)
        assert exc.retry_after_seconds == 30
        assert "30" in str(exc)

    def test_generation_error(self):
        exc = GenerationError("catch_up_summary", "empty completion")
        assert exc.operation == "catch_up_summary"
        assert str(exc) == "catch_up_summary failed: empty completion"
