"""Domain exceptions for the waffle media-intelligence service."""


class DomainException(Exception):
    """Base exception for domain errors."""


class AuthenticationRequiredError(DomainException):
    """Raised when a request carries no bearer credential."""

    def __init__(self, reason: str = "Missing bearer token") -> None:
        self.reason = reason
        super().__init__(reason)


class InvalidTokenError(DomainException):
    """Raised when a bearer credential fails signature or claim checks."""

    def __init__(self, reason: str = "Invalid token") -> None:
        self.reason = reason
        super().__init__(reason)


class ForbiddenError(DomainException):
    """Raised when an authenticated caller may not perform an action."""


class NotGroupMemberError(ForbiddenError):
    """Raised when a caller is not a member of the group they address."""

    def __init__(self, user_id: str, group_id: str) -> None:
        self.user_id = user_id
        self.group_id = group_id
        super().__init__(f"User {user_id} is not a member of group {group_id}")


class InvalidRequestError(DomainException):
    """Raised when request input fails validation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidSearchQueryError(InvalidRequestError):
    """Raised when a search query is too short or otherwise unusable."""

    def __init__(self, query: str, reason: str) -> None:
        self.query = query
        self.reason = reason
        super().__init__(f"Invalid search query: {reason}", field="query")


class SearchTaskNotFoundError(DomainException):
    """Raised when no AI answer task exists for a search id."""

    def __init__(self, search_id: str) -> None:
        self.search_id = search_id
        super().__init__(f"Search not found: {search_id}")


class ThrottledError(DomainException):
    """Raised when a caller repeats a throttled request too soon."""

    def __init__(self, retry_after_seconds: float) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Too many requests, retry in {int(retry_after_seconds)} seconds"
        )


class GenerationError(DomainException):
    """Raised when a completion needed for a response could not be produced."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")
