"""Bearer-token verification against the auth provider's signing secret."""

from dataclasses import dataclass, field
from typing import Any

import jwt

from waffle_intel.commons.telemetry import get_logger
from waffle_intel.domain.exceptions import (
    AuthenticationRequiredError,
    InvalidTokenError,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity extracted from a verified token."""

    user_id: str
    email: str | None = None
    role: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)


class TokenVerifier:
    """Verifies JWT signatures and standard claims.

    Only verification happens here; issuing tokens is the auth provider's job.
    """

    def __init__(
        self,
        secret: str,
        algorithms: list[str] | None = None,
        audience: str | None = None,
        leeway_seconds: int = 0,
    ) -> None:
        """Initialize the verifier.

        Args:
            secret: Shared signing secret.
            algorithms: Accepted signing algorithms.
            audience: Required ``aud`` claim, or None to skip the check.
            leeway_seconds: Clock skew tolerated on ``exp``/``nbf``.
        """
        self._secret = secret
        self._algorithms = algorithms or ["HS256"]
        self._audience = audience
        self._leeway = leeway_seconds

    @staticmethod
    def extract_bearer(authorization: str | None) -> str:
        """Pull the token out of an ``Authorization`` header value.

        Raises:
            AuthenticationRequiredError: If the header is absent or not Bearer.
        """
        if not authorization:
            raise AuthenticationRequiredError()
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthenticationRequiredError("Authorization header must be Bearer")
        return token.strip()

    def verify(self, token: str) -> AuthenticatedUser:
        """Validate ``token`` and return the caller's identity.

        Raises:
            InvalidTokenError: On bad signature, expiry, audience or a missing
                subject claim.
        """
        if not self._secret:
            logger.error("Token verification attempted without a configured secret")
            raise InvalidTokenError("Token verification is not configured")

        options = {"require": ["exp", "sub"], "verify_aud": self._audience is not None}
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=self._algorithms,
                audience=self._audience,
                leeway=self._leeway,
                options=options,
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            logger.debug("Rejected bearer token", extra={"reason": str(e)})
            raise InvalidTokenError() from e

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError("Token has no subject")

        return AuthenticatedUser(
            user_id=subject,
            email=claims.get("email"),
            role=claims.get("role"),
            claims=claims,
        )

    def authenticate(self, authorization: str | None) -> AuthenticatedUser:
        """Extract and verify the bearer token from a header value."""
        return self.verify(self.extract_bearer(authorization))
