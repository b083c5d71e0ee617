"""Request authentication helpers."""

from waffle_intel.commons.security.token_verifier import (
    AuthenticatedUser,
    TokenVerifier,
)

__all__ = ["AuthenticatedUser", "TokenVerifier"]
