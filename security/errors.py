"""
Error taxonomy for the credential/session subsystem.

Every failure the core can report is one of these classes. Each one knows
how it presents over HTTP (status, error label, public message) so the
Flask error handler never has to inspect exception messages.
"""
from __future__ import annotations

# Machine codes a client can act on
NO_TOKEN = "NO_TOKEN"
TOKEN_EXPIRED = "TOKEN_EXPIRED"
MALFORMED = "MALFORMED"
INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"

SESSION_EXPIRED_MESSAGE = "Session expired"


class AuthError(Exception):
    status = 401
    error = "UNAUTHORIZED"
    message = "Unauthorized"
    # codes listed here are echoed back in the response details
    public_codes: frozenset = frozenset()

    def __init__(self, code: str | None = None, message: str | None = None):
        self.code = code
        if message is not None:
            self.message = message
        super().__init__(code or self.message)

    @property
    def public_code(self) -> str | None:
        return self.code if self.code in self.public_codes else None


class InvalidCredentials(AuthError):
    message = "Invalid credentials"


class Unauthorized(AuthError):
    message = "Authentication required"
    public_codes = frozenset({NO_TOKEN, TOKEN_EXPIRED})


class Forbidden(AuthError):
    status = 403
    error = "FORBIDDEN"
    message = "Forbidden"
    public_codes = frozenset({MALFORMED, INSUFFICIENT_ROLE})


class SessionRevoked(AuthError):
    """Refresh token reuse detected or session ended by logout."""
    message = SESSION_EXPIRED_MESSAGE


class AccountNotFound(AuthError):
    """A refresh token names an account that no longer exists."""
    message = SESSION_EXPIRED_MESSAGE


class SessionPersistenceError(AuthError):
    """The store did not durably accept a refresh-token write."""
    status = 503
    error = "SERVICE_UNAVAILABLE"
    message = "Session could not be saved, please retry"
