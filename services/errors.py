"""
Error taxonomy for the session core.

Request-handling errors carry the HTTP status and error code the serving
layer should answer with; api.errors turns them into the uniform envelope.
Fatal is raised at boot only: the app refuses to start rather than serve
with a broken security primitive.
"""
from __future__ import annotations


class AuthError(Exception):
    status = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(AuthError):
    status = 401
    code = "UNAUTHORIZED"
    default_message = "Invalid credentials"


class Forbidden(AuthError):
    status = 403
    code = "FORBIDDEN"
    default_message = "Access denied - invalid refresh token"


class Conflict(AuthError):
    status = 409
    code = "CONFLICT"
    default_message = "Email already exists"


class Unavailable(AuthError):
    """Transient persistence failure or timeout; safe to retry."""
    status = 503
    code = "UNAVAILABLE"
    default_message = "Service temporarily unavailable, retry later"


class Fatal(Exception):
    """Startup-time misconfiguration (missing signing key, broken RNG)."""
