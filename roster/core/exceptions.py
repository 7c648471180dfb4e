"""Custom exception classes for the roster API.

Every error carries the HTTP status it maps to; the handler in ``main``
renders them as ``{"detail": message}``.
"""

from fastapi import status


class RosterError(Exception):
    """Base exception for the roster API."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class ValidationError(RosterError):
    """Raised when input validation fails."""
    pass


class ResourceNotFoundError(RosterError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND


class RoleNotFoundError(RosterError):
    """Raised when a caller names a role that does not exist."""
    pass


class ResourceConflictError(RosterError):
    """Raised when a resource already exists."""
    pass


class UserAlreadyExistsError(ResourceConflictError):
    """Raised when registering an email that is already taken."""

    def __init__(self, message: str = "User already exists"):
        super().__init__(message)


class SessionConflictError(RosterError):
    """Raised when a concurrent request rotated the same session first."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Session was updated concurrently, retry the request"):
        super().__init__(message)


class AuthenticationError(RosterError):
    """Raised when authentication fails."""
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidCredentialsError(AuthenticationError):
    """Login failure. The message is identical for unknown email and bad password."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class InvalidTokenError(AuthenticationError):
    """Bad signature, expired, malformed, or wrong token type."""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class RefreshTokenRequiredError(AuthenticationError):
    def __init__(self, message: str = "Refresh token required"):
        super().__init__(message)


class AuthorizationError(RosterError):
    """Raised when user lacks permission."""
    status_code = status.HTTP_403_FORBIDDEN


class InvalidOrRevokedTokenError(AuthorizationError):
    """Refresh token was rotated out, revoked, or its session expired."""

    def __init__(self, message: str = "Invalid or revoked refresh token"):
        super().__init__(message)


class InternalError(RosterError):
    """Store or hasher failure surfaced as a generic 500."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Internal Server Error"):
        super().__init__(message)


class HasherError(InternalError):
    """Raised when the password hasher itself fails (not on a mismatch)."""
    pass
