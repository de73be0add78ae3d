"""
Error kinds raised by services and dependencies.

These carry no HTTP details; storefront.main maps each kind to exactly one
status code.
"""


class StorefrontError(Exception):
    """Base class for all errors surfaced to API callers"""

    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(StorefrontError):
    """Caller input is malformed or incomplete"""
    default_message = "Invalid request"


class Unauthorized(StorefrontError):
    """Missing, invalid or mismatched identity"""
    default_message = "Could not validate credentials"


class Forbidden(StorefrontError):
    """Valid identity without the required role"""
    default_message = "Not enough permissions"


class NotFound(StorefrontError):
    default_message = "Not found"


class Conflict(StorefrontError):
    """Uniqueness violation reported by the store"""
    default_message = "Resource already exists"


class InfrastructureError(StorefrontError):
    """
    Store, hashing or signing failure.

    The message is for logs only; callers always get a generic response.
    """
    default_message = "Internal server error"
