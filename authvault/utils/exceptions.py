"""Custom exceptions for AuthVault"""

from typing import Optional


class AuthVaultError(Exception):
    """Base exception for AuthVault.

    ``message`` is safe to show to the caller; the underlying cause (if any)
    is kept on ``__cause__`` for server-side logging only.
    """

    kind = "InternalError"
    status_code = 500
    default_message = "An unexpected error occurred. Please try again later."

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)


class InternalError(AuthVaultError):
    """Unexpected failure caught at the engine boundary"""
    pass


class ValidationError(AuthVaultError):
    """Request fields failed validation"""

    kind = "ValidationError"
    status_code = 400
    default_message = "Invalid request data"


class DuplicateEmailError(AuthVaultError):
    """Email is already registered"""

    kind = "DuplicateEmailError"
    status_code = 400
    default_message = "Email is already in use"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = "email"):
        super().__init__(message, field)


class InvalidCredentialsError(AuthVaultError):
    """Unknown email or wrong password (deliberately indistinguishable)"""

    kind = "InvalidCredentialsError"
    status_code = 401
    default_message = "Invalid email or password"


class HashingError(AuthVaultError):
    """Password hashing or hash verification failed"""

    kind = "HashingError"
    status_code = 500
    default_message = "Something went wrong while processing your password. Please try again."


class PersistenceError(AuthVaultError):
    """User store could not be written"""

    kind = "PersistenceError"
    status_code = 500
    default_message = "Could not save user. Please try again later."


class InvalidRequestError(AuthVaultError):
    """Request type is missing or unknown"""

    kind = "InvalidRequestError"
    status_code = 400
    default_message = "Invalid action type"


class MalformedInputError(AuthVaultError):
    """Request body is not parseable as the expected shape"""

    kind = "MalformedInputError"
    status_code = 400
    default_message = "Invalid JSON data"


class ConfigError(AuthVaultError):
    """Configuration error"""

    kind = "ConfigError"
    default_message = "Invalid configuration"
