"""
Authentication decision engine.

One call to ``AuthService.authenticate`` runs a single linear path:

    validate -> check duplicate / look up -> hash / verify -> persist / respond

Every failure becomes an ``AuthFailure`` outcome; nothing escapes to the
caller. Internal failures are logged with detail and reported generically.
"""

from __future__ import annotations

from contextlib import nullcontext
from typing import Any, ContextManager, Mapping, Optional, Union

import bcrypt
from pydantic import ValidationError as SchemaError

from ..core.config import AuthSettings
from ..stores.user_store import UserStore, find_by_email
from ..utils.exceptions import (
    AuthVaultError,
    DuplicateEmailError,
    HashingError,
    InternalError,
    InvalidCredentialsError,
    InvalidRequestError,
    MalformedInputError,
    ValidationError,
)
from ..utils.logger import get_logger
from .models import (
    MAX_PASSWORD_BYTES,
    AuthFailure,
    AuthOutcome,
    AuthSuccess,
    LoginRequest,
    RegisterRequest,
    UserRecord,
    credential_request_adapter,
)

logger = get_logger(__name__)

DEFAULT_ROUNDS = 10

REGISTER_SUCCESS_MESSAGE = "Registration successful"
LOGIN_SUCCESS_MESSAGE = "Login successful"
VERIFY_FAILED_MESSAGE = "Something went wrong while verifying your password. Please try again."

_TAG_ERRORS = {"union_tag_invalid", "union_tag_not_found"}


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a password with bcrypt"""
    try:
        salt = bcrypt.gensalt(rounds=rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")
    except (ValueError, TypeError) as e:
        raise HashingError() from e


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its hash.

    Returns False on mismatch. A candidate over bcrypt's input limit can
    never have been stored, so it is a mismatch too. A hash bcrypt cannot
    read is a HashingError, not a mismatch.
    """
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except (ValueError, TypeError) as e:
        raise HashingError(VERIFY_FAILED_MESSAGE) from e


def _field_name(loc: tuple) -> Optional[str]:
    # loc is (tag, field) for discriminated unions
    names = [part for part in loc[1:] if isinstance(part, str)]
    return names[-1] if names else None


def _validation_error(error: SchemaError) -> AuthVaultError:
    first = error.errors()[0]
    if first["type"] in _TAG_ERRORS:
        return InvalidRequestError()
    field = _field_name(tuple(first["loc"]))
    if first["type"] == "missing":
        return ValidationError(f"{field} is required", field=field)
    if first["type"] == "string_type":
        return ValidationError(f"{field} must be a string", field=field)
    return ValidationError(first["msg"], field=field)


class AuthService:
    """Registers and authenticates users against an injected store"""

    def __init__(self, store: UserStore, settings: Optional[AuthSettings] = None):
        self.store = store
        self.settings = settings or AuthSettings()

    def parse_request(self, payload: Mapping[str, Any]) -> Union[LoginRequest, RegisterRequest]:
        """Validate a JSON-shaped payload into a credential request"""
        if not isinstance(payload, Mapping):
            raise MalformedInputError()
        try:
            return credential_request_adapter.validate_python(
                dict(payload),
                context={"min_password_length": self.settings.min_password_length},
            )
        except SchemaError as e:
            raise _validation_error(e) from e

    def authenticate(self, payload: Any) -> AuthOutcome:
        """Run one login or register decision and return its outcome"""
        try:
            if isinstance(payload, (LoginRequest, RegisterRequest)):
                request = payload
            else:
                request = self.parse_request(payload)

            if isinstance(request, RegisterRequest):
                return self._register(request)
            if isinstance(request, LoginRequest):
                return self._login(request)
            raise InvalidRequestError()
        except AuthVaultError as e:
            if e.status_code >= 500:
                logger.error(
                    "Auth request failed",
                    error_kind=e.kind,
                    error=str(e.__cause__ or e),
                )
            return AuthFailure.from_error(e)
        except Exception:
            logger.exception("Unexpected error during authentication")
            return AuthFailure.from_error(InternalError())

    def _registration_section(self) -> ContextManager[Any]:
        if self.settings.serialize_registrations:
            return self.store.write_lock()
        return nullcontext()

    def _register(self, request: RegisterRequest) -> AuthSuccess:
        with self._registration_section():
            users = self.store.load_all()
            if any(user.email == request.email for user in users):
                raise DuplicateEmailError()

            password_hash = hash_password(request.password, rounds=self.settings.bcrypt_rounds)
            users.append(UserRecord(email=request.email, password_hash=password_hash))
            self.store.save_all(users)

        logger.info("User registered", email=request.email, user_count=len(users))
        return AuthSuccess(message=REGISTER_SUCCESS_MESSAGE, redirect=self.settings.login_redirect)

    def _login(self, request: LoginRequest) -> AuthSuccess:
        user = find_by_email(self.store, request.email)
        if user is None:
            logger.info("Login failed", reason="unknown_email")
            raise InvalidCredentialsError()

        if not verify_password(request.password, user.password_hash):
            logger.info("Login failed", reason="password_mismatch")
            raise InvalidCredentialsError()

        logger.info("User logged in", email=request.email)
        return AuthSuccess(message=LOGIN_SUCCESS_MESSAGE, redirect=self.settings.success_redirect)
