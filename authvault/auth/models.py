"""
Auth models.

Credential requests are a discriminated union on ``type``; user records
mirror the persisted layout ``{"email": ..., "password": <bcrypt hash>}``.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from ..utils.exceptions import AuthVaultError

# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72
DEFAULT_MIN_PASSWORD_LENGTH = 8


class UserRecord(BaseModel):
    """Stored user: email plus bcrypt hash (never the plaintext)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    email: str
    password_hash: str = Field(alias="password")

    def to_storage(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PydanticCustomError(
            "password_too_long",
            "Password must be at most {max_bytes} bytes",
            {"max_bytes": MAX_PASSWORD_BYTES},
        )
    return value


class _CredentialRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email_format(cls, value: str) -> str:
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            raise PydanticCustomError("email_format", "Invalid email format") from None
        # Stored as submitted; lookups are exact-match
        return value


class LoginRequest(_CredentialRequest):
    type: Literal["login"] = "login"

    @field_validator("password")
    @classmethod
    def _password_present(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("password_required", "Password is required")
        return value


class RegisterRequest(_CredentialRequest):
    type: Literal["register"] = "register"
    confirm_password: str = Field(alias="confirmPassword")

    @field_validator("password")
    @classmethod
    def _password_policy(cls, value: str, info: ValidationInfo) -> str:
        context = info.context or {}
        min_length = context.get("min_password_length", DEFAULT_MIN_PASSWORD_LENGTH)
        if len(value) < min_length:
            raise PydanticCustomError(
                "password_too_short",
                "Password must be at least {min_length} characters",
                {"min_length": min_length},
            )
        return _check_password_bytes(value)

    @field_validator("confirm_password")
    @classmethod
    def _passwords_match(cls, value: str, info: ValidationInfo) -> str:
        password = info.data.get("password")
        # password already failed validation; report that error instead
        if password is not None and value != password:
            raise PydanticCustomError("password_mismatch", "Passwords do not match")
        return value


CredentialRequest = Annotated[
    Union[LoginRequest, RegisterRequest],
    Field(discriminator="type"),
]

credential_request_adapter: TypeAdapter = TypeAdapter(CredentialRequest)


class AuthSuccess(BaseModel):
    message: str
    redirect: str
    status_code: int = 200

    @property
    def ok(self) -> bool:
        return True

    def to_response(self) -> Dict[str, Any]:
        return {"message": self.message, "redirect": self.redirect}


class AuthFailure(BaseModel):
    error_kind: str
    message: str
    field: Optional[str] = None
    status_code: int = 400

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_error(cls, error: AuthVaultError) -> "AuthFailure":
        return cls(
            error_kind=error.kind,
            message=error.message,
            field=error.field,
            status_code=error.status_code,
        )

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.field:
            body["field"] = self.field
        return body


AuthOutcome = Union[AuthSuccess, AuthFailure]
