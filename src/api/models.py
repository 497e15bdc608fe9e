"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.

Request models (the *Dto classes) are the validation layer: each field rule
raises a fixed message, and failures are reported as an ordered
field -> message mapping (first failing rule per field) before any hashing,
token minting or storage access happens.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, TypeVar

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from src.domain.exceptions import FieldValidationError
from src.domain.ports import Account, UserRole

MIN_PASSWORD_LENGTH = 6
MAX_PAGE_LIMIT = 50


def _min_length(value: str, length: int, message: str) -> str:
    if len(value) < length:
        raise PydanticCustomError("too_short", message)
    return value


def _email(value: str) -> str:
    _min_length(value, 1, "Email is required")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise PydanticCustomError("invalid_email", "Email is invalid") from None
    return value


def _matches(value: str, info: ValidationInfo, other: str, message: str) -> str:
    # other is absent from info.data when it failed its own rules
    if other in info.data and value != info.data[other]:
        raise PydanticCustomError("mismatch", message)
    return value


class RegisterUserDto(BaseModel):
    """Request model for account registration."""

    name: str
    email: str
    password: str = Field(..., description="Password (min 6 characters)")
    password_confirm: str

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return _min_length(value, 1, "Name is required")

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _email(value)

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        return _min_length(
            value, MIN_PASSWORD_LENGTH, "Password must be at least 6 characters"
        )

    @field_validator("password_confirm")
    @classmethod
    def _check_password_confirm(cls, value: str, info: ValidationInfo) -> str:
        _min_length(value, 1, "Confirm Password is required")
        return _matches(value, info, "password", "Passwords do not match")


class LoginUserDto(BaseModel):
    """Request model for login."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _email(value)

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        return _min_length(
            value, MIN_PASSWORD_LENGTH, "Password must be at least 6 characters"
        )


class NameUpdateDto(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return _min_length(value, 1, "Name is required")


class RoleUpdateDto(BaseModel):
    """
    Request model for role changes.

    Out-of-range values are rejected with "Invalid role" even though the
    field is typed as UserRole.
    """

    role: UserRole

    @field_validator("role", mode="before")
    @classmethod
    def _check_role(cls, value: Any) -> UserRole:
        if isinstance(value, UserRole):
            return value
        try:
            return UserRole.from_str(value)
        except ValueError:
            raise PydanticCustomError("invalid_role", "Invalid role") from None


class UserPasswordUpdateDto(BaseModel):
    """Request model for changing the password of the signed-in account."""

    old_password: str
    new_password: str
    new_password_confirm: str

    @field_validator("old_password")
    @classmethod
    def _check_old_password(cls, value: str) -> str:
        return _min_length(
            value, MIN_PASSWORD_LENGTH, "Old password must be at least 6 characters"
        )

    @field_validator("new_password")
    @classmethod
    def _check_new_password(cls, value: str) -> str:
        return _min_length(
            value, MIN_PASSWORD_LENGTH, "New password must be at least 6 characters"
        )

    @field_validator("new_password_confirm")
    @classmethod
    def _check_new_password_confirm(cls, value: str, info: ValidationInfo) -> str:
        _min_length(
            value, MIN_PASSWORD_LENGTH, "New password confirm must be at least 6 characters"
        )
        return _matches(value, info, "new_password", "New passwords do not match")


class VerifyEmailQueryDto(BaseModel):
    token: str

    @field_validator("token")
    @classmethod
    def _check_token(cls, value: str) -> str:
        return _min_length(value, 1, "Token is required")


class ForgotPasswordRequestDto(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _email(value)


class ResetPasswordRequestDto(BaseModel):
    """Request model for completing a password reset."""

    token: str
    new_password: str
    new_password_confirm: str

    @field_validator("token")
    @classmethod
    def _check_token(cls, value: str) -> str:
        return _min_length(value, 1, "Token is required")

    @field_validator("new_password")
    @classmethod
    def _check_new_password(cls, value: str) -> str:
        return _min_length(
            value, MIN_PASSWORD_LENGTH, "New password must be at least 6 characters"
        )

    @field_validator("new_password_confirm")
    @classmethod
    def _check_new_password_confirm(cls, value: str, info: ValidationInfo) -> str:
        _min_length(
            value, MIN_PASSWORD_LENGTH, "New password confirm must be at least 6 characters"
        )
        return _matches(value, info, "new_password", "New passwords do not match")


class RequestQueryDto(BaseModel):
    """Pagination query parameters. Both are optional."""

    page: int | None = Field(default=None, ge=1)
    limit: int | None = Field(default=None, ge=1, le=MAX_PAGE_LIMIT)


DtoT = TypeVar("DtoT", bound=BaseModel)


def field_errors(errors: Sequence[Mapping[str, Any]]) -> dict[str, str]:
    """
    Collapse pydantic error records into a field -> message mapping.

    Keeps the first message per field, in the order pydantic reports them.
    """
    result: dict[str, str] = {}
    for error in errors:
        loc = [str(part) for part in error["loc"] if part not in ("body", "query", "path")]
        result.setdefault(".".join(loc) or "body", error["msg"])
    return result


def validate_request(model: type[DtoT], payload: Mapping[str, Any]) -> DtoT:
    """
    Validate a raw payload against a request model.

    Raises:
        FieldValidationError: With one message per failing field
    """
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise FieldValidationError(field_errors(e.errors())) from None


class FilterUserDto(BaseModel):
    """Public view of an account. Never includes the hash or tokens."""

    id: str
    name: str
    email: str
    role: str
    verified: bool
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    @classmethod
    def from_account(cls, account: Account) -> "FilterUserDto":
        return cls(
            id=str(account.id),
            name=account.name,
            email=account.email,
            role=account.role.to_str(),
            verified=account.verified,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class UserData(BaseModel):
    user: FilterUserDto


class UserResponseDto(BaseModel):
    """Response model wrapping a single account."""

    status: str
    data: UserData


class UserListResponseDto(BaseModel):
    """Response model for the paginated account list."""

    status: str
    users: list[FilterUserDto]
    results: int


class UserLoginResponseDto(BaseModel):
    status: str
    token: str


class MessageResponse(BaseModel):
    """Generic success response."""

    status: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    status: str
    message: str


class ValidationErrorResponse(BaseModel):
    """Field-level validation failure response."""

    status: str
    errors: dict[str, str]
