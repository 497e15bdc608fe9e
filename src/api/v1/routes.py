"""
API v1 routes.

Defines REST endpoints for the account lifecycle API. Domain errors raised
by the service are rendered by the handlers in src.api.errors.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from src.api.dependencies import (
    SESSION_COOKIE,
    get_account_service,
    get_app_settings,
    get_current_account,
)
from src.api.models import (
    ErrorResponse,
    FilterUserDto,
    ForgotPasswordRequestDto,
    LoginUserDto,
    MessageResponse,
    NameUpdateDto,
    RegisterUserDto,
    RequestQueryDto,
    ResetPasswordRequestDto,
    RoleUpdateDto,
    UserData,
    UserListResponseDto,
    UserLoginResponseDto,
    UserPasswordUpdateDto,
    UserResponseDto,
    ValidationErrorResponse,
    VerifyEmailQueryDto,
)
from src.config.settings import Settings
from src.domain.accounts import AccountService
from src.domain.ports import Account

router = APIRouter(tags=["v1"])

DEFAULT_PAGE_LIMIT = 10

_validation_error = {422: {"model": ValidationErrorResponse, "description": "Validation error"}}
_auth_errors = {401: {"model": ErrorResponse, "description": "Not authenticated"}}


def _user_response(account: Account) -> UserResponseDto:
    return UserResponseDto(
        status="success", data=UserData(user=FilterUserDto.from_account(account))
    )


@router.post(
    "/auth/register",
    response_model=UserResponseDto,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Email already exists"},
        **_validation_error,
    },
    summary="Register a new account",
    description="Create an unverified account. A verification token is sent "
    "to the provided email.",
)
async def register(
    body: RegisterUserDto,
    service: AccountService = Depends(get_account_service),
) -> UserResponseDto:
    account = service.register(body.name, body.email, body.password)
    return _user_response(account)


@router.post(
    "/auth/login",
    response_model=UserLoginResponseDto,
    responses={
        400: {"model": ErrorResponse, "description": "Wrong credentials"},
        **_validation_error,
    },
    summary="Log in",
    description="Exchange email and password for a session token. The token is "
    "returned in the body and set as an HttpOnly cookie.",
)
async def login(
    body: LoginUserDto,
    response: Response,
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_app_settings),
) -> UserLoginResponseDto:
    token = service.login(body.email, body.password)
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.jwt_maxage,
        httponly=True,
        samesite="lax",
    )
    return UserLoginResponseDto(status="success", token=token)


@router.post("/auth/logout", response_model=MessageResponse, summary="Log out")
async def logout(response: Response) -> MessageResponse:
    """
    Clear the session cookie.

    Sessions are stateless: a copied token stays valid until it expires.
    """
    response.delete_cookie(SESSION_COOKIE)
    return MessageResponse(status="success", message="Logged out")


@router.get(
    "/auth/verify",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired token"},
        **_validation_error,
    },
    summary="Verify email address",
)
async def verify_email(
    query: Annotated[VerifyEmailQueryDto, Query()],
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    service.verify_email(query.token)
    return MessageResponse(status="success", message="Email verified successfully")


@router.post(
    "/auth/forgot-password",
    response_model=MessageResponse,
    responses=_validation_error,
    summary="Request a password reset",
    description="Always answers the same way, whether or not the email is registered.",
)
async def forgot_password(
    body: ForgotPasswordRequestDto,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    service.forgot_password(body.email)
    return MessageResponse(
        status="success",
        message="If that email is registered, a password reset link has been sent",
    )


@router.post(
    "/auth/reset-password",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired token"},
        **_validation_error,
    },
    summary="Reset password with a reset token",
)
async def reset_password(
    body: ResetPasswordRequestDto,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    service.reset_password(body.token, body.new_password)
    return MessageResponse(status="success", message="Password has been reset")


@router.get(
    "/users/me",
    response_model=UserResponseDto,
    responses=_auth_errors,
    summary="Get the signed-in account",
)
async def get_me(account: Account = Depends(get_current_account)) -> UserResponseDto:
    return _user_response(account)


@router.get(
    "/users",
    response_model=UserListResponseDto,
    responses={
        **_auth_errors,
        403: {"model": ErrorResponse, "description": "Admin only"},
        **_validation_error,
    },
    summary="List accounts (admin)",
)
async def list_users(
    query: Annotated[RequestQueryDto, Query()],
    account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_account_service),
) -> UserListResponseDto:
    accounts, total = service.list_accounts(
        account, page=query.page or 1, limit=query.limit or DEFAULT_PAGE_LIMIT
    )
    return UserListResponseDto(
        status="success",
        users=[FilterUserDto.from_account(a) for a in accounts],
        results=total,
    )


@router.put(
    "/users/me/name",
    response_model=UserResponseDto,
    responses={**_auth_errors, **_validation_error},
    summary="Rename the signed-in account",
)
async def update_name(
    body: NameUpdateDto,
    account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_account_service),
) -> UserResponseDto:
    return _user_response(service.update_name(account, body.name))


@router.put(
    "/users/me/password",
    response_model=MessageResponse,
    responses={
        **_auth_errors,
        400: {"model": ErrorResponse, "description": "Wrong credentials"},
        **_validation_error,
    },
    summary="Change the signed-in account's password",
)
async def change_password(
    body: UserPasswordUpdateDto,
    account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    service.change_password(account, body.old_password, body.new_password)
    return MessageResponse(status="success", message="Password updated successfully")


@router.put(
    "/users/{account_id}/role",
    response_model=UserResponseDto,
    responses={
        **_auth_errors,
        403: {"model": ErrorResponse, "description": "Admin only"},
        **_validation_error,
    },
    summary="Change an account's role (admin)",
)
async def update_role(
    account_id: uuid.UUID,
    body: RoleUpdateDto,
    account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_account_service),
) -> UserResponseDto:
    return _user_response(service.update_role(account, account_id, body.role))
