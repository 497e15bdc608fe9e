"""
Domain layer - Pure business logic with zero framework imports.

This package contains the credential and token lifecycle core of the
account service. It defines its own port interfaces for infrastructure
abstraction, ensuring true hexagonal architecture decoupling.
"""

from .accounts import AccountService
from .exceptions import (
    AccountError,
    EmailExist,
    EmptyPassword,
    ExceededMaxPasswordLength,
    FieldValidationError,
    HashingError,
    InvalidToken,
    PermissionDenied,
    ServerError,
    TokenNotProvided,
    UserNoLongerExist,
    UserNotAuthenticated,
    WrongCredentials,
)
from .passwords import PasswordHasher
from .ports import Account, AccountRepository, EmailSender, UserRole

__all__ = [
    "Account",
    "AccountError",
    "AccountRepository",
    "AccountService",
    "EmailExist",
    "EmailSender",
    "EmptyPassword",
    "ExceededMaxPasswordLength",
    "FieldValidationError",
    "HashingError",
    "InvalidToken",
    "PasswordHasher",
    "PermissionDenied",
    "ServerError",
    "TokenNotProvided",
    "UserNoLongerExist",
    "UserNotAuthenticated",
    "UserRole",
    "WrongCredentials",
]
