"""
Domain exceptions - Closed error taxonomy for the account lifecycle.

Every failure the core can report is one of the AccountError subclasses
below. Each carries a fixed, non-sensitive message which is the only text
ever shown to callers. Request validation failures are reported separately
through FieldValidationError, which carries one message per field.
"""


class AccountError(Exception):
    """Base class for account domain errors."""

    message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class EmptyPassword(AccountError):
    message = "Password is required"


class ExceededMaxPasswordLength(AccountError):
    """
    Password is longer than the hasher accepts.

    Attributes:
        max_length: Longest accepted password, shown in the message
        length: Length of the rejected password
    """

    def __init__(self, max_length: int, length: int | None = None) -> None:
        self.max_length = max_length
        self.length = length
        super().__init__(f"Password must be at most {max_length} characters long")


class HashingError(AccountError):
    message = "Error occurred while hashing password"


class InvalidToken(AccountError):
    """Token is unknown, malformed, tampered with or expired."""

    message = "Invalid token"


class ServerError(AccountError):
    """Catch-all for internal failures. Never echoes the underlying cause."""

    message = "Internal server error"


class WrongCredentials(AccountError):
    """Unknown email or wrong password (deliberately indistinguishable)."""

    message = "Wrong credentials"


class EmailExist(AccountError):
    message = "Email already exists"


class UserNoLongerExist(AccountError):
    message = "User no longer exists"


class TokenNotProvided(AccountError):
    message = "Token not provided"


class PermissionDenied(AccountError):
    message = "Permission denied"


class UserNotAuthenticated(AccountError):
    message = "User not authenticated"


class FieldValidationError(Exception):
    """
    Request payload failed validation.

    Attributes:
        errors: Ordered mapping of field name to message (first failing
            rule per field).
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in self.errors.items()))
