"""
auth/errors.py -- Exception taxonomy for the account and session layer.

Every client-facing failure is an AccountError subclass carrying the HTTP
status, a machine-readable code, and a message that is safe to show. The API
layer maps these onto the shared error envelope in a single exception handler,
so route handlers never build error responses themselves.

DuplicateError is deliberately NOT an AccountError: it is the store's signal
that a unique index rejected an insert. AccountService translates it into
ConflictError; it should never reach the API layer on its own.

Layer rule: no imports from api/.
"""

from __future__ import annotations


class AccountError(Exception):
    """Base class for failures that map onto a client-facing error response."""

    status_code: int = 400
    code: str = "bad_request"
    default_message: str = "Request failed."

    def __init__(self, message: str | None = None, *, field: str | None = None) -> None:
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)


class ValidationError(AccountError):
    """Malformed or missing input. The message names the rule that failed."""

    status_code = 400
    code = "validation_error"
    default_message = "Invalid input."


class ConflictError(AccountError):
    """A username or email is already registered. field says which one."""

    status_code = 400
    code = "conflict"

    def __init__(self, field: str) -> None:
        super().__init__(f"This {field} is already registered", field=field)


class InvalidCredentialsError(AccountError):
    """Bad login.

    Raised with the same message for an unknown username and for a wrong
    password. Never pass a field or a custom message here.
    """

    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid username or password"

    def __init__(self) -> None:
        super().__init__()


class AuthenticationRequiredError(AccountError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required"


class NotFoundError(AccountError):
    status_code = 404
    code = "not_found"
    default_message = "User account not found"


class StoreUnavailableError(AccountError):
    """The database could not complete an operation.

    The original exception is chained (raise ... from exc) for the server log;
    the client only ever sees default_message.
    """

    status_code = 500
    code = "internal_error"
    default_message = "An unexpected error occurred."


class DuplicateError(Exception):
    """A unique index rejected an insert. field is "username" or "email"."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"duplicate {field}")
