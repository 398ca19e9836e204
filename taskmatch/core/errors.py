"""
Error taxonomy shared by the services layer and the HTTP surface.

Every refusal is a TaskMatchError carrying a closed ErrorKind, so callers
branch on the kind instead of matching message text. The message is always
safe to show to the user as-is.
"""

import enum


class ErrorKind(str, enum.Enum):
    AUTH = "auth"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    INVALID_STATE = "invalid_state"
    NOT_FOUND = "not_found"
    STORE = "store"


HTTP_STATUS = {
    ErrorKind.AUTH: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.VALIDATION: 422,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORE: 503,
}


class TaskMatchError(Exception):
    kind = ErrorKind.STORE
    default_message = "Something went wrong. Please try again."

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind.value, **self.extra}


class AuthError(TaskMatchError):
    kind = ErrorKind.AUTH
    default_message = "Session expired. Please sign in again."


class AuthorizationError(TaskMatchError):
    kind = ErrorKind.AUTHORIZATION
    default_message = "You are not allowed to do this."


NotAuthorized = AuthorizationError


class ValidationError(TaskMatchError):
    kind = ErrorKind.VALIDATION
    default_message = "Invalid data."

    def __init__(self, errors: dict):
        self.errors = errors
        # first field error doubles as the banner message
        super().__init__(next(iter(errors.values())), errors=errors)


class ConflictError(TaskMatchError):
    kind = ErrorKind.CONFLICT
    default_message = "This action conflicts with the current state."


class AlreadyApplied(ConflictError):
    default_message = "You have already applied to this service."


class ServiceNotOpen(ConflictError):
    default_message = "This service is no longer accepting applications."


class InvalidState(TaskMatchError):
    kind = ErrorKind.INVALID_STATE
    default_message = "This action is not allowed in the current state."


class NotFoundError(TaskMatchError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found."


class StoreError(TaskMatchError):
    kind = ErrorKind.STORE
    default_message = "Could not reach the data store. Please try again."
