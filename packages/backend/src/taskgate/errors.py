"""Error taxonomy shared by services and routes.

Learn: Services raise these instead of HTTPException so they stay usable
outside FastAPI (CLI, tests). main.py installs one exception handler that
renders every AppError as {"error": kind, "detail": reason}.

Internal failures never leak their details — the handler logs them and
returns a generic reason.
"""


class AppError(Exception):
    """Base class. Subclasses fix the kind and HTTP status."""

    kind = "Internal"
    status_code = 500
    default_reason = "Something went wrong."

    def __init__(self, reason: str | None = None):
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class Unauthenticated(AppError):
    kind = "Unauthenticated"
    status_code = 401
    default_reason = "Authentication required"


class AuthFailure(Unauthenticated):
    """A rejected sign-in.

    The public reason is always the same, whatever went wrong. `cause`
    ("not_found" or "mismatch") is for logs only.
    """

    default_reason = "Invalid credentials"

    def __init__(self, cause: str):
        self.cause = cause
        super().__init__()


class Forbidden(AppError):
    kind = "Forbidden"
    status_code = 403
    default_reason = "Forbidden"


class NotFound(AppError):
    kind = "NotFound"
    status_code = 404
    default_reason = "Not found"


class Conflict(AppError):
    kind = "Conflict"
    status_code = 409
    default_reason = "Conflict"


class ValidationFailed(AppError):
    kind = "Validation"
    status_code = 400
    default_reason = "Invalid input"


class Internal(AppError):
    pass
