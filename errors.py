from typing import Optional


class AppError(Exception):
    """Base for every error surfaced to API callers.

    ``status_code`` is the HTTP status the error maps to; ``errors`` optionally
    carries per-field details rendered next to the message.
    """

    status_code = 500

    def __init__(self, message: str, errors: Optional[list[dict[str, str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(AppError, ValueError):
    status_code = 400

    @classmethod
    def from_fields(cls, errors: list[dict[str, str]]) -> "ValidationError":
        message = ", ".join(item["message"] for item in errors)
        return cls(message, errors=errors)


class NotFoundError(AppError, ValueError):
    status_code = 404


class ConflictError(AppError, ValueError):
    status_code = 409


class AuthError(AppError):
    status_code = 401


class UpstreamError(AppError):
    status_code = 503
