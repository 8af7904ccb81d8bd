# backend/academy/errors.py
"""
Application error taxonomy.

Every error carries the HTTP status it maps to; `main.py` registers one handler
for AppError that renders {"message": ..., **extra}.
"""

from typing import Optional


class AppError(Exception):
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"message": self.message}


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation error"

    def __init__(self, message: Optional[str] = None, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])

    def to_dict(self) -> dict:
        return {"message": self.message, "errors": self.errors}


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Unauthorized"

    def __init__(self, message: Optional[str] = None, redirect_to: Optional[str] = None):
        super().__init__(message)
        self.redirect_to = redirect_to

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.redirect_to:
            body["redirectTo"] = self.redirect_to
        return body


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class RateLimitError(AppError):
    status_code = 429
    default_message = "Too many requests, try again later"


class DependencyError(AppError):
    status_code = 502
    default_message = "An upstream service is unavailable"
