# movie_maze/errors.py
from typing import Optional


class AppError(Exception):
    """Base for errors that are reported to the caller as structured JSON."""

    status_code = 500
    error_code = "APP_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code


class ValidationError(AppError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class AuthError(AppError):
    status_code = 401
    error_code = "AUTH_ERROR"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    error_code = "NOT_FOUND"


class DuplicateVoteError(AppError):
    status_code = 409
    error_code = "DUPLICATE_VOTE"

    def __init__(self, message: str = "A vote for this movie is already being recorded"):
        super().__init__(message)


class DuplicateEmailError(AppError):
    status_code = 409
    error_code = "DUPLICATE_EMAIL"

    def __init__(self, message: str = "A user with this email already exists"):
        super().__init__(message)


class ServerError(AppError):
    status_code = 500
    error_code = "SERVER_ERROR"
