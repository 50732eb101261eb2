"""Error taxonomy shared by the rules, the stores and the HTTP layer.

Every error carries the HTTP status it maps to; the app turns any
``AppError`` into ``{"error": message}`` with that status.
"""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = 400


class Unauthenticated(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    # duplicate email is reported as a plain validation failure
    status_code = 400
