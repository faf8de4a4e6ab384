"""Error taxonomy shared by services and routes.

Services raise these; ``grocery.main`` turns them into the JSON response
envelope. Nothing below knows about HTTP beyond the status code it maps to.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(AppError):
    status_code = 400
    default_message = "Bad request"


class InsufficientStockError(BadRequestError):
    default_message = "Insufficient stock"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Admin access required"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class InternalError(AppError):
    status_code = 500
