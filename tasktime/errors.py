"""
Error taxonomy shared by the timer engine, the analytics engine and the stores.
Transports map these onto their own response shapes.
"""


class AppError(Exception):
    status_code = 500
    code = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class InvalidInputError(AppError):
    status_code = 400
    code = "invalid_input"


class InternalError(AppError):
    status_code = 500
    code = "internal"
