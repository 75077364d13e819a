"""Domain errors raised by the auth services and mapped to HTTP by api.errors."""


class AuthError(Exception):
    status = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(AuthError):
    """Any credential failure. The message never says which check failed."""
    status = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class Conflict(AuthError):
    status = 409
    code = "CONFLICT"
    default_message = "Conflict"
