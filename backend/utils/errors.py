# backend/utils/errors.py
"""Error taxonomy shared by services and routes.

Services raise these; the handlers registered in ``main.py`` turn them into
the ``{success: false, statusCode, message}`` envelope.
"""


class ApiError(Exception):
    kind = "Internal"
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str = None, *, data=None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r})"


# Malformed or missing input, e.g. quantity < 1
class InvalidArgument(ApiError):
    kind = "InvalidArgument"
    status_code = 400
    default_message = "Invalid argument"


# Referenced row does not exist or is soft-deleted
class NotFound(ApiError):
    kind = "NotFound"
    status_code = 404
    default_message = "Resource not found"


# Insufficient stock, duplicate key, illegal state transition
class Conflict(ApiError):
    kind = "Conflict"
    status_code = 409
    default_message = "Conflict"


class Unauthenticated(ApiError):
    kind = "Unauthenticated"
    status_code = 401
    default_message = "Could not validate credentials"


class Forbidden(ApiError):
    kind = "Forbidden"
    status_code = 403
    default_message = "Forbidden"


# Carrier platform unreachable or rejected the call
class DependencyFailure(ApiError):
    kind = "DependencyFailure"
    status_code = 502
    default_message = "Upstream service failed"


class Internal(ApiError):
    pass
