"""
Error taxonomy shared by every service.

Services raise narrow subclasses (each with a stable ``code``); the HTTP
layer maps the base class to a status code in one place, see
movplay/api/errors.py.
"""


class MovPlayError(Exception):
    """Base class for caller-visible failures."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)


class NotFoundError(MovPlayError):
    """The referenced resource does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(MovPlayError):
    """The change would violate a uniqueness rule."""

    status_code = 409
    code = "CONFLICT"


class InvalidInputError(MovPlayError):
    """A value is outside its allowed domain."""

    status_code = 400
    code = "INVALID_INPUT"


class PermissionDeniedError(MovPlayError):
    """The caller may not act on this resource."""

    status_code = 403
    code = "PERMISSION_DENIED"


class DependencyUnavailableError(MovPlayError):
    """An external service is unreachable, rate limited or misbehaving."""

    status_code = 503
    code = "DEPENDENCY_UNAVAILABLE"


class AuthenticationError(MovPlayError):
    """Missing, invalid or expired credentials."""

    status_code = 401
    code = "UNAUTHORIZED"
