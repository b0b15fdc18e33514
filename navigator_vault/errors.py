"""
Vault Errors — status-coded exception taxonomy.

Every error carries a stable ``status_code`` so callers can branch on the
kind of failure without matching messages. Cryptographic failures are
always surfaced as :class:`IncorrectEncryptionKey`.
"""
from typing import Optional


class VaultError(Exception):
    """Base class for all vault client errors."""

    status_code: int = 500

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __repr__(self) -> str:
        return f"<{type(self).__name__} status={self.status_code} message={self.message!r}>"


class BadRequest(VaultError):
    status_code = 400


class Unauthorized(VaultError):
    status_code = 401


class NotEnoughStorage(VaultError):
    status_code = 402


class Forbidden(VaultError):
    status_code = 403


class NotFound(VaultError):
    status_code = 404


class IncorrectEncryptionKey(VaultError):
    """Any client-side wrap/unwrap/encrypt/decrypt failure.

    Never produced from a server status code.
    """

    status_code = 409

    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__("Incorrect encryption key.", cause)


class TooManyRequests(VaultError):
    status_code = 429


class InternalError(VaultError):
    status_code = 500


class BadGateway(VaultError):
    status_code = 502


class ServiceUnavailable(VaultError):
    status_code = 503


class GatewayTimeout(VaultError):
    status_code = 504


class NetworkError(VaultError):
    status_code = 599


_STATUS_ERRORS: dict[int, type[VaultError]] = {
    400: BadRequest,
    401: Unauthorized,
    402: NotEnoughStorage,
    403: Forbidden,
    404: NotFound,
    429: TooManyRequests,
    502: BadGateway,
    503: ServiceUnavailable,
    504: GatewayTimeout,
}

RETRYABLE_ERRORS = (NetworkError, BadGateway, ServiceUnavailable, GatewayTimeout)

INTERNAL_ERROR_MESSAGE = "Internal error. Please try again or contact support."


def throw_error(
    status: int,
    message: Optional[str] = None,
    error: Optional[BaseException] = None
) -> None:
    """Raise the error class matching an HTTP-like status code.

    Unknown statuses become :class:`InternalError` with a generic message;
    the original error is kept as ``cause`` for diagnostics.

    Raises:
        VaultError: always.
    """
    cls = _STATUS_ERRORS.get(status)
    if cls is not None:
        raise cls(message or "", error)
    raise InternalError(INTERNAL_ERROR_MESSAGE, error)
