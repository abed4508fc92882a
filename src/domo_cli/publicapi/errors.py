"""Error taxonomy for the Domo public API client.

Every failure that crosses the client boundary is one of the classes below,
so callers can tell "never reached the server" (:class:`TransportError`)
apart from "server rejected it" (:class:`ApiError`) and from local problems
such as a malformed edited document (:class:`ValidationError`).
"""

import enum
from pathlib import Path


class DomoError(Exception):
    """Base class for all errors raised by this package."""


class InvalidArgument(DomoError, ValueError):
    """Raised when the caller misuses the API (e.g. a page size of zero)."""


class AuthError(DomoError):
    """Raised when credentials cannot be exchanged or are rejected."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        remote_message: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.remote_message = remote_message


class TransportError(DomoError):
    """Raised when the request never reached, or was never answered by, the server."""


class ErrorKind(enum.Enum):
    """Classification tag attached to every :class:`ApiError`."""

    BAD_REQUEST = "bad_request"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    UNEXPECTED_STATUS = "unexpected_status"

    @classmethod
    def from_status(cls, status_code: int) -> "ErrorKind":
        """Map an HTTP status code to its classification tag."""
        specific = {
            400: cls.BAD_REQUEST,
            403: cls.FORBIDDEN,
            404: cls.NOT_FOUND,
            409: cls.CONFLICT,
            429: cls.RATE_LIMITED,
        }
        if status_code in specific:
            return specific[status_code]
        if 400 <= status_code < 500:  # noqa: PLR2004
            return cls.CLIENT_ERROR
        if 500 <= status_code < 600:  # noqa: PLR2004
            return cls.SERVER_ERROR
        return cls.UNEXPECTED_STATUS


class ApiError(DomoError):
    """Raised when the server understood the request and rejected it.

    Attributes:
        status_code: HTTP status code of the response.
        remote_message: Message reported by the server.
        correlation_id: Identifier to quote when escalating to support.
        kind: Classification derived from ``status_code``.
    """

    def __init__(
        self,
        status_code: int,
        remote_message: str,
        correlation_id: str | None = None,
    ):
        self.status_code = status_code
        self.remote_message = remote_message
        self.correlation_id = correlation_id
        self.kind = ErrorKind.from_status(status_code)
        super().__init__(f"{status_code} {self.kind.value}: {remote_message}")


class DecodeError(DomoError):
    """Raised when a valid HTTP response does not match the expected shape."""


class EditAborted(DomoError):
    """Raised when an edit workflow ends without submitting.

    The edited document is kept on disk at ``document_path`` so no user
    work is lost.
    """

    def __init__(self, message: str, document_path: Path | None = None):
        super().__init__(message)
        self.document_path = document_path


class ValidationError(EditAborted):
    """Raised when an edited document stays malformed past the retry bound."""
