"""Domo public API client.

Provides the authenticated request pipeline: builds requests, attaches the
bearer token, dispatches them over httpx, classifies the response and
decodes the body into Pydantic models.
"""

import threading
import time
from typing import Any

import httpx
import pydantic
import structlog

from . import resources
from .auth import DEFAULT_SCOPE, Credentials, Token, TokenManager
from .errors import ApiError, AuthError, DecodeError, TransportError
from .request import RequestDescriptor, ResponseShape

logger = structlog.get_logger(__name__)

DEFAULT_HOST = "https://api.domo.com"

DEFAULT_TIMEOUT = 30.0


class DomoApiClient:
    """HTTP client for the Domo public API.

    Owns the credentials and token manager for its lifetime. Thread-safe
    through thread-local storage of httpx.Client instances; the token is
    shared across threads. Can be used as a context manager for automatic
    cleanup.
    """

    def __init__(
        self,
        credentials: Credentials,
        scope: str = DEFAULT_SCOPE,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the API client.

        Args:
            credentials: Host, client id and client secret.
            scope: OAuth scopes requested for the bearer token.
            timeout: Request timeout in seconds (default: 30.0).
            transport: httpx transport to send requests over. Defaults to
                httpx's network transport.

        Raises:
            ValueError: If the host is empty or timeout is not positive.
        """
        if not credentials.host:
            msg = "host cannot be empty"
            raise ValueError(msg)
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)

        self.credentials = credentials
        self.base_url = credentials.host.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers = {"Accept": "application/json"}

        # Use thread-local storage for httpx.Client (thread safety)
        self._local = threading.local()
        self.tokens = TokenManager(credentials, session=lambda: self.client, scope=scope)

        self.datasets = resources.DatasetResource(self)
        self.streams = resources.StreamResource(self)
        self.users = resources.UserResource(self)
        self.accounts = resources.AccountResource(self)
        self.projects = resources.ProjectResource(self)

    @property
    def client(self) -> httpx.Client:
        """Get or create thread-local httpx client.

        Each thread gets its own httpx.Client instance for thread safety.
        Clients are created lazily and reused within the same thread.

        Returns:
            Thread-local httpx.Client instance.
        """
        if not hasattr(self._local, "client") or self._local.client.is_closed:
            self._local.client = httpx.Client(
                base_url=self.base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._local.client

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self):
        """Close the thread-local HTTP client if open."""
        if hasattr(self._local, "client") and not self._local.client.is_closed:
            self._local.client.close()

    def execute(self, descriptor: RequestDescriptor) -> Any:
        """Run one API call and return its decoded body.

        A 401 response triggers exactly one token refresh and resend; every
        other failure is raised immediately.

        Args:
            descriptor: The request to send.

        Returns:
            A model instance for OBJECT, a list of models for LIST, the body
            text for TEXT and None for NONE.

        Raises:
            AuthError: If no token can be obtained or the server rejects
                the refreshed token as well.
            ApiError: If the server answers with any other non-2xx status.
            TransportError: If the server could not be reached.
            DecodeError: If the body does not match the expected shape.
        """
        token = self.tokens.get_token()
        response = self._send(descriptor, token)

        if response.status_code == httpx.codes.UNAUTHORIZED:
            logger.info("Token rejected, refreshing once", path=descriptor.path)
            self.tokens.invalidate(token)
            token = self.tokens.get_token()
            response = self._send(descriptor, token)
            if response.status_code == httpx.codes.UNAUTHORIZED:
                error = _parse_error(response)
                msg = "Request rejected as unauthorized after token refresh"
                raise AuthError(
                    msg,
                    status_code=response.status_code,
                    remote_message=error.remote_message,
                )

        if not response.is_success:
            error = _parse_error(response)
            logger.error(
                "API error response",
                method=descriptor.method,
                path=descriptor.path,
                status_code=error.status_code,
                error_message=error.remote_message,
                correlation_id=error.correlation_id,
            )
            raise error

        return _decode(response, descriptor)

    def _send(self, descriptor: RequestDescriptor, token: Token) -> httpx.Response:
        """Send the request with the given token, mapping transport failures."""
        start_time = time.time()
        headers = {"Authorization": f"Bearer {token.value}"}
        if descriptor.content_type:
            headers["Content-Type"] = descriptor.content_type

        try:
            logger.debug(
                "Making API request",
                method=descriptor.method,
                path=descriptor.path,
                params=dict(descriptor.params),
            )
            response = self.client.request(
                descriptor.method,
                descriptor.path,
                params=list(descriptor.params),
                json=descriptor.json,
                content=descriptor.content,
                headers=headers,
            )
        except httpx.RequestError as exc:
            duration = time.time() - start_time
            logger.exception(
                "API request failed",
                method=descriptor.method,
                path=descriptor.path,
                duration_seconds=round(duration, 3),
            )
            msg = f"{descriptor.method} {descriptor.path} failed: {exc}"
            raise TransportError(msg) from exc

        duration = time.time() - start_time
        logger.debug(
            "API request completed",
            status_code=response.status_code,
            duration_seconds=round(duration, 3),
        )
        return response


def _parse_error(response: httpx.Response) -> ApiError:
    """Build an ApiError from a non-2xx response.

    Domo error bodies look like
    ``{"status": 404, "statusReason": "Not Found", "message": "...", "toe": "..."}``
    where ``toe`` identifies the request for support.
    """
    body: Any = None
    try:
        body = response.json()
    except ValueError:
        pass

    correlation_id = response.headers.get("X-Request-Id")
    message = response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        message = body.get("message") or body.get("statusReason") or message
        correlation_id = body.get("toe") or correlation_id

    return ApiError(
        status_code=response.status_code,
        remote_message=str(message),
        correlation_id=correlation_id,
    )


def _decode(response: httpx.Response, descriptor: RequestDescriptor) -> Any:
    """Decode a 2xx body according to the descriptor's expected shape."""
    shape = descriptor.shape
    if shape is ResponseShape.NONE:
        return None
    if shape is ResponseShape.TEXT:
        return response.text

    if not response.content:
        msg = f"{descriptor.method} {descriptor.path} returned an empty body"
        raise DecodeError(msg)
    try:
        data = response.json()
    except ValueError as exc:
        msg = f"{descriptor.method} {descriptor.path} returned a non-JSON body"
        raise DecodeError(msg) from exc

    expected = dict if shape is ResponseShape.OBJECT else list
    if not isinstance(data, expected):
        msg = (
            f"{descriptor.method} {descriptor.path} returned a JSON "
            f"{type(data).__name__}, expected {shape.value}"
        )
        raise DecodeError(msg)

    if descriptor.model is None:
        return data

    try:
        if shape is ResponseShape.OBJECT:
            return descriptor.model.model_validate(data)
        return [descriptor.model.model_validate(item) for item in data]
    except pydantic.ValidationError as exc:
        msg = (
            f"{descriptor.method} {descriptor.path} response does not match "
            f"{descriptor.model.__name__}: {exc}"
        )
        raise DecodeError(msg) from exc
