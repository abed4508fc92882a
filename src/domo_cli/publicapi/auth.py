"""Client-credentials authentication for the Domo public API.

Holds the OAuth2 client credentials and exchanges them for bearer tokens,
refreshing transparently before expiry. Refresh is serialized by a lock so
concurrent callers never trigger redundant exchanges.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

import httpx
import pydantic
import structlog

from .errors import AuthError

logger = structlog.get_logger(__name__)

TOKEN_PATH = "/oauth/token"

DEFAULT_SCOPE = "data user audit dashboard account workflow buzz"

# Tokens with less remaining lifetime than this are refreshed before use.
DEFAULT_EXPIRY_MARGIN = 30.0


@dataclass(frozen=True)
class Credentials:
    """Client credentials issued by the developer portal."""

    host: str
    client_id: str
    client_secret: str

    def __repr__(self) -> str:
        return f"Credentials(host={self.host!r}, client_id={self.client_id!r})"


@dataclass(frozen=True)
class Token:
    """Bearer token and the wall-clock time it expires at."""

    value: str
    expires_at: float

    def expires_within(self, margin: float, now: float | None = None) -> bool:
        """Return True if the token expires within ``margin`` seconds."""
        now = time.time() if now is None else now
        return self.expires_at - now <= margin

    def __repr__(self) -> str:
        return f"Token(expires_at={self.expires_at})"


class _TokenResponse(pydantic.BaseModel):
    access_token: str = pydantic.Field(min_length=1)
    expires_in: int


class TokenManager:
    """Exchanges credentials for bearer tokens and caches the current one.

    All access to the held token goes through a single lock. A caller that
    finds the token missing or about to expire performs the exchange while
    holding the lock; callers arriving meanwhile wait and then observe the
    freshly stored token instead of starting their own exchange.
    """

    def __init__(
        self,
        credentials: Credentials,
        session: Callable[[], httpx.Client],
        scope: str = DEFAULT_SCOPE,
        expiry_margin: float = DEFAULT_EXPIRY_MARGIN,
    ):
        """Initialize the token manager.

        Args:
            credentials: Client id, secret and API host.
            session: Returns the httpx client used for the exchange.
            scope: Space-separated OAuth scopes to request.
            expiry_margin: Seconds of remaining lifetime below which the
                token is refreshed. Tokens that live no longer than this
                are refreshed at half their lifetime instead.
        """
        self._credentials = credentials
        self._session = session
        self._scope = scope
        self._expiry_margin = expiry_margin
        # Margin for the held token, shrunk for tokens shorter-lived than it.
        self._margin = expiry_margin
        self._lock = Lock()
        self._token: Token | None = None

    def get_token(self) -> Token:
        """Return a valid bearer token, exchanging credentials if needed.

        Raises:
            AuthError: If the credential exchange fails for any reason.
        """
        with self._lock:
            if self._token is not None and not self._token.expires_within(
                self._margin,
            ):
                return self._token

            self._token = self._exchange()
            return self._token

    def invalidate(self, rejected: Token) -> None:
        """Drop ``rejected`` so the next :meth:`get_token` refreshes.

        Does nothing if another caller already replaced the token, so a burst
        of 401 responses results in a single exchange.
        """
        with self._lock:
            if self._token == rejected:
                logger.debug("Invalidating rejected token")
                self._token = None

    def _exchange(self) -> Token:
        start = time.time()
        logger.debug("Exchanging client credentials", scope=self._scope)
        try:
            response = self._session().post(
                TOKEN_PATH,
                params={"grant_type": "client_credentials", "scope": self._scope},
                auth=(self._credentials.client_id, self._credentials.client_secret),
            )
        except httpx.HTTPError as exc:
            logger.exception("Credential exchange failed to reach the server")
            msg = f"Credential exchange failed: {exc}"
            raise AuthError(msg) from exc

        if not response.is_success:
            remote_message = response.text.strip() or response.reason_phrase
            logger.error(
                "Credential exchange rejected",
                status_code=response.status_code,
            )
            msg = f"Credential exchange rejected with status {response.status_code}"
            raise AuthError(
                msg,
                status_code=response.status_code,
                remote_message=remote_message,
            )

        try:
            body = _TokenResponse.model_validate_json(response.content)
        except pydantic.ValidationError as exc:
            msg = "Credential exchange returned a malformed token response"
            raise AuthError(msg, status_code=response.status_code) from exc

        if body.expires_in <= self._expiry_margin:
            self._margin = body.expires_in / 2
            logger.warning(
                "Token lifetime is shorter than the refresh margin",
                expires_in_seconds=body.expires_in,
                expiry_margin_seconds=self._expiry_margin,
            )
        else:
            self._margin = self._expiry_margin

        logger.info(
            "Obtained access token",
            expires_in_seconds=body.expires_in,
            duration_seconds=round(time.time() - start, 3),
        )
        return Token(value=body.access_token, expires_at=start + body.expires_in)
