"""Shared fixtures: an in-memory Domo API served through httpx.MockTransport."""

import threading
from collections.abc import Callable
from typing import Any

import httpx
import pytest
import structlog

from domo_cli.publicapi import Credentials, DomoApiClient

HOST = "https://api.example.test"

Route = Callable[[httpx.Request], httpx.Response] | tuple[int, Any]


class FakeDomo:
    """Scripted stand-in for the API host.

    Responses registered for a route are served in order; the last one is
    repeated for any further request. The token endpoint answers on its own
    with ``token-1``, ``token-2``... unless ``token_route`` is set.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], list[Route]] = {}
        self.token_route: Route | None = None
        self.expires_in = 3600
        self._lock = threading.Lock()

    def add(self, method: str, path: str, status: int = 200, body: Any = None) -> None:
        self.routes.setdefault((method, path), []).append((status, body))

    def add_handler(
        self,
        method: str,
        path: str,
        handler: Callable[[httpx.Request], httpx.Response],
    ) -> None:
        self.routes.setdefault((method, path), []).append(handler)

    def sent(self, method: str | None = None) -> list[httpx.Request]:
        """Return the non-token requests received, optionally by method."""
        return [r for r in self.requests if method is None or r.method == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            if request.url.path == "/oauth/token":
                self.token_requests.append(request)
                if self.token_route is not None:
                    return _respond(self.token_route, request)
                return httpx.Response(
                    200,
                    json={
                        "access_token": f"token-{len(self.token_requests)}",
                        "token_type": "bearer",
                        "expires_in": self.expires_in,
                        "scope": request.url.params.get("scope"),
                    },
                )

            self.requests.append(request)
            queue = self.routes.get((request.method, request.url.path))
            if not queue:
                return httpx.Response(
                    404,
                    json={
                        "status": 404,
                        "statusReason": "Not Found",
                        "message": f"No route for {request.method} {request.url.path}",
                        "toe": "TEST-NO-ROUTE",
                    },
                )
            route = queue.pop(0) if len(queue) > 1 else queue[0]
        return _respond(route, request)


def _respond(route: Route, request: httpx.Request) -> httpx.Response:
    if callable(route):
        return route(request)
    status, body = route
    if body is None:
        return httpx.Response(status)
    if isinstance(body, str):
        return httpx.Response(status, text=body)
    return httpx.Response(status, json=body)


@pytest.fixture
def backend() -> FakeDomo:
    return FakeDomo()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(host=HOST, client_id="client-id", client_secret="client-secret")


@pytest.fixture
def http_client(backend):
    with httpx.Client(base_url=HOST, transport=httpx.MockTransport(backend.handler)) as c:
        yield c


@pytest.fixture
def api(backend, credentials):
    with DomoApiClient(credentials, transport=httpx.MockTransport(backend.handler)) as client:
        yield client


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()
