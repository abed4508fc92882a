"""Domo public API client package.

Provides the authenticated request pipeline for the Domo public API: token
management, request dispatch with a single refresh-on-401 retry, response
decoding into Pydantic models, offset pagination and per-resource facades.

Exports:
    DomoApiClient: HTTP client with authentication and error handling.
    Credentials: Host, client id and client secret.
    PageCursor: Lazy sequence of pages over a list endpoint.
    types: Module containing Pydantic models for API payloads.
    The error classes raised by the client.
"""

from . import types
from .auth import Credentials, Token, TokenManager
from .client import DEFAULT_HOST, DEFAULT_TIMEOUT, DomoApiClient
from .errors import (
    ApiError,
    AuthError,
    DecodeError,
    DomoError,
    EditAborted,
    ErrorKind,
    InvalidArgument,
    TransportError,
    ValidationError,
)
from .pagination import PageCursor
from .request import RequestDescriptor, ResponseShape
from .resources import ResourceClient

__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_TIMEOUT",
    "ApiError",
    "AuthError",
    "Credentials",
    "DecodeError",
    "DomoApiClient",
    "DomoError",
    "EditAborted",
    "ErrorKind",
    "InvalidArgument",
    "PageCursor",
    "RequestDescriptor",
    "ResourceClient",
    "ResponseShape",
    "Token",
    "TokenManager",
    "TransportError",
    "ValidationError",
    "types",
]
