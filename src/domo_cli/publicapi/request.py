"""Request descriptors for the Domo public API."""

import enum
from dataclasses import dataclass
from typing import Any

import pydantic


class ResponseShape(enum.Enum):
    """What a successful response body is expected to contain."""

    OBJECT = "object"
    LIST = "list"
    TEXT = "text"
    NONE = "none"


@dataclass(frozen=True)
class RequestDescriptor:
    """A single API call, built fresh for every request.

    Attributes:
        method: HTTP verb.
        path: Path relative to the API host (e.g. "/v1/datasets").
        params: Ordered query parameters.
        json: JSON payload, if any.
        content: Raw payload (e.g. CSV), sent with ``content_type``.
        content_type: Content type of ``content``.
        shape: Expected shape of a successful response body.
        model: Model used to validate OBJECT and LIST bodies.
    """

    method: str
    path: str
    params: tuple[tuple[str, str], ...] = ()
    json: Any = None
    content: str | None = None
    content_type: str | None = None
    shape: ResponseShape = ResponseShape.OBJECT
    model: type[pydantic.BaseModel] | None = None
