"""Offset pagination over list endpoints.

The API never reports a total count, so a page shorter than the requested
limit is taken as the last one. A full page that happens to be the last
costs one extra request returning an empty page.
"""

from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

import structlog

from .errors import InvalidArgument

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 50

# Largest page the list endpoints accept.
MAX_PAGE_SIZE = 500


def check_page_args(limit: int | None, offset: int | None) -> None:
    """Reject page arguments the API cannot honour.

    Raises:
        InvalidArgument: If limit is not in 1..500 or offset is negative.
    """
    if limit is not None and not 0 < limit <= MAX_PAGE_SIZE:
        msg = f"limit must be between 1 and {MAX_PAGE_SIZE}, got {limit}"
        raise InvalidArgument(msg)
    if offset is not None and offset < 0:
        msg = f"offset cannot be negative, got {offset}"
        raise InvalidArgument(msg)


class PageCursor(Generic[T]):
    """Lazy, forward-only sequence of item batches from a list endpoint.

    Each step calls ``fetch_page(limit, offset)`` once. The cursor is its own
    iterator: once exhausted it stays exhausted, and it must not be stepped
    by more than one consumer at a time.
    """

    def __init__(
        self,
        fetch_page: Callable[[int, int], list[T]],
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ):
        """Initialize the cursor.

        Args:
            fetch_page: Returns the batch for a given (limit, offset).
            limit: Page size.
            offset: Offset of the first item to fetch.

        Raises:
            InvalidArgument: If limit or offset are out of range.
        """
        check_page_args(limit, offset)
        self._fetch_page = fetch_page
        self.limit = limit
        self.offset = offset
        self.exhausted = False

    def __iter__(self) -> Iterator[list[T]]:
        return self

    def __next__(self) -> list[T]:
        if self.exhausted:
            raise StopIteration

        batch = self._fetch_page(self.limit, self.offset)
        logger.debug(
            "Fetched page",
            limit=self.limit,
            offset=self.offset,
            size=len(batch),
        )
        if len(batch) < self.limit:
            self.exhausted = True
            if not batch:
                raise StopIteration
        else:
            self.offset += self.limit
        return batch

    def items(self) -> Iterator[T]:
        """Iterate over the individual items of all remaining pages."""
        for batch in self:
            yield from batch
