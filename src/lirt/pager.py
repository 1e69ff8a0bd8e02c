"""Cursor pagination over Relay-style GraphQL connections.

Pages are requested with ``first``/``after`` and read back from a
``{nodes, pageInfo {hasNextPage, endCursor}}`` connection. Cursors are opaque:
they are passed back to the server verbatim and never inspected.

Traversal is only complete if the remote dataset does not change while it is
being walked. Items created or deleted mid-traversal may be skipped or
returned twice; callers needing a consistent snapshot must filter on a stable
field such as ``updatedAt``.
"""

from __future__ import annotations
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol
from .config import DEFAULT_PAGE_SIZE
from .errors import PaginationError, TransportError
from .transport import GraphQLResult


logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 1000


class QueryClient(Protocol):
    """Anything able to run a GraphQL query."""

    def query(
        self, document: str, variables: Mapping[str, Any] | None = None
    ) -> GraphQLResult:
        """Run ``document`` with ``variables``."""
        ...  # pragma: no cover


@dataclass(slots=True)
class Page:
    """One page of a connection."""

    items: list[Any] = field(default_factory=list)
    next_cursor: str | None = None
    has_more: bool = False


def _locate_connection(data: Mapping[str, Any], connection: str | None) -> Any:
    if connection is None:
        if len(data) != 1:
            fields = ", ".join(sorted(data)) or "none"
            raise TransportError(
                f"Cannot infer the paginated field (top-level fields: {fields})"
            )
        return next(iter(data.values()))
    node: Any = data
    for part in connection.split("."):
        if not isinstance(node, Mapping):
            node = None
            break
        node = node.get(part)
    return node


class Pager:
    """Drive repeated queries to walk a paginated connection."""

    def __init__(
        self,
        client: QueryClient,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        """Create a pager issuing ``page_size`` item requests through ``client``."""
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.client = client
        self.page_size = page_size
        self.max_pages = max_pages

    def fetch_page(
        self,
        document: str,
        variables: Mapping[str, Any] | None = None,
        cursor: str | None = None,
        *,
        connection: str | None = None,
        first: int | None = None,
    ) -> Page:
        """Fetch a single page, starting after ``cursor`` when given."""
        request_vars = dict(variables or {})
        request_vars["first"] = first or self.page_size
        if cursor is not None:
            request_vars["after"] = cursor
        else:
            request_vars.pop("after", None)

        result = self.client.query(document, request_vars)
        conn = _locate_connection(result.data, connection)
        if conn is None:
            return Page()
        if not isinstance(conn, Mapping):
            raise TransportError("Malformed response: connection is not an object")

        nodes = conn.get("nodes") or []
        page_info = conn.get("pageInfo") or {}
        has_more = bool(page_info.get("hasNextPage"))
        next_cursor = page_info.get("endCursor")
        return Page(
            items=list(nodes),
            next_cursor=next_cursor if isinstance(next_cursor, str) else None,
            has_more=has_more,
        )

    def fetch_all(
        self,
        document: str,
        variables: Mapping[str, Any] | None = None,
        *,
        connection: str | None = None,
        limit: int | None = None,
    ) -> Iterator[Any]:
        """Yield every item of the connection, one page at a time.

        The generator starts from the first page each time it is created.
        ``limit`` stops the traversal once that many items have been yielded.
        """
        if limit is not None and limit <= 0:
            return
        seen: set[str] = set()
        cursor: str | None = None
        yielded = 0
        for page_number in range(1, self.max_pages + 1):
            first = self.page_size
            if limit is not None:
                first = min(first, limit - yielded)
            page = self.fetch_page(
                document, variables, cursor, connection=connection, first=first
            )
            logger.debug(
                "Fetched page %d (%d items, has_more=%s)",
                page_number,
                len(page.items),
                page.has_more,
            )
            for item in page.items:
                yield item
                yielded += 1
                if limit is not None and yielded >= limit:
                    return
            if not page.has_more:
                return
            if page.next_cursor is None:
                raise PaginationError(
                    "Server reported more pages but returned no continuation cursor"
                )
            if page.next_cursor in seen:
                raise PaginationError(
                    f"Server repeated a continuation cursor after {page_number} pages"
                )
            seen.add(page.next_cursor)
            cursor = page.next_cursor
        raise PaginationError(f"Pagination exceeded {self.max_pages} pages")


__all__ = ["DEFAULT_MAX_PAGES", "Page", "Pager", "QueryClient"]
