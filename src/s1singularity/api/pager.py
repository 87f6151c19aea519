from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, TypeVar

from ..errors import ERR_API_PAGER_DRAIN, PaginationLimitError
from .client import APIClient

log = logging.getLogger(__name__)

T = TypeVar("T")

PageDecoder = Callable[[Any], list[T]]


def drain(
    client: APIClient,
    uri: str,
    query_params: Optional[Mapping[str, str]],
    page_decoder: PageDecoder[T],
    *,
    max_pages: Optional[int] = None,
) -> list[T]:
    """
    Fetch every page of a cursor-paginated query and return all items in order.

    The first failing page aborts the whole drain; partial results are never returned.
    With max_pages=None the loop runs until the server stops returning a cursor.
    """
    params = dict(query_params or {})
    params.pop("cursor", None)

    out: list[T] = []
    pages = 0
    while True:
        if max_pages is not None and pages >= max_pages:
            msg = (
                "The API server kept returning a next page cursor after the maximum number of pages "
                f"was fetched.\n\nURI: {uri}\nMax Pages: {max_pages}"
            )
            log.error(msg, extra={"internal_error_code": ERR_API_PAGER_DRAIN})
            raise PaginationLimitError(msg)

        result = client.get(uri, params)
        out.extend(page_decoder(result.data))
        pages += 1

        if not result.pagination.next_cursor:
            break
        params["cursor"] = result.pagination.next_cursor

    log.debug("drained uri=%s pages=%d items=%d", uri, pages, len(out))
    return out
