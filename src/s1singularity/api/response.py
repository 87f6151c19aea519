from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from ..errors import DecodeError


@dataclass(frozen=True)
class APIErrorEntry:
    code: int
    title: str
    detail: str


@dataclass(frozen=True)
class Pagination:
    total_items: int = 0
    # "" means there are no more pages.
    next_cursor: str = ""


@dataclass(frozen=True)
class APIResponse:
    pagination: Pagination = field(default_factory=Pagination)
    # Raw parsed payload; each finder applies its own typed shape.
    data: Any = None
    errors: tuple[APIErrorEntry, ...] = ()


def _parse_errors(raw: Any) -> tuple[APIErrorEntry, ...]:
    if not isinstance(raw, list):
        return ()
    out: list[APIErrorEntry] = []
    for e in raw:
        if not isinstance(e, dict):
            continue
        try:
            code = int(e.get("code") or 0)
        except (TypeError, ValueError):
            code = 0
        out.append(
            APIErrorEntry(
                code=code,
                title=str(e.get("title") or ""),
                detail=str(e.get("detail") or ""),
            )
        )
    return tuple(out)


def _parse_pagination(raw: Any) -> Pagination:
    if not isinstance(raw, dict):
        return Pagination()
    total = raw.get("totalItems")
    cursor = raw.get("nextCursor")
    return Pagination(
        total_items=int(total) if isinstance(total, int) else 0,
        next_cursor=str(cursor) if cursor else "",
    )


def decode_envelope(body: bytes | str) -> APIResponse:
    """
    Parse the envelope shared by every endpoint:

      {"pagination": {"totalItems": .., "nextCursor": ..}, "data": .., "errors": [..]}

    A single parse attempt is made; anything that is not a JSON object raises DecodeError.
    """
    try:
        js = json.loads(body)
    except (TypeError, ValueError) as e:
        raise DecodeError(
            "An unexpected error occurred while parsing the response from the API Server.\n\n"
            f"Error: {e}"
        ) from e
    if not isinstance(js, dict):
        raise DecodeError(
            "An unexpected error occurred while parsing the response from the API Server.\n\n"
            f"Error: expected a JSON object, got {type(js).__name__}"
        )
    return APIResponse(
        pagination=_parse_pagination(js.get("pagination")),
        data=js.get("data"),
        errors=_parse_errors(js.get("errors")),
    )
