from __future__ import annotations

import logging
from typing import Any, Optional, Sequence, TypeVar

from ..errors import AmbiguousResultError, DecodeError, NotFoundError

log = logging.getLogger(__name__)

T = TypeVar("T")


# Serialisation helpers: unset values never reach the wire, explicit False/0 do.


def put_str(q: dict[str, str], key: str, value: Optional[str]) -> None:
    if value is not None:
        q[key] = value


def put_list(q: dict[str, str], key: str, values: Optional[Sequence[str]]) -> None:
    if values:
        q[key] = ",".join(values)


def put_bool(q: dict[str, str], key: str, value: Optional[bool]) -> None:
    if value is not None:
        q[key] = "true" if value else "false"


def put_int(q: dict[str, str], key: str, value: Optional[int]) -> None:
    if value is not None:
        q[key] = str(int(value))


def expect_list(data: Any, what: str) -> list[dict[str, Any]]:
    if data is None:
        return []
    if not isinstance(data, list) or not all(isinstance(x, dict) for x in data):
        raise DecodeError(
            "An unexpected error occurred while parsing the response from the API Server into a "
            f"list of {what} objects.\n\nError: unexpected payload type {type(data).__name__}"
        )
    return data


def decode_items(data: Any, what: str, factory) -> list:
    items = expect_list(data, what)
    try:
        return [factory(x) for x in items]
    except (TypeError, ValueError, AttributeError) as e:
        raise DecodeError(
            "An unexpected error occurred while parsing the response from the API Server into a "
            f"list of {what} objects.\n\nError: {e}"
        ) from e


def exactly_one(items: list[T], kind: str, item_id: str, error_code: int) -> T:
    """Enforce the single-result contract of an id lookup."""
    if not items:
        msg = (
            f"No matching {kind} was found. Try expanding your search or check that your "
            f"{kind} ID is valid.\n\nID: {item_id}"
        )
        log.error(msg, extra={"internal_error_code": error_code, "found": 0})
        raise NotFoundError(msg, summary=f"{kind.capitalize()} Not Found")
    if len(items) > 1:
        # an id filter should never match more than one item
        msg = (
            f"This data source expects 1 matching {kind} but {len(items)} were found. "
            f"Please narrow your search.\n\nID: {item_id}"
        )
        log.error(msg, extra={"internal_error_code": error_code, "found": len(items)})
        raise AmbiguousResultError(msg, summary=f"Multiple {kind.capitalize()}s Found")
    return items[0]


def as_str(v: Any) -> str:
    return "" if v is None else str(v)


def as_int(v: Any) -> int:
    return 0 if v is None else int(v)


def as_bool(v: Any) -> bool:
    return bool(v)
