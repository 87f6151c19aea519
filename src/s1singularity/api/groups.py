from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import ERR_API_GROUP_FIND_GROUPS, ERR_API_GROUP_GET_GROUP, DecodeError
from .client import APIClient
from .pager import drain
from .query import (
    as_bool,
    as_int,
    as_str,
    decode_items,
    exactly_one,
    put_bool,
    put_int,
    put_list,
    put_str,
)

log = logging.getLogger(__name__)


GROUPS_URI = "/groups"


@dataclass(frozen=True)
class Group:
    id: str
    created_at: str = ""
    creator: str = ""
    creator_id: str = ""
    description: str = ""
    filter_id: str = ""
    filter_name: str = ""
    inherits: bool = False
    is_default: bool = False
    name: str = ""
    rank: int = 0
    registration_token: str = ""
    site_id: str = ""
    total_agents: int = 0
    type: str = ""
    updated_at: str = ""

    @classmethod
    def from_api(cls, d: dict[str, Any]) -> "Group":
        return cls(
            id=as_str(d.get("id")),
            created_at=as_str(d.get("createdAt")),
            creator=as_str(d.get("creator")),
            creator_id=as_str(d.get("creatorId")),
            description=as_str(d.get("description")),
            filter_id=as_str(d.get("filterId")),
            filter_name=as_str(d.get("filterName")),
            inherits=as_bool(d.get("inherits")),
            is_default=as_bool(d.get("isDefault")),
            name=as_str(d.get("name")),
            rank=as_int(d.get("rank")),
            registration_token=as_str(d.get("registrationToken")),
            site_id=as_str(d.get("siteId")),
            total_agents=as_int(d.get("totalAgents")),
            type=as_str(d.get("type")),
            updated_at=as_str(d.get("updatedAt")),
        )


@dataclass(frozen=True)
class GroupQueryParams:
    account_ids: tuple[str, ...] = ()
    description: Optional[str] = None
    group_ids: tuple[str, ...] = ()
    is_default: Optional[bool] = None
    name: Optional[str] = None
    query: Optional[str] = None
    rank: Optional[int] = None
    registration_token: Optional[str] = None
    site_ids: tuple[str, ...] = ()
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    types: tuple[str, ...] = ()
    updated_after: Optional[str] = None
    updated_at_or_after: Optional[str] = None
    updated_at_or_before: Optional[str] = None
    updated_before: Optional[str] = None

    def to_query(self) -> dict[str, str]:
        q: dict[str, str] = {}
        put_list(q, "accountIds", self.account_ids)
        put_str(q, "description", self.description)
        put_list(q, "ids", self.group_ids)
        put_bool(q, "isDefault", self.is_default)
        put_str(q, "name", self.name)
        put_str(q, "query", self.query)
        put_int(q, "rank", self.rank)
        put_str(q, "registrationToken", self.registration_token)
        put_list(q, "siteIds", self.site_ids)
        put_str(q, "sortBy", self.sort_by)
        put_str(q, "sortOrder", self.sort_order)
        put_list(q, "types", self.types)
        put_str(q, "updatedAt__gt", self.updated_after)
        put_str(q, "updatedAt__gte", self.updated_at_or_after)
        put_str(q, "updatedAt__lte", self.updated_at_or_before)
        put_str(q, "updatedAt__lt", self.updated_before)
        return q


def decode_groups(data: Any) -> list[Group]:
    try:
        return decode_items(data, "Group", Group.from_api)
    except DecodeError as e:
        log.error(e.detail, extra={"internal_error_code": ERR_API_GROUP_FIND_GROUPS})
        raise


def find_groups(
    client: APIClient,
    params: GroupQueryParams = GroupQueryParams(),
    *,
    max_pages: Optional[int] = None,
) -> list[Group]:
    return drain(client, GROUPS_URI, params.to_query(), decode_groups, max_pages=max_pages)


def get_group(client: APIClient, group_id: str) -> Group:
    groups = drain(client, GROUPS_URI, {"ids": group_id}, decode_groups)
    return exactly_one(groups, "group", group_id, ERR_API_GROUP_GET_GROUP)
