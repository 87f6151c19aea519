from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..errors import ERR_API_SITE_FIND_SITES, ERR_API_SITE_GET_SITE, DecodeError
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


SITES_URI = "/sites"


@dataclass(frozen=True)
class BundleSurface:
    count: int
    name: str


@dataclass(frozen=True)
class LicenseBundle:
    display_name: str = ""
    major_version: int = 0
    minor_version: int = 0
    name: str = ""
    surfaces: tuple[BundleSurface, ...] = ()
    total_surfaces: int = 0


@dataclass(frozen=True)
class LicenseModule:
    display_name: str = ""
    major_version: int = 0
    name: str = ""


@dataclass(frozen=True)
class LicenseSetting:
    group_name: str = ""
    setting: str = ""
    setting_group_display_name: str = ""


@dataclass(frozen=True)
class SiteLicenses:
    bundles: tuple[LicenseBundle, ...] = ()
    modules: tuple[LicenseModule, ...] = ()
    settings: tuple[LicenseSetting, ...] = ()


def _licenses_from_api(d: Optional[dict[str, Any]]) -> SiteLicenses:
    if not d:
        return SiteLicenses()
    return SiteLicenses(
        bundles=tuple(
            LicenseBundle(
                display_name=as_str(x.get("displayName")),
                major_version=as_int(x.get("majorVersion")),
                minor_version=as_int(x.get("minorVersion")),
                name=as_str(x.get("name")),
                surfaces=tuple(
                    BundleSurface(count=as_int(s.get("count")), name=as_str(s.get("name")))
                    for s in (x.get("surfaces") or [])
                ),
                total_surfaces=as_int(x.get("totalSurfaces")),
            )
            for x in (d.get("bundles") or [])
        ),
        modules=tuple(
            LicenseModule(
                display_name=as_str(x.get("displayName")),
                major_version=as_int(x.get("majorVersion")),
                name=as_str(x.get("name")),
            )
            for x in (d.get("modules") or [])
        ),
        settings=tuple(
            LicenseSetting(
                group_name=as_str(x.get("groupName")),
                setting=as_str(x.get("setting")),
                setting_group_display_name=as_str(x.get("settingGroupDisplayName")),
            )
            for x in (d.get("settings") or [])
        ),
    )


@dataclass(frozen=True)
class Site:
    id: str
    account_id: str = ""
    account_name: str = ""
    active_licenses: int = 0
    created_at: str = ""
    creator: str = ""
    creator_id: str = ""
    description: str = ""
    expiration: str = ""
    external_id: str = ""
    is_default: bool = False
    licenses: SiteLicenses = field(default_factory=SiteLicenses)
    name: str = ""
    registration_token: str = ""
    site_type: str = ""
    state: str = ""
    total_licenses: int = 0
    unlimited_expiration: bool = False
    unlimited_licenses: bool = False
    updated_at: str = ""

    @classmethod
    def from_api(cls, d: dict[str, Any]) -> "Site":
        return cls(
            id=as_str(d.get("id")),
            account_id=as_str(d.get("accountId")),
            account_name=as_str(d.get("accountName")),
            active_licenses=as_int(d.get("activeLicenses")),
            created_at=as_str(d.get("createdAt")),
            creator=as_str(d.get("creator")),
            creator_id=as_str(d.get("creatorId")),
            description=as_str(d.get("description")),
            expiration=as_str(d.get("expiration")),
            external_id=as_str(d.get("externalId")),
            is_default=as_bool(d.get("isDefault")),
            licenses=_licenses_from_api(d.get("licenses")),
            name=as_str(d.get("name")),
            registration_token=as_str(d.get("registrationToken")),
            site_type=as_str(d.get("siteType")),
            state=as_str(d.get("state")),
            total_licenses=as_int(d.get("totalLicenses")),
            unlimited_expiration=as_bool(d.get("unlimitedExpiration")),
            unlimited_licenses=as_bool(d.get("unlimitedLicenses")),
            updated_at=as_str(d.get("updatedAt")),
        )


@dataclass(frozen=True)
class SiteQueryParams:
    account_ids: tuple[str, ...] = ()
    account_name_contains: tuple[str, ...] = ()
    active_licenses: Optional[int] = None
    admin_only: Optional[bool] = None
    available_move_sites: Optional[bool] = None
    created_at: Optional[str] = None
    description: Optional[str] = None
    description_contains: tuple[str, ...] = ()
    expiration: Optional[str] = None
    external_id: Optional[str] = None
    features: tuple[str, ...] = ()
    is_default: Optional[bool] = None
    modules: tuple[str, ...] = ()
    name: Optional[str] = None
    name_contains: tuple[str, ...] = ()
    query: Optional[str] = None
    registration_token: Optional[str] = None
    site_ids: tuple[str, ...] = ()
    site_type: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    states: tuple[str, ...] = ()
    total_licenses: Optional[int] = None
    updated_at: Optional[str] = None

    def to_query(self) -> dict[str, str]:
        q: dict[str, str] = {}
        put_list(q, "accountIds", self.account_ids)
        put_list(q, "accountName__contains", self.account_name_contains)
        put_int(q, "activeLicenses", self.active_licenses)
        put_bool(q, "adminOnly", self.admin_only)
        put_bool(q, "availableMoveSites", self.available_move_sites)
        put_str(q, "createdAt", self.created_at)
        put_str(q, "description", self.description)
        put_list(q, "description__contains", self.description_contains)
        put_str(q, "expiration", self.expiration)
        put_str(q, "externalId", self.external_id)
        put_list(q, "features", self.features)
        put_bool(q, "isDefault", self.is_default)
        put_list(q, "modules", self.modules)
        put_str(q, "name", self.name)
        put_list(q, "name__contains", self.name_contains)
        put_str(q, "query", self.query)
        put_str(q, "registrationToken", self.registration_token)
        put_list(q, "siteIds", self.site_ids)
        put_str(q, "siteType", self.site_type)
        put_str(q, "sortBy", self.sort_by)
        put_str(q, "sortOrder", self.sort_order)
        put_list(q, "states", self.states)
        put_int(q, "totalLicenses", self.total_licenses)
        put_str(q, "updatedAt", self.updated_at)
        return q


def decode_sites(data: Any) -> list[Site]:
    """
    The sites endpoint wraps each page as {"allSites": {...}, "sites": [...]};
    only the site list is kept.
    """
    if data is None:
        return []
    if not isinstance(data, dict):
        msg = (
            "An unexpected error occurred while parsing the response from the API Server into a "
            f"list of Site objects.\n\nError: unexpected payload type {type(data).__name__}"
        )
        log.error(msg, extra={"internal_error_code": ERR_API_SITE_FIND_SITES})
        raise DecodeError(msg)
    try:
        return decode_items(data.get("sites"), "Site", Site.from_api)
    except DecodeError as e:
        log.error(e.detail, extra={"internal_error_code": ERR_API_SITE_FIND_SITES})
        raise


def find_sites(
    client: APIClient,
    params: SiteQueryParams = SiteQueryParams(),
    *,
    max_pages: Optional[int] = None,
) -> list[Site]:
    return drain(client, SITES_URI, params.to_query(), decode_sites, max_pages=max_pages)


def get_site(client: APIClient, site_id: str) -> Site:
    sites = drain(client, SITES_URI, {"siteIds": site_id}, decode_sites)
    return exactly_one(sites, "site", site_id, ERR_API_SITE_GET_SITE)
