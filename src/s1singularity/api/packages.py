from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import ERR_API_PACKAGE_FIND_PACKAGES, ERR_API_PACKAGE_GET_PACKAGE, DecodeError
from .client import APIClient
from .pager import drain
from .query import (
    as_int,
    as_str,
    decode_items,
    exactly_one,
    put_list,
    put_str,
)

log = logging.getLogger(__name__)


PACKAGES_URI = "/update/agent/packages"


@dataclass(frozen=True)
class PackageAccount:
    id: str
    name: str


@dataclass(frozen=True)
class PackageSite:
    id: str
    name: str


@dataclass(frozen=True)
class Package:
    id: str
    accounts: tuple[PackageAccount, ...] = ()
    created_at: str = ""
    file_extension: str = ""
    file_name: str = ""
    file_size: int = 0
    link: str = ""
    major_version: str = ""
    minor_version: str = ""
    os_arch: str = ""
    os_type: str = ""
    package_type: str = ""
    platform_type: str = ""
    ranger_version: str = ""
    scope_level: str = ""
    sha1: str = ""
    sites: tuple[PackageSite, ...] = ()
    status: str = ""
    updated_at: str = ""
    version: str = ""

    @classmethod
    def from_api(cls, d: dict[str, Any]) -> "Package":
        return cls(
            id=as_str(d.get("id")),
            accounts=tuple(
                PackageAccount(id=as_str(a.get("id")), name=as_str(a.get("name")))
                for a in (d.get("accounts") or [])
            ),
            created_at=as_str(d.get("createdAt")),
            file_extension=as_str(d.get("fileExtension")),
            file_name=as_str(d.get("fileName")),
            file_size=as_int(d.get("fileSize")),
            link=as_str(d.get("link")),
            major_version=as_str(d.get("majorVersion")),
            minor_version=as_str(d.get("minorVersion")),
            os_arch=as_str(d.get("osArch")),
            os_type=as_str(d.get("osType")),
            package_type=as_str(d.get("packageType")),
            platform_type=as_str(d.get("platformType")),
            ranger_version=as_str(d.get("rangerVersion")),
            scope_level=as_str(d.get("scopeLevel")),
            sha1=as_str(d.get("sha1")),
            sites=tuple(
                PackageSite(id=as_str(x.get("id")), name=as_str(x.get("name")))
                for x in (d.get("sites") or [])
            ),
            status=as_str(d.get("status")),
            updated_at=as_str(d.get("updatedAt")),
            version=as_str(d.get("version")),
        )


@dataclass(frozen=True)
class PackageQueryParams:
    account_ids: tuple[str, ...] = ()
    file_extension: Optional[str] = None
    ids: tuple[str, ...] = ()
    minor_version: Optional[str] = None
    os_arches: tuple[str, ...] = ()
    os_types: tuple[str, ...] = ()
    package_types: tuple[str, ...] = ()
    platform_types: tuple[str, ...] = ()
    ranger_version: Optional[str] = None
    sha1: Optional[str] = None
    site_ids: tuple[str, ...] = ()
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    status: tuple[str, ...] = ()
    version: Optional[str] = None

    def to_query(self) -> dict[str, str]:
        q: dict[str, str] = {}
        put_list(q, "accountIds", self.account_ids)
        put_str(q, "fileExtension", self.file_extension)
        put_list(q, "ids", self.ids)
        put_str(q, "minorVersion", self.minor_version)
        put_list(q, "osArches", self.os_arches)
        put_list(q, "osTypes", self.os_types)
        put_list(q, "packageTypes", self.package_types)
        put_list(q, "platformTypes", self.platform_types)
        put_str(q, "rangerVersion", self.ranger_version)
        put_str(q, "sha1", self.sha1)
        put_list(q, "siteIds", self.site_ids)
        put_str(q, "sortBy", self.sort_by)
        put_str(q, "sortOrder", self.sort_order)
        put_list(q, "status", self.status)
        put_str(q, "version", self.version)
        return q


def decode_packages(data: Any) -> list[Package]:
    try:
        return decode_items(data, "Package", Package.from_api)
    except DecodeError as e:
        log.error(e.detail, extra={"internal_error_code": ERR_API_PACKAGE_FIND_PACKAGES})
        raise


def find_packages(
    client: APIClient,
    params: PackageQueryParams = PackageQueryParams(),
    *,
    max_pages: Optional[int] = None,
) -> list[Package]:
    return drain(client, PACKAGES_URI, params.to_query(), decode_packages, max_pages=max_pages)


def get_package(client: APIClient, package_id: str) -> Package:
    pkgs = drain(client, PACKAGES_URI, {"ids": package_id}, decode_packages)
    return exactly_one(pkgs, "package", package_id, ERR_API_PACKAGE_GET_PACKAGE)
