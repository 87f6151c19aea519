from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from .api.client import APIClient
from .api.groups import GroupQueryParams, find_groups, get_group
from .api.packages import PackageQueryParams, find_packages, get_package
from .api.sites import SiteQueryParams, find_sites, get_site


def project(entity: Any) -> dict[str, Any]:
    """Entity dataclass -> plain dict (tuples become lists)."""

    def conv(obj: Any) -> Any:
        if isinstance(obj, dict):
            return {k: conv(v) for k, v in obj.items()}
        if isinstance(obj, (list, tuple)):
            return [conv(v) for v in obj]
        return obj

    return conv(asdict(entity))


class _DataSource:
    def __init__(self, client: APIClient, *, max_pages: Optional[int] = None):
        self.client = client
        self.max_pages = max_pages


class PackagesDataSource(_DataSource):
    def read(self, params: PackageQueryParams = PackageQueryParams()) -> dict[str, Any]:
        pkgs = find_packages(self.client, params, max_pages=self.max_pages)
        return {"packages": [project(p) for p in pkgs]}


class PackageDataSource(_DataSource):
    def read(self, package_id: str) -> dict[str, Any]:
        return project(get_package(self.client, package_id))


class SitesDataSource(_DataSource):
    def read(self, params: SiteQueryParams = SiteQueryParams()) -> dict[str, Any]:
        sites = find_sites(self.client, params, max_pages=self.max_pages)
        return {"sites": [project(s) for s in sites]}


class SiteDataSource(_DataSource):
    def read(self, site_id: str) -> dict[str, Any]:
        return project(get_site(self.client, site_id))


class GroupsDataSource(_DataSource):
    def read(self, params: GroupQueryParams = GroupQueryParams()) -> dict[str, Any]:
        groups = find_groups(self.client, params, max_pages=self.max_pages)
        return {"groups": [project(g) for g in groups]}


class GroupDataSource(_DataSource):
    def read(self, group_id: str) -> dict[str, Any]:
        return project(get_group(self.client, group_id))
