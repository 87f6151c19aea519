from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from .api.client import APIClient
from .api.groups import GroupQueryParams
from .api.packages import PackageQueryParams
from .api.sites import SiteQueryParams
from .cfg import (
    ProviderConfig,
    load_package_download_config,
    load_provider_config,
    load_yaml,
)
from .datasources import (
    GroupDataSource,
    GroupsDataSource,
    PackageDataSource,
    PackagesDataSource,
    SiteDataSource,
    SitesDataSource,
)
from .errors import ProviderError
from .io.export import export_table, items_to_dataframe
from .io.state import load_state, save_state
from .resources.package_download import PackageDownload


def _tuple(v: Optional[list[str]]) -> tuple[str, ...]:
    out: list[str] = []
    for x in v or []:
        out.extend(p for p in x.split(",") if p)
    return tuple(out)


def _bool(v: str) -> bool:
    if v.lower() in ("true", "1", "yes"):
        return True
    if v.lower() in ("false", "0", "no"):
        return False
    raise argparse.ArgumentTypeError(f"expected true/false, got {v!r}")


def _make_client(cfg: ProviderConfig) -> APIClient:
    client = APIClient(
        cfg.api_token,
        cfg.api_endpoint,
        timeout_s=cfg.timeout_s,
        chunk_size=cfg.chunk_size_bytes,
        show_progress=cfg.show_progress,
    )
    for h in logging.getLogger().handlers:
        h.addFilter(client.mask_filter)
    return client


def _package_params(a: argparse.Namespace) -> PackageQueryParams:
    return PackageQueryParams(
        account_ids=_tuple(a.account_id),
        file_extension=a.file_extension,
        ids=_tuple(a.id),
        minor_version=a.minor_version,
        os_arches=_tuple(a.os_arch),
        os_types=_tuple(a.os_type),
        package_types=_tuple(a.package_type),
        platform_types=_tuple(a.platform_type),
        ranger_version=a.ranger_version,
        sha1=a.sha1,
        site_ids=_tuple(a.site_id),
        sort_by=a.sort_by,
        sort_order=a.sort_order,
        status=_tuple(a.status),
        version=a.version,
    )


def _site_params(a: argparse.Namespace) -> SiteQueryParams:
    return SiteQueryParams(
        account_ids=_tuple(a.account_id),
        account_name_contains=_tuple(a.account_name_contains),
        active_licenses=a.active_licenses,
        admin_only=a.admin_only,
        available_move_sites=a.available_move_sites,
        created_at=a.created_at,
        description=a.description,
        description_contains=_tuple(a.description_contains),
        expiration=a.expiration,
        external_id=a.external_id,
        features=_tuple(a.feature),
        is_default=a.is_default,
        modules=_tuple(a.module),
        name=a.name,
        name_contains=_tuple(a.name_contains),
        query=a.query,
        registration_token=a.registration_token,
        site_ids=_tuple(a.site_id),
        site_type=a.site_type,
        sort_by=a.sort_by,
        sort_order=a.sort_order,
        states=_tuple(a.state),
        total_licenses=a.total_licenses,
        updated_at=a.updated_at,
    )


def _group_params(a: argparse.Namespace) -> GroupQueryParams:
    return GroupQueryParams(
        account_ids=_tuple(a.account_id),
        description=a.description,
        group_ids=_tuple(a.id),
        is_default=a.is_default,
        name=a.name,
        query=a.query,
        rank=a.rank,
        registration_token=a.registration_token,
        site_ids=_tuple(a.site_id),
        sort_by=a.sort_by,
        sort_order=a.sort_order,
        types=_tuple(a.type),
        updated_after=a.updated_after,
        updated_at_or_after=a.updated_at_or_after,
        updated_at_or_before=a.updated_at_or_before,
        updated_before=a.updated_before,
    )


def _emit(result: dict[str, Any], key: Optional[str], a: argparse.Namespace) -> None:
    if key is not None and (a.csv or a.xlsx):
        df = items_to_dataframe(result[key])
        export_table(df, csv_path=a.csv, xlsx_path=a.xlsx)
        print(f"Rows: {len(df)}")
        if a.csv:
            print(f"Table CSV: {a.csv}")
        if a.xlsx:
            print(f"Table XLSX: {a.xlsx}")
        return
    print(json.dumps(result, indent=2, ensure_ascii=False))


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", type=str, default=None, help="Path to YAML config.")


def _add_table(p: argparse.ArgumentParser) -> None:
    p.add_argument("--csv", type=str, default=None, help="Write results as CSV instead of JSON.")
    p.add_argument("--xlsx", type=str, default=None, help="Write results as XLSX instead of JSON.")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="s1singularity")
    p.add_argument("--log-level", type=str, default="WARNING", help="Logging level.")
    sub = p.add_subparsers(dest="cmd", required=True)

    pk = sub.add_parser("packages", help="List update/agent packages.")
    _add_common(pk)
    _add_table(pk)
    pk.add_argument("--account-id", action="append")
    pk.add_argument("--file-extension")
    pk.add_argument("--id", action="append")
    pk.add_argument("--minor-version")
    pk.add_argument("--os-arch", action="append")
    pk.add_argument("--os-type", action="append")
    pk.add_argument("--package-type", action="append")
    pk.add_argument("--platform-type", action="append")
    pk.add_argument("--ranger-version")
    pk.add_argument("--sha1")
    pk.add_argument("--site-id", action="append")
    pk.add_argument("--sort-by")
    pk.add_argument("--sort-order")
    pk.add_argument("--status", action="append")
    pk.add_argument("--version")

    st = sub.add_parser("sites", help="List sites.")
    _add_common(st)
    _add_table(st)
    st.add_argument("--account-id", action="append")
    st.add_argument("--account-name-contains", action="append")
    st.add_argument("--active-licenses", type=int)
    st.add_argument("--admin-only", type=_bool)
    st.add_argument("--available-move-sites", type=_bool)
    st.add_argument("--created-at")
    st.add_argument("--description")
    st.add_argument("--description-contains", action="append")
    st.add_argument("--expiration")
    st.add_argument("--external-id")
    st.add_argument("--feature", action="append")
    st.add_argument("--is-default", type=_bool)
    st.add_argument("--module", action="append")
    st.add_argument("--name")
    st.add_argument("--name-contains", action="append")
    st.add_argument("--query")
    st.add_argument("--registration-token")
    st.add_argument("--site-id", action="append")
    st.add_argument("--site-type")
    st.add_argument("--sort-by")
    st.add_argument("--sort-order")
    st.add_argument("--state", action="append")
    st.add_argument("--total-licenses", type=int)
    st.add_argument("--updated-at")

    gr = sub.add_parser("groups", help="List groups.")
    _add_common(gr)
    _add_table(gr)
    gr.add_argument("--account-id", action="append")
    gr.add_argument("--description")
    gr.add_argument("--id", action="append")
    gr.add_argument("--is-default", type=_bool)
    gr.add_argument("--name")
    gr.add_argument("--query")
    gr.add_argument("--rank", type=int)
    gr.add_argument("--registration-token")
    gr.add_argument("--site-id", action="append")
    gr.add_argument("--sort-by")
    gr.add_argument("--sort-order")
    gr.add_argument("--type", action="append")
    gr.add_argument("--updated-after")
    gr.add_argument("--updated-at-or-after")
    gr.add_argument("--updated-at-or-before")
    gr.add_argument("--updated-before")

    for name, help_ in (
        ("package", "Show one package by id."),
        ("site", "Show one site by id."),
        ("group", "Show one group by id."),
    ):
        one = sub.add_parser(name, help=help_)
        _add_common(one)
        one.add_argument("--id", type=str, required=True)

    dl = sub.add_parser("download", help="Manage a downloaded package file.")
    dl.add_argument(
        "action", choices=("plan", "apply", "refresh", "destroy"), help="Lifecycle step to run."
    )
    dl.add_argument("--config", type=str, required=True, help="Path to YAML config.")
    dl.add_argument("--state", type=str, required=True, help="Path to the JSON state file.")
    return p


def _run_download(a: argparse.Namespace, client: APIClient, cfg_dict: dict[str, Any]) -> None:
    resource = PackageDownload(client)
    state_path = Path(a.state)
    state = load_state(state_path)

    if a.action == "refresh":
        if state is None:
            print("Nothing to refresh.")
            return
        state = resource.read(state)
        save_state(state_path, state)
        print("Refreshed." if state is not None else "Package file is gone; removed from state.")
        return

    if a.action == "destroy":
        if state is not None:
            resource.delete(state)
        save_state(state_path, None)
        print("Destroyed.")
        return

    config = load_package_download_config(cfg_dict)
    if a.action == "plan":
        if state is not None:
            state = resource.read(state)
        if state is None:
            print("Plan: create")
            return
        plan = resource.modify_plan(state, config)
        if plan.replace:
            print(f"Plan: replace ({', '.join(plan.requires_replace)})")
        else:
            print("Plan: update in place")
        return

    state = resource.apply(state, config)
    save_state(state_path, state)
    print(f"Output file: {state.output_file}")
    print(f"Version: {state.version}")
    print(f"SHA1: {state.sha1}")


def main(argv: Optional[list[str]] = None) -> None:
    p = _build_parser()
    a = p.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(a.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg_dict = load_yaml(Path(a.config)) if a.config else {}
        cfg = load_provider_config(cfg_dict)
        client = _make_client(cfg)

        if a.cmd == "packages":
            _emit(PackagesDataSource(client, max_pages=cfg.max_pages).read(_package_params(a)), "packages", a)
        elif a.cmd == "sites":
            _emit(SitesDataSource(client, max_pages=cfg.max_pages).read(_site_params(a)), "sites", a)
        elif a.cmd == "groups":
            _emit(GroupsDataSource(client, max_pages=cfg.max_pages).read(_group_params(a)), "groups", a)
        elif a.cmd == "package":
            print(json.dumps(PackageDataSource(client).read(a.id), indent=2))
        elif a.cmd == "site":
            print(json.dumps(SiteDataSource(client).read(a.id), indent=2))
        elif a.cmd == "group":
            print(json.dumps(GroupDataSource(client).read(a.id), indent=2))
        elif a.cmd == "download":
            _run_download(a, client, cfg_dict)
    except ProviderError as e:
        for d in e.diagnostics:
            print(f"Error: {d.summary}\n\n{d.detail}\n", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
