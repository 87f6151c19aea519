from __future__ import annotations

import logging
import os
from dataclasses import MISSING, dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .errors import ERR_PROVIDER_CONFIGURE, ConfigError, Diagnostic, FilesystemError
from .io.files import parse_filesystem_mode
from .resources.package_download import PackageDownloadConfig

log = logging.getLogger(__name__)


ENV_API_TOKEN = "SINGULARITY_API_TOKEN"
ENV_API_ENDPOINT = "SINGULARITY_API_ENDPOINT"


@dataclass(frozen=True)
class ProviderConfig:
    api_token: str
    api_endpoint: str

    # No timeout is the requests default; keep one explicit.
    timeout_s: float = 60.0

    # None drains until the server stops returning a cursor.
    max_pages: Optional[int] = None

    chunk_size_bytes: int = 1024 * 1024
    show_progress: bool = False

    def __repr__(self) -> str:
        return (
            f"ProviderConfig(api_token='***', api_endpoint={self.api_endpoint!r}, "
            f"timeout_s={self.timeout_s!r}, max_pages={self.max_pages!r}, "
            f"chunk_size_bytes={self.chunk_size_bytes!r}, show_progress={self.show_progress!r})"
        )


def load_yaml(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _field_default_or_missing(cls: type, field_name: str) -> Any:
    f = cls.__dataclass_fields__[field_name]  # type: ignore[attr-defined]
    if f.default is not MISSING:
        return f.default
    if f.default_factory is not MISSING:  # type: ignore[comparison-overlap]
        return f.default_factory()
    return MISSING


def _get(mapping: Mapping[str, Any], key: str, cls: type) -> Any:
    return mapping.get(key, _field_default_or_missing(cls, key))


def load_provider_config(
    d: Mapping[str, Any], env: Optional[Mapping[str, str]] = None
) -> ProviderConfig:
    """
    Build the provider configuration from the `provider:` block of a YAML document.

    SINGULARITY_API_TOKEN / SINGULARITY_API_ENDPOINT take precedence over the block's
    api_token / api_endpoint.
    """
    env = os.environ if env is None else env
    p = d.get("provider", {}) or {}
    if not isinstance(p, Mapping):
        raise ConfigError('Top-level key "provider" must be a mapping.')

    api_token = env.get(ENV_API_TOKEN) or str(p.get("api_token") or "")
    api_endpoint = env.get(ENV_API_ENDPOINT) or str(p.get("api_endpoint") or "")

    diags: list[Diagnostic] = []
    if not api_token:
        msg = (
            "While configuring the provider, the API token was not found in the "
            f"{ENV_API_TOKEN} environment variable nor was it defined in the "
            "provider configuration block's 'api_token' attribute."
        )
        log.error(msg, extra={"internal_error_code": ERR_PROVIDER_CONFIGURE})
        diags.append(Diagnostic("Missing API Token Configuration", msg))
    if not api_endpoint:
        msg = (
            "While configuring the provider, the API endpoint was not found in the "
            f"{ENV_API_ENDPOINT} environment variable nor was it defined in the "
            "provider configuration block's 'api_endpoint' attribute."
        )
        log.error(msg, extra={"internal_error_code": ERR_PROVIDER_CONFIGURE})
        diags.append(Diagnostic("Missing API Endpoint Configuration", msg))
    if diags:
        raise ConfigError(diagnostics=diags)

    max_pages = _get(p, "max_pages", ProviderConfig)
    cfg = ProviderConfig(
        api_token=api_token,
        api_endpoint=api_endpoint,
        timeout_s=float(_get(p, "timeout_s", ProviderConfig)),
        max_pages=int(max_pages) if max_pages is not None else None,
        chunk_size_bytes=int(_get(p, "chunk_size_bytes", ProviderConfig)),
        show_progress=bool(_get(p, "show_progress", ProviderConfig)),
    )
    validate(cfg)
    return cfg


def validate(cfg: ProviderConfig) -> None:
    if cfg.timeout_s <= 0:
        raise ConfigError(f"timeout_s must be > 0, got {cfg.timeout_s}")
    if cfg.max_pages is not None and cfg.max_pages < 1:
        raise ConfigError(f"max_pages must be >= 1 when set, got {cfg.max_pages}")
    if cfg.chunk_size_bytes < 1:
        raise ConfigError(f"chunk_size_bytes must be >= 1, got {cfg.chunk_size_bytes}")


def _mode_str(v: Any) -> str:
    # YAML reads an unquoted 0644 as the integer 420.
    if isinstance(v, int) and not isinstance(v, bool):
        return f"{v:04o}"
    return str(v)


def load_package_download_config(d: Mapping[str, Any]) -> PackageDownloadConfig:
    """
    Required YAML shape:

      package_download:
        package_id: ...
        site_id: ...
        local_filename: ...
        local_folder: ...          # optional, defaults to the working directory
        directory_mode: "0755"     # optional
        file_mode: "0644"          # optional
        overwrite_existing_file: true
    """
    r = d.get("package_download")
    if not isinstance(r, Mapping):
        raise ConfigError('Missing required top-level key "package_download" in YAML config.')

    for key in ("package_id", "site_id", "local_filename"):
        if not r.get(key):
            raise ConfigError(f'Missing required key "package_download.{key}" in YAML config.')

    cfg = PackageDownloadConfig(
        package_id=str(r["package_id"]),
        site_id=str(r["site_id"]),
        local_filename=str(r["local_filename"]),
        local_folder=str(_get(r, "local_folder", PackageDownloadConfig)),
        directory_mode=_mode_str(_get(r, "directory_mode", PackageDownloadConfig)),
        file_mode=_mode_str(_get(r, "file_mode", PackageDownloadConfig)),
        overwrite_existing_file=bool(_get(r, "overwrite_existing_file", PackageDownloadConfig)),
    )

    # same check as the file mode attribute validator
    for attr in ("directory_mode", "file_mode"):
        try:
            parse_filesystem_mode(getattr(cfg, attr))
        except FilesystemError as e:
            raise ConfigError(diagnostics=[Diagnostic("Invalid Value Used", e.detail)]) from e
    return cfg
