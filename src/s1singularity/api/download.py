from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from ..errors import ERR_API_PACKAGE_DOWNLOAD_PACKAGE, FilesystemError
from ..io.files import create_file, file_digest, remove_quietly, to_absolute_path
from .client import APIClient
from .packages import get_package

log = logging.getLogger(__name__)


def download_uri(site_id: str, package_id: str) -> str:
    return f"/update/agent/download/{site_id}/{package_id}"


@dataclass(frozen=True)
class DownloadResult:
    path: Path
    size: int
    digest: str
    version: str


def download_package(
    client: APIClient,
    package_id: str,
    site_id: str,
    path: str | Path,
    folder_mode: str,
    file_mode: str,
    overwrite: bool,
    *,
    hash_name: str = "sha1",
) -> DownloadResult:
    """
    Stream the package straight into `path` and fingerprint the result.

    Parent folders are created with `folder_mode` when missing. With overwrite=False an
    existing destination fails before any request is sent. The partial file is removed
    on any failure after it was created.
    """
    abs_path = to_absolute_path(path)

    outfile = create_file(abs_path, folder_mode, file_mode, overwrite)
    try:
        try:
            with outfile:
                written = client.get_stream(
                    download_uri(site_id, package_id), outfile, desc=abs_path.name
                )
            size = os.stat(abs_path).st_size
        except OSError as e:
            msg = (
                "An unexpected error occurred while writing or inspecting the package file.\n\n"
                f"Error: {e}\nFile: {abs_path}"
            )
            log.error(msg, extra={"internal_error_code": ERR_API_PACKAGE_DOWNLOAD_PACKAGE})
            raise FilesystemError(msg) from e

        digest = file_digest(abs_path, hash_name)
        pkg = get_package(client, package_id)
    except Exception:
        remove_quietly(abs_path)
        raise

    log.debug(
        "downloaded package id=%s site_id=%s file=%s bytes=%d streamed=%d",
        package_id,
        site_id,
        abs_path,
        size,
        written,
    )
    return DownloadResult(path=abs_path, size=size, digest=digest, version=pkg.version)
