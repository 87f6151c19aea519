from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

from ..api.client import APIClient
from ..api.download import download_package
from ..api.packages import get_package
from ..errors import (
    ERR_RESOURCE_PACKAGE_DOWNLOAD_CREATE,
    ERR_RESOURCE_PACKAGE_DOWNLOAD_DELETE,
    ERR_RESOURCE_PACKAGE_DOWNLOAD_MODIFIERS,
    ERR_RESOURCE_PACKAGE_DOWNLOAD_READ,
    ERR_RESOURCE_PACKAGE_DOWNLOAD_UPDATE,
    Diagnostic,
    FilesystemError,
    FingerprintMismatchError,
    ProviderError,
)
from ..io.files import (
    IS_WINDOWS,
    chmod,
    create_directory,
    file_digest,
    format_filesystem_mode,
    move_file,
    remove_quietly,
    to_absolute_path,
)

log = logging.getLogger(__name__)


DEFAULT_DIRECTORY_MODE = "0755"
DEFAULT_FILE_MODE = "0644"

# Attributes whose change cannot be applied in place.
IMMUTABLE_ATTRIBUTES = ("package_id", "site_id")


@dataclass(frozen=True)
class PackageDownloadConfig:
    """Desired state, as written by the user."""

    package_id: str
    site_id: str
    local_filename: str
    local_folder: str = field(default_factory=os.getcwd)
    directory_mode: str = DEFAULT_DIRECTORY_MODE
    file_mode: str = DEFAULT_FILE_MODE
    overwrite_existing_file: bool = True


@dataclass(frozen=True)
class PackageDownloadState:
    """Tracked record of a downloaded package file."""

    package_id: str
    site_id: str
    local_folder: str
    local_filename: str
    output_file: str
    file_size: int
    sha1: str
    version: str
    directory_mode: str = DEFAULT_DIRECTORY_MODE
    file_mode: str = DEFAULT_FILE_MODE
    overwrite_existing_file: bool = True


@dataclass(frozen=True)
class PlanResult:
    requires_replace: tuple[str, ...] = ()
    # Server-side values for attributes that drifted (e.g. {"sha1": "..."}).
    planned: dict[str, Any] = field(default_factory=dict)

    @property
    def replace(self) -> bool:
        return bool(self.requires_replace)


def _error(summary: str, msg: str, code: int, **fields: Any) -> FilesystemError:
    log.error(msg, extra={"internal_error_code": code, **fields})
    return FilesystemError(msg, summary=summary)


class PackageDownload:
    """
    Lifecycle of a package downloaded to local disk.

    create: absent -> present; read: present -> present | absent (None);
    update: placement and permission changes without re-downloading; delete: present -> absent.
    `modify_plan` compares the tracked fingerprint with the server's and reports which
    attributes force a replacement.
    """

    def __init__(self, client: APIClient, *, hash_name: str = "sha1"):
        self.client = client
        self.hash_name = hash_name

    def create(self, config: PackageDownloadConfig) -> PackageDownloadState:
        pkg = get_package(self.client, config.package_id)

        path = Path(config.local_folder) / config.local_filename
        res = download_package(
            self.client,
            config.package_id,
            config.site_id,
            path,
            config.directory_mode,
            config.file_mode,
            config.overwrite_existing_file,
            hash_name=self.hash_name,
        )

        diags: list[Diagnostic] = []
        if res.size != pkg.file_size:
            diags.append(
                Diagnostic(
                    FingerprintMismatchError.summary,
                    "The size of the downloaded file does not match the size reported by the API server. "
                    "The package may have changed while it was being downloaded; please try again later.\n\n"
                    f"File: {res.path}\nExpected Size: {pkg.file_size}\nActual Size: {res.size}",
                )
            )
        if res.digest.lower() != pkg.sha1.lower():
            diags.append(
                Diagnostic(
                    FingerprintMismatchError.summary,
                    f"The {self.hash_name.upper()} of the downloaded file does not match the value reported "
                    "by the API server. The package may have changed while it was being downloaded; "
                    "please try again later.\n\n"
                    f"File: {res.path}\nExpected: {pkg.sha1}\nActual: {res.digest}",
                )
            )
        if diags:
            for d in diags:
                log.error(d.detail, extra={"internal_error_code": ERR_RESOURCE_PACKAGE_DOWNLOAD_CREATE})
            remove_quietly(res.path)
            raise FingerprintMismatchError(diagnostics=diags)

        log.debug("created package download package_id=%s file=%s", config.package_id, res.path)
        return PackageDownloadState(
            package_id=config.package_id,
            site_id=config.site_id,
            local_folder=config.local_folder,
            local_filename=config.local_filename,
            output_file=str(res.path),
            file_size=res.size,
            sha1=res.digest,
            version=res.version,
            directory_mode=config.directory_mode,
            file_mode=config.file_mode,
            overwrite_existing_file=config.overwrite_existing_file,
        )

    def read(self, state: PackageDownloadState) -> Optional[PackageDownloadState]:
        """Refresh the record from the live file. Returns None if the file was removed."""
        pkg = get_package(self.client, state.package_id)

        abs_path = state.output_file
        try:
            st = os.stat(abs_path)
        except FileNotFoundError:
            log.warning("package file no longer exists, removing from state file=%s", abs_path)
            return None
        except OSError as e:
            raise _error(
                "Download Package Refresh Error",
                "An unexpected error occurred while trying to get information on the downloaded "
                f"package file.\n\nError: {e}\nFile: {abs_path}",
                ERR_RESOURCE_PACKAGE_DOWNLOAD_READ,
                file=abs_path,
            ) from e
        if os.path.isdir(abs_path):
            raise _error(
                "Download Package Refresh Error",
                "An unexpected error occurred while trying to get information on the downloaded "
                f"package file.\n\nError: the file path given is actually a folder\nFile: {abs_path}",
                ERR_RESOURCE_PACKAGE_DOWNLOAD_READ,
                file=abs_path,
            )

        file_mode = state.file_mode if IS_WINDOWS else format_filesystem_mode(st.st_mode)
        return replace(
            state,
            version=pkg.version,
            file_size=st.st_size,
            sha1=file_digest(abs_path, self.hash_name),
            file_mode=file_mode,
        )

    def modify_plan(
        self,
        state: Optional[PackageDownloadState],
        config: Optional[PackageDownloadConfig] = None,
    ) -> PlanResult:
        if state is None:
            return PlanResult()

        requires: list[str] = []
        planned: dict[str, Any] = {}
        if config is not None:
            for attr in IMMUTABLE_ATTRIBUTES:
                if getattr(config, attr) != getattr(state, attr):
                    requires.append(attr)
                    planned[attr] = getattr(config, attr)

        # A file replaced upstream under the same id is only visible through its fingerprint.
        if state.package_id and state.sha1:
            pkg = get_package(self.client, state.package_id)
            if pkg.file_size != state.file_size:
                requires.append("file_size")
                planned["file_size"] = pkg.file_size
            if pkg.sha1.lower() != state.sha1.lower():
                requires.append("sha1")
                planned["sha1"] = pkg.sha1

        if requires:
            log.info(
                "package download requires replacement package_id=%s attributes=%s",
                state.package_id,
                ",".join(requires),
                extra={"internal_error_code": ERR_RESOURCE_PACKAGE_DOWNLOAD_MODIFIERS},
            )
        return PlanResult(requires_replace=tuple(requires), planned=planned)

    def update(
        self, state: PackageDownloadState, config: PackageDownloadConfig
    ) -> PackageDownloadState:
        for attr in IMMUTABLE_ATTRIBUTES:
            if getattr(config, attr) != getattr(state, attr):
                msg = (
                    f"The {attr} of a package download cannot be changed in place; the resource "
                    f"must be replaced.\n\nCurrent: {getattr(state, attr)}\nPlanned: {getattr(config, attr)}"
                )
                log.error(msg, extra={"internal_error_code": ERR_RESOURCE_PACKAGE_DOWNLOAD_UPDATE})
                raise ProviderError(msg, summary="Download Package Update Error")

        src = Path(state.output_file)
        dest = to_absolute_path(Path(config.local_folder) / config.local_filename)

        if src != dest:
            create_directory(dest.parent, config.directory_mode)
            move_file(src, dest)
            log.debug("moved package file src_path=%s dest_path=%s", src, dest)

        if config.file_mode != state.file_mode:
            chmod(dest, config.file_mode, ERR_RESOURCE_PACKAGE_DOWNLOAD_UPDATE)
            log.debug("updated file mode for package file file=%s new_mode=%s", dest, config.file_mode)

        # directory_mode and overwrite_existing_file need no filesystem action.
        return replace(
            state,
            local_folder=config.local_folder,
            local_filename=config.local_filename,
            output_file=str(dest),
            directory_mode=config.directory_mode,
            file_mode=config.file_mode,
            overwrite_existing_file=config.overwrite_existing_file,
        )

    def delete(self, state: PackageDownloadState) -> None:
        if not state.output_file:
            return
        abs_path = state.output_file
        try:
            os.stat(abs_path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise _error(
                "Download Package Removal Error",
                "An unexpected error occurred while attempting to open the package file.\n\n"
                f"Error: {e}\nFile: {abs_path}",
                ERR_RESOURCE_PACKAGE_DOWNLOAD_DELETE,
                file=abs_path,
            ) from e
        if os.path.isdir(abs_path):
            # never remove a folder
            raise _error(
                "Download Package Removal Error",
                "An unexpected error occurred while attempting to remove the package file.\n\n"
                f"Error: the destination path is a directory, not a file\nFile: {abs_path}",
                ERR_RESOURCE_PACKAGE_DOWNLOAD_DELETE,
                file=abs_path,
            )
        try:
            os.remove(abs_path)
        except OSError as e:
            raise _error(
                "Download Package Removal Error",
                "An unexpected error occurred while removing the package file.\n\n"
                f"Error: {e}\nFile: {abs_path}",
                ERR_RESOURCE_PACKAGE_DOWNLOAD_DELETE,
                file=abs_path,
            ) from e
        log.debug("removed package file file=%s", abs_path)

    def apply(
        self, state: Optional[PackageDownloadState], config: PackageDownloadConfig
    ) -> PackageDownloadState:
        """Converge on `config`: create, replace (delete + create) or update in place."""
        if state is None:
            return self.create(config)
        # the file on disk is the source of truth for size and hash
        state = self.read(state)
        if state is None:
            return self.create(config)
        plan = self.modify_plan(state, config)
        if plan.replace:
            self.delete(state)
            return self.create(config)
        return self.update(state, config)
