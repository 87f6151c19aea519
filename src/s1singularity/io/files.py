from __future__ import annotations

import errno
import hashlib
import logging
import os
import shutil
import stat
from pathlib import Path
from typing import BinaryIO

from ..errors import (
    ERR_UTIL_CREATE_DIRECTORY,
    ERR_UTIL_CREATE_FILE,
    ERR_UTIL_GET_FILE_HASH,
    ERR_UTIL_MOVE_FILE,
    ERR_UTIL_PARSE_FILESYSTEM_MODE,
    ERR_UTIL_TO_ABSOLUTE_PATH,
    FilesystemError,
)

log = logging.getLogger(__name__)

# chmod is skipped on Windows.
IS_WINDOWS = os.name == "nt"


def _fail(msg: str, code: int, exc: BaseException | None = None) -> FilesystemError:
    log.error(msg, extra={"internal_error_code": code})
    err = FilesystemError(msg)
    if exc is not None:
        err.__cause__ = exc
    return err


def to_absolute_path(path: str | Path) -> Path:
    try:
        return Path(os.path.abspath(os.fspath(path)))
    except (OSError, TypeError, ValueError) as e:
        raise _fail(
            "An unexpected error occurred while getting the absolute path to the file or folder.\n\n"
            f"Error: {e}\nPath: {path}",
            ERR_UTIL_TO_ABSOLUTE_PATH,
            e,
        )


def parse_filesystem_mode(mode: str) -> int:
    """Parse an octal mode string such as "0644"."""
    try:
        value = int(mode, 8)
    except (TypeError, ValueError) as e:
        raise _fail(
            "An unexpected error occurred while parsing the given filesystem mode string.\n\n"
            f"Error: {e}\nMode: {mode}",
            ERR_UTIL_PARSE_FILESYSTEM_MODE,
            e,
        )
    if value < 0 or value > 0o7777:
        raise _fail(
            "An unexpected error occurred while parsing the given filesystem mode string.\n\n"
            f"Error: mode out of range\nMode: {mode}",
            ERR_UTIL_PARSE_FILESYSTEM_MODE,
        )
    return value


def format_filesystem_mode(mode: int) -> str:
    return f"{stat.S_IMODE(mode):04o}"


def create_directory(path: str | Path, mode: str) -> None:
    """
    Create `path` and any missing parents with `mode`.

    Existing folders are left alone; their permissions are not changed.
    """
    p = to_absolute_path(path)
    if p.exists():
        return
    fsmode = parse_filesystem_mode(mode)
    try:
        p.mkdir(mode=fsmode, parents=True, exist_ok=True)
    except OSError as e:
        raise _fail(
            "An unexpected error occurred while creating one or more folders in the path.\n\n"
            f"Error: {e}\nPath: {p}",
            ERR_UTIL_CREATE_DIRECTORY,
            e,
        )


def chmod(path: Path, mode: str, code: int = ERR_UTIL_CREATE_FILE) -> None:
    if IS_WINDOWS:
        return
    fsmode = parse_filesystem_mode(mode)
    try:
        os.chmod(path, fsmode)
    except OSError as e:
        raise _fail(
            "An unexpected error occurred while setting permissions on the file.\n\n"
            f"Error: {e}\nMode: {mode}\nFile: {path}",
            code,
            e,
        )


def check_can_create(path: Path, overwrite: bool) -> None:
    if not overwrite and path.exists():
        raise _fail(
            f"The destination file already exists and should not be overwritten.\n\nFile: {path}",
            ERR_UTIL_CREATE_FILE,
        )


def create_file(path: str | Path, folder_mode: str, file_mode: str, overwrite: bool) -> BinaryIO:
    """
    Create (or truncate) a file for writing, creating parent folders with `folder_mode`.

    The file mode is applied after creation except on Windows. With overwrite=False an
    existing file is an error.
    """
    p = to_absolute_path(path)
    create_directory(p.parent, folder_mode)
    check_can_create(p, overwrite)

    try:
        f = open(p, "wb")
    except OSError as e:
        raise _fail(
            "An unexpected error occurred while attempting to open the file for writing.\n\n"
            f"Error: {e}\nFile: {p}",
            ERR_UTIL_CREATE_FILE,
            e,
        )
    try:
        chmod(p, file_mode)
    except FilesystemError:
        f.close()
        remove_quietly(p)
        raise
    return f


def file_digest(path: str | Path, hash_name: str = "sha1", chunk_size: int = 1024 * 1024) -> str:
    p = to_absolute_path(path)
    try:
        h = hashlib.new(hash_name)
    except ValueError as e:
        raise _fail(
            f"Unsupported hash algorithm.\n\nError: {e}\nAlgorithm: {hash_name}",
            ERR_UTIL_GET_FILE_HASH,
            e,
        )
    try:
        with open(p, "rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                h.update(chunk)
    except OSError as e:
        raise _fail(
            f"An unexpected error occurred while attempting to compute the {hash_name.upper()} "
            f"checksum of the file.\n\nError: {e}\nFile: {p}",
            ERR_UTIL_GET_FILE_HASH,
            e,
        )
    return h.hexdigest()


def move_file(src: Path, dst: Path) -> None:
    """Rename `src` to `dst`, copying then deleting when they are on different devices."""
    try:
        os.replace(src, dst)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise _fail(
                "An unexpected error occurred while moving the package file.\n\n"
                f"Error: {e}\nSource: {src}\nDestination: {dst}",
                ERR_UTIL_MOVE_FILE,
                e,
            )
    log.debug("cross-device move, copying src=%s dst=%s", src, dst)
    try:
        shutil.move(os.fspath(src), os.fspath(dst))
    except OSError as e:
        raise _fail(
            "An unexpected error occurred while moving the package file.\n\n"
            f"Error: {e}\nSource: {src}\nDestination: {dst}",
            ERR_UTIL_MOVE_FILE,
            e,
        )


def remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        log.warning("could not remove partial file %s", path, exc_info=True)
