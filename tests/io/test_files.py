from __future__ import annotations

import errno
import hashlib
import os
import stat

import pytest

from s1singularity.errors import FilesystemError
from s1singularity.io import files
from s1singularity.io.files import (
    create_directory,
    create_file,
    file_digest,
    format_filesystem_mode,
    move_file,
    parse_filesystem_mode,
    remove_quietly,
    to_absolute_path,
)

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")


@pytest.mark.parametrize("mode,expected", [("0644", 0o644), ("755", 0o755), ("0", 0), ("7777", 0o7777)])
def test_parse_filesystem_mode(mode, expected):
    assert parse_filesystem_mode(mode) == expected


@pytest.mark.parametrize("mode", ["", "0999", "rwxr-xr-x", "17777"])
def test_parse_filesystem_mode_rejects(mode):
    with pytest.raises(FilesystemError):
        parse_filesystem_mode(mode)


def test_format_filesystem_mode_strips_type_bits():
    assert format_filesystem_mode(stat.S_IFREG | 0o640) == "0640"


def test_to_absolute_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert to_absolute_path("a/b.txt") == tmp_path / "a" / "b.txt"


@posix_only
def test_create_directory_is_idempotent(tmp_path):
    d = tmp_path / "x" / "y"
    create_directory(d, "0700")
    assert d.is_dir()

    os.chmod(d, 0o750)
    create_directory(d, "0700")

    # existing folders keep their permissions
    assert stat.S_IMODE(os.stat(d).st_mode) == 0o750


@posix_only
def test_create_file_applies_mode(tmp_path):
    p = tmp_path / "sub" / "f.bin"
    with create_file(p, "0755", "0600", True) as f:
        f.write(b"abc")

    assert p.read_bytes() == b"abc"
    assert stat.S_IMODE(os.stat(p).st_mode) == 0o600


def test_create_file_refuses_overwrite(tmp_path):
    p = tmp_path / "f.bin"
    p.write_bytes(b"x")

    with pytest.raises(FilesystemError):
        create_file(p, "0755", "0644", False)
    assert p.read_bytes() == b"x"


def test_create_file_rejects_bad_folder_mode(tmp_path):
    with pytest.raises(FilesystemError):
        create_file(tmp_path / "new" / "f.bin", "banana", "0644", True)


def test_file_digest_is_deterministic(tmp_path):
    p = tmp_path / "f.bin"
    p.write_bytes(b"hello world" * 1000)

    first = file_digest(p, chunk_size=7)
    second = file_digest(p)

    assert first == second == hashlib.sha1(b"hello world" * 1000).hexdigest()


def test_file_digest_missing_file(tmp_path):
    with pytest.raises(FilesystemError):
        file_digest(tmp_path / "nope")


def test_file_digest_unknown_algorithm(tmp_path):
    p = tmp_path / "f.bin"
    p.write_bytes(b"")
    with pytest.raises(FilesystemError):
        file_digest(p, "not-a-hash")


def test_move_file(tmp_path):
    src = tmp_path / "a.bin"
    src.write_bytes(b"payload")
    dst = tmp_path / "b.bin"

    move_file(src, dst)

    assert not src.exists()
    assert dst.read_bytes() == b"payload"


def test_move_file_falls_back_to_copy_across_devices(tmp_path, monkeypatch):
    src = tmp_path / "a.bin"
    src.write_bytes(b"payload")
    dst = tmp_path / "b.bin"

    def cross_device(a, b):
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr(files.os, "replace", cross_device)
    move_file(src, dst)

    assert not src.exists()
    assert dst.read_bytes() == b"payload"


def test_move_file_other_errors_propagate(tmp_path):
    with pytest.raises(FilesystemError):
        move_file(tmp_path / "missing.bin", tmp_path / "b.bin")


def test_remove_quietly_ignores_missing(tmp_path):
    remove_quietly(tmp_path / "missing.bin")
