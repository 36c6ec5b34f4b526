# tests/common/test_file_utils.py
# -*- coding: utf-8 -*-
import os
import stat

import pytest

from common.errors import InstallerError
from common.file_utils import (
    backup_file,
    backup_paths,
    cleanup_directory,
    link_binary,
    remove_path,
    temporary_build_dir,
    write_text_file,
)


def _make_executable(path, content="#!/bin/sh\n"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    path.chmod(0o755)
    return path


def test_backup_file_creates_timestamped_copy(tmp_path, mock_logger):
    original = tmp_path / "sshd_config"
    original.write_text("Port 22\n", encoding="utf-8")

    backup = backup_file(original, current_logger=mock_logger)

    assert backup is not None
    assert backup.name.startswith("sshd_config.bak-")
    assert backup.read_text(encoding="utf-8") == "Port 22\n"
    assert original.exists()


def test_backup_file_missing_returns_none(tmp_path):
    assert backup_file(tmp_path / "absent") is None


def test_backup_paths_copies_files_and_directories(tmp_path):
    ssh_dir = tmp_path / "ssh"
    ssh_dir.mkdir()
    (ssh_dir / "sshd_config").write_text("Port 22\n", encoding="utf-8")
    binary = _make_executable(tmp_path / "openssl")
    backup_dir = tmp_path / "backup"

    copied = backup_paths(
        [ssh_dir, binary, tmp_path / "missing"], backup_dir
    )

    assert [p.name for p in copied] == ["ssh", "openssl"]
    assert (backup_dir / "ssh" / "sshd_config").read_text(encoding="utf-8") == "Port 22\n"
    assert (backup_dir / "openssl").exists()


def test_write_text_file_sets_mode_and_creates_parents(tmp_path):
    target = tmp_path / "etc" / "nginx" / "nginx.conf"

    write_text_file(target, "events {}\n", 0o600)

    assert target.read_text(encoding="utf-8") == "events {}\n"
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    assert not [p for p in target.parent.iterdir() if p.name.startswith(".")]


def test_write_text_file_replaces_existing(tmp_path):
    target = tmp_path / "repo"
    target.write_text("old\n", encoding="utf-8")

    write_text_file(target, "new\n")

    assert target.read_text(encoding="utf-8") == "new\n"


def test_link_binary_moves_existing_file_aside(tmp_path, mock_logger):
    source = _make_executable(tmp_path / "prefix" / "bin" / "ssh")
    dest = tmp_path / "usr" / "bin" / "ssh"
    dest.parent.mkdir(parents=True)
    dest.write_text("system ssh", encoding="utf-8")

    link_binary(source, dest, mock_logger)

    assert dest.is_symlink()
    assert os.readlink(dest) == str(source)
    backups = [p for p in dest.parent.iterdir() if p.name.startswith("ssh.bak-")]
    assert len(backups) == 1
    assert backups[0].read_text(encoding="utf-8") == "system ssh"


def test_link_binary_replaces_existing_symlink(tmp_path):
    old_source = _make_executable(tmp_path / "old" / "openssl")
    new_source = _make_executable(tmp_path / "new" / "openssl")
    dest = tmp_path / "openssl"
    dest.symlink_to(old_source)

    link_binary(new_source, dest)

    assert os.readlink(dest) == str(new_source)
    assert [p.name for p in tmp_path.iterdir() if p.name.startswith("openssl.bak")] == []


def test_link_binary_missing_source(tmp_path):
    with pytest.raises(InstallerError):
        link_binary(tmp_path / "nope", tmp_path / "dest")


def test_remove_path(tmp_path):
    file_path = tmp_path / "file"
    file_path.write_text("x", encoding="utf-8")
    dir_path = tmp_path / "dir"
    (dir_path / "nested").mkdir(parents=True)

    assert remove_path(file_path) is True
    assert remove_path(dir_path) is True
    assert remove_path(tmp_path / "missing") is False
    assert not file_path.exists()
    assert not dir_path.exists()


def test_cleanup_directory_missing_is_quiet(tmp_path, mock_logger):
    cleanup_directory(tmp_path / "missing", current_logger=mock_logger)
    mock_logger.warning.assert_not_called()


def test_temporary_build_dir_removed_after_use(tmp_path):
    build_path = tmp_path / "build"
    with temporary_build_dir(build_path) as build_dir:
        (build_dir / "Makefile").write_text("all:\n", encoding="utf-8")
        assert build_dir.is_dir()
    assert not build_path.exists()


def test_temporary_build_dir_kept_on_success_when_not_always(tmp_path):
    build_path = tmp_path / "build"
    with temporary_build_dir(build_path, always=False):
        pass
    assert build_path.is_dir()


def test_temporary_build_dir_removed_on_interrupt(tmp_path):
    build_path = tmp_path / "build"
    with pytest.raises(KeyboardInterrupt):
        with temporary_build_dir(build_path, always=False):
            raise KeyboardInterrupt
    assert not build_path.exists()


def test_temporary_build_dir_default_location():
    with temporary_build_dir() as build_dir:
        assert build_dir.name.startswith("infra-build-")
    assert not build_dir.exists()
