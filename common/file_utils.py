# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions: backups, atomic writes, binary links and
temporary build directories.
"""

import contextlib
import datetime
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

from common.command_utils import log_message
from common.errors import InstallerError
from settings.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def timestamp() -> str:
    return datetime.datetime.now().strftime("%Y%m%d-%H%M%S")


def backup_file(
    file_path: PathLike,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Optional[Path]:
    """
    Copy `file_path` to ``<file_path>.bak-YYYYmmdd-HHMMSS``.

    Returns:
        The backup path, or None when the file does not exist.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols if app_settings else SYMBOLS_DEFAULT
    source = Path(file_path)

    if not source.is_file():
        log_message(
            f"File {source} does not exist. No backup needed.",
            "debug",
            logger_to_use,
        )
        return None

    backup_path = source.with_name(f"{source.name}.bak-{timestamp()}")
    shutil.copy2(source, backup_path)
    log_message(
        f"{symbols.get('success', '✅')} Backed up {source} to {backup_path}",
        "success",
        logger_to_use,
    )
    return backup_path


def backup_paths(
    paths: Iterable[PathLike],
    backup_dir: PathLike,
    current_logger: Optional[logging.Logger] = None,
) -> List[Path]:
    """
    Copy every existing item of `paths` into `backup_dir`, preserving
    metadata and symlinks. Missing items are skipped.

    Returns:
        The paths copied into the backup directory.
    """
    logger_to_use = current_logger if current_logger else module_logger
    destination_root = Path(backup_dir)
    destination_root.mkdir(parents=True, exist_ok=True)

    copied: List[Path] = []
    for item in paths:
        source = Path(item)
        if not source.exists() and not source.is_symlink():
            logger_to_use.debug(f"Skipping backup of missing {source}")
            continue
        target = destination_root / source.name
        if source.is_dir() and not source.is_symlink():
            shutil.copytree(source, target, symlinks=True, dirs_exist_ok=True)
        else:
            shutil.copy2(source, target, follow_symlinks=False)
        copied.append(target)
        logger_to_use.debug(f"Backed up {source} -> {target}")
    return copied


def write_text_file(
    file_path: PathLike,
    content: str,
    mode: int = 0o644,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Write `content` to `file_path` atomically and set its permissions.

    Parent directories are created. The content goes to a temporary file in
    the same directory which then replaces the target.
    """
    logger_to_use = current_logger if current_logger else module_logger
    target = Path(file_path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}."
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
            tmp_file.write(content)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, target)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise

    logger_to_use.debug(f"Wrote {target} (mode {oct(mode)})")
    return target


def link_binary(
    source: PathLike,
    destination: PathLike,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Symlink `destination` -> `source`.

    An existing file at `destination` is moved aside to a timestamped backup
    first; an existing symlink is replaced.

    Raises:
        InstallerError: `source` is missing or not executable.
    """
    logger_to_use = current_logger if current_logger else module_logger
    src = Path(source)
    dest = Path(destination)

    if not src.is_file() or not os.access(src, os.X_OK):
        raise InstallerError(f"Binary {src} not found or not executable.")

    dest.parent.mkdir(parents=True, exist_ok=True)
    if dest.is_symlink():
        dest.unlink()
    elif dest.exists():
        backup = dest.with_name(f"{dest.name}.bak-{timestamp()}")
        dest.rename(backup)
        logger_to_use.info(f"Moved existing {dest} to {backup}")

    dest.symlink_to(src)
    logger_to_use.debug(f"Linked {dest} -> {src}")
    return dest


def remove_path(
    path: PathLike, current_logger: Optional[logging.Logger] = None
) -> bool:
    """
    Remove a file, symlink or directory tree if present.

    Returns True when something was removed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    target = Path(path)
    if target.is_symlink() or target.is_file():
        target.unlink()
    elif target.is_dir():
        shutil.rmtree(target)
    else:
        return False
    logger_to_use.debug(f"Removed {target}")
    return True


def cleanup_directory(
    directory_path: PathLike,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Remove a directory tree, logging (not raising) on failure.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols if app_settings else SYMBOLS_DEFAULT
    path = Path(directory_path)

    if not path.exists():
        log_message(
            f"Directory {path} does not exist. No cleanup needed.",
            "debug",
            logger_to_use,
        )
        return
    try:
        shutil.rmtree(path)
        log_message(
            f"Removed directory {path}", "debug", logger_to_use
        )
    except OSError as e:
        log_message(
            f"{symbols.get('warning', '⚠️')} Could not remove {path}: {e}",
            "warning",
            logger_to_use,
        )


@contextlib.contextmanager
def temporary_build_dir(
    path: Optional[PathLike] = None,
    always: bool = True,
    current_logger: Optional[logging.Logger] = None,
) -> Iterator[Path]:
    """
    Provide a build directory and remove it on exit.

    With `always` False the directory is kept after a successful run and only
    removed when the body raises (including KeyboardInterrupt and
    SystemExit).
    """
    if path is None:
        build_dir = Path(tempfile.mkdtemp(prefix="infra-build-"))
    else:
        build_dir = Path(path)
        build_dir.mkdir(parents=True, exist_ok=True)

    succeeded = False
    try:
        yield build_dir
        succeeded = True
    finally:
        if always or not succeeded:
            cleanup_directory(build_dir, current_logger=current_logger)
