# common/network_utils.py
# -*- coding: utf-8 -*-
"""
Downloading, checksum verification and extraction of source archives.

Downloads use a fixed number of attempts with a fixed delay between them;
there is no backoff.
"""

import hashlib
import logging
import tarfile
import time
from pathlib import Path
from typing import Optional, Union

import requests

from common.errors import ChecksumMismatchError, DownloadError, InstallerError
from settings.config_models import AppSettings

module_logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_TIMEOUT = 30


def _retry_params(app_settings: Optional[AppSettings], attempts, delay, timeout):
    if app_settings:
        attempts = attempts or app_settings.download_attempts
        delay = app_settings.download_retry_delay if delay is None else delay
        timeout = timeout or app_settings.download_timeout
    return (
        attempts or DEFAULT_ATTEMPTS,
        DEFAULT_RETRY_DELAY if delay is None else delay,
        timeout or DEFAULT_TIMEOUT,
    )


def download_file(
    url: str,
    dest: Union[str, Path],
    app_settings: Optional[AppSettings] = None,
    attempts: Optional[int] = None,
    delay: Optional[float] = None,
    timeout: Optional[int] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Download `url` to `dest`, streaming to disk.

    Args:
        url: Source URL.
        dest: Destination file path. Parent directories are created.
        app_settings: Provides the default attempts, delay and timeout.
        attempts: Number of attempts (default 3).
        delay: Seconds to sleep between attempts (default 2).
        timeout: Per-request timeout in seconds.
        current_logger: Logger to use.

    Returns:
        The destination path.

    Raises:
        DownloadError: Every attempt failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    attempts, delay, timeout = _retry_params(
        app_settings, attempts, delay, timeout
    )
    download_path = Path(dest)
    download_path.parent.mkdir(parents=True, exist_ok=True)

    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        logger_to_use.info(
            f"Downloading {url} (attempt {attempt}/{attempts})..."
        )
        try:
            with requests.get(url, stream=True, timeout=timeout) as response:
                response.raise_for_status()
                with open(download_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=8192):
                        if chunk:
                            f.write(chunk)
            logger_to_use.debug(f"Saved {url} to {download_path}")
            return download_path
        except (requests.exceptions.RequestException, IOError) as e:
            last_error = e
            logger_to_use.warning(f"Download attempt {attempt} failed: {e}")
            if attempt < attempts:
                time.sleep(delay)

    raise DownloadError(
        f"Failed to download {url} after {attempts} attempts: {last_error}"
    )


def fetch_text(
    url: str,
    app_settings: Optional[AppSettings] = None,
    attempts: Optional[int] = None,
    delay: Optional[float] = None,
    timeout: Optional[int] = None,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """
    Fetch a small text resource (GPG key, repo file, install script).

    Raises:
        DownloadError: Every attempt failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    attempts, delay, timeout = _retry_params(
        app_settings, attempts, delay, timeout
    )

    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            response = requests.get(url, timeout=timeout)
            response.raise_for_status()
            return response.text
        except requests.exceptions.RequestException as e:
            last_error = e
            logger_to_use.warning(
                f"Fetching {url} failed (attempt {attempt}/{attempts}): {e}"
            )
            if attempt < attempts:
                time.sleep(delay)

    raise DownloadError(
        f"Failed to fetch {url} after {attempts} attempts: {last_error}"
    )


def sha256sum(path: Union[str, Path]) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(65536), b""):
            digest.update(block)
    return digest.hexdigest()


def verify_sha256(
    path: Union[str, Path],
    expected: str,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Raises:
        ChecksumMismatchError: The file's digest differs from `expected`.
    """
    logger_to_use = current_logger if current_logger else module_logger
    actual = sha256sum(path)
    if actual.lower() != expected.strip().lower():
        raise ChecksumMismatchError(
            f"SHA256 mismatch for {path}: expected {expected}, got {actual}"
        )
    logger_to_use.info(f"SHA256 verified for {path}")


def _is_within(path: Path, directory: Path) -> bool:
    return path == directory or directory in path.parents


def extract_tarball(
    archive: Union[str, Path],
    dest: Union[str, Path],
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Extract a tar archive into `dest`.

    Raises:
        InstallerError: The archive is unreadable or a member would be
            written outside `dest`.
    """
    logger_to_use = current_logger if current_logger else module_logger
    destination = Path(dest).resolve()
    destination.mkdir(parents=True, exist_ok=True)

    try:
        with tarfile.open(archive, "r:*") as tar:
            for member in tar.getmembers():
                member_path = (destination / member.name).resolve()
                if not _is_within(member_path, destination):
                    raise InstallerError(
                        f"Refusing to extract {member.name}: outside {destination}"
                    )
                if member.issym() or member.islnk():
                    # Symlink targets are relative to the link's directory,
                    # hardlink targets to the archive root.
                    base = member_path.parent if member.issym() else destination
                    target = (base / member.linkname).resolve()
                    if not _is_within(target, destination):
                        raise InstallerError(
                            f"Refusing to extract link {member.name} -> "
                            f"{member.linkname}: outside {destination}"
                        )
            tar.extractall(destination)
    except tarfile.TarError as e:
        raise InstallerError(f"Cannot extract {archive}: {e}") from e

    logger_to_use.debug(f"Extracted {archive} into {destination}")
    return destination
