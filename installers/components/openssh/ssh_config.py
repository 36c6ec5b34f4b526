"""
Hardened sshd/ssh configuration and host-key management.
"""

import datetime
import logging
import os
from pathlib import Path
from typing import Optional

from common.command_utils import run_command
from common.file_utils import backup_file, write_text_file
from settings.config_models import AppSettings, OpenSSHSettings
from settings.constants import DEFAULT_SFTP_SERVER_PATH

module_logger = logging.getLogger(__name__)

WEAK_HOST_KEY_PREFIXES = ("ssh_host_dsa_key", "ssh_host_ecdsa_key")


def find_sftp_server(search_root: str = "/usr") -> str:
    """
    Return the first ``sftp-server`` file below `search_root`, or the
    default libexec path when none is found.
    """
    for dirpath, _dirnames, filenames in os.walk(search_root):
        if "sftp-server" in filenames:
            candidate = Path(dirpath) / "sftp-server"
            if candidate.is_file():
                return str(candidate)
    return DEFAULT_SFTP_SERVER_PATH


def render_sshd_config(
    settings: OpenSSHSettings,
    sftp_path: str,
    generated: Optional[str] = None,
) -> str:
    return settings.sshd_config_template.format(
        generated=generated or datetime.datetime.now().strftime("%c"),
        port=settings.ssh_port,
        permit_root_login=settings.permit_root_login,
        password_authentication=settings.password_authentication,
        sftp_path=sftp_path,
    )


def remove_weak_host_keys(ssh_dir: Path) -> list:
    """Delete DSA and ECDSA host keys (private and public)."""
    removed = []
    for key_file in sorted(ssh_dir.glob("ssh_host_*")):
        if key_file.name.startswith(WEAK_HOST_KEY_PREFIXES):
            key_file.unlink()
            removed.append(key_file)
    return removed


def generate_host_keys(
    ssh_dir: Path,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Generate ed25519 and RSA-3072 host keys when they are missing."""
    logger_to_use = current_logger if current_logger else module_logger
    key_specs = (
        ("ssh_host_ed25519_key", ["-t", "ed25519"]),
        ("ssh_host_rsa_key", ["-t", "rsa", "-b", "3072"]),
    )
    for key_name, key_args in key_specs:
        key_path = ssh_dir / key_name
        if key_path.exists():
            continue
        logger_to_use.info(f"Generating host key {key_path}")
        run_command(
            ["ssh-keygen"] + key_args + ["-f", str(key_path), "-N", ""],
            app_settings,
            capture_output=True,
            current_logger=logger_to_use,
        )


def fix_host_key_permissions(ssh_dir: Path) -> None:
    for key_file in ssh_dir.glob("ssh_host_*_key"):
        os.chmod(key_file, 0o600)
    for pub_file in ssh_dir.glob("ssh_host_*_key.pub"):
        os.chmod(pub_file, 0o644)


def write_hardened_config(
    settings: OpenSSHSettings,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    ssh_dir: str = "/etc/ssh",
    sftp_search_root: str = "/usr",
) -> Path:
    """
    Back up and rewrite sshd_config, replace weak host keys and write the
    client ssh_config.

    Returns:
        The path of the written sshd_config.
    """
    logger_to_use = current_logger if current_logger else module_logger
    ssh_path = Path(ssh_dir)
    sshd_config = ssh_path / "sshd_config"

    backup_file(sshd_config, app_settings, logger_to_use)
    sftp_path = find_sftp_server(sftp_search_root)
    logger_to_use.debug(f"Using sftp-server at {sftp_path}")
    write_text_file(
        sshd_config,
        render_sshd_config(settings, sftp_path),
        0o644,
        logger_to_use,
    )

    for removed in remove_weak_host_keys(ssh_path):
        logger_to_use.info(f"Removed weak host key {removed}")
    generate_host_keys(ssh_path, app_settings, logger_to_use)
    fix_host_key_permissions(ssh_path)

    write_text_file(
        ssh_path / "ssh_config", settings.ssh_client_config, 0o644, logger_to_use
    )
    return sshd_config
