# settings/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for application configuration.

This module defines the structured settings for every installer component,
including defaults, type annotations, and descriptions. Each component's
settings class is a ``BaseSettings``, so plain environment variables
(``OPENSSL_VERSION``, ``VENV_DIR``, ``FORCE_SSH_INSTALL`` ...) override the
defaults.
"""

from typing import Dict, List, Literal, Optional

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from settings import templates
from settings.constants import SYMBOLS

SYMBOLS_DEFAULT: Dict[str, str] = dict(SYMBOLS)

LOG_PREFIX_DEFAULT: str = "[INFRA-INSTALLER]"

NGINX_CONFIGURE_FLAGS_DEFAULT: List[str] = [
    "--with-compat",
    "--with-file-aio",
    "--with-threads",
    "--with-http_addition_module",
    "--with-http_auth_request_module",
    "--with-http_dav_module",
    "--with-http_flv_module",
    "--with-http_gunzip_module",
    "--with-http_gzip_static_module",
    "--with-http_mp4_module",
    "--with-http_random_index_module",
    "--with-http_realip_module",
    "--with-http_secure_link_module",
    "--with-http_slice_module",
    "--with-http_ssl_module",
    "--with-http_stub_status_module",
    "--with-http_sub_module",
    "--with-http_v2_module",
    "--with-http_v3_module",
    "--with-mail",
    "--with-mail_ssl_module",
    "--with-stream",
    "--with-stream_realip_module",
    "--with-stream_ssl_module",
    "--with-stream_ssl_preread_module",
]


class NginxSettings(BaseSettings):
    """NGINX package installation from the nginx.org repositories."""

    model_config = SettingsConfigDict(env_prefix="NGINX_", extra="ignore")

    channel: Literal["stable", "mainline"] = Field(
        default="stable", description="NGINX release track to install."
    )
    gpg_key_url: str = Field(
        default="https://nginx.org/keys/nginx_signing.key",
        description="URL of the nginx.org package signing key.",
    )
    keyring_path: str = Field(
        default="/usr/share/keyrings/nginx-archive-keyring.gpg",
        description="Dearmored keyring used by the apt source lines.",
    )
    packages_base_url: str = Field(
        default="http://nginx.org/packages",
        description="Base URL of the nginx.org package repositories.",
    )
    expected_versions: Dict[str, str] = Field(
        default_factory=lambda: {"stable": "1.28", "mainline": "1.29"},
        description="Version prefix the installed binary must report, per channel.",
    )

    def expected_version(self) -> str:
        return self.expected_versions.get(self.channel, "")


class NginxSourceSettings(BaseSettings):
    """NGINX compiled from source with HTTP/3 support."""

    model_config = SettingsConfigDict(
        env_prefix="NGINX_SOURCE_", extra="ignore"
    )

    version: str = Field(default="1.28.0", description="NGINX source version.")
    download_base_url: str = Field(default="https://nginx.org/download")
    build_dir: Optional[str] = Field(
        default=None,
        description="Build directory. Defaults to /tmp/nginx-build-<pid>.",
    )
    prefix: str = Field(default="/usr/local/nginx")
    sbin_path: str = Field(default="/usr/sbin/nginx")
    conf_path: str = Field(default="/etc/nginx/nginx.conf")
    error_log_path: str = Field(default="/var/log/nginx/error.log")
    http_log_path: str = Field(default="/var/log/nginx/access.log")
    pid_path: str = Field(default="/run/nginx.pid")
    lock_path: str = Field(default="/run/nginx.lock")
    cache_dir: str = Field(default="/var/cache/nginx")
    log_dir: str = Field(default="/var/log/nginx")
    web_root: str = Field(default="/usr/share/nginx/html")
    user: str = Field(default="nginx")
    group: str = Field(default="nginx")
    systemd_unit_path: str = Field(default="/etc/systemd/system/nginx.service")
    configure_flags: List[str] = Field(
        default_factory=lambda: list(NGINX_CONFIGURE_FLAGS_DEFAULT)
    )
    systemd_unit_template: str = Field(
        default=templates.NGINX_SYSTEMD_UNIT_TEMPLATE,
        description="Template for the systemd unit. Placeholders: {sbin_path}, {pid_path}.",
    )
    nginx_conf: str = Field(
        default=templates.NGINX_CONF_DEFAULT,
        description="nginx.conf written when none exists.",
    )


def _env_alias(prefix: str, name: str) -> AliasChoices:
    """Accept both ``NAME`` and ``<PREFIX>_NAME`` from the environment."""
    return AliasChoices(name, f"{prefix}_{name}")


class OpenSSHSettings(BaseSettings):
    """
    OpenSSL + OpenSSH custom build.

    Environment variables use the ``OPENSSH_`` prefix. The build options
    also accept their historical unprefixed names (``OPENSSL_VERSION``,
    ``OPENSSH_VERSION``, ``BUILD_DIR``, ``OPENSSL_INSTALL_PREFIX``,
    ``OPENSSH_INSTALL_PREFIX``, ``FORCE_SSH_INSTALL``).
    """

    model_config = SettingsConfigDict(env_prefix="OPENSSH_", extra="ignore")

    openssl_version: str = Field(
        default="3.5.0", validation_alias=_env_alias("openssh", "openssl_version")
    )
    openssh_version: str = Field(
        default="10.0p2", validation_alias=_env_alias("openssh", "openssh_version")
    )
    build_dir: str = Field(
        default="/usr/local/src/build-ssh-ssl",
        validation_alias=_env_alias("openssh", "build_dir"),
    )
    openssl_install_prefix: Optional[str] = Field(
        default=None,
        validation_alias=_env_alias("openssh", "openssl_install_prefix"),
        description="Defaults to /usr/local/openssl-<openssl_version>.",
    )
    openssh_install_prefix: Optional[str] = Field(
        default=None,
        validation_alias=_env_alias("openssh", "openssh_install_prefix"),
        description="Defaults to /usr/local/openssh-<openssh_version>.",
    )
    backup_root: str = Field(default="/root")
    force_ssh_install: bool = Field(
        default=False,
        validation_alias=_env_alias("openssh", "force_ssh_install"),
        description="Allow running inside an SSH session after typed confirmation.",
    )
    reboot: bool = Field(
        default=True, description="Schedule a reboot after installing."
    )
    reboot_countdown_seconds: int = Field(default=30)
    ssh_port: int = Field(default=22)
    permit_root_login: str = Field(default="no")
    password_authentication: str = Field(default="yes")
    sshd_config_template: str = Field(default=templates.SSHD_CONFIG_TEMPLATE)
    ssh_client_config: str = Field(default=templates.SSH_CLIENT_CONFIG)

    @model_validator(mode="after")
    def _derive_install_prefixes(self) -> "OpenSSHSettings":
        if not self.openssl_install_prefix:
            self.openssl_install_prefix = (
                f"/usr/local/openssl-{self.openssl_version}"
            )
        if not self.openssh_install_prefix:
            self.openssh_install_prefix = (
                f"/usr/local/openssh-{self.openssh_version}"
            )
        return self


class DockerSettings(BaseSettings):
    """Docker Engine installation."""

    model_config = SettingsConfigDict(env_prefix="DOCKER_", extra="ignore")

    packages: List[str] = Field(
        default_factory=lambda: [
            "docker-ce",
            "docker-ce-cli",
            "containerd.io",
            "docker-buildx-plugin",
            "docker-compose-plugin",
        ]
    )
    add_user_to_group: bool = Field(
        default=False,
        description="Add the invoking (sudo) user to the 'docker' group.",
    )
    use_fallback_script: bool = Field(
        default=True,
        description="Run the get.docker.com convenience script when the native install fails.",
    )


class AnsibleSettings(BaseSettings):
    """
    Ansible installed into a Python virtual environment.

    Environment variables use the ``ANSIBLE_`` prefix. The Python build
    and venv options also accept their historical unprefixed names
    (``REQ_PYTHON_VERSION``, ``BUILD_PYTHON_VERSION``, ``VENV_DIR`` ...).
    """

    model_config = SettingsConfigDict(env_prefix="ANSIBLE_", extra="ignore")

    req_python_version: str = Field(
        default="3.12", validation_alias=_env_alias("ansible", "req_python_version")
    )
    build_python_version: str = Field(
        default="3.13.2", validation_alias=_env_alias("ansible", "build_python_version")
    )
    build_python_sha256: Optional[str] = Field(
        default=None,
        validation_alias=_env_alias("ansible", "build_python_sha256"),
        description="SHA256 of the Python source tarball. Required to build from source.",
    )
    venv_dir: str = Field(
        default="/opt/ansible-env", validation_alias=_env_alias("ansible", "venv_dir")
    )
    cleanup_source: bool = Field(
        default=False, validation_alias=_env_alias("ansible", "cleanup_source")
    )
    force_build: bool = Field(
        default=False, validation_alias=_env_alias("ansible", "force_build")
    )
    skip_build: bool = Field(
        default=False, validation_alias=_env_alias("ansible", "skip_build")
    )
    source_root: str = Field(default="/usr/src")
    symlink_dir: str = Field(default="/usr/local/bin")
    config_dir: str = Field(default="/etc/ansible")
    install_winrm_support: bool = Field(default=True)
    log_dir: str = Field(default="/tmp")


class TerraformSettings(BaseSettings):
    """Terraform from the HashiCorp repositories."""

    model_config = SettingsConfigDict(env_prefix="TERRAFORM_", extra="ignore")

    fallback_codename: str = Field(
        default="buster",
        description="Codename used when lsb_release is unavailable.",
    )


class KubernetesSettings(BaseSettings):
    """kubectl (and optionally minikube)."""

    model_config = SettingsConfigDict(env_prefix="K8S_", extra="ignore")

    version: str = Field(
        default="v1.32", description="Kubernetes minor version channel."
    )
    install_minikube: Optional[bool] = Field(
        default=None,
        description="Install minikube too. None means ask interactively.",
    )
    minikube_path: str = Field(default="/usr/local/bin/minikube")

    @property
    def apt_base_url(self) -> str:
        return f"https://pkgs.k8s.io/core:/stable:/{self.version}/deb/"

    @property
    def rpm_base_url(self) -> str:
        return f"https://pkgs.k8s.io/core:/stable:/{self.version}/rpm/"


class WinRMSettings(BaseSettings):
    """WinRM enablement on a Windows host."""

    model_config = SettingsConfigDict(env_prefix="WINRM_", extra="ignore")

    https_port: int = Field(default=5986)
    http_port: int = Field(default=5985)
    enable_basic_auth: bool = Field(default=False)
    certificate_validity_days: int = Field(default=1095)
    open_http_firewall: bool = Field(default=False)


class VMTuningSettings(BaseSettings):
    """Performance tuning for a Windows virtual machine."""

    model_config = SettingsConfigDict(env_prefix="VM_TUNING_", extra="ignore")

    disable_hibernation: bool = Field(default=True)
    disable_defrag: bool = Field(default=True)
    services_to_disable: List[str] = Field(
        default_factory=lambda: ["SysMain", "WSearch"]
    )
    visual_effects_best_performance: bool = Field(default=True)


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(extra="ignore")

    confirm: bool = Field(
        default=False,
        description="Answer yes to every confirmation prompt (CONFIRM=1).",
    )
    log_prefix: str = Field(
        default=LOG_PREFIX_DEFAULT,
        description="Prefix for log messages from the installer.",
    )
    log_file: Optional[str] = Field(
        default=None, description="Optional file receiving all log output."
    )
    download_attempts: int = Field(default=3, ge=1)
    download_retry_delay: float = Field(default=2.0, ge=0)
    download_timeout: int = Field(default=30, ge=1)

    nginx: NginxSettings = Field(default_factory=NginxSettings)
    nginx_source: NginxSourceSettings = Field(
        default_factory=NginxSourceSettings
    )
    openssh: OpenSSHSettings = Field(default_factory=OpenSSHSettings)
    docker: DockerSettings = Field(default_factory=DockerSettings)
    ansible: AnsibleSettings = Field(default_factory=AnsibleSettings)
    terraform: TerraformSettings = Field(default_factory=TerraformSettings)
    kubernetes: KubernetesSettings = Field(default_factory=KubernetesSettings)
    winrm: WinRMSettings = Field(default_factory=WinRMSettings)
    vm_tuning: VMTuningSettings = Field(default_factory=VMTuningSettings)

    symbols: Dict[str, str] = Field(
        default_factory=lambda: dict(SYMBOLS_DEFAULT)
    )
