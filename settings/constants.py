# settings/constants.py
# -*- coding: utf-8 -*-
"""
Centralized static constants for the installers.

This module defines truly static values, such as logging symbols, package
lists per package-manager family and well-known vendor URLs.

Mutable runtime configuration (versions, prefixes, channels) is handled by
'settings/config_models.py' and 'settings/config_loader.py'.
"""

SCRIPT_VERSION: str = "2.0"

SYMBOLS: dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}

SPINNER_FRAMES: tuple = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")

OS_RELEASE_PATH: str = "/etc/os-release"

# Distributions whose releases are end-of-life for vendor repositories.
DEPRECATED_RELEASES: dict[str, tuple] = {
    "ubuntu": ("trusty", "xenial"),
    "debian": ("jessie",),
}

# --- NGINX ---
NGINX_YUM_REPO_PATH: str = "/etc/yum.repos.d/nginx.repo"
NGINX_APT_LIST_PATH: str = "/etc/apt/sources.list.d/nginx.list"

NGINX_SOURCE_BUILD_DEPS: dict[str, list[str]] = {
    "debian": ["build-essential", "libpcre2-dev", "zlib1g-dev", "libssl-dev", "wget"],
    "redhat": ["pcre2-devel", "zlib-devel", "openssl-devel", "wget"],
}

NGINX_CACHE_SUBDIRS: list[str] = [
    "client_temp",
    "proxy_temp",
    "fastcgi_temp",
    "uwsgi_temp",
    "scgi_temp",
]

# --- OpenSSL / OpenSSH ---
OPENSSL_SOURCE_URL_TEMPLATE: str = (
    "https://www.openssl.org/source/openssl-{version}.tar.gz"
)
OPENSSH_SOURCE_URL_TEMPLATE: str = "https://cdn.openbsd.org/pub/OpenBSD/OpenSSH/portable/openssh-{version}.tar.gz"

OPENSSH_BUILD_DEPS: dict[str, list[str]] = {
    "debian": [
        "build-essential",
        "wget",
        "tar",
        "perl",
        "zlib1g-dev",
        "libpam0g-dev",
        "libselinux1-dev",
        "libedit-dev",
    ],
    "default": ["gcc", "make", "wget", "tar", "perl", "zlib-devel", "pam-devel"],
}
OPENSSH_REQUIRED_TOOLS: list[str] = ["gcc", "make", "tar", "perl"]
OPENSSH_CLIENT_BINARIES: list[str] = [
    "ssh",
    "scp",
    "sftp",
    "ssh-add",
    "ssh-agent",
    "ssh-keygen",
    "ssh-keyscan",
]
SYSTEM_SSL_SSH_PACKAGES: list[str] = [
    "openssl",
    "openssh-server",
    "openssh-clients",
]
EXCLUDED_SSL_SSH_PACKAGES: list[str] = [
    "openssl",
    "openssh",
    "openssh-server",
    "openssh-clients",
]
SSH_SSL_BACKUP_ITEMS: list[str] = [
    "/etc/ssh",
    "/etc/ssl",
    "/root/.ssh",
    "/usr/bin/ssh",
    "/usr/sbin/sshd",
    "/usr/bin/openssl",
]
SSH_RISK_CONFIRMATION: str = "I UNDERSTAND THE RISKS"
DEFAULT_SFTP_SERVER_PATH: str = "/usr/libexec/openssh/sftp-server"
PRIVSEP_PATH: str = "/var/lib/sshd"

# --- Docker ---
DOCKER_DOWNLOAD_BASE_URL: str = "https://download.docker.com/linux"
DOCKER_RPM_REPO_URL: str = (
    "https://download.docker.com/linux/fedora/docker-ce.repo"
)
DOCKER_CONVENIENCE_SCRIPT_URL: str = "https://get.docker.com"
DOCKER_APT_KEYRING: str = "/etc/apt/keyrings/docker.gpg"
DOCKER_APT_LIST_PATH: str = "/etc/apt/sources.list.d/docker.list"
DOCKER_YUM_REPO_FILES: list[str] = [
    "/etc/yum.repos.d/docker-ce.repo",
    "/etc/yum.repos.d/docker-ce-staging.repo",
]
DOCKER_APT_PREREQS: list[str] = ["ca-certificates", "curl", "gnupg", "lsb-release"]

# --- Ansible ---
ANSIBLE_TOOLS: list[str] = [
    "ansible",
    "ansible-playbook",
    "ansible-galaxy",
    "ansible-doc",
    "ansible-config",
    "ansible-console",
    "ansible-connection",
    "ansible-inventory",
    "ansible-vault",
]
ANSIBLE_APT_DEPS: list[str] = [
    "build-essential",
    "libssl-dev",
    "zlib1g-dev",
    "libncurses5-dev",
    "libffi-dev",
    "libsqlite3-dev",
    "libbz2-dev",
    "libreadline-dev",
    "liblzma-dev",
    "tk-dev",
    "make",
    "git",
    "wget",
    "curl",
    "python3-pip",
    "python3-venv",
    "software-properties-common",
]
ANSIBLE_RPM_DEPS: list[str] = [
    "gcc",
    "openssl-devel",
    "bzip2-devel",
    "libffi-devel",
    "zlib-devel",
    "ncurses-devel",
    "sqlite-devel",
    "xz-devel",
    "readline-devel",
    "tk-devel",
    "make",
    "git",
    "wget",
    "curl",
    "mpdecimal-devel",
    "python3-pip",
    "python3-virtualenv",
]
ANSIBLE_PIP_PACKAGES: list[str] = ["ansible"]
ANSIBLE_WINRM_PIP_PACKAGES: list[str] = ["pywinrm", "requests-ntlm"]
PYTHON_SOURCE_URL_TEMPLATE: str = (
    "https://www.python.org/ftp/python/{version}/Python-{version}.tgz"
)
DEADSNAKES_PPA: str = "ppa:deadsnakes/ppa"

# --- Terraform ---
HASHICORP_APT_KEY_URL: str = "https://apt.releases.hashicorp.com/gpg"
HASHICORP_APT_REPO_URL: str = "https://apt.releases.hashicorp.com"
HASHICORP_RPM_REPO_URL: str = (
    "https://rpm.releases.hashicorp.com/RHEL/hashicorp.repo"
)
HASHICORP_KEYRING: str = "/usr/share/keyrings/hashicorp-archive-keyring.gpg"
HASHICORP_APT_LIST_PATH: str = "/etc/apt/sources.list.d/hashicorp.list"
HASHICORP_YUM_REPO_PATH: str = "/etc/yum.repos.d/hashicorp.repo"

# --- Kubernetes ---
KUBERNETES_APT_KEYRING: str = "/etc/apt/keyrings/kubernetes-apt-keyring.gpg"
KUBERNETES_APT_LIST_PATH: str = "/etc/apt/sources.list.d/kubernetes.list"
KUBERNETES_REPO_NAME: str = "kubernetes"
KUBERNETES_APT_PREREQS: list[str] = [
    "apt-transport-https",
    "ca-certificates",
    "curl",
    "gnupg",
]
MINIKUBE_DOWNLOAD_BASE_URL: str = (
    "https://github.com/kubernetes/minikube/releases/latest/download"
)
MINIKUBE_ARCH_MAP: dict[str, str] = {
    "x86_64": "amd64",
    "aarch64": "arm64",
    "armv7l": "arm",
    "armv7": "arm",
}

# --- Windows ---
HIGH_PERFORMANCE_SCHEME_GUID: str = "8c5e7fda-e8bf-4a96-9a85-a6e23a8c635c"
BALANCED_SCHEME_GUID: str = "381b4222-f694-41f0-9685-ff5bb260df2e"
WINRM_FIREWALL_RULE_NAME: str = "WinRM HTTPS"
