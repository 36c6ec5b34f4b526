"""
Installer framework.

Each infrastructure package (NGINX, OpenSSH, Docker, Ansible, Terraform,
kubectl) and each Windows host procedure is a component registered with
the ``InstallerRegistry`` and driven by the ``InstallerOrchestrator``.
"""

from installers.base_installer import BaseInstaller
from installers.orchestrator import InstallerOrchestrator
from installers.registry import InstallerRegistry

__all__ = ["BaseInstaller", "InstallerRegistry", "InstallerOrchestrator"]
