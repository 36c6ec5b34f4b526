# tests/installers/components/test_winrm_configurator.py
# -*- coding: utf-8 -*-
from unittest.mock import MagicMock

import pytest

from common.errors import CommandError
from installers.components.windows.winrm_configurator import (
    WinRMConfigurator,
    auth_script,
    firewall_rule_script,
    https_listener_script,
)
from settings.config_models import WinRMSettings

MODULE = "installers.components.windows.winrm_configurator"


def test_https_listener_script_defaults():
    script = https_listener_script(WinRMSettings())

    assert "New-SelfSignedCertificate" in script
    assert "(Get-Date).AddDays(1095)" in script
    assert "-Transport HTTPS" in script
    assert "-Port 5986" in script


def test_auth_script_disables_basic_and_unencrypted():
    script = auth_script(WinRMSettings())

    assert "Auth\\Basic -Value $false" in script
    assert "AllowUnencrypted -Value $false" in script


def test_auth_script_basic_enabled():
    assert "Auth\\Basic -Value $true" in auth_script(WinRMSettings(enable_basic_auth=True))


def test_firewall_rule_script():
    script = firewall_rule_script("WinRM HTTPS", 5986)

    assert "Get-NetFirewallRule -DisplayName 'WinRM HTTPS'" in script
    assert "-LocalPort 5986" in script


@pytest.fixture
def windows(mocker, completed):
    mocker.patch(f"{MODULE}.is_windows", return_value=True)
    mocker.patch(f"{MODULE}.require_root")
    return mocker.patch(f"{MODULE}.run_powershell", return_value=completed())


@pytest.fixture
def configurator(app_settings):
    return WinRMConfigurator(app_settings, MagicMock())


def test_install_runs_scripts(configurator, windows):
    assert configurator.install() is True

    scripts = [c.args[0] for c in windows.call_args_list]
    assert len(scripts) == 5
    assert scripts[1] == "Enable-PSRemoting -Force -SkipNetworkProfileCheck"
    assert "'WinRM HTTPS'" in scripts[-1]


def test_install_opens_http_firewall(configurator, windows):
    configurator.settings.open_http_firewall = True

    assert configurator.install() is True

    assert len(windows.call_args_list) == 6
    assert "-LocalPort 5985" in windows.call_args.args[0]


def test_install_on_linux(mocker, configurator):
    mocker.patch(f"{MODULE}.is_windows", return_value=False)
    ps = mocker.patch(f"{MODULE}.run_powershell")

    assert configurator.install() is False
    ps.assert_not_called()


def test_install_failure(configurator, windows):
    windows.side_effect = CommandError(["powershell.exe"], 1)

    assert configurator.install() is False


def test_is_installed_counts_listeners(configurator, windows, completed):
    windows.return_value = completed(stdout="1\r\n")
    assert configurator.is_installed() is True

    windows.return_value = completed(stdout="0\r\n")
    assert configurator.is_installed() is False


def test_verify(configurator, windows, completed):
    assert configurator.verify() is True

    windows.return_value = completed(returncode=1)
    assert configurator.verify() is False
