# tests/installers/components/test_nginx_source_installer.py
# -*- coding: utf-8 -*-
from unittest.mock import MagicMock

import pytest

from common.errors import CommandError
from installers.components.nginx.nginx_source_installer import (
    NginxSourceInstaller,
    build_configure_args,
)
from settings.config_models import NginxSourceSettings

MODULE = "installers.components.nginx.nginx_source_installer"

STEPS = [
    "remove_packaged_nginx",
    "install_build_dependencies",
    "download_source",
    "compile_and_install",
    "create_user_and_directories",
    "write_configuration",
    "enable_and_start",
]


def test_build_configure_args_paths_then_flags():
    settings = NginxSourceSettings(
        cache_dir="/var/cache/ngx", configure_flags=["--with-http_v3_module"]
    )

    args = build_configure_args(settings)

    assert args[0] == "--prefix=/usr/local/nginx"
    assert "--http-proxy-temp-path=/var/cache/ngx/proxy_temp" in args
    assert "--user=nginx" in args
    assert args[-1] == "--with-http_v3_module"


@pytest.fixture
def installer(app_settings, tmp_path):
    app_settings.nginx_source.build_dir = str(tmp_path / "build")
    app_settings.nginx_source.systemd_unit_path = str(tmp_path / "nginx.service")
    app_settings.nginx_source.conf_path = str(tmp_path / "etc" / "nginx.conf")
    app_settings.nginx_source.web_root = str(tmp_path / "html")
    return NginxSourceInstaller(app_settings, MagicMock())


def test_write_configuration_creates_files(installer, tmp_path):
    installer.write_configuration()

    unit = (tmp_path / "nginx.service").read_text(encoding="utf-8")
    assert "/usr/sbin/nginx" in unit
    assert "/run/nginx.pid" in unit
    assert (tmp_path / "etc" / "nginx.conf").exists()
    index = (tmp_path / "html" / "index.html").read_text(encoding="utf-8")
    assert installer.settings.version in index


def test_write_configuration_keeps_existing_conf(installer, tmp_path):
    conf = tmp_path / "etc" / "nginx.conf"
    conf.parent.mkdir(parents=True)
    conf.write_text("# mine\n", encoding="utf-8")

    installer.write_configuration()

    assert conf.read_text(encoding="utf-8") == "# mine\n"


@pytest.mark.parametrize(
    "output, expected",
    [
        ("configure arguments: --with-http_v3_module --with-stream", True),
        ("configure arguments: --with-http_v2_module", False),
        (None, False),
    ],
)
def test_has_http3(mocker, installer, output, expected):
    mocker.patch(f"{MODULE}.binary_version_output", return_value=output)
    assert installer.has_http3() is expected


@pytest.fixture
def patched_steps(mocker):
    calls = []
    for step in STEPS:
        mocker.patch.object(
            NginxSourceInstaller,
            step,
            side_effect=lambda *args, _step=step: calls.append(_step),
        )
    mocker.patch(f"{MODULE}.require_root")
    mocker.patch.object(NginxSourceInstaller, "report")
    return calls


def test_install_runs_steps_in_order(installer, patched_steps, tmp_path):
    assert installer.install() is True
    assert patched_steps == STEPS
    assert not (tmp_path / "build").exists()


def test_install_continues_when_removal_fails(installer, patched_steps):
    NginxSourceInstaller.remove_packaged_nginx.side_effect = CommandError(
        ["dnf", "remove"], 1
    )

    assert installer.install() is True
    assert patched_steps == STEPS[1:]


def test_install_stops_on_compile_failure(installer, patched_steps, tmp_path):
    NginxSourceInstaller.compile_and_install.side_effect = CommandError(
        ["make", "-j4"], 2
    )

    assert installer.install() is False
    assert "create_user_and_directories" not in patched_steps
    assert not (tmp_path / "build").exists()
    NginxSourceInstaller.report.assert_not_called()


def test_compile_and_install_commands(mocker, installer, tmp_path):
    installer.source_dir = tmp_path / "nginx-1.28.0"
    mocker.patch(f"{MODULE}.cpu_count_for_build", return_value=4)
    run = mocker.patch(f"{MODULE}.run_command")
    run_elevated = mocker.patch(f"{MODULE}.run_elevated_command")

    installer.compile_and_install()

    configure, make = [c.args[0] for c in run.call_args_list]
    assert configure[0] == "./configure"
    assert make == ["make", "-j4"]
    assert run_elevated.call_args.args[0] == ["make", "install"]
    assert run.call_args.kwargs["cwd"] == str(tmp_path / "nginx-1.28.0")


def test_uninstall_removes_unit_and_binary(mocker, installer):
    mocker.patch(f"{MODULE}.require_root")
    stop = mocker.patch(f"{MODULE}.stop_service")
    remove = mocker.patch(f"{MODULE}.remove_path")
    mocker.patch(f"{MODULE}.systemd_reload")

    assert installer.uninstall() is True
    stop.assert_called_once_with(
        "nginx", installer.app_settings, installer.logger, disable=True
    )
    removed = [c.args[0] for c in remove.call_args_list]
    assert installer.settings.sbin_path in removed
    assert installer.settings.systemd_unit_path in removed


def test_verify_requires_unit(installer):
    assert installer.verify() is False
