import subprocess
from unittest.mock import MagicMock

from pytest_mock import MockerFixture

from common.system_utils import (
    enable_and_start_service,
    service_is_active,
    system_user_exists,
)


def test_system_user_exists(mocker: MockerFixture):
    mocker.patch("common.system_utils.pwd.getpwnam", side_effect=KeyError("lobsters"))
    assert system_user_exists("lobsters") is False

    mocker.patch("common.system_utils.pwd.getpwnam", return_value=MagicMock())
    assert system_user_exists("lobsters") is True


def test_service_is_active(mocker: MockerFixture, app_settings):
    mock_run = mocker.patch(
        "common.system_utils.run_elevated_command",
        return_value=MagicMock(returncode=0),
    )

    assert service_is_active("mariadb", app_settings) is True
    assert mock_run.call_args.args[0] == ["systemctl", "is-active", "--quiet", "mariadb"]

    mock_run.return_value = MagicMock(returncode=3)
    assert service_is_active("mariadb", app_settings) is False


def test_service_is_active_without_systemctl(mocker: MockerFixture, app_settings):
    mocker.patch("common.system_utils.run_elevated_command", side_effect=FileNotFoundError("systemctl"))

    assert service_is_active("mariadb", app_settings) is False


def test_enable_and_start_service_restart(mocker: MockerFixture, app_settings):
    mock_run = mocker.patch("common.system_utils.run_elevated_command")
    mocker.patch("common.system_utils.log_provision")

    enable_and_start_service("caddy", app_settings, restart=True)

    commands = [call.args[0] for call in mock_run.call_args_list]
    assert ["systemctl", "enable", "caddy"] in commands
    assert ["systemctl", "restart", "caddy"] in commands
    assert ["systemctl", "start", "caddy"] not in commands


def test_enable_and_start_service_tolerates_unhealthy_status(mocker: MockerFixture, app_settings):
    def fake(command, *args, **kwargs):
        if command[1] == "status":
            raise subprocess.CalledProcessError(3, command)
        return MagicMock(returncode=0)

    mocker.patch("common.system_utils.run_elevated_command", side_effect=fake)
    mock_log = mocker.patch("common.system_utils.log_provision")

    enable_and_start_service("lobsters", app_settings)

    levels = [call.args[1] for call in mock_log.call_args_list]
    assert "warning" in levels
    assert levels[-1] == "success"
