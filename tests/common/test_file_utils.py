import os
import stat
import subprocess
from subprocess import CalledProcessError

from pytest_mock import MockerFixture

from common.file_utils import backup_file, ensure_directory, file_matches, write_file


def test_backup_file_success(mocker: MockerFixture, app_settings):
    """An existing file is copied next to itself."""
    mock_run_elevated_command = mocker.patch("common.file_utils.run_elevated_command")
    mock_log_provision = mocker.patch("common.file_utils.log_provision")

    result = backup_file("/etc/caddy/Caddyfile", app_settings)

    assert mock_run_elevated_command.call_count == 2
    copy_command = mock_run_elevated_command.call_args_list[1].args[0]
    assert copy_command[:3] == ["cp", "-a", "/etc/caddy/Caddyfile"]
    assert copy_command[3].startswith("/etc/caddy/Caddyfile.bak.")
    mock_log_provision.assert_called_with(mocker.ANY, "success", mocker.ANY, app_settings)
    assert result is True


def test_backup_file_nonexistent(mocker: MockerFixture, app_settings):
    """When the file doesn't exist, no backup is needed."""
    mock_run_elevated_command = mocker.patch("common.file_utils.run_elevated_command")
    mocker.patch("common.file_utils.log_provision")
    mock_run_elevated_command.side_effect = [CalledProcessError(1, ["test", "-f"])]

    assert backup_file("/nope", app_settings) is True
    mock_run_elevated_command.assert_called_once()


def test_backup_file_failure(mocker: MockerFixture, app_settings):
    mock_run_elevated_command = mocker.patch("common.file_utils.run_elevated_command")
    mock_log_provision = mocker.patch("common.file_utils.log_provision")
    mock_run_elevated_command.side_effect = [None, CalledProcessError(1, ["cp"])]

    assert backup_file("/etc/x", app_settings) is False
    mock_log_provision.assert_called_with(mocker.ANY, "error", mocker.ANY, app_settings)


def test_write_file_skips_identical_content(mocker: MockerFixture, app_settings, tmp_path):
    target = tmp_path / "unit.service"
    target.write_text("same\n")
    mock_run_elevated_command = mocker.patch("common.file_utils.run_elevated_command")
    mocker.patch("common.file_utils.log_provision")

    changed = write_file(target, "same\n", app_settings)

    assert changed is False
    mock_run_elevated_command.assert_not_called()


def test_write_file_writes_with_tee_and_applies_mode_and_owner(mocker: MockerFixture, app_settings, tmp_path):
    target = tmp_path / "app" / ".env"
    mock_run_elevated_command = mocker.patch("common.file_utils.run_elevated_command")
    mocker.patch("common.file_utils.log_provision")

    changed = write_file(target, "A=1\n", app_settings, mode="600", owner="lobsters:lobsters")

    assert changed is True
    commands = [call.args[0] for call in mock_run_elevated_command.call_args_list]
    assert commands[0] == ["mkdir", "-p", str(target.parent)]
    assert commands[1] == [
        "install", "-m", "600", "-o", "lobsters", "-g", "lobsters", "/dev/null", str(target)
    ]
    assert commands[2] == ["tee", str(target)]
    assert mock_run_elevated_command.call_args_list[2].kwargs["cmd_input"] == "A=1\n"
    assert ["chmod", "600", str(target)] in commands
    assert ["chown", "lobsters:lobsters", str(target)] in commands


def test_file_matches_missing_file(tmp_path):
    assert file_matches(tmp_path / "missing", "") is False


def test_ensure_directory(mocker: MockerFixture, app_settings):
    mock_run_elevated_command = mocker.patch("common.file_utils.run_elevated_command")

    ensure_directory("/srv/lobsters/log", app_settings, owner="lobsters:lobsters")

    commands = [call.args[0] for call in mock_run_elevated_command.call_args_list]
    assert commands == [
        ["mkdir", "-p", "/srv/lobsters/log"],
        ["chown", "lobsters:lobsters", "/srv/lobsters/log"],
    ]


def test_write_file_without_mode_does_not_precreate(mocker: MockerFixture, app_settings, tmp_path):
    target = tmp_path / "Caddyfile"
    mock_run_elevated_command = mocker.patch("common.file_utils.run_elevated_command")
    mocker.patch("common.file_utils.log_provision")

    write_file(target, ":80 {}\n", app_settings)

    commands = [call.args[0] for call in mock_run_elevated_command.call_args_list]
    assert commands == [["mkdir", "-p", str(tmp_path)], ["tee", str(target)]]


def test_write_file_content_never_lands_in_a_readable_file(mocker: MockerFixture, app_settings, tmp_path):
    """The secret content is written into a file that is already 0600."""
    target = tmp_path / "app" / ".env"
    modes_at_write = []

    def run_for_real(command, settings, cmd_input=None, **kwargs):
        if command[0] == "tee":
            modes_at_write.append(stat.S_IMODE(os.stat(target).st_mode))
        return subprocess.run(command, input=cmd_input, text=True, check=True, capture_output=True)

    mocker.patch("common.file_utils.run_elevated_command", side_effect=run_for_real)
    mocker.patch("common.file_utils.log_provision")

    write_file(target, "RAILS_MASTER_KEY=abc\n", app_settings, mode="600")

    assert modes_at_write == [0o600]
    assert stat.S_IMODE(os.stat(target).st_mode) == 0o600
    assert target.read_text() == "RAILS_MASTER_KEY=abc\n"


def test_write_file_rewrites_loose_file_before_writing(mocker: MockerFixture, app_settings, tmp_path):
    target = tmp_path / ".env"
    target.write_text("OLD=1\n")
    target.chmod(0o644)
    modes_at_write = []

    def run_for_real(command, settings, cmd_input=None, **kwargs):
        if command[0] == "tee":
            modes_at_write.append(stat.S_IMODE(os.stat(target).st_mode))
        return subprocess.run(command, input=cmd_input, text=True, check=True, capture_output=True)

    mocker.patch("common.file_utils.run_elevated_command", side_effect=run_for_real)
    mocker.patch("common.file_utils.log_provision")

    assert write_file(target, "NEW=1\n", app_settings, mode="600") is True
    assert modes_at_write == [0o600]
    assert target.read_text() == "NEW=1\n"
