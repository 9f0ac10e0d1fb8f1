from unittest.mock import MagicMock

from configure.admin_account import (
    EXISTS_MARKER,
    admin_account_exists,
    build_create_admin_script,
    create_admin_account,
)


def test_create_script_is_guarded_and_grants_roles(app_settings):
    script = build_create_admin_script(app_settings)

    assert script.startswith('unless User.exists?(username: "alice")')
    assert 'u.email = "alice@news.example.com"' in script
    assert 'u.password = "changeme123"' in script
    assert "u.is_admin = true" in script
    assert "u.is_moderator = true" in script


def test_ruby_interpolation_is_escaped(settings_factory):
    script = build_create_admin_script(settings_factory(admin_user="a#{x}"))

    assert '"a\\#{x}"' in script


def test_create_admin_account_runs_rails_runner(mocker, context):
    mock_run = mocker.patch("configure.admin_account.run_in_app")

    create_admin_account(context)

    script = mock_run.call_args.args[0]
    assert script.startswith("bin/rails runner ")
    assert mock_run.call_args.kwargs["with_env_file"] is True


def test_admin_account_exists(mocker, context):
    mock_run = mocker.patch(
        "configure.admin_account.run_in_app",
        return_value=MagicMock(returncode=0, stdout=f"{EXISTS_MARKER}\n"),
    )
    assert admin_account_exists(context) is True

    mock_run.return_value = MagicMock(returncode=0, stdout="\n")
    assert admin_account_exists(context) is False

    mock_run.return_value = MagicMock(returncode=1, stdout="")
    assert admin_account_exists(context) is False
