import pytest
import yaml
from unittest.mock import MagicMock

from configure import application_configurator as app_config
from configure.application_configurator import (
    APP_SUBDIRECTORIES,
    MASTER_KEY_SECRET,
    app_directories_exist,
    application_checked_out,
    apply_configuration,
    build_application,
    checkout_application,
    configuration_current,
    generate_credentials,
    load_master_key,
    render_env_file,
)
from provision.config_models import DeploySettings

MASTER_KEY = "f" * 32


@pytest.fixture
def checkout(tmp_path, make_context, settings_factory):
    """A context whose app directory is a minimal checkout with a master key."""
    app_dir = tmp_path / "app"
    (app_dir / "config").mkdir(parents=True)
    (app_dir / "config" / "master.key").write_text(MASTER_KEY + "\n")
    settings = settings_factory(deploy=DeploySettings(app_dir=app_dir))
    return make_context(settings)


def _write_for_real(path, content, settings, **kwargs):
    from pathlib import Path

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text(content)
    return True


def test_env_file_contents(app_settings):
    env = render_env_file(app_settings, MASTER_KEY)

    assert env.splitlines() == [
        "RAILS_ENV=production",
        f"RAILS_MASTER_KEY={MASTER_KEY}",
        "RAILS_SERVE_STATIC_FILES=true",
        "SOLID_QUEUE_IN_PUMA=true",
        "SMTP_HOST=127.0.0.1",
        "SMTP_PORT=587",
        "SMTP_USERNAME=",
        "SMTP_PASSWORD=",
        "SMTP_STARTTLS_AUTO=true",
        "BANNED_DOMAINS_ADMIN=alice",
    ]


def test_env_file_written_0600_owned_by_deploy_user(mocker, checkout):
    mock_write = mocker.patch("configure.application_configurator.write_file")

    apply_configuration(checkout)

    env_calls = [c for c in mock_write.call_args_list if c.args[0] == checkout.settings.env_file]
    assert len(env_calls) == 1
    assert env_calls[0].kwargs["mode"] == "600"
    assert env_calls[0].kwargs["owner"] == "lobsters:lobsters"


def test_database_yml_contains_bootstrapped_password(mocker, checkout):
    mock_write = mocker.patch("configure.application_configurator.write_file")

    apply_configuration(checkout)

    written = {str(c.args[0]): c.args[1] for c in mock_write.call_args_list}
    database_yml = written[str(checkout.settings.deploy.app_dir / "config" / "database.yml")]
    data = yaml.safe_load(database_yml)
    assert data["production"]["primary"]["password"] == checkout.settings.db_password


def test_master_key_registered_as_secret(checkout):
    key = load_master_key(checkout)

    assert key == MASTER_KEY
    assert checkout.secrets.require(MASTER_KEY_SECRET) == MASTER_KEY
    assert checkout.secrets.origin(MASTER_KEY_SECRET) == "existing"


def test_load_master_key_missing(make_context, app_dir_settings):
    with pytest.raises(FileNotFoundError):
        load_master_key(make_context(app_dir_settings))


def test_missing_placeholders_are_warned(mocker, checkout):
    mocker.patch("configure.application_configurator.write_file")
    mock_log = mocker.patch("configure.application_configurator.log_provision")

    apply_configuration(checkout)

    warnings = [c.args[0] for c in mock_log.call_args_list if c.args[1] == "warning"]
    assert any("puma pidfile" in message for message in warnings)


def test_configuration_current_after_apply(mocker, checkout):
    mocker.patch("configure.application_configurator.write_file", side_effect=_write_for_real)

    assert configuration_current(checkout) is False
    apply_configuration(checkout)
    assert configuration_current(checkout) is True


def test_checkout_clones_when_absent(mocker, checkout):
    mocker.patch("configure.application_configurator.ensure_directory")
    mock_user = mocker.patch("configure.application_configurator.run_as_user")

    checkout_application(checkout)

    assert mock_user.call_args.args[0].startswith("git clone https://github.com/lobsters/lobsters.git")


def test_checkout_pulls_when_present(mocker, checkout):
    (checkout.settings.deploy.app_dir / ".git").mkdir()
    mocker.patch("configure.application_configurator.ensure_directory")
    mock_run = mocker.patch("configure.application_configurator.run_in_app")

    checkout_application(checkout)

    mock_run.assert_called_once_with("git pull --ff-only", checkout.settings, checkout.logger)


def test_application_checked_out_predicate(make_context, settings_factory, tmp_path):
    app_dir = tmp_path / "app"
    (app_dir / ".git").mkdir(parents=True)

    pinned = make_context(settings_factory(deploy=DeploySettings(app_dir=app_dir, update_checkout=False)))
    tracking = make_context(settings_factory(deploy=DeploySettings(app_dir=app_dir, update_checkout=True)))

    assert application_checked_out(pinned) is True
    assert application_checked_out(tracking) is False


def test_app_directories_exist(checkout):
    assert app_directories_exist(checkout) is False
    for relative in APP_SUBDIRECTORIES:
        (checkout.settings.deploy.app_dir / relative).mkdir(parents=True, exist_ok=True)
    assert app_directories_exist(checkout) is True


def test_generate_credentials_skips_when_key_present(mocker, checkout):
    mock_run = mocker.patch("configure.application_configurator.run_in_app")

    generate_credentials(checkout)

    mock_run.assert_not_called()
    assert MASTER_KEY_SECRET in checkout.secrets


def test_generate_credentials_runs_rails_when_missing(mocker, make_context, app_dir_settings):
    context = make_context(app_dir_settings)
    key_file = app_dir_settings.master_key_file

    def rails(script, settings, logger, **kwargs):
        key_file.parent.mkdir(parents=True, exist_ok=True)
        key_file.write_text(MASTER_KEY)
        return MagicMock(returncode=1)

    mock_run = mocker.patch("configure.application_configurator.run_in_app", side_effect=rails)

    generate_credentials(context)

    assert "EDITOR=cat bin/rails credentials:edit" in mock_run.call_args.args[0]
    assert context.secrets.require(MASTER_KEY_SECRET) == MASTER_KEY


def test_build_uses_db_prepare_with_env_file(mocker, context):
    mock_run = mocker.patch("configure.application_configurator.run_in_app")

    build_application(context)

    assert mock_run.call_args.args[0] == "bin/rails db:prepare && bin/rails assets:precompile"
    assert mock_run.call_args.kwargs["with_env_file"] is True


def test_run_in_app_sources_env_file(mocker, app_settings):
    mock_user = mocker.patch("configure.application_configurator.run_as_user")

    app_config.run_in_app("bin/rails runner 1", app_settings, with_env_file=True)

    script = mock_user.call_args.args[0]
    assert script == "set -a; source .env; set +a; bin/rails runner 1"
    assert mock_user.call_args.kwargs["cwd"] == "/srv/lobsters"


def test_missing_stock_file_warned_once(mocker, checkout):
    mocker.patch("configure.application_configurator.write_file")
    mock_log = mocker.patch("configure.application_configurator.log_provision")

    apply_configuration(checkout)

    warnings = [c.args[0] for c in mock_log.call_args_list if c.args[1] == "warning"]
    application_warnings = [m for m in warnings if "config/application.rb" in m]
    assert len(application_warnings) == 1
    assert "config/application.rb not found" in application_warnings[0]
    assert "domain, site name, ssl? method" in application_warnings[0]
    assert not any("Placeholder" in message for message in warnings)


def test_placeholder_warning_for_existing_file(mocker, checkout):
    stock = checkout.settings.deploy.app_dir / "config" / "puma.rb"
    stock.write_text('pidfile "/var/run/other.pid"\n')
    mocker.patch("configure.application_configurator.write_file")
    mock_log = mocker.patch("configure.application_configurator.log_provision")

    apply_configuration(checkout)

    warnings = [c.args[0] for c in mock_log.call_args_list if c.args[1] == "warning"]
    puma_warnings = [m for m in warnings if "config/puma.rb" in m]
    assert puma_warnings == [
        "⚠️ Placeholder for puma pidfile not found in config/puma.rb; "
        "config/site.yml still records the intended value."
    ]
