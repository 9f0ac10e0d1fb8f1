from configure.systemd_configurator import install_app_service, render_unit, unit_path


def test_unit_rendering(app_settings):
    unit = render_unit(app_settings)

    assert "After=network.target mariadb.service" in unit
    assert "Requires=mariadb.service" in unit
    assert "User=lobsters" in unit
    assert "WorkingDirectory=/srv/lobsters" in unit
    assert "EnvironmentFile=/srv/lobsters/.env" in unit
    assert "ExecStart=/home/lobsters/.rbenv/shims/bundle exec puma -C config/puma.rb" in unit
    assert "Restart=on-failure" in unit
    assert "RestartSec=5" in unit
    assert "NoNewPrivileges=true" in unit
    assert "WantedBy=multi-user.target" in unit
    assert str(unit_path(app_settings)) == "/etc/systemd/system/lobsters.service"


def test_changed_unit_restarts_service(mocker, context):
    mocker.patch("configure.systemd_configurator.write_file", return_value=True)
    mock_reload = mocker.patch("configure.systemd_configurator.systemd_reload")
    mock_start = mocker.patch("configure.systemd_configurator.enable_and_start_service")

    install_app_service(context)

    mock_reload.assert_called_once()
    assert mock_start.call_args.kwargs["restart"] is True


def test_unchanged_unit_only_starts(mocker, context):
    mocker.patch("configure.systemd_configurator.write_file", return_value=False)
    mocker.patch("configure.systemd_configurator.systemd_reload")
    mock_start = mocker.patch("configure.systemd_configurator.enable_and_start_service")

    install_app_service(context)

    assert mock_start.call_args.kwargs["restart"] is False
