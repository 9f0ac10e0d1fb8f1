from configure.cron_configurator import (
    cache_janitor_installed,
    install_cache_janitor,
    janitor_source,
    render_cron_file,
)


def test_cron_line(app_settings):
    cron = render_cron_file(app_settings)

    assert cron.startswith("# Expire cached pages older than 5 minutes\n")
    assert (
        "* * * * * lobsters /usr/bin/python3 /usr/local/bin/lobsters-cache-janitor "
        "--cache-dir /srv/lobsters/public/cache --max-age-seconds 300 "
        ">> /srv/lobsters/log/cache_janitor.log 2>&1"
    ) in cron
    assert cron.endswith("\n")


def test_janitor_source_is_standalone():
    source = janitor_source()

    assert "def sweep_cache" in source
    assert "import yaml" not in source
    assert "from provision" not in source


def test_install_cache_janitor_modes(mocker, context):
    mock_write = mocker.patch("configure.cron_configurator.write_file")

    install_cache_janitor(context)

    modes = {str(call.args[0]): call.kwargs["mode"] for call in mock_write.call_args_list}
    assert modes == {
        "/usr/local/bin/lobsters-cache-janitor": "755",
        "/etc/cron.d/lobsters-cache": "644",
    }


def test_cache_janitor_installed(mocker, context):
    mock_matches = mocker.patch("configure.cron_configurator.file_matches", return_value=True)
    assert cache_janitor_installed(context) is True

    mock_matches.side_effect = [True, False]
    assert cache_janitor_installed(context) is False
