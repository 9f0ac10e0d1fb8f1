import yaml

from configure.site_settings import (
    SslMethodSubstitution,
    SslPolicy,
    Substitution,
    build_substitutions,
    patch_stock_files,
    render_site_yml,
)

APPLICATION_RB = '''\
module Lobsters
  class Application < Rails::Application
    def domain
      "lobste.rs"
    end

    def name
      "Lobsters"
    end

    def ssl?
      true
    end
  end
end
'''

PRODUCTION_RB = '''\
Rails.application.configure do
  config.assume_ssl = true
  config.force_ssl = true
end
'''

PUMA_RB = 'pidfile "/home/deploy/lobsters/shared/tmp/pids/puma.pid"\n'


def _checkout(tmp_path):
    (tmp_path / "config" / "environments").mkdir(parents=True)
    (tmp_path / "config" / "application.rb").write_text(APPLICATION_RB)
    (tmp_path / "config" / "environments" / "production.rb").write_text(PRODUCTION_RB)
    (tmp_path / "config" / "puma.rb").write_text(PUMA_RB)
    return tmp_path


def _by_path(patched):
    return {entry.relative_path: entry for entry in patched}


def test_ssl_policy_flags_always_agree():
    for host_is_ip in (True, False):
        policy = SslPolicy.for_host(host_is_ip)
        assert policy.ssl == policy.force_ssl == policy.assume_ssl == (not host_is_ip)


def test_site_yml_for_bare_ip(ip_settings):
    data = yaml.safe_load(render_site_yml(ip_settings))

    assert data["domain"] == "54.123.45.67"
    assert data["ssl"] is False
    assert data["force_ssl"] is False
    assert data["assume_ssl"] is False
    assert data["public_url"] == "http://54.123.45.67"


def test_site_yml_for_domain(app_settings):
    data = yaml.safe_load(render_site_yml(app_settings))

    assert (data["ssl"], data["force_ssl"], data["assume_ssl"]) == (True, True, True)
    assert data["name"] == "Lobsters"


def test_bare_ip_disables_all_three_ssl_settings(tmp_path, ip_settings):
    app_dir = _checkout(tmp_path)

    patched = _by_path(patch_stock_files(app_dir, build_substitutions(ip_settings)))

    application = patched["config/application.rb"].content
    production = patched["config/environments/production.rb"].content
    assert '"54.123.45.67"' in application
    assert "def ssl?\n      false\n    end" in application
    assert "config.force_ssl = false" in production
    assert "config.assume_ssl = false" in production
    assert all(not entry.missing for entry in patched.values())


def test_domain_keeps_ssl_enabled(tmp_path, settings_factory):
    app_dir = _checkout(tmp_path)
    settings = settings_factory(site_name="Example News")

    patched = _by_path(patch_stock_files(app_dir, build_substitutions(settings)))

    application = patched["config/application.rb"].content
    assert '"news.example.com"' in application
    assert '"Example News"' in application
    assert "def ssl?\n      true\n    end" in application
    assert not patched["config/environments/production.rb"].changed


def test_puma_pidfile_rewritten(tmp_path, app_settings):
    app_dir = _checkout(tmp_path)

    patched = _by_path(patch_stock_files(app_dir, build_substitutions(app_settings)))

    assert patched["config/puma.rb"].content == 'pidfile "/srv/lobsters/tmp/pids/puma.pid"\n'


def test_substitutions_are_idempotent(tmp_path, ip_settings):
    app_dir = _checkout(tmp_path)
    for entry in patch_stock_files(app_dir, build_substitutions(ip_settings)):
        (app_dir / entry.relative_path).write_text(entry.content)

    second = patch_stock_files(app_dir, build_substitutions(ip_settings))

    assert not any(entry.changed for entry in second)
    assert not any(entry.missing for entry in second)


def test_missing_placeholder_is_reported():
    rule = Substitution("config/application.rb", "domain", '"lobste.rs"', '"news.example.com"')

    text, found = rule.apply('def domain\n  "somewhere.else"\nend\n')

    assert found is False
    assert text == 'def domain\n  "somewhere.else"\nend\n'


def test_missing_file_is_reported(tmp_path, app_settings):
    patched = _by_path(patch_stock_files(tmp_path, build_substitutions(app_settings)))

    assert not patched["config/puma.rb"].exists
    assert patched["config/puma.rb"].missing == ["puma pidfile"]
    assert patched["config/application.rb"].missing == ["domain", "site name", "ssl? method"]


def test_ssl_method_without_block():
    text, found = SslMethodSubstitution("config/application.rb", False).apply("class Foo\nend\n")

    assert found is False
