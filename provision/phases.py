# provision/phases.py
# -*- coding: utf-8 -*-
"""
The ordered phase list of a full deployment.
"""

from typing import List

from configure.admin_account import admin_account_exists, create_admin_account
from configure.application_configurator import (
    app_directories_exist,
    application_checked_out,
    apply_configuration,
    build_application,
    bundle_satisfied,
    checkout_application,
    configuration_current,
    create_app_directories,
    credentials_present,
    generate_credentials,
    install_bundle,
)
from configure.caddy_configurator import configure_reverse_proxy, reverse_proxy_configured
from configure.cron_configurator import cache_janitor_installed, install_cache_janitor
from configure.systemd_configurator import app_service_running, install_app_service
from installer.database_bootstrapper import bootstrap_database, database_bootstrapped
from installer.packages_installer import install_system_packages, system_packages_installed
from installer.ruby_installer import (
    create_deploy_user,
    deploy_user_exists,
    install_ruby_runtime,
    ruby_runtime_installed,
)
from provision.phase_runner import Phase


def build_phases() -> List[Phase]:
    return [
        Phase("system_packages", "Install system packages", install_system_packages, system_packages_installed),
        Phase("deploy_user", "Create deploy user", create_deploy_user, deploy_user_exists),
        Phase("ruby_runtime", "Install Ruby runtime", install_ruby_runtime, ruby_runtime_installed),
        Phase("database", "Bootstrap MariaDB schema and account", bootstrap_database, database_bootstrapped),
        Phase("app_checkout", "Clone or update the application", checkout_application, application_checked_out),
        Phase("app_directories", "Create application directories", create_app_directories, app_directories_exist),
        Phase("app_bundle", "Install Ruby gems", install_bundle, bundle_satisfied),
        Phase("app_credentials", "Generate Rails credentials", generate_credentials, credentials_present),
        Phase("app_configuration", "Write application configuration", apply_configuration, configuration_current),
        Phase("app_build", "Prepare database and assets", build_application),
        Phase("app_service", "Install application service", install_app_service, app_service_running),
        Phase("reverse_proxy", "Configure Caddy reverse proxy", configure_reverse_proxy, reverse_proxy_configured),
        Phase("cache_janitor", "Install page cache expiry", install_cache_janitor, cache_janitor_installed),
        Phase("admin_account", "Create admin account", create_admin_account, admin_account_exists),
    ]
