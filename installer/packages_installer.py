# installer/packages_installer.py
# -*- coding: utf-8 -*-
"""
Installs the OS packages the deployment needs: Ruby build dependencies and
tooling from the distribution, MariaDB from the vendor repository, and Caddy
from its cloudsmith repository.
"""

import logging
from typing import Optional

import requests

from common.command_utils import log_provision, run_elevated_command
from common.debian.apt_manager import AptManager
from common.file_utils import write_file
from provision.config_models import AppSettings
from provision.phase_runner import ProvisionContext

module_logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT_SECONDS = 60


def fetch_text(url: str, timeout: int = DOWNLOAD_TIMEOUT_SECONDS) -> str:
    """GET ``url`` and return the body; HTTP errors propagate."""
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.text


def add_mariadb_repository(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Run the vendor repository setup script for the configured series."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    db = app_settings.database
    log_provision(
        f"{symbols.get('package', '📦')} Adding MariaDB {db.mariadb_version} repository...",
        "info",
        logger_to_use,
        app_settings,
    )
    setup_script = fetch_text(db.repo_setup_url)
    run_elevated_command(
        [
            "bash", "-s", "--",
            f"--mariadb-server-version=mariadb-{db.mariadb_version}",
        ],
        app_settings,
        cmd_input=setup_script,
        current_logger=logger_to_use,
    )


def add_caddy_repository(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Install Caddy's signing key and apt source list."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    pkgs = app_settings.packages
    log_provision(
        f"{symbols.get('package', '📦')} Adding Caddy stable repository...",
        "info",
        logger_to_use,
        app_settings,
    )
    armored_key = fetch_text(pkgs.caddy_gpg_key_url)
    run_elevated_command(
        ["gpg", "--dearmor", "--yes", "-o", str(pkgs.caddy_keyring_path)],
        app_settings,
        cmd_input=armored_key,
        current_logger=logger_to_use,
    )
    source_list = fetch_text(pkgs.caddy_source_list_url)
    write_file(
        pkgs.caddy_source_list_path,
        source_list,
        app_settings,
        mode="644",
        current_logger=logger_to_use,
    )


def install_system_packages(context: ProvisionContext) -> None:
    """Phase action: distribution packages, then MariaDB, then Caddy."""
    settings = context.settings
    logger_to_use = context.logger
    symbols = settings.symbols
    pkgs = settings.packages
    apt = AptManager(logger=logger_to_use)

    log_provision(
        f"{symbols.get('package', '📦')} Installing system dependencies...",
        "info",
        logger_to_use,
        settings,
    )
    apt.update(settings)
    if pkgs.upgrade_system:
        apt.upgrade(settings)
    apt.install(pkgs.base, settings, update_first=False)

    if apt.missing_packages(pkgs.mariadb, settings):
        add_mariadb_repository(settings, logger_to_use)
        apt.install(pkgs.mariadb, settings, update_first=True)

    if apt.missing_packages(pkgs.caddy, settings):
        add_caddy_repository(settings, logger_to_use)
        apt.install(pkgs.caddy, settings, update_first=True)

    log_provision(
        f"{symbols.get('success', '✅')} System packages installed.",
        "success",
        logger_to_use,
        settings,
    )


def system_packages_installed(context: ProvisionContext) -> bool:
    """Predicate: every configured package is installed."""
    apt = AptManager(logger=context.logger)
    missing = apt.missing_packages(
        context.settings.packages.all_packages, context.settings
    )
    if missing:
        context.logger.debug(f"Missing packages: {', '.join(missing)}")
    return not missing
