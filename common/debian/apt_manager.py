# common/debian/apt_manager.py
# -*- coding: utf-8 -*-
import logging
import os
import subprocess
from typing import Dict, List, Optional, Union

from common.command_utils import (
    command_exists,
    run_command,
    run_elevated_command,
)
from provision.config_models import AppSettings

NONINTERACTIVE_ENV: Dict[str, str] = {"DEBIAN_FRONTEND": "noninteractive"}


class AptManager:
    """
    Manager for Debian apt packages using the command-line tools.

    Every mutating call raises on failure: a half-installed package set is
    not something a later phase can build on.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        if not command_exists("apt-get"):
            self.logger.critical(
                "'apt-get' command not found. This manager cannot function."
            )
            raise FileNotFoundError(
                "'apt-get' not found. Is this a Debian-based system?"
            )

    @staticmethod
    def _env() -> Dict[str, str]:
        return {**os.environ, **NONINTERACTIVE_ENV}

    def update(self, app_settings: AppSettings) -> None:
        """Refresh the package lists ('apt-get update')."""
        self.logger.info("Updating apt package lists via 'apt-get update'...")
        run_elevated_command(
            ["apt-get", "update", "-qq"],
            app_settings,
            current_logger=self.logger,
            env=self._env(),
        )

    def upgrade(self, app_settings: AppSettings) -> None:
        """Upgrade installed packages non-interactively."""
        self.logger.info("Upgrading installed packages via 'apt-get upgrade'...")
        run_elevated_command(
            ["apt-get", "upgrade", "-y", "-qq"],
            app_settings,
            current_logger=self.logger,
            env=self._env(),
        )

    def is_installed(self, pkg_name: str, app_settings: AppSettings) -> bool:
        try:
            result = run_command(
                ["dpkg-query", "-W", "-f=${db:Status-Status}", pkg_name],
                app_settings,
                capture_output=True,
                check=True,
                current_logger=self.logger,
            )
        except subprocess.CalledProcessError:
            return False
        return result.stdout.strip() == "installed"

    def missing_packages(
        self, packages: List[str], app_settings: AppSettings
    ) -> List[str]:
        return [
            pkg for pkg in packages if not self.is_installed(pkg, app_settings)
        ]

    def install(
        self,
        packages: Union[List[str], str],
        app_settings: AppSettings,
        update_first: bool = True,
    ) -> List[str]:
        """
        Install the packages that are not installed yet.

        Returns:
            The packages that were actually installed.
        """
        if not isinstance(packages, list):
            packages = [packages]

        if update_first:
            self.update(app_settings)

        packages_to_install = []
        for pkg_name in packages:
            if self.is_installed(pkg_name, app_settings):
                self.logger.info(
                    f"Package '{pkg_name}' is already installed. Skipping."
                )
            else:
                self.logger.info(f"Marking package for installation: {pkg_name}")
                packages_to_install.append(pkg_name)

        if not packages_to_install:
            self.logger.info("All requested packages are already installed.")
            return []

        self.logger.info(
            f"Committing installation for: {', '.join(packages_to_install)}"
        )
        run_elevated_command(
            ["apt-get", "install", "-y", "-qq"] + packages_to_install,
            app_settings,
            current_logger=self.logger,
            env=self._env(),
        )
        self.logger.info("Packages installed successfully.")
        return packages_to_install
