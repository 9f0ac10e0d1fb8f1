# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions: privilege checks, system accounts and
systemd service management.
"""

import logging
import os
import pwd
import subprocess
from typing import Optional

from common.command_utils import log_provision, run_elevated_command
from provision.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)


def is_running_as_root() -> bool:
    return os.geteuid() == 0


def system_user_exists(username: str) -> bool:
    try:
        pwd.getpwnam(username)
        return True
    except KeyError:
        return False


def systemd_reload(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Reload the systemd daemon. Failures propagate."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    log_provision(
        f"{symbols.get('gear', '⚙️')} Reloading systemd daemon...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_elevated_command(
        ["systemctl", "daemon-reload"],
        app_settings,
        current_logger=logger_to_use,
    )


def service_is_active(
    service_name: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """True when ``systemctl is-active`` reports the unit as active."""
    logger_to_use = current_logger if current_logger else module_logger
    try:
        result = run_elevated_command(
            ["systemctl", "is-active", "--quiet", service_name],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except FileNotFoundError:
        return False
    return result.returncode == 0


def enable_and_start_service(
    service_name: str,
    app_settings: AppSettings,
    restart: bool = False,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Enable a unit at boot and start it; ``restart`` forces a restart so a
    changed configuration is picked up.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols if app_settings else SYMBOLS_DEFAULT
    action = "restart" if restart else "start"
    log_provision(
        f"{symbols.get('gear', '⚙️')} Enabling and {action}ing {service_name}...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_elevated_command(
        ["systemctl", "enable", service_name],
        app_settings,
        current_logger=logger_to_use,
    )
    run_elevated_command(
        ["systemctl", action, service_name],
        app_settings,
        current_logger=logger_to_use,
    )
    try:
        run_elevated_command(
            ["systemctl", "status", service_name, "--no-pager", "-l"],
            app_settings,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except subprocess.CalledProcessError:
        log_provision(
            f"{symbols.get('warning', '⚠️')} {service_name} does not report a healthy status yet.",
            "warning",
            logger_to_use,
            app_settings,
        )
    log_provision(
        f"{symbols.get('success', '✅')} {service_name} enabled and {action}ed.",
        "success",
        logger_to_use,
        app_settings,
    )
