# provision/cli_handler.py
# -*- coding: utf-8 -*-
"""
Handles Command Line Interface (CLI) interactions for the provisioner.
"""

import logging
import sys
from typing import Optional, Sequence

from common.command_utils import log_provision
from provision.config_models import AppSettings
from provision.phase_runner import Phase
from provision.variable_resolver import ResolvedVariables

module_logger = logging.getLogger(__name__)

SECRET_DISPLAY = "[SET - hidden]"


def stdin_is_interactive() -> bool:
    return bool(getattr(sys.stdin, "isatty", lambda: False)())


def cli_prompt(message: str) -> str:
    """
    Single-line prompt used by the variable resolver. EOF counts as an
    empty answer.
    """
    try:
        return input(f"   {message}")
    except EOFError:
        module_logger.warning(f"No user input (EOF) for prompt: '{message}'")
        return ""


def _source(resolved: Optional[ResolvedVariables], name: str) -> str:
    if resolved is None or name not in resolved:
        return ""
    return f"  [{resolved.source(name)}]"


def view_configuration(
    app_config: AppSettings,
    resolved: Optional[ResolvedVariables] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Displays the effective configuration of the run with the source of each
    resolved value. Secrets are shown as set/unset only.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_config.symbols
    deploy = app_config.deploy
    db = app_config.database

    config_text = f"{symbols.get('info', 'ℹ️')} Current effective configuration values (CLI > YAML > ENV > Defaults):\n\n"
    config_text += f"  Domain / host:                 {app_config.domain}{_source(resolved, 'domain')}\n"
    config_text += f"  Host is bare IP:               {app_config.host_is_ip}\n"
    config_text += f"  Public URL:                    {app_config.public_url}\n"
    config_text += f"  Site name:                     {app_config.site_name}{_source(resolved, 'site_name')}\n"
    config_text += f"  Admin user:                    {app_config.admin_user}{_source(resolved, 'admin_user')}\n"
    config_text += f"  ACME email:                    {app_config.effective_acme_email}{_source(resolved, 'acme_email')}\n"
    config_text += f"  Repository:                    {app_config.repo_url}{_source(resolved, 'repo_url')}\n"
    config_text += f"  Log prefix:                    {app_config.log_prefix}\n\n"

    config_text += "  Deployment (deploy.*):\n"
    config_text += f"    User:                        {deploy.user}\n"
    config_text += f"    App directory:               {deploy.app_dir}\n"
    config_text += f"    Ruby version:                {deploy.ruby_version}\n"
    config_text += f"    App port:                    {deploy.app_port}\n"
    config_text += f"    Service:                     {deploy.service_name}\n\n"

    config_text += "  Database (database.*):\n"
    config_text += f"    Name:                        {db.name}\n"
    config_text += f"    User:                        {db.user}\n"
    config_text += f"    Host:                        {db.host}:{db.port}\n"
    config_text += f"    MariaDB series:              {db.mariadb_version}\n"
    config_text += f"    Password:                    {SECRET_DISPLAY}{_source(resolved, 'db_password')}\n\n"

    smtp_password = SECRET_DISPLAY if app_config.smtp.password else "[NOT SET]"
    config_text += "  Mail relay (smtp.*):\n"
    config_text += f"    Host:                        {app_config.smtp.host}:{app_config.smtp.port}\n"
    config_text += f"    Username:                    {app_config.smtp.username or '[NOT SET]'}\n"
    config_text += f"    Password:                    {smtp_password}\n\n"

    config_text += f"  Cache TTL:                     {app_config.cache.max_age_seconds}s ({app_config.cache_dir})\n"

    log_provision(
        "Displaying current configuration:", "info", logger_to_use, app_config
    )
    log_provision(f"\n{config_text}", "info", logger_to_use, app_config)


def list_phases(
    phases: Sequence[Phase],
    app_config: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    lines = [f"  {index:2d}. {phase.tag:<20} {phase.description}" for index, phase in enumerate(phases, start=1)]
    log_provision(
        "Provisioning phases, in execution order:\n" + "\n".join(lines),
        "info",
        logger_to_use,
        app_config,
    )
