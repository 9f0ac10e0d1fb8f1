# provision/reporter.py
# -*- coding: utf-8 -*-
"""
Final summary of a successful run.

This is the only place where secrets are printed in clear text: the log
records carry ``reveal_secrets`` so the redaction filter lets them through.
"""

import logging
from typing import List, Optional

from common.core_utils import REVEAL_SECRETS_EXTRA
from provision.config_models import AppSettings
from provision.phase_runner import RunSummary
from provision.secrets import SecretStore
from provision.variable_resolver import SOURCE_EXISTING, SOURCE_GENERATED

module_logger = logging.getLogger(__name__)

ADMIN_PASSWORD_WARNING = "CHANGE THE ADMIN PASSWORD IMMEDIATELY after first login!"
RED = "\033[0;31m"
BOLD = "\033[1m"
RESET = "\033[0m"


def db_password_line(secrets: SecretStore) -> str:
    """Generated passwords are shown; operator-supplied ones are not."""
    origin = secrets.origin("db_password")
    value = secrets.get("db_password")
    if origin == SOURCE_GENERATED:
        return f"DB password:      {value} (generated, also in config/database.yml)"
    if origin == SOURCE_EXISTING:
        return "DB password:      reused from existing config/database.yml"
    return f"DB password:      as supplied ({origin or 'unknown'})"


def build_report_lines(
    app_settings: AppSettings,
    secrets: SecretStore,
    summary: Optional[RunSummary] = None,
    use_colour: bool = False,
) -> List[str]:
    service = app_settings.deploy.service_name
    caddy_service = app_settings.caddy.service_name
    master_key = secrets.get("rails_master_key") or "(not available)"
    warning = ADMIN_PASSWORD_WARNING
    if use_colour:
        warning = f"{RED}{BOLD}{warning}{RESET}"

    lines = [
        "",
        "=" * 58,
        f"  {app_settings.site_name} is installed",
        "=" * 58,
        "",
        f"Visit:            {app_settings.public_url}",
        f"Admin user:       {app_settings.admin_user}",
        f"Admin password:   {app_settings.admin_initial_password}",
        f"  {warning}",
        "",
        f"Master key:       {master_key} (save this somewhere safe!)",
        db_password_line(secrets),
    ]
    if summary is not None:
        lines.append(
            f"Phases:           {len(summary.ran)} ran, {len(summary.skipped)} already complete"
        )
    lines += [
        "",
        "Useful commands:",
        f"  systemctl status {service}",
        f"  journalctl -u {service} -f",
        f"  systemctl status {caddy_service}",
        f"  sudo -u {app_settings.deploy.user} -i",
        "",
    ]
    return lines


def report(
    app_settings: AppSettings,
    secrets: SecretStore,
    summary: Optional[RunSummary] = None,
    use_colour: bool = False,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Emit the summary block as one log record, bypassing redaction."""
    logger_to_use = current_logger if current_logger else module_logger
    text = "\n".join(build_report_lines(app_settings, secrets, summary, use_colour))
    logger_to_use.info(text, extra={REVEAL_SECRETS_EXTRA: True})
