# provision/main_installer.py
# -*- coding: utf-8 -*-
"""
Main entry point of the Lobsters provisioner.

Parses arguments, checks privileges, resolves the configuration once and
then runs every phase in order, finishing with the summary report.
"""

import argparse
import logging
import sys
from typing import List, Optional

from common.command_utils import log_provision
from common.core_utils import setup_logging
from common.system_utils import is_running_as_root
from configure.application_configurator import MASTER_KEY_SECRET, read_master_key
from provision.cli_handler import (
    cli_prompt,
    list_phases,
    stdin_is_interactive,
    view_configuration,
)
from provision.config_loader import CONFIG_FILE_DEFAULT, load_app_settings
from provision.config_models import LOG_PREFIX_DEFAULT, SYMBOLS_DEFAULT, AppSettings
from provision.exceptions import PrivilegeError, ProvisionError
from provision.phase_runner import PhaseRunner, ProvisionContext
from provision.phases import build_phases
from provision.reporter import report
from provision.secrets import SecretStore
from provision.variable_resolver import SOURCE_DEFAULT, ResolvedVariables

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Provision a single host with a running Lobsters deployment.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config-file", default=CONFIG_FILE_DEFAULT,
                        help="YAML configuration file (optional).")
    parser.add_argument("--list-phases", action="store_true", help="Print the phase order and exit.")
    parser.add_argument("--view-config", action="store_true",
                        help="Show the effective configuration and exit.")
    parser.add_argument("--dry-run", action="store_true",
                        help="Evaluate completion checks only and report what would run.")
    parser.add_argument("--non-interactive", action="store_true",
                        help="Never prompt; missing required values are an error.")

    config_group = parser.add_argument_group("Configuration Overrides")
    config_group.add_argument("--domain", default=None, help="Domain name, or bare IPv4 address of the host.")
    config_group.add_argument("--site-name", default=None, help="Site display name.")
    config_group.add_argument("--admin-user", default=None, help="Username of the first administrator.")
    config_group.add_argument("--repo-url", default=None, help="Git repository of the application.")
    config_group.add_argument("--acme-email", default=None, help="Contact address for TLS certificates.")
    config_group.add_argument("--smtp-host", default=None, help="SMTP relay host.")
    config_group.add_argument("--smtp-port", default=None, help="SMTP relay port.")
    config_group.add_argument("--smtp-username", default=None, help="SMTP username.")

    log_group = parser.add_argument_group("Logging")
    log_group.add_argument("--log-file", default=None, help="Also append log lines to this file.")
    log_group.add_argument("--log-prefix", default=LOG_PREFIX_DEFAULT, help="Prefix of every log line.")
    log_group.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def register_secrets(
    secrets: SecretStore, app_settings: AppSettings, resolved: ResolvedVariables
) -> None:
    """Every secret known before the phases run goes into the store."""
    secrets.put("db_password", app_settings.db_password, resolved.source("db_password"))
    if app_settings.smtp.password:
        secrets.put("smtp_password", app_settings.smtp.password, resolved.source("smtp.password"))
    secrets.put("admin_initial_password", app_settings.admin_initial_password, SOURCE_DEFAULT)


def main(args: Optional[List[str]] = None) -> int:
    parser = build_parser()
    parsed_args = parser.parse_args(args)

    setup_logging(
        log_level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        log_file=parsed_args.log_file,
        log_prefix=parsed_args.log_prefix,
    )
    symbols = SYMBOLS_DEFAULT
    phases = build_phases()

    if parsed_args.list_phases:
        list_phases(phases, current_logger=logger)
        return EXIT_OK

    try:
        if not parsed_args.view_config and not is_running_as_root():
            raise PrivilegeError("This provisioner must be run as root (use sudo).")

        log_provision(f"{symbols['sparkles']} Starting Lobsters provisioning...", "info", logger)
        app_settings, resolved = load_app_settings(
            cli_args=parsed_args,
            config_file_path=parsed_args.config_file,
            interactive=not parsed_args.non_interactive and stdin_is_interactive(),
            prompt_func=cli_prompt,
            current_logger=logger,
        )
        secrets = SecretStore()
        register_secrets(secrets, app_settings, resolved)

        if parsed_args.view_config:
            view_configuration(app_settings, resolved, current_logger=logger)
            return EXIT_OK

        symbols = app_settings.symbols
        log_provision(
            f"{symbols.get('info', 'ℹ️')} Deploying {app_settings.site_name} to {app_settings.public_url} "
            f"({'plain HTTP, bare IP' if app_settings.host_is_ip else 'automatic HTTPS'})",
            "info",
            logger,
            app_settings,
        )

        context = ProvisionContext(
            settings=app_settings, secrets=secrets, resolved=resolved, logger=logger
        )
        summary = PhaseRunner(phases, context).run(dry_run=parsed_args.dry_run)

        if parsed_args.dry_run:
            log_provision(
                f"{symbols.get('info', 'ℹ️')} Dry run: {len(summary.pending)} phase(s) would run, "
                f"{len(summary.skipped)} already complete.",
                "info",
                logger,
                app_settings,
            )
            return EXIT_OK

        if MASTER_KEY_SECRET not in secrets:
            master_key = read_master_key(app_settings)
            if master_key:
                secrets.put(MASTER_KEY_SECRET, master_key, "existing")
        report(
            app_settings,
            secrets,
            summary,
            use_colour=bool(getattr(sys.stdout, "isatty", lambda: False)()),
            current_logger=logger,
        )
        return EXIT_OK
    except ProvisionError as e:
        log_provision(f"{symbols.get('error', '❌')} {e}", "error", logger)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        log_provision(
            f"{symbols.get('warning', '⚠️')} Interrupted. Rerun the provisioner to resume; completed phases are skipped.",
            "warning",
            logger,
        )
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
