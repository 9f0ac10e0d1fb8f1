# configure/application_configurator.py
# -*- coding: utf-8 -*-
"""
Checkout, dependencies, secrets and configuration of the Rails application,
followed by the database preparation and asset build.

Everything inside the checkout runs as the deploy user; the rendered
configuration artifacts are written only when their content differs.
"""

import logging
import shlex
import subprocess
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional

from common.command_utils import log_provision, run_as_user
from common.file_utils import ensure_directory, file_matches, read_text_or_none, write_file
from configure.database_config import render_database_yml
from configure.site_settings import (
    build_substitutions,
    patch_stock_files,
    render_site_yml,
)
from provision.config_models import AppSettings
from provision.phase_runner import ProvisionContext

module_logger = logging.getLogger(__name__)

APP_SUBDIRECTORIES: List[str] = ["storage", "log", "tmp/pids", "public/cache"]
BUNDLE_WITHOUT_GROUPS = "development test"
ENV_FILE_MODE = "600"
MASTER_KEY_SECRET = "rails_master_key"


def _owner(app_settings: AppSettings) -> str:
    user = app_settings.deploy.user
    return f"{user}:{user}"


def _app_dir(app_settings: AppSettings) -> str:
    return str(app_settings.deploy.app_dir)


def run_in_app(
    script: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    with_env_file: bool = False,
    check: bool = True,
    capture_output: bool = False,
) -> subprocess.CompletedProcess:
    """Run ``script`` as the deploy user inside the checkout."""
    if with_env_file:
        script = "set -a; source .env; set +a; " + script
    return run_as_user(
        script,
        app_settings.deploy.user,
        app_settings,
        check=check,
        capture_output=capture_output,
        current_logger=current_logger,
        cwd=_app_dir(app_settings),
    )


# --- app_checkout -----------------------------------------------------------

def checkout_application(context: ProvisionContext) -> None:
    settings = context.settings
    logger_to_use = context.logger
    symbols = settings.symbols
    app_dir = settings.deploy.app_dir

    ensure_directory(app_dir, settings, owner=_owner(settings), current_logger=logger_to_use)
    if (app_dir / ".git").is_dir():
        log_provision(
            f"{symbols.get('info', 'ℹ️')} Repository already cloned, pulling latest...",
            "info",
            logger_to_use,
            settings,
        )
        run_in_app("git pull --ff-only", settings, logger_to_use)
        return

    log_provision(
        f"{symbols.get('step', '➡️')} Cloning {settings.repo_url} into {app_dir}...",
        "info",
        logger_to_use,
        settings,
    )
    run_as_user(
        f"git clone {shlex.quote(settings.repo_url)} {shlex.quote(str(app_dir))}",
        settings.deploy.user,
        settings,
        current_logger=logger_to_use,
    )


def application_checked_out(context: ProvisionContext) -> bool:
    settings = context.settings
    if settings.deploy.update_checkout:
        return False
    return (settings.deploy.app_dir / ".git").is_dir()


# --- app_directories --------------------------------------------------------

def create_app_directories(context: ProvisionContext) -> None:
    settings = context.settings
    for relative in APP_SUBDIRECTORIES:
        ensure_directory(
            settings.deploy.app_dir / relative,
            settings,
            owner=_owner(settings),
            current_logger=context.logger,
        )


def app_directories_exist(context: ProvisionContext) -> bool:
    app_dir = context.settings.deploy.app_dir
    return all((app_dir / relative).is_dir() for relative in APP_SUBDIRECTORIES)


# --- app_bundle -------------------------------------------------------------

def install_bundle(context: ProvisionContext) -> None:
    settings = context.settings
    log_provision(
        f"{settings.symbols.get('package', '📦')} Running bundle install...",
        "info",
        context.logger,
        settings,
    )
    run_in_app(
        f"bundle config set --local without {shlex.quote(BUNDLE_WITHOUT_GROUPS)} && bundle install",
        settings,
        context.logger,
    )


def bundle_satisfied(context: ProvisionContext) -> bool:
    result = run_in_app(
        "bundle check",
        context.settings,
        context.logger,
        check=False,
        capture_output=True,
    )
    return result.returncode == 0


# --- app_credentials --------------------------------------------------------

def read_master_key(app_settings: AppSettings) -> Optional[str]:
    text = read_text_or_none(app_settings.master_key_file)
    if text is None:
        return None
    return text.strip() or None


def load_master_key(context: ProvisionContext) -> str:
    """Put the master key into the run's secrets; fails when it is missing."""
    if MASTER_KEY_SECRET in context.secrets:
        return context.secrets.require(MASTER_KEY_SECRET)
    key = read_master_key(context.settings)
    if key is None:
        raise FileNotFoundError(
            f"Rails master key not found at {context.settings.master_key_file}"
        )
    context.secrets.put(MASTER_KEY_SECRET, key, origin="existing")
    return key


def generate_credentials(context: ProvisionContext) -> None:
    settings = context.settings
    symbols = settings.symbols
    if read_master_key(settings) is None:
        log_provision(
            f"{symbols.get('key', '🔑')} Generating Rails credentials and master key...",
            "info",
            context.logger,
            settings,
        )
        # credentials:edit exits non-zero without a TTY even after writing the key.
        run_in_app(
            f"RAILS_ENV={shlex.quote(settings.deploy.rails_env)} EDITOR=cat bin/rails credentials:edit",
            settings,
            context.logger,
            check=False,
            capture_output=True,
        )
    load_master_key(context)
    log_provision(
        f"{symbols.get('success', '✅')} Master key available at {settings.master_key_file}.",
        "success",
        context.logger,
        settings,
    )


def credentials_present(context: ProvisionContext) -> bool:
    return read_master_key(context.settings) is not None


# --- app_configuration ------------------------------------------------------

def build_env_file(app_settings: AppSettings, master_key: str) -> "OrderedDict[str, str]":
    smtp = app_settings.smtp
    return OrderedDict(
        [
            ("RAILS_ENV", app_settings.deploy.rails_env),
            ("RAILS_MASTER_KEY", master_key),
            ("RAILS_SERVE_STATIC_FILES", "true"),
            ("SOLID_QUEUE_IN_PUMA", "true"),
            ("SMTP_HOST", smtp.host),
            ("SMTP_PORT", str(smtp.port)),
            ("SMTP_USERNAME", smtp.username),
            ("SMTP_PASSWORD", smtp.password),
            ("SMTP_STARTTLS_AUTO", "true" if smtp.starttls_auto else "false"),
            ("BANNED_DOMAINS_ADMIN", app_settings.admin_user),
        ]
    )


def render_env_file(app_settings: AppSettings, master_key: str) -> str:
    return "".join(
        f"{key}={value}\n"
        for key, value in build_env_file(app_settings, master_key).items()
    )


def render_configuration(context: ProvisionContext) -> Dict[Path, str]:
    """Every artifact the configuration phase owns, keyed by absolute path."""
    settings = context.settings
    app_dir = settings.deploy.app_dir
    return {
        app_dir / "config" / "database.yml": render_database_yml(settings, settings.db_password),
        app_dir / "config" / "site.yml": render_site_yml(settings),
        settings.env_file: render_env_file(settings, load_master_key(context)),
    }


def apply_configuration(context: ProvisionContext) -> None:
    settings = context.settings
    logger_to_use = context.logger
    symbols = settings.symbols
    owner = _owner(settings)

    log_provision(
        f"{symbols.get('gear', '⚙️')} Writing application configuration...",
        "info",
        logger_to_use,
        settings,
    )
    for path, content in render_configuration(context).items():
        mode = ENV_FILE_MODE if path == settings.env_file else "640"
        write_file(path, content, settings, mode=mode, owner=owner, current_logger=logger_to_use)

    for patched in patch_stock_files(settings.deploy.app_dir, build_substitutions(settings)):
        if not patched.exists:
            log_provision(
                f"{symbols.get('warning', '⚠️')} {patched.relative_path} not found; skipped "
                f"{', '.join(patched.missing)}. config/site.yml still records the intended values.",
                "warning",
                logger_to_use,
                settings,
            )
            continue
        for description in patched.missing:
            log_provision(
                f"{symbols.get('warning', '⚠️')} Placeholder for {description} not found in "
                f"{patched.relative_path}; config/site.yml still records the intended value.",
                "warning",
                logger_to_use,
                settings,
            )
        if patched.changed:
            write_file(
                settings.deploy.app_dir / patched.relative_path,
                patched.content,
                settings,
                owner=owner,
                current_logger=logger_to_use,
            )


def configuration_current(context: ProvisionContext) -> bool:
    """Predicate: every rendered artifact and every patched file is on disk."""
    for path, content in render_configuration(context).items():
        if not file_matches(path, content):
            return False
    patched_files = patch_stock_files(
        context.settings.deploy.app_dir, build_substitutions(context.settings)
    )
    return not any(p.exists and p.changed for p in patched_files)


# --- app_build --------------------------------------------------------------

def build_application(context: ProvisionContext) -> None:
    """
    ``db:prepare`` creates and loads the schema on the first run and only
    migrates afterwards; ``assets:precompile`` is incremental.
    """
    settings = context.settings
    symbols = settings.symbols
    log_provision(
        f"{symbols.get('gear', '⚙️')} Preparing database and precompiling assets...",
        "info",
        context.logger,
        settings,
    )
    run_in_app(
        "bin/rails db:prepare && bin/rails assets:precompile",
        settings,
        context.logger,
        with_env_file=True,
    )
