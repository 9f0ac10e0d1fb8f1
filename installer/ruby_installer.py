# installer/ruby_installer.py
# -*- coding: utf-8 -*-
"""
Handles the unprivileged deploy account and its rbenv-managed Ruby.
"""
import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional

from common.command_utils import (
    log_provision,
    run_as_user,
    run_elevated_command,
)
from common.system_utils import system_user_exists
from provision.config_models import AppSettings
from provision.phase_runner import ProvisionContext

module_logger = logging.getLogger(__name__)

BASHRC_MARKER = "# rbenv (managed by lobsters-provision)"
BASHRC_BLOCK = (
    f"\n{BASHRC_MARKER}\n"
    'export PATH="$HOME/.rbenv/bin:$PATH"\n'
    'eval "$(rbenv init - bash)"\n'
)


def rbenv_root(app_settings: AppSettings) -> Path:
    return app_settings.deploy.home_dir / ".rbenv"


def bundle_shim(app_settings: AppSettings) -> Path:
    return rbenv_root(app_settings) / "shims" / "bundle"


def create_deploy_user(context: ProvisionContext) -> None:
    settings = context.settings
    user = settings.deploy.user
    symbols = settings.symbols
    if system_user_exists(user):
        log_provision(
            f"{symbols.get('info', 'ℹ️')} User '{user}' already exists.",
            "info",
            context.logger,
            settings,
        )
        return
    log_provision(
        f"{symbols.get('step', '➡️')} Creating system user '{user}'...",
        "info",
        context.logger,
        settings,
    )
    run_elevated_command(
        ["useradd", "--system", "--create-home", "--shell", "/bin/bash", user],
        settings,
        current_logger=context.logger,
    )
    log_provision(
        f"{symbols.get('success', '✅')} User '{user}' created.",
        "success",
        context.logger,
        settings,
    )


def deploy_user_exists(context: ProvisionContext) -> bool:
    return system_user_exists(context.settings.deploy.user)


def installed_ruby_versions(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> List[str]:
    """Versions reported by ``rbenv versions --bare``; empty without rbenv."""
    logger_to_use = current_logger if current_logger else module_logger
    result = run_as_user(
        "rbenv versions --bare",
        app_settings.deploy.user,
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    if result.returncode != 0:
        return []
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def _clone_if_missing(
    repo: str, target: Path, app_settings: AppSettings, logger: logging.Logger
) -> None:
    if target.exists():
        log_provision(
            f"{app_settings.symbols.get('info', 'ℹ️')} {target} already present.",
            "debug",
            logger,
            app_settings,
        )
        return
    run_as_user(
        f"git clone --depth 1 {shlex.quote(repo)} {shlex.quote(str(target))}",
        app_settings.deploy.user,
        app_settings,
        current_logger=logger,
    )


def ensure_bashrc_block(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Append the rbenv init block to the deploy user's ``~/.bashrc`` unless
    it is already there. Returns True when the file was changed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    bashrc = app_settings.deploy.home_dir / ".bashrc"
    try:
        current = bashrc.read_text(encoding="utf-8")
    except FileNotFoundError:
        current = ""
    if BASHRC_MARKER in current or 'rbenv init' in current:
        return False
    run_as_user(
        f"cat >> ~/.bashrc <<'RBENV_EOF'{BASHRC_BLOCK}RBENV_EOF",
        app_settings.deploy.user,
        app_settings,
        current_logger=logger_to_use,
    )
    return True


def install_ruby_runtime(context: ProvisionContext) -> None:
    """
    Phase action: rbenv and ruby-build from git, the pinned Ruby built with
    jemalloc, then bundler. Each step is skipped when already done.
    """
    settings = context.settings
    logger_to_use = context.logger
    symbols = settings.symbols
    version = settings.deploy.ruby_version
    user = settings.deploy.user
    root = rbenv_root(settings)

    log_provision(
        f"{symbols.get('step', '➡️')} Installing Ruby {version} via rbenv for '{user}'...",
        "info",
        logger_to_use,
        settings,
    )
    try:
        _clone_if_missing(settings.deploy.rbenv_repo, root, settings, logger_to_use)
        _clone_if_missing(
            settings.deploy.ruby_build_repo,
            root / "plugins" / "ruby-build",
            settings,
            logger_to_use,
        )

        if version in installed_ruby_versions(settings, logger_to_use):
            log_provision(
                f"{symbols.get('info', 'ℹ️')} Ruby {version} is already installed.",
                "info",
                logger_to_use,
                settings,
            )
        else:
            log_provision(
                f"{symbols.get('gear', '⚙️')} Building Ruby {version} (this can take a while)...",
                "info",
                logger_to_use,
                settings,
            )
            run_as_user(
                f"rbenv install --skip-existing {version}",
                user,
                settings,
                current_logger=logger_to_use,
                env={"RUBY_CONFIGURE_OPTS": "--with-jemalloc"},
            )

        run_as_user(f"rbenv global {version}", user, settings, current_logger=logger_to_use)
        run_as_user(
            "gem install bundler --no-document && rbenv rehash",
            user,
            settings,
            current_logger=logger_to_use,
        )
        if ensure_bashrc_block(settings, logger_to_use):
            log_provision(
                f"{symbols.get('success', '✅')} Added rbenv init to ~/.bashrc of '{user}'.",
                "success",
                logger_to_use,
                settings,
            )
    except subprocess.CalledProcessError as e:
        log_provision(
            f"{symbols.get('error', '❌')} Failed to install Ruby {version}: {e}",
            "error",
            logger_to_use,
            settings,
        )
        raise

    log_provision(
        f"{symbols.get('success', '✅')} Ruby {version} ready.",
        "success",
        logger_to_use,
        settings,
    )


def ruby_runtime_installed(context: ProvisionContext) -> bool:
    """Predicate: the pinned version is listed and the bundle shim exists."""
    settings = context.settings
    if not bundle_shim(settings).exists():
        return False
    return settings.deploy.ruby_version in installed_ruby_versions(
        settings, context.logger
    )
