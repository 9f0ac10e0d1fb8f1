# configure/admin_account.py
# -*- coding: utf-8 -*-
"""
Creates the first administrator of the site through ``bin/rails runner``.

The account gets the documented bootstrap password; the operator is told to
change it right after the first login.
"""
import json
import logging
import shlex

from common.command_utils import log_provision
from configure.application_configurator import run_in_app
from provision.config_models import AppSettings
from provision.phase_runner import ProvisionContext

module_logger = logging.getLogger(__name__)

EXISTS_MARKER = "LOBSTERS_ADMIN_EXISTS"


def _ruby_string(value: str) -> str:
    # A JSON string literal is a valid double-quoted Ruby string once "#{" is escaped.
    return json.dumps(value).replace("#{", "\\#{")


def build_create_admin_script(app_settings: AppSettings) -> str:
    username = _ruby_string(app_settings.admin_user)
    email = _ruby_string(app_settings.admin_email)
    password = _ruby_string(app_settings.admin_initial_password)
    return (
        f"unless User.exists?(username: {username}); "
        "u = User.new; "
        f"u.username = {username}; "
        f"u.email = {email}; "
        f"u.password = {password}; "
        f"u.password_confirmation = {password}; "
        "u.is_admin = true; "
        "u.is_moderator = true; "
        "u.save!; "
        "end"
    )


def build_exists_script(app_settings: AppSettings) -> str:
    username = _ruby_string(app_settings.admin_user)
    return f"puts(User.exists?(username: {username}) ? {json.dumps(EXISTS_MARKER)} : '')"


def _rails_runner(ruby: str) -> str:
    return f"bin/rails runner {shlex.quote(ruby)}"


def create_admin_account(context: ProvisionContext) -> None:
    settings = context.settings
    symbols = settings.symbols
    log_provision(
        f"{symbols.get('step', '➡️')} Creating admin user '{settings.admin_user}'...",
        "info",
        context.logger,
        settings,
    )
    run_in_app(
        _rails_runner(build_create_admin_script(settings)),
        settings,
        context.logger,
        with_env_file=True,
    )
    log_provision(
        f"{symbols.get('success', '✅')} Admin user '{settings.admin_user}' is present.",
        "success",
        context.logger,
        settings,
    )


def admin_account_exists(context: ProvisionContext) -> bool:
    result = run_in_app(
        _rails_runner(build_exists_script(context.settings)),
        context.settings,
        context.logger,
        with_env_file=True,
        check=False,
        capture_output=True,
    )
    return result.returncode == 0 and EXISTS_MARKER in (result.stdout or "")
