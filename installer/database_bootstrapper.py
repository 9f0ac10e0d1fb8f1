# installer/database_bootstrapper.py
# -*- coding: utf-8 -*-
"""
Creates the application schema and its least-privilege account in MariaDB.

All SQL is fed to ``mariadb -u root`` on stdin (unix-socket authentication
as root), so the account password never shows up in a process listing.
"""

import logging
import os
import subprocess
from typing import Optional

from common.command_utils import log_provision, run_command, run_elevated_command
from common.system_utils import enable_and_start_service, service_is_active
from provision.config_models import AppSettings
from provision.phase_runner import ProvisionContext

module_logger = logging.getLogger(__name__)


def sql_string(value: str) -> str:
    """Quote ``value`` as a MariaDB string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def sql_identifier(value: str) -> str:
    """Quote ``value`` as a MariaDB identifier."""
    return "`" + value.replace("`", "``") + "`"


def build_bootstrap_sql(app_settings: AppSettings, db_password: str) -> str:
    """
    Statements that converge the server onto: schema exists with the right
    character set, account exists with ``db_password``, account holds all
    privileges on the schema. Safe to replay.
    """
    db = app_settings.database
    schema = sql_identifier(db.name)
    account = f"{sql_string(db.user)}@'localhost'"
    password = sql_string(db_password)
    return (
        f"CREATE DATABASE IF NOT EXISTS {schema} "
        f"CHARACTER SET {db.charset} COLLATE {db.collation};\n"
        f"CREATE USER IF NOT EXISTS {account} IDENTIFIED BY {password};\n"
        f"ALTER USER {account} IDENTIFIED BY {password};\n"
        f"GRANT ALL PRIVILEGES ON {schema}.* TO {account};\n"
        "FLUSH PRIVILEGES;\n"
    )


def _root_query(
    sql: str, app_settings: AppSettings, logger: logging.Logger
) -> str:
    result = run_elevated_command(
        ["mariadb", "-u", "root", "--batch", "--skip-column-names"],
        app_settings,
        capture_output=True,
        cmd_input=sql,
        current_logger=logger,
    )
    return result.stdout.strip()


def schema_exists(app_settings: AppSettings, logger: Optional[logging.Logger] = None) -> bool:
    logger_to_use = logger if logger else module_logger
    name = app_settings.database.name
    output = _root_query(
        "SELECT SCHEMA_NAME FROM information_schema.SCHEMATA "
        f"WHERE SCHEMA_NAME = {sql_string(name)};",
        app_settings,
        logger_to_use,
    )
    return output == name


def account_exists(app_settings: AppSettings, logger: Optional[logging.Logger] = None) -> bool:
    logger_to_use = logger if logger else module_logger
    user = app_settings.database.user
    output = _root_query(
        "SELECT User FROM mysql.user "
        f"WHERE User = {sql_string(user)} AND Host = 'localhost';",
        app_settings,
        logger_to_use,
    )
    return output == user


def credential_works(
    app_settings: AppSettings,
    db_password: str,
    logger: Optional[logging.Logger] = None,
) -> bool:
    """Log in as the application account over TCP with ``db_password``."""
    logger_to_use = logger if logger else module_logger
    db = app_settings.database
    result = run_command(
        [
            "mariadb",
            "-h", db.host,
            "-P", str(db.port),
            "-u", db.user,
            "-e", "SELECT 1;",
            db.name,
        ],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
        env={**os.environ, "MYSQL_PWD": db_password},
    )
    return result.returncode == 0


def bootstrap_database(context: ProvisionContext) -> None:
    """Phase action: start MariaDB, then create schema, account and grant."""
    settings = context.settings
    logger_to_use = context.logger
    symbols = settings.symbols
    db = settings.database

    enable_and_start_service(
        settings.deploy.database_service, settings, current_logger=logger_to_use
    )
    log_provision(
        f"{symbols.get('gear', '⚙️')} Creating database '{db.name}' and user '{db.user}'...",
        "info",
        logger_to_use,
        settings,
    )
    try:
        _root_query(
            build_bootstrap_sql(settings, settings.db_password),
            settings,
            logger_to_use,
        )
    except subprocess.CalledProcessError as e:
        log_provision(
            f"{symbols.get('error', '❌')} Database bootstrap failed: {e}",
            "error",
            logger_to_use,
            settings,
        )
        raise
    log_provision(
        f"{symbols.get('success', '✅')} Database '{db.name}' ready for '{db.user}'.",
        "success",
        logger_to_use,
        settings,
    )


def database_bootstrapped(context: ProvisionContext) -> bool:
    settings = context.settings
    if not service_is_active(
        settings.deploy.database_service, settings, context.logger
    ):
        return False
    return (
        schema_exists(settings, context.logger)
        and account_exists(settings, context.logger)
        and credential_works(
            settings, settings.db_password, context.logger
        )
    )
