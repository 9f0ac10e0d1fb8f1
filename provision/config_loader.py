# provision/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the provisioner.

Builds the frozen AppSettings of a run with this order of precedence:
1. Model defaults
2. Environment variables
3. YAML configuration file
4. Command-line arguments

The operator inputs (domain, admin user, SMTP relay, ...) go through the
variable resolver, which may prompt; the remaining sections (deploy,
database, packages, caddy, systemd, cache) come from the YAML file and
their pydantic-settings environment prefixes.
"""

import argparse
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError

from configure.database_config import read_database_password
from provision.config_models import (
    AppSettings,
    CacheSettings,
    CaddySettings,
    DatabaseSettings,
    DeploySettings,
    PackageSettings,
    SystemdSettings,
)
from provision.exceptions import ConfigurationError
from provision.variable_resolver import (
    CONFIG_VALUES,
    ResolvedVariables,
    environment_layer,
    resolve_variables,
)

module_logger = logging.getLogger(__name__)

CONFIG_FILE_DEFAULT = "config.yaml"

# argparse dest -> declaration name of the variable resolver
CLI_VARIABLE_MAP: Dict[str, str] = {
    "domain": "domain",
    "site_name": "site_name",
    "admin_user": "admin_user",
    "repo_url": "repo_url",
    "acme_email": "acme_email",
    "smtp_host": "smtp.host",
    "smtp_port": "smtp.port",
    "smtp_username": "smtp.username",
}


def load_config_file(
    config_file_path: Optional[str],
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Reads the YAML config file. A missing file is not an error; a file that
    cannot be parsed, or whose top level is not a mapping, is.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if not config_file_path:
        return {}

    path = Path(config_file_path)
    if not path.is_file():
        logger_to_use.info(
            f"Config file '{path}' not found. Using environment and defaults."
        )
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse config file '{path}': {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Could not read config file '{path}': {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file '{path}' must contain a YAML mapping at the top level."
        )
    logger_to_use.info(f"Loaded configuration from {path}")
    return data


def _dotted_get(data: Mapping[str, Any], dotted: str) -> Any:
    current: Any = data
    for part in dotted.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def config_file_layer(config_data: Mapping[str, Any]) -> Dict[str, Any]:
    """Resolver layer taken from the YAML file."""
    layer: Dict[str, Any] = {}
    for decl in CONFIG_VALUES:
        value = _dotted_get(config_data, decl.name)
        if value is not None and not isinstance(value, Mapping):
            layer[decl.name] = value
    return layer


def cli_layer(cli_args: Optional[argparse.Namespace]) -> Dict[str, Any]:
    """Resolver layer taken from command-line flags."""
    if cli_args is None:
        return {}
    layer: Dict[str, Any] = {}
    for dest, name in CLI_VARIABLE_MAP.items():
        value = getattr(cli_args, dest, None)
        if value is not None:
            layer[name] = value
    return layer


def build_sections(config_data: Mapping[str, Any]) -> Dict[str, Any]:
    """Instantiates the non-interactive settings sections."""
    def section(name: str) -> Dict[str, Any]:
        value = config_data.get(name) or {}
        if not isinstance(value, Mapping):
            raise ConfigurationError(f"Config section '{name}' must be a mapping.")
        return dict(value)

    try:
        sections: Dict[str, Any] = {
            "deploy": DeploySettings(**section("deploy")),
            "database": DatabaseSettings(**section("database")),
            "packages": PackageSettings(**section("packages")),
            "caddy": CaddySettings(**section("caddy")),
            "systemd": SystemdSettings(**section("systemd")),
            "cache": CacheSettings(**section("cache")),
        }
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e
    for key in ("log_prefix", "symbols"):
        if config_data.get(key) is not None:
            sections[key] = config_data[key]
    return sections


def load_app_settings(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: Optional[str] = CONFIG_FILE_DEFAULT,
    environ: Optional[Mapping[str, str]] = None,
    interactive: bool = False,
    prompt_func: Callable[[str], str] = input,
    current_logger: Optional[logging.Logger] = None,
) -> Tuple[AppSettings, ResolvedVariables]:
    """
    Loads, resolves and validates the settings of a run.

    Returns:
        The frozen AppSettings and the resolution record (value sources).

    Raises:
        ConfigurationError: Invalid file, missing required input, or a
            validation failure.
    """
    logger_to_use = current_logger if current_logger else module_logger
    environ = os.environ if environ is None else environ

    config_data = load_config_file(config_file_path, logger_to_use)
    sections = build_sections(config_data)

    deploy: DeploySettings = sections["deploy"]
    database_yml = deploy.app_dir / "config" / "database.yml"

    def existing_lookup(name: str) -> Optional[str]:
        if name == "db_password":
            return read_database_password(database_yml, deploy.rails_env)
        return None

    resolved = resolve_variables(
        layers=[
            ("cli", cli_layer(cli_args)),
            ("config", config_file_layer(config_data)),
            ("environment", environment_layer(environ)),
        ],
        interactive=interactive,
        prompt_func=prompt_func,
        existing_lookup=existing_lookup,
        current_logger=logger_to_use,
    )

    values = resolved.as_settings_dict()
    smtp_values = values.pop("smtp", {})
    if isinstance(config_data.get("smtp"), Mapping):
        smtp_values = {**config_data["smtp"], **smtp_values}

    try:
        settings = AppSettings(**values, smtp=smtp_values, **sections)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e

    logger_to_use.info("Successfully loaded and validated provisioning settings")
    return settings, resolved
