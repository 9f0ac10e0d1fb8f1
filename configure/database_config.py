# configure/database_config.py
# -*- coding: utf-8 -*-
"""
Structured connection configuration (config/database.yml) of the app.

The document is generated wholesale: environment -> datastore role
(primary, cache, queue) -> connection parameters. YAML anchors of the stock
file are expanded, so every block is self-contained.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from provision.config_models import AppSettings

module_logger = logging.getLogger(__name__)

DATABASE_YML_HEADER = "# config/database.yml generated by lobsters-provision. Local edits are overwritten.\n"


def _sqlite_role(database: str, migrations_paths: str) -> Dict[str, Any]:
    return {
        "adapter": "sqlite3",
        "timeout": 1000,
        "database": database,
        "migrations_paths": migrations_paths,
    }


def _primary_role(
    app_settings: AppSettings, database: str, username: str, password: str
) -> Dict[str, Any]:
    db = app_settings.database
    return {
        "adapter": db.adapter,
        "encoding": db.charset,
        "host": db.host,
        "port": db.port,
        "pool": db.pool,
        "database": database,
        "username": username,
        "password": password,
    }


def build_database_config(
    app_settings: AppSettings, db_password: str
) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Returns the environment -> role -> parameters mapping."""
    db = app_settings.database
    config: Dict[str, Dict[str, Dict[str, Any]]] = {}
    for env_name in ("development", "test"):
        config[env_name] = {
            "primary": _primary_role(
                app_settings, f"{db.name}_{env_name}", "root", db.dev_password
            ),
            "cache": _sqlite_role(
                f"db/{env_name}/cache.sqlite3", f"db/{env_name}/cache_migrate"
            ),
            "queue": _sqlite_role(
                f"db/{env_name}/queue.sqlite3", f"db/{env_name}/queue_migrate"
            ),
        }
    config[app_settings.deploy.rails_env] = {
        "primary": _primary_role(app_settings, db.name, db.user, db_password),
        "cache": _sqlite_role("storage/cache.sqlite3", "db/cache_migrate"),
        "queue": _sqlite_role("storage/queue.sqlite3", "db/queue_migrate"),
    }
    return config


def render_database_yml(app_settings: AppSettings, db_password: str) -> str:
    body = yaml.safe_dump(
        build_database_config(app_settings, db_password),
        default_flow_style=False,
        sort_keys=False,
    )
    return DATABASE_YML_HEADER + "---\n" + body


def read_database_password(
    database_yml: Path, rails_env: str = "production"
) -> Optional[str]:
    """
    Password of the primary role of ``rails_env`` in an existing
    database.yml, or None when the file, block or key is absent or the file
    cannot be parsed.
    """
    try:
        with open(database_yml, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        module_logger.debug(f"No usable database.yml at {database_yml}: {e}")
        return None

    if not isinstance(data, dict):
        return None
    block = data.get(rails_env)
    if not isinstance(block, dict):
        return None
    # Older layouts put the connection directly under the environment.
    primary = block.get("primary", block)
    if not isinstance(primary, dict):
        return None
    password = primary.get("password")
    if password is None or str(password).startswith("${"):
        return None
    return str(password) or None
