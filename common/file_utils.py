# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system helpers: rendering artifacts to disk only when they changed,
backups, ownership and permissions.
"""

import datetime
import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from provision.config_models import SYMBOLS_DEFAULT, AppSettings

from .command_utils import log_provision, run_elevated_command

module_logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_text_or_none(path: PathLike) -> Optional[str]:
    """Contents of ``path``, or None when it is missing or unreadable."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def file_matches(path: PathLike, expected_content: str) -> bool:
    return read_text_or_none(path) == expected_content


def backup_file(
    file_path: PathLike,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Copy a file to ``<file>.bak.<timestamp>`` before it is overwritten.

    Returns:
        bool: True when the backup was made or no backup was needed (the
            file does not exist). False if the copy failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols if app_settings else SYMBOLS_DEFAULT
    file_path = str(file_path)

    try:
        run_elevated_command(
            ["test", "-f", file_path],
            app_settings,
            check=True,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except subprocess.CalledProcessError:
        log_provision(
            f"{symbols.get('info', 'ℹ️')} File {file_path} does not exist. No backup needed.",
            "debug",
            logger_to_use,
            app_settings,
        )
        return True

    timestamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
    backup_path = f"{file_path}.bak.{timestamp}"
    try:
        run_elevated_command(
            ["cp", "-a", file_path, backup_path],
            app_settings,
            current_logger=logger_to_use,
        )
    except subprocess.CalledProcessError as e:
        log_provision(
            f"{symbols.get('error', '❌')} Failed to backup {file_path} to {backup_path}: {e}",
            "error",
            logger_to_use,
            app_settings,
        )
        return False

    log_provision(
        f"{symbols.get('success', '✅')} Backed up {file_path} to {backup_path}",
        "success",
        logger_to_use,
        app_settings,
    )
    return True


def _install_empty_command(path: str, mode: str, owner: Optional[str]) -> List[str]:
    command = ["install", "-m", mode]
    if owner:
        user, _, group = owner.partition(":")
        command += ["-o", user]
        if group:
            command += ["-g", group]
    return command + ["/dev/null", path]


def write_file(
    path: PathLike,
    content: str,
    app_settings: Optional[AppSettings],
    mode: Optional[str] = None,
    owner: Optional[str] = None,
    backup: bool = False,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Write ``content`` to ``path`` with root privileges, unless the file
    already holds exactly that content. Mode and owner are applied either
    way.

    Args:
        path: Target file.
        content: Full file content.
        app_settings: Settings of the current run.
        mode: chmod mode string, e.g. "600". A rewritten file is created
            with this mode before any content is written to it.
        owner: "user" or "user:group" for chown.
        backup: Keep a timestamped copy of the previous version.
        current_logger: Logger to use.

    Returns:
        bool: True when the file was (re)written, False when unchanged.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols if app_settings else SYMBOLS_DEFAULT
    path = str(path)

    changed = not file_matches(path, content)
    if changed:
        if backup and not backup_file(path, app_settings, logger_to_use):
            raise OSError(f"Could not back up {path} before overwriting it")
        run_elevated_command(
            ["mkdir", "-p", str(Path(path).parent)],
            app_settings,
            current_logger=logger_to_use,
        )
        if mode:
            # Content only lands in a file that already has its final mode.
            run_elevated_command(
                _install_empty_command(path, mode, owner),
                app_settings,
                current_logger=logger_to_use,
            )
        run_elevated_command(
            ["tee", path],
            app_settings,
            cmd_input=content,
            capture_output=True,
            current_logger=logger_to_use,
        )
        log_provision(
            f"{symbols.get('success', '✅')} Wrote {path}",
            "success",
            logger_to_use,
            app_settings,
        )
    else:
        log_provision(
            f"{symbols.get('info', 'ℹ️')} {path} is already up to date.",
            "info",
            logger_to_use,
            app_settings,
        )

    if mode:
        run_elevated_command(
            ["chmod", mode, path], app_settings, current_logger=logger_to_use
        )
    if owner:
        run_elevated_command(
            ["chown", owner, path], app_settings, current_logger=logger_to_use
        )
    return changed


def ensure_directory(
    dir_path: PathLike,
    app_settings: Optional[AppSettings],
    owner: Optional[str] = None,
    mode: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Create ``dir_path`` (and parents) and apply owner/mode."""
    logger_to_use = current_logger if current_logger else module_logger
    run_elevated_command(
        ["mkdir", "-p", str(dir_path)],
        app_settings,
        current_logger=logger_to_use,
    )
    if owner:
        run_elevated_command(
            ["chown", owner, str(dir_path)],
            app_settings,
            current_logger=logger_to_use,
        )
    if mode:
        run_elevated_command(
            ["chmod", mode, str(dir_path)],
            app_settings,
            current_logger=logger_to_use,
        )
