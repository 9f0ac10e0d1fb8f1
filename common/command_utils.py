# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing commands and logging their output.
"""

import logging
import os
import shlex
import shutil
import subprocess
from typing import Dict, List, Optional

from provision.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)


def log_provision(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    app_settings: Optional[AppSettings] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a provisioning message at the requested level.

    Args:
        message (str): The log message to be recorded.
        level (str): One of "debug", "info", "success", "warning", "error"
            or "critical". "success" is logged at INFO.
        current_logger (Optional[logging.Logger]): Logger to use. Falls back
            to this module's logger.
        app_settings (Optional[AppSettings]): Settings of the current run.
        exc_info (bool): Attach the active exception to the record.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def _symbols(app_settings: Optional[AppSettings]) -> Dict[str, str]:
    if app_settings and app_settings.symbols:
        return app_settings.symbols
    return SYMBOLS_DEFAULT


def _get_elevated_command_prefix() -> List[str]:
    """
    Returns ["sudo"] when the process is not already root, else [].
    """
    return [] if os.geteuid() == 0 else ["sudo"]


def run_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    text: bool = True,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a system command synchronously and logs the invocation and,
    when captured, its output.

    Args:
        command: The command as an argument list. It never goes through a
            shell.
        app_settings: Settings of the current run, used for log symbols.
        check: Raise ``CalledProcessError`` on a non-zero exit status.
        capture_output: Capture stdout and stderr.
        text: Decode output as text.
        cmd_input: Data written to the command's stdin.
        current_logger: Logger to use.
        cwd: Working directory for the command.
        env: Full environment for the command. Inherited when None.

    Returns:
        subprocess.CompletedProcess: The finished process.

    Raises:
        subprocess.CalledProcessError: Non-zero exit with ``check`` set.
        FileNotFoundError: The executable does not exist.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = _symbols(app_settings)
    command_to_log_str = subprocess.list2cmdline(command)

    log_provision(
        f"{symbols.get('gear', '⚙️')} Executing: {command_to_log_str} {f'(in {cwd})' if cwd else ''}",
        "debug",
        effective_logger,
        app_settings,
    )
    try:
        result = subprocess.run(
            command,
            check=check,
            capture_output=capture_output,
            text=text,
            input=cmd_input,
            cwd=cwd,
            env=env,
        )
        if capture_output:
            if result.stdout and result.stdout.strip():
                log_provision(
                    f"   stdout: {result.stdout.strip()}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
            if result.stderr and result.stderr.strip():
                log_provision(
                    f"   stderr: {result.stderr.strip()}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
        return result
    except subprocess.CalledProcessError as e:
        cmd_executed_str = (
            subprocess.list2cmdline(e.cmd)
            if isinstance(e.cmd, list)
            else str(e.cmd)
        )
        log_provision(
            f"{symbols.get('error', '❌')} Command `{cmd_executed_str}` failed (rc {e.returncode}).",
            "error",
            effective_logger,
            app_settings,
        )
        if e.stdout and hasattr(e.stdout, "strip") and e.stdout.strip():
            log_provision(
                f"   stdout: {e.stdout.strip()}",
                "error",
                effective_logger,
                app_settings,
            )
        if e.stderr and hasattr(e.stderr, "strip") and e.stderr.strip():
            log_provision(
                f"   stderr: {e.stderr.strip()}",
                "error",
                effective_logger,
                app_settings,
            )
        raise
    except FileNotFoundError as e:
        log_provision(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}. Ensure it's installed and in PATH.",
            "error",
            effective_logger,
            app_settings,
        )
        raise


def run_elevated_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a command with root privileges, prefixing ``sudo`` when the
    process is not already root.
    """
    prefix = _get_elevated_command_prefix()
    return run_command(
        prefix + list(command),
        app_settings,
        check=check,
        capture_output=capture_output,
        text=True,
        cmd_input=cmd_input,
        current_logger=current_logger,
        cwd=cwd,
        env=env,
    )


def run_as_user(
    script: str,
    user: str,
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Runs a bash script as another (unprivileged) user through
    ``sudo -u <user> -H bash -c``. The rbenv shims of that user are put on
    PATH first, so ``bundle`` and ``bin/rails`` resolve to the managed Ruby.

    Extra ``env`` entries are passed with ``env KEY=VALUE`` so they survive
    the sudo environment reset.
    """
    prelude = (
        'export PATH="$HOME/.rbenv/bin:$HOME/.rbenv/shims:$PATH"; '
        'if command -v rbenv >/dev/null 2>&1; then eval "$(rbenv init - bash)"; fi; '
        "set -euo pipefail; "
    )
    if cwd:
        prelude += f"cd {shlex.quote(cwd)}; "
    command = ["sudo", "-u", user, "-H"]
    if env:
        command.append("env")
        command.extend(f"{key}={value}" for key, value in env.items())
    command.extend(["bash", "-c", prelude + script])
    return run_command(
        command,
        app_settings,
        check=check,
        capture_output=capture_output,
        current_logger=current_logger,
    )


def command_exists(command_name: str) -> bool:
    """Check if a command exists in the system's PATH."""
    return shutil.which(command_name) is not None
