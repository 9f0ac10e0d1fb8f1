# configure/cron_configurator.py
# -*- coding: utf-8 -*-
"""
Installs the page-cache janitor and the cron entry that runs it.
"""
import logging
from pathlib import Path
from typing import Dict

from common.command_utils import log_provision
from common.file_utils import file_matches, write_file
from janitor import cache_janitor
from provision.config_models import AppSettings
from provision.phase_runner import ProvisionContext

module_logger = logging.getLogger(__name__)

JANITOR_MODE = "755"
CRON_FILE_MODE = "644"


def janitor_source() -> str:
    return Path(cache_janitor.__file__).read_text(encoding="utf-8")


def render_cron_file(app_settings: AppSettings) -> str:
    cache = app_settings.cache
    return cache.cron_template.format(
        max_age_minutes=cache.max_age_seconds // 60,
        schedule=cache.schedule,
        user=app_settings.deploy.user,
        python=cache.python_executable,
        janitor_path=cache.janitor_path,
        cache_dir=app_settings.cache_dir,
        max_age_seconds=cache.max_age_seconds,
        log_file=app_settings.deploy.app_dir / cache.log_relative_path,
    )


def rendered_artifacts(app_settings: AppSettings) -> Dict[Path, str]:
    cache = app_settings.cache
    return {
        cache.janitor_path: janitor_source(),
        cache.cron_file: render_cron_file(app_settings),
    }


def install_cache_janitor(context: ProvisionContext) -> None:
    settings = context.settings
    cache = settings.cache
    symbols = settings.symbols
    log_provision(
        f"{symbols.get('step', '➡️')} Installing page cache expiry "
        f"({cache.max_age_seconds}s, schedule '{cache.schedule}')...",
        "info",
        context.logger,
        settings,
    )
    write_file(
        cache.janitor_path,
        janitor_source(),
        settings,
        mode=JANITOR_MODE,
        current_logger=context.logger,
    )
    write_file(
        cache.cron_file,
        render_cron_file(settings),
        settings,
        mode=CRON_FILE_MODE,
        current_logger=context.logger,
    )


def cache_janitor_installed(context: ProvisionContext) -> bool:
    return all(
        file_matches(path, content)
        for path, content in rendered_artifacts(context.settings).items()
    )
