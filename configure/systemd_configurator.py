# configure/systemd_configurator.py
# -*- coding: utf-8 -*-
"""
Supervised Puma service of the application.
"""
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

from common.command_utils import log_provision
from common.file_utils import file_matches, write_file
from common.system_utils import enable_and_start_service, service_is_active, systemd_reload
from provision.config_models import AppSettings
from provision.phase_runner import ProvisionContext

module_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceDescriptor:
    """Values substituted into the unit template."""

    description: str
    after: str
    requires: str
    user: str
    group: str
    working_directory: str
    environment_file: str
    exec_start: str
    restart: str
    restart_sec: int
    syslog_identifier: str
    no_new_privileges: str = "true"
    private_tmp: str = "true"
    wanted_by: str = "multi-user.target"

    @classmethod
    def for_app(cls, app_settings: AppSettings) -> "ServiceDescriptor":
        deploy = app_settings.deploy
        database_unit = f"{deploy.database_service}.service"
        bundle = deploy.home_dir / ".rbenv" / "shims" / "bundle"
        return cls(
            description=f"{app_settings.site_name} (Puma)",
            after=f"network.target {database_unit}",
            requires=database_unit,
            user=deploy.user,
            group=deploy.user,
            working_directory=str(deploy.app_dir),
            environment_file=str(app_settings.env_file),
            exec_start=f"{bundle} exec puma -C config/puma.rb",
            restart=app_settings.systemd.restart,
            restart_sec=app_settings.systemd.restart_sec,
            syslog_identifier=deploy.service_name,
        )


def unit_path(app_settings: AppSettings) -> Path:
    return app_settings.systemd.unit_dir / f"{app_settings.deploy.service_name}.service"


def render_unit(app_settings: AppSettings) -> str:
    descriptor = ServiceDescriptor.for_app(app_settings)
    return app_settings.systemd.unit_template.format(**asdict(descriptor))


def install_app_service(context: ProvisionContext) -> None:
    settings = context.settings
    symbols = settings.symbols
    service = settings.deploy.service_name
    log_provision(
        f"{symbols.get('step', '➡️')} Installing systemd unit for {service}...",
        "info",
        context.logger,
        settings,
    )
    changed = write_file(
        unit_path(settings),
        render_unit(settings),
        settings,
        mode="644",
        current_logger=context.logger,
    )
    systemd_reload(settings, context.logger)
    enable_and_start_service(
        service, settings, restart=changed, current_logger=context.logger
    )


def app_service_running(context: ProvisionContext) -> bool:
    settings = context.settings
    return file_matches(unit_path(settings), render_unit(settings)) and service_is_active(
        settings.deploy.service_name, settings, context.logger
    )
