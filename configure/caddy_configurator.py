# configure/caddy_configurator.py
# -*- coding: utf-8 -*-
"""
Handles Caddy reverse proxy configuration.

The TLS decision is made once, from the host identity: a domain name gets a
site block with automatic certificates and HSTS, a bare address gets a
plain-HTTP ``:80`` block.
"""
import logging
from typing import Dict

from common.command_utils import log_provision
from common.file_utils import ensure_directory, file_matches, write_file
from common.system_utils import enable_and_start_service, service_is_active
from configure.site_settings import SslPolicy
from provision.config_models import AppSettings
from provision.phase_runner import ProvisionContext

module_logger = logging.getLogger(__name__)

HEADER_INDENT = " " * 8


def response_headers(app_settings: AppSettings) -> Dict[str, str]:
    """Headers Caddy adds to every response; HSTS only when TLS is on."""
    headers: Dict[str, str] = {}
    if SslPolicy.for_settings(app_settings).ssl:
        headers["Strict-Transport-Security"] = app_settings.caddy.hsts
    headers.update(app_settings.caddy.security_headers)
    return headers


def render_caddyfile(app_settings: AppSettings) -> str:
    caddy = app_settings.caddy
    header_lines = "\n".join(
        f'{HEADER_INDENT}{name} "{value}"'
        for name, value in response_headers(app_settings).items()
    )
    values = {
        "host": app_settings.domain,
        "app_port": app_settings.deploy.app_port,
        "header_lines": header_lines,
        "access_log": caddy.access_log,
    }
    if SslPolicy.for_settings(app_settings).ssl:
        return caddy.tls_template.format(
            acme_email=app_settings.effective_acme_email, **values
        )
    return caddy.plaintext_template.format(**values)


def configure_reverse_proxy(context: ProvisionContext) -> None:
    settings = context.settings
    logger_to_use = context.logger
    symbols = settings.symbols
    caddy = settings.caddy
    mode = "automatic HTTPS" if SslPolicy.for_settings(settings).ssl else "plain HTTP"
    log_provision(
        f"{symbols.get('step', '➡️')} Configuring Caddy for {settings.domain} ({mode})...",
        "info",
        logger_to_use,
        settings,
    )
    ensure_directory(caddy.access_log.parent, settings, current_logger=logger_to_use)
    write_file(
        caddy.caddyfile_path,
        render_caddyfile(settings),
        settings,
        mode="644",
        backup=True,
        current_logger=logger_to_use,
    )
    enable_and_start_service(
        caddy.service_name, settings, restart=True, current_logger=logger_to_use
    )


def reverse_proxy_configured(context: ProvisionContext) -> bool:
    settings = context.settings
    return file_matches(settings.caddy.caddyfile_path, render_caddyfile(settings)) and service_is_active(
        settings.caddy.service_name, settings, context.logger
    )
