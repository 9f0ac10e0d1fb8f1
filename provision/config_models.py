# provision/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for provisioner configuration.

This module defines the structured settings for a provisioning run,
including defaults, type annotations, and descriptions. The root
``AppSettings`` model is frozen: it is built once before any phase runs
and handed explicitly to every phase.
"""

import re
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
SITE_NAME_DEFAULT: str = "Lobsters"
REPO_URL_DEFAULT: str = "https://github.com/lobsters/lobsters.git"
SMTP_HOST_DEFAULT: str = "127.0.0.1"
SMTP_PORT_DEFAULT: int = 587
LOG_PREFIX_DEFAULT: str = "[LOBSTERS-SETUP]"

# Documented bootstrap credential for the first administrator. The
# operator is told to change it immediately after first login.
ADMIN_BOOTSTRAP_PASSWORD: str = "changeme123"

IPV4_HOST_PATTERN = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+$")

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
    "key": "🔑",
}

RUBY_BUILD_PACKAGES_DEFAULT: List[str] = [
    "autoconf", "bison", "build-essential", "libssl-dev", "libyaml-dev",
    "libreadline-dev", "zlib1g-dev", "libncurses5-dev", "libffi-dev",
    "libgdbm-dev", "rustc", "libjemalloc-dev", "libvips-dev",
]
TOOLING_PACKAGES_DEFAULT: List[str] = [
    "git", "curl", "wget", "unzip", "apt-transport-https",
    "ca-certificates", "gnupg", "lsb-release", "cron",
]
MARIADB_PACKAGES_DEFAULT: List[str] = [
    "mariadb-server", "mariadb-client", "libmariadb-dev",
]
CADDY_PACKAGES_DEFAULT: List[str] = ["caddy"]

SECURITY_HEADERS_DEFAULT: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
HSTS_HEADER_DEFAULT: str = "max-age=63072000; includeSubDomains; preload"

CADDYFILE_PLAINTEXT_TEMPLATE_DEFAULT: str = """\
# Caddyfile generated by lobsters-provision (plain HTTP, bare address {host})
:80 {{
    reverse_proxy localhost:{app_port}

    header {{
{header_lines}
    }}

    log {{
        output file {access_log}
    }}
}}
"""

CADDYFILE_TLS_TEMPLATE_DEFAULT: str = """\
# Caddyfile generated by lobsters-provision (automatic HTTPS for {host})
{host} {{
    tls {acme_email}
    reverse_proxy localhost:{app_port}

    header {{
{header_lines}
    }}

    log {{
        output file {access_log}
    }}
}}
"""

SYSTEMD_UNIT_TEMPLATE_DEFAULT: str = """\
[Unit]
Description={description}
After={after}
Requires={requires}

[Service]
Type=simple
User={user}
Group={group}
WorkingDirectory={working_directory}
EnvironmentFile={environment_file}
ExecStart={exec_start}
Restart={restart}
RestartSec={restart_sec}
SyslogIdentifier={syslog_identifier}

# Hardening
NoNewPrivileges={no_new_privileges}
PrivateTmp={private_tmp}

[Install]
WantedBy={wanted_by}
"""

CRON_TEMPLATE_DEFAULT: str = """\
# Expire cached pages older than {max_age_minutes} minutes
{schedule} {user} {python} {janitor_path} --cache-dir {cache_dir} --max-age-seconds {max_age_seconds} >> {log_file} 2>&1
"""


class SmtpSettings(BaseModel):
    """Mail relay settings written into the application environment file."""
    model_config = ConfigDict(frozen=True)

    host: str = Field(default=SMTP_HOST_DEFAULT, description="SMTP relay host.")
    port: int = Field(default=SMTP_PORT_DEFAULT, description="SMTP relay port.")
    username: str = Field(default="", description="SMTP username (optional).")
    password: str = Field(default="", description="SMTP password (optional).", repr=False)
    starttls_auto: bool = Field(default=True, description="Negotiate STARTTLS when offered.")


class DeploySettings(BaseSettings):
    """Where and as whom the application is deployed."""
    model_config = SettingsConfigDict(
        env_prefix="LOBSTERS_DEPLOY_",
        extra="ignore",
        frozen=True,
    )

    user: str = Field(default="lobsters", description="Unprivileged service account.")
    app_dir: Path = Field(default=Path("/srv/lobsters"), description="Application checkout directory.")
    ruby_version: str = Field(default="4.0.0", description="Ruby version installed through rbenv.")
    rbenv_repo: str = Field(default="https://github.com/rbenv/rbenv.git")
    ruby_build_repo: str = Field(default="https://github.com/rbenv/ruby-build.git")
    app_port: int = Field(default=3000, description="Local port Puma listens on.")
    service_name: str = Field(default="lobsters", description="systemd unit name of the app.")
    database_service: str = Field(default="mariadb", description="systemd unit the app depends on.")
    rails_env: str = Field(default="production")
    update_checkout: bool = Field(
        default=True,
        description="Pull the latest commit when the checkout already exists.",
    )
    puma_pidfile_placeholder: str = Field(
        default="/home/deploy/lobsters/shared/tmp/pids/puma.pid",
        description="Stock pidfile path in config/puma.rb that gets replaced.",
    )

    @property
    def home_dir(self) -> Path:
        return Path("/home") / self.user


class DatabaseSettings(BaseSettings):
    """MariaDB schema and least-privilege credential."""
    model_config = SettingsConfigDict(
        env_prefix="LOBSTERS_DATABASE_",
        extra="ignore",
        frozen=True,
    )

    name: str = Field(default="lobsters", description="Production schema name.")
    user: str = Field(default="lobsters", description="Application database account.")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3306)
    pool: int = Field(default=5)
    charset: str = Field(default="utf8mb4")
    collation: str = Field(default="utf8mb4_general_ci")
    adapter: str = Field(default="trilogy")
    mariadb_version: str = Field(default="11.4", description="MariaDB series for the vendor repository.")
    repo_setup_url: str = Field(default="https://downloads.mariadb.com/MariaDB/mariadb_repo_setup")
    dev_password: str = Field(default="localdev", description="root password used by the development/test blocks.")


class PackageSettings(BaseModel):
    """Versioned OS package lists and third-party apt repositories."""
    model_config = ConfigDict(frozen=True)

    ruby_build: List[str] = Field(default_factory=lambda: list(RUBY_BUILD_PACKAGES_DEFAULT))
    tooling: List[str] = Field(default_factory=lambda: list(TOOLING_PACKAGES_DEFAULT))
    mariadb: List[str] = Field(default_factory=lambda: list(MARIADB_PACKAGES_DEFAULT))
    caddy: List[str] = Field(default_factory=lambda: list(CADDY_PACKAGES_DEFAULT))
    caddy_gpg_key_url: str = Field(default="https://dl.cloudsmith.io/public/caddy/stable/gpg.key")
    caddy_source_list_url: str = Field(default="https://dl.cloudsmith.io/public/caddy/stable/debian.deb.txt")
    caddy_keyring_path: Path = Field(default=Path("/usr/share/keyrings/caddy-stable-archive-keyring.gpg"))
    caddy_source_list_path: Path = Field(default=Path("/etc/apt/sources.list.d/caddy-stable.list"))
    upgrade_system: bool = Field(default=True, description="Run apt-get upgrade before installing.")

    @property
    def base(self) -> List[str]:
        return self.ruby_build + self.tooling

    @property
    def all_packages(self) -> List[str]:
        return self.base + self.mariadb + self.caddy


class CaddySettings(BaseModel):
    """Reverse proxy settings."""
    model_config = ConfigDict(frozen=True)

    caddyfile_path: Path = Field(default=Path("/etc/caddy/Caddyfile"))
    access_log: Path = Field(default=Path("/var/log/caddy/access.log"))
    service_name: str = Field(default="caddy")
    security_headers: Dict[str, str] = Field(default_factory=lambda: dict(SECURITY_HEADERS_DEFAULT))
    hsts: str = Field(default=HSTS_HEADER_DEFAULT)
    plaintext_template: str = Field(
        default=CADDYFILE_PLAINTEXT_TEMPLATE_DEFAULT,
        description="Caddyfile for bare network addresses. Placeholders: {host}, {app_port}, {header_lines}, {access_log}.",
    )
    tls_template: str = Field(
        default=CADDYFILE_TLS_TEMPLATE_DEFAULT,
        description="Caddyfile for domain names. Adds {acme_email} to the plaintext placeholders.",
    )


class SystemdSettings(BaseModel):
    """Supervised application service."""
    model_config = ConfigDict(frozen=True)

    unit_dir: Path = Field(default=Path("/etc/systemd/system"))
    restart: str = Field(default="on-failure")
    restart_sec: int = Field(default=5)
    unit_template: str = Field(default=SYSTEMD_UNIT_TEMPLATE_DEFAULT)


class CacheSettings(BaseModel):
    """Page cache expiry (Cache Janitor)."""
    model_config = ConfigDict(frozen=True)

    relative_dir: str = Field(default="public/cache", description="Cache directory inside the app.")
    max_age_seconds: int = Field(default=300, description="Artifacts older than this are deleted.")
    schedule: str = Field(default="* * * * *", description="cron schedule of the janitor.")
    cron_file: Path = Field(default=Path("/etc/cron.d/lobsters-cache"))
    janitor_path: Path = Field(default=Path("/usr/local/bin/lobsters-cache-janitor"))
    python_executable: str = Field(default="/usr/bin/python3")
    log_relative_path: str = Field(default="log/cache_janitor.log")
    cron_template: str = Field(default=CRON_TEMPLATE_DEFAULT)


class AppSettings(BaseModel):
    """Resolved, immutable settings of one provisioning run."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    domain: str = Field(description="Public domain name, or bare IPv4 address of the host.")
    site_name: str = Field(default=SITE_NAME_DEFAULT, description="Display name of the site.")
    db_password: str = Field(description="Password of the application database account.", repr=False)
    admin_user: str = Field(description="Username of the first administrator.")
    repo_url: str = Field(default=REPO_URL_DEFAULT, description="Git repository of the application.")
    acme_email: str = Field(default="", description="Contact address for certificate issuance.")
    admin_initial_password: str = Field(default=ADMIN_BOOTSTRAP_PASSWORD, repr=False)
    log_prefix: str = Field(default=LOG_PREFIX_DEFAULT)

    smtp: SmtpSettings = Field(default_factory=SmtpSettings)
    deploy: DeploySettings = Field(default_factory=DeploySettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    packages: PackageSettings = Field(default_factory=PackageSettings)
    caddy: CaddySettings = Field(default_factory=CaddySettings)
    systemd: SystemdSettings = Field(default_factory=SystemdSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))

    @field_validator("domain", "admin_user")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @property
    def host_is_ip(self) -> bool:
        """True when the host identity is a bare dotted-quad address."""
        return bool(IPV4_HOST_PATTERN.match(self.domain))

    @property
    def public_url(self) -> str:
        scheme = "http" if self.host_is_ip else "https"
        return f"{scheme}://{self.domain}"

    @property
    def effective_acme_email(self) -> str:
        return self.acme_email or f"{self.admin_user}@{self.domain}"

    @property
    def admin_email(self) -> str:
        return f"{self.admin_user}@{self.domain}"

    @property
    def cache_dir(self) -> Path:
        return self.deploy.app_dir / self.cache.relative_dir

    @property
    def env_file(self) -> Path:
        return self.deploy.app_dir / ".env"

    @property
    def master_key_file(self) -> Path:
        return self.deploy.app_dir / "config" / "master.key"
