# configure/site_settings.py
# -*- coding: utf-8 -*-
"""
Site identity of the application: domain, display name and SSL policy.

The structured ``config/site.yml`` is the authoritative record. The stock
Ruby files are additionally patched with exact-text substitutions; a
placeholder that cannot be found is reported rather than silently ignored.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import yaml

from provision.config_models import AppSettings

module_logger = logging.getLogger(__name__)

SITE_YML_HEADER = "# config/site.yml generated by lobsters-provision. Local edits are overwritten.\n"

SSL_METHOD_PATTERN = re.compile(r"def ssl\?.*?\bend\b", re.DOTALL)


@dataclass(frozen=True)
class SslPolicy:
    """
    The three SSL flags of the application. They are only ever built
    together, from the host identity, so they cannot disagree.
    """

    ssl: bool
    force_ssl: bool
    assume_ssl: bool

    @classmethod
    def for_host(cls, host_is_ip: bool) -> "SslPolicy":
        enabled = not host_is_ip
        return cls(ssl=enabled, force_ssl=enabled, assume_ssl=enabled)

    @classmethod
    def for_settings(cls, app_settings: AppSettings) -> "SslPolicy":
        return cls.for_host(app_settings.host_is_ip)


def build_site_config(app_settings: AppSettings) -> Dict[str, object]:
    policy = SslPolicy.for_settings(app_settings)
    return {
        "domain": app_settings.domain,
        "name": app_settings.site_name,
        "public_url": app_settings.public_url,
        "ssl": policy.ssl,
        "force_ssl": policy.force_ssl,
        "assume_ssl": policy.assume_ssl,
        "admin_user": app_settings.admin_user,
    }


def render_site_yml(app_settings: AppSettings) -> str:
    body = yaml.safe_dump(
        build_site_config(app_settings),
        default_flow_style=False,
        sort_keys=False,
    )
    return SITE_YML_HEADER + "---\n" + body


def _ruby_bool(value: bool) -> str:
    return "true" if value else "false"


@dataclass(frozen=True)
class Substitution:
    """
    Replace ``old`` with ``new`` in ``relative_path``. A file that already
    contains ``new`` and no ``old`` counts as applied.
    """

    relative_path: str
    description: str
    old: str
    new: str

    def apply(self, text: str) -> Tuple[str, bool]:
        if self.old == self.new:
            return text, self.new in text
        if self.old in text:
            return text.replace(self.old, self.new), True
        return text, self.new in text


@dataclass(frozen=True)
class SslMethodSubstitution:
    """Set every boolean literal inside ``def ssl? ... end`` to ``value``."""

    relative_path: str
    value: bool
    description: str = "ssl? method"

    def apply(self, text: str) -> Tuple[str, bool]:
        match = SSL_METHOD_PATTERN.search(text)
        if not match:
            return text, False
        body = re.sub(r"\b(true|false)\b", _ruby_bool(self.value), match.group(0))
        return text[: match.start()] + body + text[match.end():], True


StockFileRule = Union[Substitution, SslMethodSubstitution]


def build_substitutions(app_settings: AppSettings) -> List[StockFileRule]:
    """Every textual patch applied to the stock checkout, in order."""
    policy = SslPolicy.for_settings(app_settings)
    application_rb = "config/application.rb"
    production_rb = "config/environments/production.rb"
    force, assume = _ruby_bool(policy.force_ssl), _ruby_bool(policy.assume_ssl)
    return [
        Substitution(application_rb, "domain", '"lobste.rs"', f'"{app_settings.domain}"'),
        Substitution(application_rb, "site name", '"Lobsters"', f'"{app_settings.site_name}"'),
        SslMethodSubstitution(application_rb, policy.ssl),
        Substitution(
            production_rb,
            "force_ssl",
            f"config.force_ssl = {_ruby_bool(not policy.force_ssl)}",
            f"config.force_ssl = {force}",
        ),
        Substitution(
            production_rb,
            "assume_ssl",
            f"config.assume_ssl = {_ruby_bool(not policy.assume_ssl)}",
            f"config.assume_ssl = {assume}",
        ),
        Substitution(
            "config/puma.rb",
            "puma pidfile",
            app_settings.deploy.puma_pidfile_placeholder,
            str(app_settings.deploy.app_dir / "tmp" / "pids" / "puma.pid"),
        ),
    ]


@dataclass
class PatchedFile:
    """
    Result of patching one stock file. ``missing`` lists the rules that did
    not apply; when the file itself is absent that is every rule for it.
    """

    relative_path: str
    original: Optional[str]
    content: Optional[str]
    missing: List[str] = field(default_factory=list)

    @property
    def exists(self) -> bool:
        return self.original is not None

    @property
    def changed(self) -> bool:
        return self.original != self.content


def patch_stock_files(
    app_dir: Path,
    substitutions: List[StockFileRule],
    reader: Optional[Callable[[Path], Optional[str]]] = None,
) -> List[PatchedFile]:
    """
    Apply ``substitutions`` in memory, grouped per file. Nothing is written
    here; callers decide what to do with changed files and missing
    placeholders.
    """
    read = reader or _read_or_none
    patched: Dict[str, PatchedFile] = {}
    for rule in substitutions:
        path = rule.relative_path
        if path not in patched:
            text = read(app_dir / path)
            patched[path] = PatchedFile(path, text, text)
        entry = patched[path]
        if not entry.exists:
            entry.missing.append(rule.description)
            continue
        entry.content, found = rule.apply(entry.content)
        if not found:
            entry.missing.append(rule.description)
    return list(patched.values())


def _read_or_none(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except OSError:
        return None
