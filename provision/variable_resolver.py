# provision/variable_resolver.py
# -*- coding: utf-8 -*-
"""
Resolves the configuration inputs of a provisioning run.

Each declared ConfigValue is looked up in an ordered list of source layers
(command line, config file, environment). When no layer has a non-empty
value the declared default is used; required values without a default are
prompted for on a terminal, and the run fails immediately when no answer
can be obtained. Resolution happens once, before any phase runs.
"""

import logging
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from provision.config_models import (
    REPO_URL_DEFAULT,
    SITE_NAME_DEFAULT,
    SMTP_HOST_DEFAULT,
    SMTP_PORT_DEFAULT,
)
from provision.exceptions import ConfigurationError
from provision.secrets import generate_secret

module_logger = logging.getLogger(__name__)

SOURCE_DEFAULT = "default"
SOURCE_PROMPT = "prompt"
SOURCE_EXISTING = "existing"
SOURCE_GENERATED = "generated"


@dataclass(frozen=True)
class ConfigValue:
    """Declaration of one configuration input."""

    name: str
    env_var: str
    prompt: str
    default: Optional[str] = None
    required: bool = False
    secret: bool = False
    generate: bool = False


@dataclass(frozen=True)
class ResolvedValue:
    name: str
    value: str
    source: str
    secret: bool = False


CONFIG_VALUES: Tuple[ConfigValue, ...] = (
    ConfigValue("domain", "LOBSTERS_DOMAIN", "Domain name (or Elastic IP if no domain yet)", required=True),
    ConfigValue("site_name", "LOBSTERS_SITE_NAME", "Site display name", default=SITE_NAME_DEFAULT),
    ConfigValue(
        "db_password", "LOBSTERS_DB_PASS",
        "MariaDB password for the application user (leave blank to generate)",
        secret=True, generate=True,
    ),
    ConfigValue("admin_user", "LOBSTERS_ADMIN_USER", "Admin username for the first account", required=True),
    ConfigValue("smtp.host", "SMTP_HOST", "SMTP host (e.g. email-smtp.us-east-1.amazonaws.com)", default=SMTP_HOST_DEFAULT),
    ConfigValue("smtp.port", "SMTP_PORT", "SMTP port", default=str(SMTP_PORT_DEFAULT)),
    ConfigValue("smtp.username", "SMTP_USERNAME", "SMTP username (leave blank to skip)", default=""),
    ConfigValue("smtp.password", "SMTP_PASSWORD", "SMTP password (leave blank to skip)", default="", secret=True),
    ConfigValue("repo_url", "LOBSTERS_REPO", "Git repository URL", default=REPO_URL_DEFAULT),
    ConfigValue("acme_email", "LOBSTERS_ACME_EMAIL", "Contact e-mail for TLS certificates", default=""),
)


class ResolvedVariables(Mapping[str, ResolvedValue]):
    """Immutable result of resolve_variables()."""

    def __init__(self, values: Sequence[ResolvedValue]):
        self._values: Dict[str, ResolvedValue] = {v.name: v for v in values}

    def __getitem__(self, name: str) -> ResolvedValue:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def value(self, name: str) -> str:
        return self._values[name].value

    def source(self, name: str) -> str:
        return self._values[name].source

    def as_settings_dict(self) -> Dict[str, Any]:
        """Nested dict suitable for AppSettings(**...); dotted names become sections."""
        result: Dict[str, Any] = {}
        for resolved in self._values.values():
            target = result
            *parents, leaf = resolved.name.split(".")
            for parent in parents:
                target = target.setdefault(parent, {})
            target[leaf] = resolved.value
        return result


def environment_layer(
    environ: Mapping[str, str],
    declarations: Sequence[ConfigValue] = CONFIG_VALUES,
) -> Dict[str, str]:
    """Maps declared env vars of ``environ`` onto declaration names."""
    return {
        decl.name: environ[decl.env_var]
        for decl in declarations
        if decl.env_var in environ
    }


def _lookup(
    name: str, layers: Sequence[Tuple[str, Mapping[str, Any]]]
) -> Optional[Tuple[str, str]]:
    for layer_name, layer in layers:
        raw = layer.get(name)
        if raw is None:
            continue
        value = str(raw).strip()
        if value:
            return value, layer_name
    return None


def _ask(
    decl: ConfigValue, prompt_func: Callable[[str], str]
) -> str:
    try:
        return prompt_func(f"{decl.prompt}: ").strip()
    except EOFError:
        return ""


def resolve_variables(
    layers: Sequence[Tuple[str, Mapping[str, Any]]],
    interactive: bool,
    prompt_func: Callable[[str], str] = input,
    existing_lookup: Optional[Callable[[str], Optional[str]]] = None,
    declarations: Sequence[ConfigValue] = CONFIG_VALUES,
    generator: Callable[[], str] = generate_secret,
    current_logger: Optional[logging.Logger] = None,
) -> ResolvedVariables:
    """
    Resolve every declaration against the source layers.

    Args:
        layers: ``(source_name, mapping)`` pairs in precedence order. Each
            mapping is keyed by declaration name; empty values count as
            absent.
        interactive: Whether a terminal is available for prompting.
        prompt_func: Reads a single line for a prompt.
        existing_lookup: Returns a value already present on the host for a
            generatable declaration (e.g. the password in an existing
            database.yml), or None.
        declarations: The values to resolve.
        generator: Produces fresh secrets.
        current_logger: Logger to use.

    Returns:
        ResolvedVariables: One entry per declaration.

    Raises:
        ConfigurationError: A required value is missing and cannot be
            prompted for, or the prompt answer was empty.
    """
    logger_to_use = current_logger if current_logger else module_logger
    resolved: List[ResolvedValue] = []

    for decl in declarations:
        found = _lookup(decl.name, layers)
        if found is not None:
            value, source = found
        elif decl.generate:
            value, source = _resolve_generated(
                decl, interactive, prompt_func, existing_lookup, generator
            )
        elif decl.default is not None:
            value, source = decl.default, SOURCE_DEFAULT
        elif decl.required:
            if not interactive:
                raise ConfigurationError(
                    f"{decl.env_var} is required: set it in the environment, "
                    f"the config file or on the command line "
                    f"(no terminal available to prompt for '{decl.name}')"
                )
            value = _ask(decl, prompt_func)
            if not value:
                raise ConfigurationError(f"{decl.env_var} is required")
            source = SOURCE_PROMPT
        else:
            value, source = "", SOURCE_DEFAULT

        logger_to_use.debug(
            f"Resolved '{decl.name}' from {source}"
            + ("" if decl.secret else f": {value!r}")
        )
        resolved.append(ResolvedValue(decl.name, value, source, decl.secret))

    return ResolvedVariables(resolved)


def _resolve_generated(
    decl: ConfigValue,
    interactive: bool,
    prompt_func: Callable[[str], str],
    existing_lookup: Optional[Callable[[str], Optional[str]]],
    generator: Callable[[], str],
) -> Tuple[str, str]:
    if existing_lookup is not None:
        existing = existing_lookup(decl.name)
        if existing:
            return existing, SOURCE_EXISTING
    if interactive:
        answer = _ask(decl, prompt_func)
        if answer:
            return answer, SOURCE_PROMPT
    return generator(), SOURCE_GENERATED
