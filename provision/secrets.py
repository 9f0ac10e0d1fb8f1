# provision/secrets.py
# -*- coding: utf-8 -*-
"""
Holds the secrets of one provisioning run.

Every value stored here is registered with the log redaction filter, so it
is masked in all output except the final report.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from common.core_utils import SecretRedactingFilter, get_redaction_filter

module_logger = logging.getLogger(__name__)

GENERATED_SECRET_BYTES = 24


def generate_secret(nbytes: int = GENERATED_SECRET_BYTES) -> str:
    """URL-safe random secret; safe to embed in YAML, SQL literals and env files."""
    return secrets.token_urlsafe(nbytes)


@dataclass(frozen=True)
class StoredSecret:
    name: str
    value: str
    origin: str


class SecretStore:
    """Named secrets created or collected during a run, with their origin."""

    def __init__(self, redaction_filter: Optional[SecretRedactingFilter] = None):
        self._filter = redaction_filter or get_redaction_filter()
        self._secrets: Dict[str, StoredSecret] = {}

    def put(self, name: str, value: str, origin: str) -> None:
        self._filter.add_secret(value)
        self._secrets[name] = StoredSecret(name, value, origin)
        module_logger.debug(f"Secret '{name}' registered (origin: {origin}).")

    def get(self, name: str) -> Optional[str]:
        stored = self._secrets.get(name)
        return stored.value if stored else None

    def origin(self, name: str) -> Optional[str]:
        stored = self._secrets.get(name)
        return stored.origin if stored else None

    def require(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(f"Secret '{name}' has not been set yet")
        return value

    def __contains__(self, name: object) -> bool:
        return name in self._secrets

    def __iter__(self) -> Iterator[StoredSecret]:
        return iter(self._secrets.values())
