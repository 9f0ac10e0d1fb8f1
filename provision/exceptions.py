# provision/exceptions.py
# -*- coding: utf-8 -*-
"""
Exception hierarchy of the provisioner.

Precondition errors (privilege, configuration) are raised before any phase
runs; PhaseFailedError aborts the run at the failing phase.
"""

from typing import Optional


class ProvisionError(Exception):
    """Base class for fatal provisioning errors."""


class PrivilegeError(ProvisionError):
    """The provisioner is not running as root."""


class ConfigurationError(ProvisionError):
    """A required configuration value is missing or invalid."""


class PhaseFailedError(ProvisionError):
    """A phase action failed; the run stops here without rollback."""

    def __init__(self, tag: str, description: str, cause: Optional[BaseException] = None):
        self.tag = tag
        self.description = description
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Phase '{description}' ({tag}) failed{detail}")
