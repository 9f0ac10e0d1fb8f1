# provision/phase_runner.py
# -*- coding: utf-8 -*-
"""
Runs the provisioning phases in their declared order.

Each phase pairs an idempotency predicate ("is this already done?") with an
action. A satisfied predicate skips the phase; otherwise the action runs and
any exception aborts the whole run. There is no rollback and no resume from
the middle: a rerun starts at the top and relies on the predicates to skip
the completed work.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from common.command_utils import log_provision
from provision.config_models import AppSettings
from provision.exceptions import PhaseFailedError
from provision.secrets import SecretStore
from provision.variable_resolver import ResolvedVariables

module_logger = logging.getLogger(__name__)


@dataclass
class ProvisionContext:
    """What every phase receives: immutable settings plus the run's secrets."""

    settings: AppSettings
    secrets: SecretStore
    resolved: Optional[ResolvedVariables] = None
    logger: logging.Logger = field(default=module_logger)


PhaseAction = Callable[[ProvisionContext], None]
PhasePredicate = Callable[[ProvisionContext], bool]


def never_complete(context: ProvisionContext) -> bool:
    """Predicate of phases whose action is itself idempotent and always runs."""
    return False


@dataclass(frozen=True)
class Phase:
    tag: str
    description: str
    action: PhaseAction
    is_complete: PhasePredicate = never_complete


@dataclass
class RunSummary:
    ran: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    pending: List[str] = field(default_factory=list)


def evaluate_predicate(phase: Phase, context: ProvisionContext) -> bool:
    """
    Evaluate a phase's idempotency predicate. A predicate that raises counts
    as "not done yet"; actions are safe to retry.
    """
    symbols = context.settings.symbols
    try:
        return bool(phase.is_complete(context))
    except Exception as e:
        log_provision(
            f"{symbols.get('warning', '⚠️')} Could not determine whether '{phase.description}' "
            f"({phase.tag}) is complete ({e}). Treating it as not done.",
            "warning",
            context.logger,
            context.settings,
        )
        return False


class PhaseRunner:
    """Executes phases strictly in order; the first failure stops the run."""

    def __init__(self, phases: Sequence[Phase], context: ProvisionContext):
        tags = [phase.tag for phase in phases]
        duplicates = {tag for tag in tags if tags.count(tag) > 1}
        if duplicates:
            raise ValueError(f"Duplicate phase tags: {sorted(duplicates)}")
        self.phases = list(phases)
        self.context = context

    def run(self, dry_run: bool = False) -> RunSummary:
        """
        Run every phase.

        Args:
            dry_run: Only evaluate predicates and report what would run.

        Returns:
            RunSummary: tags that ran, were skipped, or (dry run) are pending.

        Raises:
            PhaseFailedError: A phase action raised.
        """
        context = self.context
        settings = context.settings
        symbols = settings.symbols
        summary = RunSummary()
        total = len(self.phases)

        for index, phase in enumerate(self.phases, start=1):
            label = f"Phase {index}/{total}: {phase.description} ({phase.tag})"

            if evaluate_predicate(phase, context):
                log_provision(
                    f"{symbols.get('info', 'ℹ️')} Skipping {label}: already complete.",
                    "info",
                    context.logger,
                    settings,
                )
                summary.skipped.append(phase.tag)
                continue

            if dry_run:
                log_provision(
                    f"{symbols.get('step', '➡️')} Would run {label}",
                    "info",
                    context.logger,
                    settings,
                )
                summary.pending.append(phase.tag)
                continue

            log_provision(
                f"--- {symbols.get('step', '➡️')} {label} ---",
                "info",
                context.logger,
                settings,
            )
            try:
                phase.action(context)
            except Exception as e:
                log_provision(
                    f"{symbols.get('error', '❌')} FAILED: {label}: {e}",
                    "error",
                    context.logger,
                    settings,
                    exc_info=context.logger.isEnabledFor(logging.DEBUG),
                )
                raise PhaseFailedError(phase.tag, phase.description, e) from e

            log_provision(
                f"--- {symbols.get('success', '✅')} Completed {label} ---",
                "success",
                context.logger,
                settings,
            )
            summary.ran.append(phase.tag)

        return summary
