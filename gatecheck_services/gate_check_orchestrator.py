"""
GateCheckOrchestrator -- transaction boundary for the gate check engine.

Responsibility:
    The single surface the inspector app and foreman console call.  Wires
    the kernel services and selectors to one session, runs every write
    operation in its own transaction, and binds structured log context.

Architecture position:
    Services layer.  Imports gatecheck_kernel and gatecheck_config; nothing
    in the kernel imports from here.

Invariants enforced:
    - Transaction boundaries: with ``auto_commit`` (the default) every write
      commits on success and rolls back on any failure, so a failed update
      leaves neither a half-written item nor an orphan deficiency, and the
      next caller reads committed state.
    - Log context: correlation_id, actor_id, lot_id and gate_check_id are
      bound for the duration of each operation, which logs
      ``<operation>_started`` / ``_completed`` / ``_failed``.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from gatecheck_config import get_active_catalog, get_settings
from gatecheck_config.schema import GateCheckCatalog, Settings
from gatecheck_kernel.domain.clock import Clock, SystemClock
from gatecheck_kernel.domain.gate_check import (
    TRANSITION_LABELS,
    Deficiency,
    DeficiencyStatus,
    GateCheck,
    GateCheckAggregate,
    GateCheckItem,
    GateCheckResult,
    GateCheckSummary,
    GateCheckTemplateItem,
    GateCheckTransition,
    display_status,
    summarize_gate_check,
)
from gatecheck_kernel.domain.phase_flow import (
    LotPhaseFlowStatus,
    PhaseAdvanceCheck,
    PhaseId,
)
from gatecheck_kernel.exceptions import GateCheckKernelError
from gatecheck_kernel.logging_config import LogContext, get_logger
from gatecheck_kernel.selectors.deficiency_selector import DeficiencySelector
from gatecheck_kernel.selectors.gate_check_selector import GateCheckSelector
from gatecheck_kernel.services.deficiency_service import (
    DeficiencyLinker,
    DeficiencyService,
)
from gatecheck_kernel.services.gate_check_service import GateCheckService
from gatecheck_kernel.services.template_service import TemplateService

logger = get_logger("services.orchestrator")

T = TypeVar("T")


@dataclass(frozen=True)
class TransitionOverview:
    """One row of the inspector's transition selector screen."""

    transition: GateCheckTransition
    label: str
    item_count: int
    status: str
    latest: GateCheckAggregate | None = None
    summary: GateCheckSummary | None = None


class GateCheckOrchestrator:
    """
    Per-request facade over the gate check kernel.

    Contract:
        Construct one per session.  Read methods never commit; write
        methods commit or roll back when ``auto_commit`` is True and leave
        the transaction to the caller otherwise.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        linker: DeficiencyLinker | None = None,
        auto_commit: bool = True,
        settings: Settings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._settings = settings

        self.deficiencies = DeficiencyService(session, self._clock)
        self.gate_checks = GateCheckService(
            session, self._clock, linker or self.deficiencies,
        )
        self.templates = TemplateService(session)
        self.selector = GateCheckSelector(session)
        self.deficiency_selector = DeficiencySelector(session)

    # -----------------------------------------------------------------
    # Transaction + log context wrapper
    # -----------------------------------------------------------------

    def _run(
        self,
        operation: str,
        fn: Callable[[], T],
        *,
        actor_id: UUID | None = None,
        lot_id: UUID | None = None,
        gate_check_id: UUID | None = None,
        **fields: Any,
    ) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=actor_id,
            lot_id=lot_id,
            gate_check_id=gate_check_id,
            operation=operation,
        ):
            logger.info(f"{operation}_started", extra=fields)
            t0 = time.monotonic()
            try:
                result = fn()
                if self._auto_commit:
                    self._session.commit()
            except GateCheckKernelError as exc:
                if self._auto_commit:
                    self._session.rollback()
                logger.warning(
                    f"{operation}_failed",
                    extra={
                        "error_code": exc.code,
                        "error": str(exc),
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                raise
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise

            logger.info(
                f"{operation}_completed",
                extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
            )
            return result

    # -----------------------------------------------------------------
    # Templates
    # -----------------------------------------------------------------

    def seed_templates(self, catalog: GateCheckCatalog | None = None) -> int:
        """Seed the template table from the active catalog. Idempotent."""
        catalog = catalog or get_active_catalog()
        return self._run(
            "seed_templates",
            lambda: self.templates.seed_from_catalog(catalog.to_template_items()),
            catalog_id=catalog.catalog_id,
            checksum=catalog.checksum,
        )

    def get_template_items(
        self, transition: GateCheckTransition | str,
    ) -> list[GateCheckTemplateItem]:
        return self.selector.get_template_items(transition)

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def get_latest_gate_check(
        self,
        lot_id: UUID,
        transition: GateCheckTransition | str,
    ) -> GateCheckAggregate | None:
        return self.selector.get_latest_gate_check(lot_id, transition)

    def get_gate_check(self, gate_check_id: UUID) -> GateCheckAggregate:
        return self.selector.get_gate_check(gate_check_id)

    def list_gate_checks_by_lot(self, lot_id: UUID) -> list[GateCheck]:
        return self.selector.list_gate_checks_by_lot(lot_id)

    def get_lot_phase_flow_status(self, lot_id: UUID) -> LotPhaseFlowStatus:
        return self.selector.get_lot_phase_flow_status(lot_id)

    def can_advance_phase(self, lot_id: UUID, phase_id: PhaseId | str) -> PhaseAdvanceCheck:
        return self.selector.can_advance_phase(lot_id, phase_id)

    def transition_overview(self, lot_id: UUID) -> list[TransitionOverview]:
        """Latest round, progress and display status for every transition."""
        overview = []
        for transition in GateCheckTransition:
            latest = self.selector.get_latest_gate_check(lot_id, transition)
            overview.append(
                TransitionOverview(
                    transition=transition,
                    label=TRANSITION_LABELS[transition],
                    item_count=len(self.selector.get_template_items(transition)),
                    status=display_status(latest),
                    latest=latest,
                    summary=summarize_gate_check(latest) if latest else None,
                )
            )
        return overview

    def get_deficiency(self, deficiency_id: UUID) -> Deficiency:
        return self.deficiency_selector.get_deficiency(deficiency_id)

    def list_deficiencies(
        self,
        lot_id: UUID,
        status: DeficiencyStatus | str | None = None,
        blocking: bool | None = None,
    ) -> list[Deficiency]:
        return self.deficiency_selector.list_deficiencies(lot_id, status, blocking)

    def count_open_blocking(self, lot_id: UUID, phase_id: PhaseId | str | None = None) -> int:
        return self.deficiency_selector.count_open_blocking(lot_id, phase_id)

    # -----------------------------------------------------------------
    # Gate check lifecycle
    # -----------------------------------------------------------------

    def start_gate_check(
        self,
        lot_id: UUID,
        transition: GateCheckTransition | str,
        actor_id: UUID,
    ) -> GateCheckAggregate:
        return self._run(
            "start_gate_check",
            lambda: self.gate_checks.start_gate_check(lot_id, transition, actor_id),
            actor_id=actor_id,
            lot_id=lot_id,
            transition=str(getattr(transition, "value", transition)),
        )

    def update_gate_check_item(
        self,
        item_id: UUID,
        result: GateCheckResult | str,
        *,
        actor_id: UUID | None = None,
        notes: str | None = None,
        photo_url: str | None = None,
    ) -> GateCheckItem:
        return self._run(
            "update_gate_check_item",
            lambda: self.gate_checks.update_gate_check_item(
                item_id, result,
                actor_id=actor_id, notes=notes, photo_url=photo_url,
            ),
            actor_id=actor_id,
            item_id=str(item_id),
            result=str(getattr(result, "value", result)),
        )

    def complete_gate_check(
        self,
        gate_check_id: UUID,
        actor_id: UUID | None = None,
    ) -> GateCheckAggregate:
        return self._run(
            "complete_gate_check",
            lambda: self.gate_checks.complete_gate_check(gate_check_id),
            actor_id=actor_id,
            gate_check_id=gate_check_id,
        )

    def cancel_gate_check(
        self,
        gate_check_id: UUID,
        actor_id: UUID,
        reason: str,
    ) -> GateCheckAggregate:
        return self._run(
            "cancel_gate_check",
            lambda: self.gate_checks.cancel_gate_check(gate_check_id, actor_id, reason),
            actor_id=actor_id,
            gate_check_id=gate_check_id,
        )

    def expire_stale_gate_checks(
        self,
        timeout_hours: float | None = None,
        as_of: datetime | None = None,
    ) -> list[UUID]:
        """Cancel in-progress gate checks idle longer than ``timeout_hours``.

        ``timeout_hours`` defaults to ``Settings.stale_after_hours``.
        """
        if timeout_hours is None:
            timeout_hours = (self._settings or get_settings()).stale_after_hours
        as_of = as_of or self._clock.now()
        return self._run(
            "expire_stale_gate_checks",
            lambda: self.gate_checks.expire_stale_gate_checks(as_of, timeout_hours),
            timeout_hours=timeout_hours,
        )

    # -----------------------------------------------------------------
    # Deficiencies
    # -----------------------------------------------------------------

    def resolve_deficiency(
        self,
        deficiency_id: UUID,
        resolved_by: UUID,
        resolved_photo: str | None,
        resolution_note: str | None = None,
    ) -> Deficiency:
        return self._run(
            "resolve_deficiency",
            lambda: self.deficiencies.resolve_deficiency(
                deficiency_id, resolved_by, resolved_photo, resolution_note,
            ),
            actor_id=resolved_by,
            deficiency_id=str(deficiency_id),
        )

    def update_deficiency_status(
        self,
        deficiency_id: UUID,
        status: DeficiencyStatus | str,
        actor_id: UUID | None = None,
    ) -> Deficiency:
        return self._run(
            "update_deficiency_status",
            lambda: self.deficiencies.update_deficiency_status(deficiency_id, status),
            actor_id=actor_id,
            deficiency_id=str(deficiency_id),
        )
