"""
DeficiencyService -- corrective-action records raised by gate checks.

Responsibility:
    Default SQL-backed ``DeficiencyLinker``: creates a deficiency when a
    blocking checklist item fails, and owns the deficiency lifecycle
    (open -> in_progress -> resolved).

Architecture position:
    Kernel > Services -- imperative shell.  Called by GateCheckService
    during ``update_gate_check_item`` and by GateCheckOrchestrator for
    resolution.

Invariants enforced:
    - Deficiencies are never auto-resolved.  Re-marking a failed item as
      pass leaves its deficiency open until ``resolve_deficiency`` runs.
    - Resolution requires photo proof.
    - A resolved deficiency is final.

Failure modes:
    - DeficiencyNotFoundError: Unknown deficiency id.
    - DeficiencyAlreadyResolvedError: Status change on a resolved record.
    - ResolutionPhotoRequiredError: Resolve without a photo.
"""

from typing import Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from gatecheck_kernel.domain.clock import Clock, SystemClock
from gatecheck_kernel.domain.gate_check import (
    TRANSITION_LABELS,
    Deficiency,
    DeficiencySeverity,
    DeficiencyStatus,
    GateCheck,
    GateCheckItem,
)
from gatecheck_kernel.domain.phase_flow import TRANSITION_GATING_PHASE
from gatecheck_kernel.exceptions import (
    DeficiencyAlreadyResolvedError,
    DeficiencyNotFoundError,
    ResolutionPhotoRequiredError,
)
from gatecheck_kernel.logging_config import get_logger
from gatecheck_kernel.models.deficiency import DeficiencyModel
from gatecheck_kernel.services.base import BaseService

logger = get_logger("services.deficiency")


class DeficiencyLinker(Protocol):
    """Creates the corrective-action record for a failed blocking item."""

    def create_for_failed_item(
        self,
        gate_check: GateCheck,
        item: GateCheckItem,
        reported_by: UUID,
        notes: str | None,
        photo_url: str | None,
    ) -> UUID:
        ...

    def has_open_deficiency(self, deficiency_id: UUID | None) -> bool:
        ...


_MANUAL_STATUS_CHANGES: dict[DeficiencyStatus, frozenset[DeficiencyStatus]] = {
    DeficiencyStatus.OPEN: frozenset({DeficiencyStatus.IN_PROGRESS}),
    DeficiencyStatus.IN_PROGRESS: frozenset({DeficiencyStatus.OPEN}),
}


class DeficiencyService(BaseService[DeficiencyModel]):
    """
    Deficiency creation and lifecycle.

    Contract:
        Flushes within the caller's transaction; returns frozen
        ``Deficiency`` records or ids.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def create_for_failed_item(
        self,
        gate_check: GateCheck,
        item: GateCheckItem,
        reported_by: UUID,
        notes: str | None = None,
        photo_url: str | None = None,
    ) -> UUID:
        """
        Create an open, blocking deficiency for a failed checklist item.

        The deficiency is filed against the transition's gating phase, so
        ``can_advance_phase`` for that phase is blocked until it is resolved.
        """
        phase = TRANSITION_GATING_PHASE[gate_check.transition]
        model = DeficiencyModel(
            lot_id=gate_check.lot_id,
            phase_id=phase.value,
            gate_check_id=gate_check.id,
            gate_check_item_id=item.id,
            title=f"Gate Check: {item.item_label}",
            description=notes or (
                f"Failed during {TRANSITION_LABELS[gate_check.transition]} "
                f"gate check (round {gate_check.round_number})"
            ),
            severity=DeficiencySeverity.MEDIUM.value,
            blocking=True,
            status=DeficiencyStatus.OPEN.value,
            photo_url=photo_url,
            reported_by=reported_by,
            reported_at=self._clock.now(),
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "deficiency_created",
            extra={
                "deficiency_id": str(model.id),
                "lot_id": str(gate_check.lot_id),
                "gate_check_id": str(gate_check.id),
                "item_code": item.item_code,
                "phase_id": phase.value,
            },
        )
        return model.id

    def has_open_deficiency(self, deficiency_id: UUID | None) -> bool:
        """True if ``deficiency_id`` refers to an unresolved deficiency."""
        if deficiency_id is None:
            return False
        model = self.session.get(DeficiencyModel, deficiency_id)
        return model is not None and model.status != DeficiencyStatus.RESOLVED.value

    def _load(self, deficiency_id: UUID) -> DeficiencyModel:
        model = self.session.get(DeficiencyModel, deficiency_id, with_for_update=True)
        if model is None:
            raise DeficiencyNotFoundError(str(deficiency_id))
        return model

    def resolve_deficiency(
        self,
        deficiency_id: UUID,
        resolved_by: UUID,
        resolved_photo: str | None,
        resolution_note: str | None = None,
    ) -> Deficiency:
        """
        Mark a deficiency resolved with photo proof.

        Raises:
            DeficiencyNotFoundError: Unknown id.
            DeficiencyAlreadyResolvedError: Already resolved.
            ResolutionPhotoRequiredError: ``resolved_photo`` is empty.
        """
        model = self._load(deficiency_id)
        if model.status == DeficiencyStatus.RESOLVED.value:
            raise DeficiencyAlreadyResolvedError(str(deficiency_id))
        if not resolved_photo:
            raise ResolutionPhotoRequiredError(str(deficiency_id))

        model.status = DeficiencyStatus.RESOLVED.value
        model.resolved_by = resolved_by
        model.resolved_at = self._clock.now()
        model.resolved_photo = resolved_photo
        model.resolution_note = resolution_note
        self.session.flush()

        logger.info(
            "deficiency_resolved",
            extra={
                "deficiency_id": str(deficiency_id),
                "lot_id": str(model.lot_id),
                "resolved_by": str(resolved_by),
            },
        )
        return model.to_dto()

    def update_deficiency_status(
        self,
        deficiency_id: UUID,
        status: DeficiencyStatus | str,
    ) -> Deficiency:
        """
        Move a deficiency between ``open`` and ``in_progress``.

        Resolution goes through ``resolve_deficiency`` only.

        Raises:
            ValueError: Unknown status, or ``resolved`` requested here.
            DeficiencyAlreadyResolvedError: The deficiency is resolved.
        """
        target = DeficiencyStatus(status)
        model = self._load(deficiency_id)
        current = DeficiencyStatus(model.status)

        if current == DeficiencyStatus.RESOLVED:
            raise DeficiencyAlreadyResolvedError(str(deficiency_id))
        if target == current:
            return model.to_dto()
        if target not in _MANUAL_STATUS_CHANGES[current]:
            raise ValueError(
                f"Deficiency status cannot change from {current.value} to "
                f"{target.value}; use resolve_deficiency to resolve"
            )

        model.status = target.value
        self.session.flush()

        logger.info(
            "deficiency_status_changed",
            extra={
                "deficiency_id": str(deficiency_id),
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        return model.to_dto()
