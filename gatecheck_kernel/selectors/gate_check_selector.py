"""
GateCheckSelector -- the gate check repository read path.

Responsibility:
    Retrieval of checklist templates and gate check aggregates (a gate
    check plus its items), including "latest round per (lot, transition)"
    semantics and the phase-advance view built on top of it.

Invariants enforced:
    - Latest = highest round_number for the pair.  Callers must handle None:
      no default record exists before a check is started.
    - Items are returned in template definition order.
    - Aggregate lookups bypass the identity map (populate_existing) so a
      long-lived session sees writes committed by other clients.
"""

from uuid import UUID

from sqlalchemy import select

from gatecheck_kernel.domain.gate_check import (
    GateCheck,
    GateCheckAggregate,
    GateCheckItem,
    GateCheckStatus,
    GateCheckTemplateItem,
    GateCheckTransition,
    parse_transition,
)
from gatecheck_kernel.domain.phase_flow import (
    LotPhaseFlowStatus,
    PhaseAdvanceCheck,
    PhaseId,
    parse_phase,
    required_transition,
)
from gatecheck_kernel.exceptions import (
    GateCheckItemNotFoundError,
    GateCheckNotFoundError,
)
from gatecheck_kernel.models.gate_check import (
    GateCheckItemModel,
    GateCheckModel,
    GateCheckTemplateModel,
)
from gatecheck_kernel.selectors.base import BaseSelector
from gatecheck_kernel.selectors.deficiency_selector import DeficiencySelector


class GateCheckSelector(BaseSelector[GateCheckModel]):
    """Read-only queries over templates, gate checks and their items."""

    def get_template_items(
        self, transition: GateCheckTransition | str,
    ) -> list[GateCheckTemplateItem]:
        """
        Checklist definition for a transition, in definition order.

        Raises:
            InvalidTransitionError: If ``transition`` is not a known value.
        """
        transition = parse_transition(transition)
        models = self.session.execute(
            select(GateCheckTemplateModel)
            .where(GateCheckTemplateModel.transition == transition.value)
            .order_by(GateCheckTemplateModel.sort_order, GateCheckTemplateModel.item_code)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def get_latest_gate_check(
        self,
        lot_id: UUID,
        transition: GateCheckTransition | str,
    ) -> GateCheckAggregate | None:
        """
        Most recent round for (lot_id, transition) with items, or None.

        Raises:
            InvalidTransitionError: If ``transition`` is not a known value.
        """
        transition = parse_transition(transition)
        model = self.session.execute(
            select(GateCheckModel)
            .where(
                GateCheckModel.lot_id == lot_id,
                GateCheckModel.transition == transition.value,
            )
            .order_by(GateCheckModel.round_number.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_aggregate() if model is not None else None

    def get_gate_check(self, gate_check_id: UUID) -> GateCheckAggregate:
        model = self.session.execute(
            select(GateCheckModel)
            .where(GateCheckModel.id == gate_check_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise GateCheckNotFoundError(str(gate_check_id))
        return model.to_aggregate()

    def get_item(self, item_id: UUID) -> GateCheckItem:
        model = self.session.get(GateCheckItemModel, item_id)
        if model is None:
            raise GateCheckItemNotFoundError(str(item_id))
        return model.to_dto()

    def get_in_progress(
        self,
        lot_id: UUID,
        transition: GateCheckTransition | str,
    ) -> GateCheck | None:
        transition = parse_transition(transition)
        model = self.session.execute(
            select(GateCheckModel).where(
                GateCheckModel.lot_id == lot_id,
                GateCheckModel.transition == transition.value,
                GateCheckModel.status == GateCheckStatus.IN_PROGRESS.value,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_gate_checks_by_lot(self, lot_id: UUID) -> list[GateCheck]:
        """All gate checks for a lot, newest first."""
        models = self.session.execute(
            select(GateCheckModel)
            .where(GateCheckModel.lot_id == lot_id)
            .order_by(
                GateCheckModel.started_at.desc(),
                GateCheckModel.round_number.desc(),
            )
        ).scalars().all()
        return [m.to_dto() for m in models]

    def list_rounds(
        self,
        lot_id: UUID,
        transition: GateCheckTransition | str,
    ) -> list[GateCheck]:
        """Inspection history for one transition, oldest round first."""
        transition = parse_transition(transition)
        models = self.session.execute(
            select(GateCheckModel)
            .where(
                GateCheckModel.lot_id == lot_id,
                GateCheckModel.transition == transition.value,
            )
            .order_by(GateCheckModel.round_number)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def get_lot_phase_flow_status(self, lot_id: UUID) -> LotPhaseFlowStatus:
        """Latest status per transition plus open blocking deficiencies per phase."""
        gate_check_status: dict[str, str] = {}
        for gc in sorted(
            self.list_gate_checks_by_lot(lot_id),
            key=lambda g: g.round_number,
            reverse=True,
        ):
            gate_check_status.setdefault(gc.transition.value, gc.status.value)

        return LotPhaseFlowStatus(
            lot_id=str(lot_id),
            gate_check_status=gate_check_status,
            blocking_by_phase=DeficiencySelector(self.session).open_blocking_by_phase(lot_id),
        )

    def can_advance_phase(
        self,
        lot_id: UUID,
        phase_id: PhaseId | str,
    ) -> PhaseAdvanceCheck:
        """
        Whether a lot may advance beyond ``phase_id``.

        Blocked by unresolved blocking deficiencies on the phase, and, where
        the phase is a gating phase, by the latest gate check not being
        ``passed``.
        """
        phase = parse_phase(phase_id)
        blockers: list[str] = []

        blocking_count = DeficiencySelector(self.session).count_open_blocking(lot_id, phase)
        if blocking_count > 0:
            blockers.append(
                f"{blocking_count} blocking item(s) unresolved on phase {phase.value}"
            )

        transition = required_transition(phase)
        if transition is not None:
            latest = self.get_latest_gate_check(lot_id, transition)
            if latest is None or latest.gate_check.status != GateCheckStatus.PASSED:
                blockers.append(f'Gate check "{transition.value}" not passed')

        return PhaseAdvanceCheck(
            lot_id=str(lot_id),
            phase_id=phase,
            can_advance=not blockers,
            blockers=tuple(blockers),
        )
