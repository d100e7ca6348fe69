"""
DeficiencySelector -- read access to corrective-action records.
"""

from uuid import UUID

from sqlalchemy import func, select

from gatecheck_kernel.domain.gate_check import Deficiency, DeficiencyStatus
from gatecheck_kernel.domain.phase_flow import PhaseId, parse_phase
from gatecheck_kernel.exceptions import DeficiencyNotFoundError
from gatecheck_kernel.models.deficiency import DeficiencyModel
from gatecheck_kernel.selectors.base import BaseSelector


class DeficiencySelector(BaseSelector[DeficiencyModel]):
    """Queries over deficiencies for a lot."""

    def get_deficiency(self, deficiency_id: UUID) -> Deficiency:
        model = self.session.get(DeficiencyModel, deficiency_id)
        if model is None:
            raise DeficiencyNotFoundError(str(deficiency_id))
        return model.to_dto()

    def list_deficiencies(
        self,
        lot_id: UUID,
        status: DeficiencyStatus | str | None = None,
        blocking: bool | None = None,
    ) -> list[Deficiency]:
        """Deficiencies for a lot, newest first, optionally filtered."""
        stmt = select(DeficiencyModel).where(DeficiencyModel.lot_id == lot_id)
        if status is not None:
            stmt = stmt.where(DeficiencyModel.status == DeficiencyStatus(status).value)
        if blocking is not None:
            stmt = stmt.where(DeficiencyModel.blocking == blocking)
        stmt = stmt.order_by(DeficiencyModel.reported_at.desc())
        return [m.to_dto() for m in self.session.execute(stmt).scalars().all()]

    def list_for_gate_check(self, gate_check_id: UUID) -> list[Deficiency]:
        models = self.session.execute(
            select(DeficiencyModel)
            .where(DeficiencyModel.gate_check_id == gate_check_id)
            .order_by(DeficiencyModel.reported_at)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def count_open_blocking(
        self,
        lot_id: UUID,
        phase_id: PhaseId | str | None = None,
    ) -> int:
        """Unresolved blocking deficiencies for a lot (and phase, if given)."""
        stmt = select(func.count(DeficiencyModel.id)).where(
            DeficiencyModel.lot_id == lot_id,
            DeficiencyModel.blocking.is_(True),
            DeficiencyModel.status != DeficiencyStatus.RESOLVED.value,
        )
        if phase_id is not None:
            stmt = stmt.where(DeficiencyModel.phase_id == parse_phase(phase_id).value)
        return self.session.execute(stmt).scalar_one()

    def open_blocking_by_phase(self, lot_id: UUID) -> dict[str, int]:
        rows = self.session.execute(
            select(DeficiencyModel.phase_id, func.count(DeficiencyModel.id))
            .where(
                DeficiencyModel.lot_id == lot_id,
                DeficiencyModel.blocking.is_(True),
                DeficiencyModel.status != DeficiencyStatus.RESOLVED.value,
            )
            .group_by(DeficiencyModel.phase_id)
        ).all()
        return {(phase or "unassigned"): count for phase, count in rows}
