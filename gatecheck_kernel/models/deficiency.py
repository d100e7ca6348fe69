"""
Module: gatecheck_kernel.models.deficiency
Responsibility: ORM persistence for corrective-action records raised by
    failed blocking checklist items.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - Resolution proof: a resolved deficiency carries resolved_by,
      resolved_at and resolved_photo (check constraint).
    - gate_check_item_id is a plain reference, not a foreign key: the item
      points back at the deficiency, and a cycle between the two tables is
      avoided.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gatecheck_kernel.db.base import Base, UUIDString
from gatecheck_kernel.domain.gate_check import (
    Deficiency,
    DeficiencySeverity,
    DeficiencyStatus,
)

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in DeficiencyStatus)
_SEVERITY_VALUES = ", ".join(f"'{s.value}'" for s in DeficiencySeverity)


class DeficiencyModel(Base):
    """Persistent deficiency (corrective action) for a lot."""

    __tablename__ = "deficiencies"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_deficiencies_valid_status",
        ),
        CheckConstraint(
            f"severity IN ({_SEVERITY_VALUES})",
            name="ck_deficiencies_valid_severity",
        ),
        CheckConstraint(
            "status <> 'resolved' OR "
            "(resolved_by IS NOT NULL AND resolved_at IS NOT NULL "
            "AND resolved_photo IS NOT NULL)",
            name="ck_deficiencies_resolution_proof",
        ),
        Index("ix_deficiencies_lot_status", "lot_id", "status"),
        Index("ix_deficiencies_lot_phase_blocking", "lot_id", "phase_id", "blocking"),
    )

    lot_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    phase_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    gate_check_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("gate_checks.id"), nullable=True,
    )
    gate_check_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DeficiencySeverity.MEDIUM.value,
    )
    blocking: Mapped[bool] = mapped_column(nullable=False, default=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DeficiencyStatus.OPEN.value,
    )
    photo_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    reported_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    reported_at: Mapped[datetime] = mapped_column(nullable=False)
    resolved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolution_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_photo: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<Deficiency {self.id} lot={self.lot_id} status={self.status}>"

    def to_dto(self) -> Deficiency:
        return Deficiency(
            id=self.id,
            lot_id=self.lot_id,
            title=self.title,
            severity=DeficiencySeverity(self.severity),
            blocking=self.blocking,
            status=DeficiencyStatus(self.status),
            reported_by=self.reported_by,
            reported_at=self.reported_at,
            phase_id=self.phase_id,
            gate_check_id=self.gate_check_id,
            gate_check_item_id=self.gate_check_item_id,
            description=self.description,
            photo_url=self.photo_url,
            resolved_by=self.resolved_by,
            resolved_at=self.resolved_at,
            resolution_note=self.resolution_note,
            resolved_photo=self.resolved_photo,
        )
