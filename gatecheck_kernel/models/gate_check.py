"""
Module: gatecheck_kernel.models.gate_check
Responsibility: ORM persistence for checklist templates, gate checks and
    gate check items.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - One in-progress round per (lot_id, transition): partial unique index
      ``ix_gate_checks_one_in_progress``; the service checks first and
      translates a lost race into AlreadyInProgressError.
    - Round history: UNIQUE(lot_id, transition, round_number).  A redo is a
      new row with the next round number.
    - Template identity: UNIQUE(transition, item_code).
    - One item per template line: UNIQUE(gate_check_id, item_code).
    - Per-record serialization: ``version`` is the mapper version counter;
      every item update touches the parent row so a stale writer fails.

Failure modes:
    - IntegrityError on a duplicate in-progress round or template line.
    - StaleDataError on a concurrent write to the same gate check.
    - ImmutabilityViolationError (db/immutability.py) on UPDATE of a closed
      gate check or its items, and on any DELETE.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gatecheck_kernel.db.base import Base, UUIDString
from gatecheck_kernel.domain.gate_check import (
    GateCheck,
    GateCheckAggregate,
    GateCheckItem,
    GateCheckResult,
    GateCheckStatus,
    GateCheckTemplateItem,
    GateCheckTransition,
)

_TRANSITION_VALUES = ", ".join(f"'{t.value}'" for t in GateCheckTransition)
_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in GateCheckStatus)
_RESULT_VALUES = ", ".join(f"'{r.value}'" for r in GateCheckResult)
_IN_PROGRESS = text("status = 'in_progress'")


class GateCheckTemplateModel(Base):
    """One line of a transition's checklist. Seeded from configuration."""

    __tablename__ = "gate_check_templates"

    __table_args__ = (
        UniqueConstraint(
            "transition", "item_code",
            name="uq_gate_check_templates_transition_code",
        ),
        CheckConstraint(
            f"transition IN ({_TRANSITION_VALUES})",
            name="ck_gate_check_templates_transition",
        ),
        Index("ix_gate_check_templates_transition_order", "transition", "sort_order"),
    )

    transition: Mapped[str] = mapped_column(String(50), nullable=False)
    item_code: Mapped[str] = mapped_column(String(50), nullable=False)
    item_label: Mapped[str] = mapped_column(String(300), nullable=False)
    is_blocking: Mapped[bool] = mapped_column(nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<GateCheckTemplate {self.transition}/{self.item_code} "
            f"blocking={self.is_blocking}>"
        )

    def to_dto(self) -> GateCheckTemplateItem:
        return GateCheckTemplateItem(
            transition=GateCheckTransition(self.transition),
            item_code=self.item_code,
            item_label=self.item_label,
            is_blocking=self.is_blocking,
            sort_order=self.sort_order,
        )


class GateCheckModel(Base):
    """Persistent gate check header.

    Contract:
        ``status`` moves in_progress -> passed | failed | cancelled only.
        Rows are never deleted and freeze once ``completed_at`` is set.
    """

    __tablename__ = "gate_checks"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_gate_checks_valid_status",
        ),
        CheckConstraint(
            f"transition IN ({_TRANSITION_VALUES})",
            name="ck_gate_checks_transition",
        ),
        UniqueConstraint(
            "lot_id", "transition", "round_number",
            name="uq_gate_checks_round",
        ),
        Index(
            "ix_gate_checks_one_in_progress",
            "lot_id", "transition",
            unique=True,
            postgresql_where=_IN_PROGRESS,
            sqlite_where=_IN_PROGRESS,
        ),
        Index("ix_gate_checks_lot_started", "lot_id", "started_at"),
        Index("ix_gate_checks_status_started", "status", "started_at"),
    )

    lot_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    transition: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GateCheckStatus.IN_PROGRESS.value,
    )
    round_number: Mapped[int] = mapped_column(nullable=False, default=1)
    started_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    started_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    items: Mapped[list["GateCheckItemModel"]] = relationship(
        "GateCheckItemModel",
        back_populates="gate_check",
        order_by="GateCheckItemModel.sort_order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<GateCheck {self.id} lot={self.lot_id} "
            f"{self.transition} round={self.round_number} status={self.status}>"
        )

    def to_dto(self) -> GateCheck:
        return GateCheck(
            id=self.id,
            lot_id=self.lot_id,
            transition=GateCheckTransition(self.transition),
            status=GateCheckStatus(self.status),
            round_number=self.round_number,
            started_by=self.started_by,
            started_at=self.started_at,
            completed_at=self.completed_at,
            released_at=self.released_at,
            cancelled_by=self.cancelled_by,
            cancel_reason=self.cancel_reason,
            version=self.version,
        )

    def to_aggregate(self) -> GateCheckAggregate:
        return GateCheckAggregate(
            gate_check=self.to_dto(),
            items=tuple(item.to_dto() for item in self.items),
        )


class GateCheckItemModel(Base):
    """Persistent checklist item owned by one gate check."""

    __tablename__ = "gate_check_items"

    __table_args__ = (
        UniqueConstraint(
            "gate_check_id", "item_code",
            name="uq_gate_check_items_code",
        ),
        CheckConstraint(
            f"result IN ({_RESULT_VALUES})",
            name="ck_gate_check_items_valid_result",
        ),
        Index("ix_gate_check_items_gate_check", "gate_check_id", "sort_order"),
    )

    gate_check_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("gate_checks.id"), nullable=False,
    )
    item_code: Mapped[str] = mapped_column(String(50), nullable=False)
    item_label: Mapped[str] = mapped_column(String(300), nullable=False)
    is_blocking: Mapped[bool] = mapped_column(nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(nullable=False, default=0)
    result: Mapped[str] = mapped_column(
        String(10), nullable=False, default=GateCheckResult.PENDING.value,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    deficiency_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("deficiencies.id"), nullable=True,
    )
    evaluated_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    evaluated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    gate_check: Mapped["GateCheckModel"] = relationship(
        "GateCheckModel", back_populates="items",
    )

    def __repr__(self) -> str:
        return f"<GateCheckItem {self.item_code} result={self.result}>"

    def to_dto(self) -> GateCheckItem:
        return GateCheckItem(
            id=self.id,
            gate_check_id=self.gate_check_id,
            item_code=self.item_code,
            item_label=self.item_label,
            is_blocking=self.is_blocking,
            sort_order=self.sort_order,
            result=GateCheckResult(self.result),
            notes=self.notes,
            photo_url=self.photo_url,
            deficiency_id=self.deficiency_id,
            evaluated_by=self.evaluated_by,
            evaluated_at=self.evaluated_at,
        )
