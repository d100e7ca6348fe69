"""
GateCheckService -- the gate check lifecycle engine.

Responsibility:
    Starts gate checks, records checklist item results, completes them
    with a derived pass/fail outcome, and cancels abandoned rounds.

Architecture position:
    Kernel > Services -- imperative shell.  Reads through GateCheckSelector,
    creates deficiencies through an injected DeficiencyLinker, and is driven
    by GateCheckOrchestrator in gatecheck_services/.

Invariants enforced:
    - At most one in_progress gate check per (lot_id, transition).  Checked
      here first; the partial unique index catches the lost race.
    - Item materialization: a started check owns exactly one pending item
      per template line, with is_blocking and sort_order copied over.
    - Completion gating: no pending items; outcome = failed iff a blocking
      item failed.
    - Closed checks (passed, failed, cancelled) are never mutated.
    - Per-record serialization: item updates and completion lock the parent
      row and bump its version counter.
    - Flush-only: never commits.  On the concurrent-start race the session
      is rolled back before AlreadyInProgressError is raised.

Failure modes:
    - InvalidTransitionError, InvalidResultError: bad input, nothing written.
    - AlreadyInProgressError: a round is already open for the pair.
    - TemplateNotFoundError: no checklist defined for the transition.
    - GateCheckClosedError: the gate check is no longer in_progress.
    - IncompleteChecklistError: completion with pending items.
    - DeficiencyLinkFailedError: the linker failed; the item is unchanged.
    - OptimisticLockError: a concurrent writer changed the gate check.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from gatecheck_kernel.domain.clock import Clock, SystemClock
from gatecheck_kernel.domain.gate_check import (
    STATUS_TRANSITIONS,
    GateCheckAggregate,
    GateCheckItem,
    GateCheckResult,
    GateCheckStatus,
    GateCheckTransition,
    derive_outcome,
    parse_result,
    parse_transition,
    pending_item_codes,
)
from gatecheck_kernel.exceptions import (
    AlreadyInProgressError,
    DeficiencyLinkFailedError,
    GateCheckClosedError,
    GateCheckItemNotFoundError,
    GateCheckNotFoundError,
    IncompleteChecklistError,
    TemplateNotFoundError,
)
from gatecheck_kernel.logging_config import get_logger
from gatecheck_kernel.models.gate_check import GateCheckItemModel, GateCheckModel
from gatecheck_kernel.selectors.gate_check_selector import GateCheckSelector
from gatecheck_kernel.services.base import BaseService
from gatecheck_kernel.services.deficiency_service import (
    DeficiencyLinker,
    DeficiencyService,
)

logger = get_logger("services.gate_check")

EXPIRED_REASON = "expired"


class GateCheckService(BaseService[GateCheckModel]):
    """
    Write side of the gate check engine.

    Contract:
        Every method validates all preconditions before mutating anything,
        flushes within the caller's transaction, and returns frozen records.

    Non-goals:
        - Does NOT commit -- GateCheckOrchestrator owns the transaction.
        - Does NOT resolve deficiencies; an item re-marked as pass keeps
          its deficiency link.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        linker: DeficiencyLinker | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._linker = linker or DeficiencyService(session, self._clock)
        self._selector = GateCheckSelector(session)

    # -----------------------------------------------------------------
    # Loading
    # -----------------------------------------------------------------

    def _lock_gate_check(self, gate_check_id: UUID) -> GateCheckModel:
        """Load a gate check with a row lock, refreshing any cached state."""
        model = self.session.execute(
            select(GateCheckModel)
            .where(GateCheckModel.id == gate_check_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise GateCheckNotFoundError(str(gate_check_id))
        return model

    @staticmethod
    def _require_open(model: GateCheckModel) -> None:
        if model.status != GateCheckStatus.IN_PROGRESS.value:
            raise GateCheckClosedError(str(model.id), model.status)

    def _touch(self, model: GateCheckModel, now: datetime) -> None:
        # Forces an UPDATE of the parent row so the version counter moves
        # even when the clock has not advanced.
        model.updated_at = now
        flag_modified(model, "updated_at")

    def _next_round(self, lot_id: UUID, transition: GateCheckTransition) -> int:
        current = self.session.execute(
            select(func.max(GateCheckModel.round_number)).where(
                GateCheckModel.lot_id == lot_id,
                GateCheckModel.transition == transition.value,
            )
        ).scalar_one()
        return (current or 0) + 1

    # -----------------------------------------------------------------
    # Start
    # -----------------------------------------------------------------

    def start_gate_check(
        self,
        lot_id: UUID,
        transition: GateCheckTransition | str,
        actor_id: UUID,
    ) -> GateCheckAggregate:
        """
        Open a new inspection round for (lot_id, transition).

        Returns:
            The created aggregate: status in_progress, one pending item per
            template line in template order.

        Raises:
            InvalidTransitionError: Unknown transition.
            AlreadyInProgressError: A round is already in progress.
            TemplateNotFoundError: The transition has no template items.
        """
        transition = parse_transition(transition)

        existing = self._selector.get_in_progress(lot_id, transition)
        if existing is not None:
            raise AlreadyInProgressError(
                str(lot_id), transition.value, str(existing.id),
            )

        templates = self._selector.get_template_items(transition)
        if not templates:
            raise TemplateNotFoundError(transition.value)

        now = self._clock.now()
        round_number = self._next_round(lot_id, transition)
        model = GateCheckModel(
            lot_id=lot_id,
            transition=transition.value,
            status=GateCheckStatus.IN_PROGRESS.value,
            round_number=round_number,
            started_by=actor_id,
            started_at=now,
            updated_at=now,
            items=[
                GateCheckItemModel(
                    item_code=t.item_code,
                    item_label=t.item_label,
                    is_blocking=t.is_blocking,
                    sort_order=t.sort_order,
                    result=GateCheckResult.PENDING.value,
                )
                for t in templates
            ],
        )
        self.session.add(model)

        try:
            self.session.flush()
        except IntegrityError as exc:
            # Concurrent start won the race
            self.session.rollback()
            logger.warning(
                "concurrent_gate_check_start_conflict",
                extra={"lot_id": str(lot_id), "transition": transition.value},
            )
            winner = self._selector.get_in_progress(lot_id, transition)
            raise AlreadyInProgressError(
                str(lot_id),
                transition.value,
                str(winner.id) if winner is not None else None,
            ) from exc

        logger.info(
            "gate_check_started",
            extra={
                "gate_check_id": str(model.id),
                "lot_id": str(lot_id),
                "transition": transition.value,
                "round_number": round_number,
                "item_count": len(templates),
            },
        )
        return model.to_aggregate()

    # -----------------------------------------------------------------
    # Item update
    # -----------------------------------------------------------------

    def update_gate_check_item(
        self,
        item_id: UUID,
        result: GateCheckResult | str,
        *,
        actor_id: UUID | None = None,
        notes: str | None = None,
        photo_url: str | None = None,
    ) -> GateCheckItem:
        """
        Record the inspector's result for one checklist item.

        A ``fail`` on a blocking item without an unresolved deficiency first
        creates one through the linker; the item is only changed once that
        succeeds.  Repeating the current result with no new notes or photo
        is a no-op.

        Raises:
            InvalidResultError: ``result`` is not pass, fail or na.
            GateCheckItemNotFoundError: Unknown item id.
            GateCheckClosedError: The parent gate check is closed.
            DeficiencyLinkFailedError: Deficiency creation failed.
        """
        new_result = parse_result(result)

        gate_check_id = self.session.execute(
            select(GateCheckItemModel.gate_check_id).where(
                GateCheckItemModel.id == item_id,
            )
        ).scalar_one_or_none()
        if gate_check_id is None:
            raise GateCheckItemNotFoundError(str(item_id))

        parent = self._lock_gate_check(gate_check_id)
        self._require_open(parent)
        item = next(i for i in parent.items if i.id == item_id)

        unchanged = (
            item.result == new_result.value
            and (notes is None or notes == item.notes)
            and (photo_url is None or photo_url == item.photo_url)
        )
        if unchanged:
            logger.debug(
                "gate_check_item_unchanged",
                extra={"item_id": str(item_id), "result": new_result.value},
            )
            return item.to_dto()

        deficiency_id = item.deficiency_id
        if (
            new_result == GateCheckResult.FAIL
            and item.is_blocking
            and not self._linker.has_open_deficiency(item.deficiency_id)
        ):
            deficiency_id = self._link_deficiency(
                parent, item, actor_id, notes, photo_url,
            )

        now = self._clock.now()
        previous = item.result
        item.result = new_result.value
        item.evaluated_by = actor_id
        item.evaluated_at = now
        if notes is not None:
            item.notes = notes
        if photo_url is not None:
            item.photo_url = photo_url
        item.deficiency_id = deficiency_id
        self._touch(parent, now)
        self._flush("GateCheck", parent.id)

        logger.info(
            "gate_check_item_updated",
            extra={
                "gate_check_id": str(parent.id),
                "item_id": str(item_id),
                "item_code": item.item_code,
                "from_result": previous,
                "to_result": new_result.value,
                "deficiency_id": str(deficiency_id) if deficiency_id else None,
            },
        )
        return item.to_dto()

    def _link_deficiency(
        self,
        parent: GateCheckModel,
        item: GateCheckItemModel,
        actor_id: UUID | None,
        notes: str | None,
        photo_url: str | None,
    ) -> UUID:
        try:
            return self._linker.create_for_failed_item(
                parent.to_dto(),
                item.to_dto(),
                actor_id or parent.started_by,
                notes,
                photo_url,
            )
        except DeficiencyLinkFailedError:
            raise
        except Exception as exc:
            logger.error(
                "deficiency_link_failed",
                extra={
                    "gate_check_id": str(parent.id),
                    "item_id": str(item.id),
                    "error": str(exc),
                },
            )
            raise DeficiencyLinkFailedError(str(item.id), str(exc)) from exc

    # -----------------------------------------------------------------
    # Completion and cancellation
    # -----------------------------------------------------------------

    def complete_gate_check(self, gate_check_id: UUID) -> GateCheckAggregate:
        """
        Close a fully evaluated gate check with its derived outcome.

        Sets ``released_at`` together with ``completed_at`` when the
        outcome is passed.

        Raises:
            GateCheckNotFoundError: Unknown id.
            GateCheckClosedError: Already closed.
            IncompleteChecklistError: Items are still pending.
        """
        model = self._lock_gate_check(gate_check_id)
        self._require_open(model)

        aggregate = model.to_aggregate()
        pending = pending_item_codes(aggregate.items)
        if pending:
            raise IncompleteChecklistError(str(gate_check_id), pending)

        outcome = derive_outcome(aggregate.items)
        current = GateCheckStatus(model.status)
        if outcome not in STATUS_TRANSITIONS[current]:
            raise GateCheckClosedError(str(gate_check_id), model.status)

        now = self._clock.now()
        model.status = outcome.value
        model.completed_at = now
        if outcome == GateCheckStatus.PASSED:
            model.released_at = now
        self._touch(model, now)
        self._flush("GateCheck", model.id)

        logger.info(
            "gate_check_completed",
            extra={
                "gate_check_id": str(model.id),
                "lot_id": str(model.lot_id),
                "transition": model.transition,
                "round_number": model.round_number,
                "outcome": outcome.value,
            },
        )
        return model.to_aggregate()

    def _cancel(
        self,
        model: GateCheckModel,
        actor_id: UUID | None,
        reason: str,
        when: datetime,
    ) -> None:
        model.status = GateCheckStatus.CANCELLED.value
        model.completed_at = when
        model.cancelled_by = actor_id
        model.cancel_reason = reason
        self._touch(model, when)

    def cancel_gate_check(
        self,
        gate_check_id: UUID,
        actor_id: UUID,
        reason: str,
    ) -> GateCheckAggregate:
        """
        Abandon an in-progress gate check.

        A cancelled round never counts as passed and frees the pair for a
        new ``start_gate_check``.

        Raises:
            GateCheckNotFoundError: Unknown id.
            GateCheckClosedError: Already closed.
        """
        model = self._lock_gate_check(gate_check_id)
        self._require_open(model)

        self._cancel(model, actor_id, reason, self._clock.now())
        self._flush("GateCheck", model.id)

        logger.info(
            "gate_check_cancelled",
            extra={
                "gate_check_id": str(model.id),
                "lot_id": str(model.lot_id),
                "transition": model.transition,
                "reason": reason,
            },
        )
        return model.to_aggregate()

    def expire_stale_gate_checks(
        self,
        as_of: datetime,
        timeout_hours: float,
    ) -> list[UUID]:
        """
        Cancel in-progress gate checks started more than ``timeout_hours``
        before ``as_of``.

        Returns:
            Ids of the expired gate checks.
        """
        if as_of.tzinfo is None:
            as_of = as_of.replace(tzinfo=timezone.utc)
        else:
            as_of = as_of.astimezone(timezone.utc)
        cutoff = as_of - timedelta(hours=timeout_hours)

        stale = self.session.execute(
            select(GateCheckModel)
            .where(
                GateCheckModel.status == GateCheckStatus.IN_PROGRESS.value,
                GateCheckModel.started_at < cutoff,
            )
            .order_by(GateCheckModel.started_at)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()

        expired: list[UUID] = []
        for model in stale:
            self._cancel(model, None, EXPIRED_REASON, as_of)
            self._flush("GateCheck", model.id)
            expired.append(model.id)
            logger.info(
                "gate_check_expired",
                extra={
                    "gate_check_id": str(model.id),
                    "lot_id": str(model.lot_id),
                    "transition": model.transition,
                },
            )

        return expired
