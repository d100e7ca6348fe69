"""
Gate check domain types (``gatecheck_kernel.domain.gate_check``).

Responsibility
--------------
Pure value objects and rules for the phase transition gate check engine.
Defines the transition enumeration, the gate check lifecycle state machine,
item results, the frozen records returned across the repository boundary,
and the pass/fail derivation rule.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``models/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Lifecycle state machine -- ``STATUS_TRANSITIONS`` defines the only valid
  status changes.  Terminal states have no outgoing edges; a re-inspection
  is a new record, never a reopened one.
* Settable results -- an item can only be set to ``pass``, ``fail`` or
  ``na``.  ``pending`` is the creation value and is never set again.
* Derivation -- a completed gate check is ``failed`` iff at least one
  blocking item has result ``fail``; non-blocking failures never fail it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable
from uuid import UUID

from gatecheck_kernel.exceptions import InvalidResultError, InvalidTransitionError


# =========================================================================
# Transitions
# =========================================================================


class GateCheckTransition(str, Enum):
    """Phase boundaries a lot must pass an inspection gate to cross."""

    FRAMING_TO_ROOFING = "framing_to_roofing"
    ROOFING_TO_TRADES = "roofing_to_trades"
    TRADES_TO_BACKFRAME = "trades_to_backframe"
    BACKFRAME_TO_FINAL = "backframe_to_final"


TRANSITION_LABELS: dict[GateCheckTransition, str] = {
    GateCheckTransition.FRAMING_TO_ROOFING: "Framing → Roofing",
    GateCheckTransition.ROOFING_TO_TRADES: "Roofing → Trades",
    GateCheckTransition.TRADES_TO_BACKFRAME: "Trades → Backframe",
    GateCheckTransition.BACKFRAME_TO_FINAL: "Backframe → Final",
}


def parse_transition(value: GateCheckTransition | str) -> GateCheckTransition:
    """Coerce a transition value, raising InvalidTransitionError if unknown."""
    if isinstance(value, GateCheckTransition):
        return value
    try:
        return GateCheckTransition(value)
    except ValueError:
        raise InvalidTransitionError(str(value)) from None


# =========================================================================
# Gate Check Status Lifecycle
# =========================================================================


class GateCheckStatus(str, Enum):
    """Gate check lifecycle states.

    ``not_started`` is not a stored status: it is the absence of a record.
    """

    IN_PROGRESS = "in_progress"
    PASSED = "passed"
    FAILED = "failed"
    CANCELLED = "cancelled"


NOT_STARTED = "not_started"

STATUS_TRANSITIONS: dict[GateCheckStatus, frozenset[GateCheckStatus]] = {
    GateCheckStatus.IN_PROGRESS: frozenset({
        GateCheckStatus.PASSED,
        GateCheckStatus.FAILED,
        GateCheckStatus.CANCELLED,
    }),
    GateCheckStatus.PASSED: frozenset(),
    GateCheckStatus.FAILED: frozenset(),
    GateCheckStatus.CANCELLED: frozenset(),
}

TERMINAL_GATE_CHECK_STATUSES: frozenset[GateCheckStatus] = frozenset({
    GateCheckStatus.PASSED,
    GateCheckStatus.FAILED,
    GateCheckStatus.CANCELLED,
})


# =========================================================================
# Item Results
# =========================================================================


class GateCheckResult(str, Enum):
    """Result of a single checklist item."""

    PENDING = "pending"
    PASS = "pass"
    FAIL = "fail"
    NA = "na"


SETTABLE_RESULTS: frozenset[GateCheckResult] = frozenset({
    GateCheckResult.PASS,
    GateCheckResult.FAIL,
    GateCheckResult.NA,
})


def parse_result(value: GateCheckResult | str) -> GateCheckResult:
    """Coerce an item result, raising InvalidResultError unless pass/fail/na."""
    try:
        result = GateCheckResult(value)
    except ValueError:
        raise InvalidResultError(value) from None
    if result not in SETTABLE_RESULTS:
        raise InvalidResultError(value)
    return result


# =========================================================================
# Deficiencies
# =========================================================================


class DeficiencyStatus(str, Enum):
    """Corrective-action lifecycle states."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class DeficiencySeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# =========================================================================
# Records
# =========================================================================


@dataclass(frozen=True)
class GateCheckTemplateItem:
    """One checklist line of a transition's template. Read-only."""

    transition: GateCheckTransition
    item_code: str
    item_label: str
    is_blocking: bool
    sort_order: int = 0


@dataclass(frozen=True)
class GateCheckItem:
    """Immutable snapshot of a gate check item.

    ``is_blocking`` and ``sort_order`` are copied from the template when the
    gate check is started, so later template edits never change an
    in-flight or historical outcome.
    """

    id: UUID
    gate_check_id: UUID
    item_code: str
    item_label: str
    is_blocking: bool
    sort_order: int
    result: GateCheckResult = GateCheckResult.PENDING
    notes: str | None = None
    photo_url: str | None = None
    deficiency_id: UUID | None = None
    evaluated_by: UUID | None = None
    evaluated_at: datetime | None = None


@dataclass(frozen=True)
class GateCheck:
    """Immutable snapshot of a gate check header."""

    id: UUID
    lot_id: UUID
    transition: GateCheckTransition
    status: GateCheckStatus
    round_number: int
    started_by: UUID
    started_at: datetime
    completed_at: datetime | None = None
    released_at: datetime | None = None
    cancelled_by: UUID | None = None
    cancel_reason: str | None = None
    version: int = 1

    @property
    def is_closed(self) -> bool:
        return self.status in TERMINAL_GATE_CHECK_STATUSES


@dataclass(frozen=True)
class GateCheckAggregate:
    """A gate check with its items in creation order."""

    gate_check: GateCheck
    items: tuple[GateCheckItem, ...]

    def item_by_code(self, item_code: str) -> GateCheckItem:
        for item in self.items:
            if item.item_code == item_code:
                return item
        raise KeyError(item_code)


@dataclass(frozen=True)
class Deficiency:
    """Immutable snapshot of a corrective-action record."""

    id: UUID
    lot_id: UUID
    title: str
    severity: DeficiencySeverity
    blocking: bool
    status: DeficiencyStatus
    reported_by: UUID
    reported_at: datetime
    phase_id: str | None = None
    gate_check_id: UUID | None = None
    gate_check_item_id: UUID | None = None
    description: str | None = None
    photo_url: str | None = None
    resolved_by: UUID | None = None
    resolved_at: datetime | None = None
    resolution_note: str | None = None
    resolved_photo: str | None = None


@dataclass(frozen=True)
class GateCheckSummary:
    """Counts behind the inspector's result screen."""

    total: int
    passed: int
    failed: int
    na: int
    pending: int
    failed_blocking: tuple[str, ...]
    failed_non_blocking: tuple[str, ...]

    @property
    def evaluated(self) -> int:
        return self.total - self.pending

    @property
    def progress_ratio(self) -> float:
        if self.total == 0:
            return 0.0
        return self.evaluated / self.total

    @property
    def is_complete(self) -> bool:
        return self.pending == 0


# =========================================================================
# Rules
# =========================================================================


def pending_item_codes(items: Iterable[GateCheckItem]) -> list[str]:
    """Codes of items still awaiting a result, in item order."""
    return [i.item_code for i in items if i.result == GateCheckResult.PENDING]


def derive_outcome(items: Iterable[GateCheckItem]) -> GateCheckStatus:
    """Derive the outcome of a fully evaluated checklist.

    ``failed`` iff any blocking item failed; otherwise ``passed``, however
    many non-blocking items failed.  Callers must check for pending items
    first: the rule is only defined for complete checklists.
    """
    for item in items:
        if item.is_blocking and item.result == GateCheckResult.FAIL:
            return GateCheckStatus.FAILED
    return GateCheckStatus.PASSED


def summarize_gate_check(aggregate: GateCheckAggregate) -> GateCheckSummary:
    items = aggregate.items
    failed = [i for i in items if i.result == GateCheckResult.FAIL]
    return GateCheckSummary(
        total=len(items),
        passed=sum(1 for i in items if i.result == GateCheckResult.PASS),
        failed=len(failed),
        na=sum(1 for i in items if i.result == GateCheckResult.NA),
        pending=len(pending_item_codes(items)),
        failed_blocking=tuple(i.item_code for i in failed if i.is_blocking),
        failed_non_blocking=tuple(i.item_code for i in failed if not i.is_blocking),
    )


def display_status(aggregate: GateCheckAggregate | None) -> str:
    """Status shown to users; ``not_started`` when no round exists."""
    if aggregate is None:
        return NOT_STARTED
    return aggregate.gate_check.status.value
