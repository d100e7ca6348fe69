"""
Typed Exception Hierarchy for the Gate Check Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The foreman console and the field-inspector app act on the same gate check
from different devices.  They need to react to errors precisely:

  - IncompleteChecklistError  -> "finish remaining items" (actionable)
  - AlreadyInProgressError    -> re-fetch and resume the existing check
  - everything else           -> generic failure message

Callers must catch by TYPE, never by parsing the message.  Every exception
carries a class-level ``code`` (machine-readable, API-safe) and stores its
context as attributes.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    GateCheckKernelError (base)
    |
    +-- GateCheckError
    |   +-- InvalidTransitionError
    |   +-- InvalidPhaseError
    |   +-- AlreadyInProgressError
    |   +-- GateCheckClosedError
    |   +-- IncompleteChecklistError
    |   +-- InvalidResultError
    |   +-- GateCheckNotFoundError
    |   +-- GateCheckItemNotFoundError
    |   +-- TemplateNotFoundError
    |
    +-- DeficiencyError
    |   +-- DeficiencyLinkFailedError
    |   +-- DeficiencyNotFoundError
    |   +-- DeficiencyAlreadyResolvedError
    |   +-- ResolutionPhotoRequiredError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                            | When Raised
-------------|---------------------------------|-------------------------------------
Gate check   | INVALID_TRANSITION              | Unknown transition value
             | GATE_CHECK_ALREADY_IN_PROGRESS  | Start while a round is in progress
             | GATE_CHECK_CLOSED               | Mutating a passed/failed/cancelled check
             | INCOMPLETE_CHECKLIST            | Completing with pending items
             | INVALID_RESULT                  | Result not in pass/fail/na
             | GATE_CHECK_NOT_FOUND            | Gate check id doesn't exist
             | GATE_CHECK_ITEM_NOT_FOUND       | Item id doesn't exist
             | TEMPLATE_NOT_FOUND              | No template items for a transition
-------------|---------------------------------|-------------------------------------
Deficiency   | DEFICIENCY_LINK_FAILED          | Deficiency creation failed
             | DEFICIENCY_NOT_FOUND            | Deficiency id doesn't exist
             | DEFICIENCY_ALREADY_RESOLVED     | Changing a resolved deficiency
             | RESOLUTION_PHOTO_REQUIRED       | Resolving without photo proof
-------------|---------------------------------|-------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT        | Concurrent modification detected
-------------|---------------------------------|-------------------------------------
Immutability | IMMUTABILITY_VIOLATION          | Modifying a closed gate check at ORM level

===============================================================================
"""


class GateCheckKernelError(Exception):
    """
    Base exception for all gate check kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "GATECHECK_KERNEL_ERROR"


# Gate check exceptions


class GateCheckError(GateCheckKernelError):
    """Base exception for gate check lifecycle errors."""

    code: str = "GATE_CHECK_ERROR"


class InvalidTransitionError(GateCheckError):
    """Transition value is not one of the known phase boundaries."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, transition: str):
        self.transition = transition
        super().__init__(f"Invalid gate check transition: {transition!r}")


class InvalidPhaseError(GateCheckError):
    """Phase id is not one of the lot construction phases."""

    code: str = "INVALID_PHASE"

    def __init__(self, phase_id: str):
        self.phase_id = phase_id
        super().__init__(f"Invalid construction phase: {phase_id!r}")


class AlreadyInProgressError(GateCheckError):
    """
    A gate check for the same lot and transition is already in progress.

    The caller should re-fetch the existing record and resume it rather
    than start a new one.
    """

    code: str = "GATE_CHECK_ALREADY_IN_PROGRESS"

    def __init__(
        self,
        lot_id: str,
        transition: str,
        gate_check_id: str | None = None,
    ):
        self.lot_id = lot_id
        self.transition = transition
        self.gate_check_id = gate_check_id
        super().__init__(
            f"Gate check {transition} for lot {lot_id} is already in progress"
            + (f" ({gate_check_id})" if gate_check_id else "")
        )


class GateCheckClosedError(GateCheckError):
    """Attempted to mutate a gate check that is no longer in progress."""

    code: str = "GATE_CHECK_CLOSED"

    def __init__(self, gate_check_id: str, status: str):
        self.gate_check_id = gate_check_id
        self.status = status
        super().__init__(
            f"Gate check {gate_check_id} is closed (status={status})"
        )


class IncompleteChecklistError(GateCheckError):
    """
    Completion requested while at least one item is still pending.

    This is the only user-actionable error: the inspector finishes the
    remaining items and completes again.
    """

    code: str = "INCOMPLETE_CHECKLIST"

    def __init__(self, gate_check_id: str, pending_codes: list[str]):
        self.gate_check_id = gate_check_id
        self.pending_codes = pending_codes
        super().__init__(
            f"Cannot complete gate check {gate_check_id}: "
            f"{len(pending_codes)} item(s) still pending "
            f"({', '.join(pending_codes)})"
        )


class InvalidResultError(GateCheckError):
    """Item result is not one of pass, fail or na."""

    code: str = "INVALID_RESULT"

    def __init__(self, result: object):
        self.result = str(result)
        super().__init__(
            f"Invalid gate check item result: {result!r} "
            "(expected one of: pass, fail, na)"
        )


class GateCheckNotFoundError(GateCheckError):
    """Gate check with given ID was not found."""

    code: str = "GATE_CHECK_NOT_FOUND"

    def __init__(self, gate_check_id: str):
        self.gate_check_id = gate_check_id
        super().__init__(f"Gate check not found: {gate_check_id}")


class GateCheckItemNotFoundError(GateCheckError):
    """Gate check item with given ID was not found."""

    code: str = "GATE_CHECK_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Gate check item not found: {item_id}")


class TemplateNotFoundError(GateCheckError):
    """No checklist template items are seeded for a transition."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, transition: str):
        self.transition = transition
        super().__init__(f"No template found for transition: {transition}")


# Deficiency exceptions


class DeficiencyError(GateCheckKernelError):
    """Base exception for deficiency tracking errors."""

    code: str = "DEFICIENCY_ERROR"


class DeficiencyLinkFailedError(DeficiencyError):
    """
    Creating the deficiency for a failed blocking item failed.

    The item update is abandoned together with the deficiency: an item is
    never left ``fail`` without its link.
    """

    code: str = "DEFICIENCY_LINK_FAILED"

    def __init__(self, item_id: str, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(
            f"Deficiency link failed for gate check item {item_id}: {reason}"
        )


class DeficiencyNotFoundError(DeficiencyError):
    """Deficiency with given ID was not found."""

    code: str = "DEFICIENCY_NOT_FOUND"

    def __init__(self, deficiency_id: str):
        self.deficiency_id = deficiency_id
        super().__init__(f"Deficiency not found: {deficiency_id}")


class DeficiencyAlreadyResolvedError(DeficiencyError):
    """Attempted to change a deficiency that is already resolved."""

    code: str = "DEFICIENCY_ALREADY_RESOLVED"

    def __init__(self, deficiency_id: str):
        self.deficiency_id = deficiency_id
        super().__init__(f"Deficiency {deficiency_id} is already resolved")


class ResolutionPhotoRequiredError(DeficiencyError):
    """Resolving a deficiency requires a photo proving the fix."""

    code: str = "RESOLUTION_PHOTO_REQUIRED"

    def __init__(self, deficiency_id: str):
        self.deficiency_id = deficiency_id
        super().__init__(
            f"Deficiency {deficiency_id} cannot be resolved without a photo"
        )


# Concurrency-related exceptions


class ConcurrencyError(GateCheckKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability-related exceptions


class ImmutabilityError(GateCheckKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Gate checks are immutable once completed_at is set and are never
    deleted; their items freeze with them.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
