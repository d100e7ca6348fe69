"""
ORM-Level Immutability Enforcement for gate checks.

===============================================================================
WHY THIS EXISTS
===============================================================================

A completed gate check is the record that let a lot cross a phase boundary
(or stopped it).  The service layer already refuses to mutate closed
checks; these listeners catch any other Python/SQLAlchemy code path before
the SQL reaches the database.

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --------> ImmutabilityViolationError

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable                          | Why
----------------|-----------------------------------------|--------------------------------
GateCheck       | After status leaves in_progress         | Completed rounds are history
GateCheck       | ALWAYS for DELETE                       | Gate checks are never deleted
GateCheckItem   | When parent gate check is closed        | Items are part of the record
GateCheckItem   | ALWAYS for DELETE                       | Item set is fixed at start
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from gatecheck_kernel.domain.gate_check import TERMINAL_GATE_CHECK_STATUSES
from gatecheck_kernel.exceptions import ImmutabilityViolationError
from gatecheck_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_TERMINAL_VALUES = frozenset(s.value for s in TERMINAL_GATE_CHECK_STATUSES)


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> ImmutabilityViolationError:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_gate_check_immutability(mapper, connection, target):
    """
    Prevent updates to a gate check that was already closed.

    Closing itself (in_progress -> passed/failed/cancelled) is allowed: the
    old status in the attribute history is still in_progress.
    """
    status_history = get_history(target, "status")

    if status_history.deleted:
        was_closed = status_history.deleted[0] in _TERMINAL_VALUES
    elif not status_history.added:
        was_closed = target.status in _TERMINAL_VALUES
    else:
        was_closed = False

    if not was_closed:
        return

    for attr in inspect(target).attrs:
        if attr.history.has_changes():
            raise _blocked(
                "GateCheck", target.id, "UPDATE",
                f"Cannot modify field '{attr.key}' on closed gate check",
            )


def _check_gate_check_delete(mapper, connection, target):
    raise _blocked("GateCheck", target.id, "DELETE", "Gate checks are never deleted")


def _check_gate_check_item_immutability(mapper, connection, target):
    """Prevent updates to items whose gate check is closed."""
    parent = target.gate_check
    if parent is None:
        return
    parent_status = get_history(parent, "status")
    # Compare against the status the parent had before this flush
    status = parent_status.deleted[0] if parent_status.deleted else parent.status
    if status in _TERMINAL_VALUES:
        raise _blocked(
            "GateCheckItem", target.id, "UPDATE",
            "Gate check items cannot be modified after the gate check is closed",
        )


def _check_gate_check_item_delete(mapper, connection, target):
    raise _blocked(
        "GateCheckItem", target.id, "DELETE",
        "The item set of a gate check is fixed once created",
    )


_LISTENERS = (
    ("GateCheckModel", "before_update", _check_gate_check_immutability),
    ("GateCheckModel", "before_delete", _check_gate_check_delete),
    ("GateCheckItemModel", "before_update", _check_gate_check_item_immutability),
    ("GateCheckItemModel", "before_delete", _check_gate_check_item_delete),
)


def _models():
    from gatecheck_kernel.models.gate_check import GateCheckItemModel, GateCheckModel

    return {
        "GateCheckModel": GateCheckModel,
        "GateCheckItemModel": GateCheckItemModel,
    }


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners (idempotent).

    Call this during application initialization, after models are imported
    and before any database operations begin.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
