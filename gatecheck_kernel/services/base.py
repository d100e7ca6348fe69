"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service in the kernel.  All concrete services receive
    a SQLAlchemy ``Session`` and use ``session.flush()`` -- never
    ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit.  The one rollback is GateCheckService.start_gate_check
    losing the concurrent-start race: the failed INSERT leaves the session
    unusable, so it is rolled back before AlreadyInProgressError.  The caller
    (GateCheckOrchestrator, ``session_scope()`` or a test) owns
    commit/rollback, which keeps an item update and its deficiency link in
    one atomic unit.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from gatecheck_kernel.db.base import Base
from gatecheck_kernel.exceptions import OptimisticLockError

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()``.  ``session.rollback()``
          is reserved for an IntegrityError that poisons the session
          (GateCheckService.start_gate_check).
        - A concurrent write detected by the mapper version counter is
          surfaced as OptimisticLockError.
    """

    def __init__(self, session: Session):
        self.session = session

    def _flush(self, entity_type: str, entity_id) -> None:
        """Flush pending changes, translating version conflicts."""
        try:
            self.session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError(entity_type, str(entity_id)) from exc
