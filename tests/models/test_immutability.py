"""
ORM-level immutability of closed gate checks.

These bypass GateCheckService and write to the models directly, proving
the listeners stop any code path from altering a closed record.
"""

import pytest
from sqlalchemy import select

from gatecheck_kernel.domain.gate_check import GateCheckResult
from gatecheck_kernel.exceptions import ImmutabilityViolationError
from gatecheck_kernel.models.gate_check import GateCheckItemModel, GateCheckModel


@pytest.fixture
def passed_gate_check(gate_check_service, started_gate_check):
    for item in started_gate_check.items:
        gate_check_service.update_gate_check_item(item.id, "pass")
    return gate_check_service.complete_gate_check(started_gate_check.gate_check.id)


def _load(session, gate_check_id) -> GateCheckModel:
    return session.execute(
        select(GateCheckModel)
        .where(GateCheckModel.id == gate_check_id)
        .execution_options(populate_existing=True)
    ).scalar_one()


class TestClosedGateCheck:

    def test_header_update_blocked(self, session, passed_gate_check):
        model = _load(session, passed_gate_check.gate_check.id)
        model.status = "in_progress"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "GateCheck"

    def test_item_update_blocked(self, session, passed_gate_check):
        item = session.get(GateCheckItemModel, passed_gate_check.items[0].id)
        item.result = GateCheckResult.FAIL.value

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "GateCheckItem"

    def test_delete_blocked(self, session, passed_gate_check):
        session.delete(_load(session, passed_gate_check.gate_check.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestOpenGateCheck:

    def test_open_header_may_change(self, session, started_gate_check, deterministic_clock):
        model = _load(session, started_gate_check.gate_check.id)
        model.updated_at = deterministic_clock.tick()
        session.flush()

    def test_items_never_deleted(self, session, started_gate_check):
        item = session.get(GateCheckItemModel, started_gate_check.items[0].id)
        session.delete(item)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_logged(self, session, passed_gate_check, captured_logs):
        model = _load(session, passed_gate_check.gate_check.id)
        model.cancel_reason = "rewriting history"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked and blocked[0]["operation"] == "UPDATE"
