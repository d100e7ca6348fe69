"""
Tests for GateCheckSelector.

Covers:
- Template retrieval in definition order
- Latest round per (lot, transition), including "no record"
- Lot history ordering
- Phase-flow status and can-advance checks
"""

from uuid import uuid4

import pytest

from gatecheck_kernel.domain.gate_check import GateCheckStatus, GateCheckTransition
from gatecheck_kernel.domain.phase_flow import PhaseId
from gatecheck_kernel.exceptions import (
    GateCheckItemNotFoundError,
    GateCheckNotFoundError,
    InvalidPhaseError,
    InvalidTransitionError,
)

F2R = GateCheckTransition.FRAMING_TO_ROOFING


def _complete(service, aggregate, result):
    for item in aggregate.items:
        service.update_gate_check_item(item.id, result)
    return service.complete_gate_check(aggregate.gate_check.id)


class TestTemplates:

    def test_template_order(self, gate_check_selector, simple_templates):
        items = gate_check_selector.get_template_items(F2R)
        assert [i.item_code for i in items] == ["F1", "F2"]
        assert items[0].is_blocking is True

    def test_catalog_order(self, gate_check_selector, seeded_catalog):
        items = gate_check_selector.get_template_items("roofing_to_trades")
        codes = [i.item_code for i in items]
        assert codes == sorted(codes)
        assert len(items) == len(seeded_catalog.for_transition("roofing_to_trades").items)

    def test_unknown_transition(self, gate_check_selector, session):
        with pytest.raises(InvalidTransitionError):
            gate_check_selector.get_template_items("roof_to_roof")


class TestLatestGateCheck:

    def test_none_before_start(self, gate_check_selector, simple_templates, lot_id):
        assert gate_check_selector.get_latest_gate_check(lot_id, F2R) is None

    def test_returns_highest_round(
        self, gate_check_service, gate_check_selector, started_gate_check, lot_id, test_actor_id,
    ):
        _complete(gate_check_service, started_gate_check, "fail")
        second = gate_check_service.start_gate_check(lot_id, F2R, test_actor_id)

        latest = gate_check_selector.get_latest_gate_check(lot_id, "framing_to_roofing")

        assert latest.gate_check.id == second.gate_check.id
        assert latest.gate_check.round_number == 2
        assert [i.item_code for i in latest.items] == ["F1", "F2"]

    def test_rounds_history(
        self, gate_check_service, gate_check_selector, started_gate_check, lot_id, test_actor_id,
    ):
        _complete(gate_check_service, started_gate_check, "fail")
        gate_check_service.start_gate_check(lot_id, F2R, test_actor_id)

        rounds = gate_check_selector.list_rounds(lot_id, F2R)
        assert [r.round_number for r in rounds] == [1, 2]
        assert [r.status for r in rounds] == [GateCheckStatus.FAILED, GateCheckStatus.IN_PROGRESS]

    def test_unknown_ids(self, gate_check_selector, session):
        with pytest.raises(GateCheckNotFoundError):
            gate_check_selector.get_gate_check(uuid4())
        with pytest.raises(GateCheckItemNotFoundError):
            gate_check_selector.get_item(uuid4())


class TestLotViews:

    def test_list_by_lot_newest_first(
        self, gate_check_service, gate_check_selector, seeded_catalog,
        deterministic_clock, lot_id, test_actor_id,
    ):
        first = gate_check_service.start_gate_check(lot_id, F2R, test_actor_id)
        deterministic_clock.advance(3600)
        second = gate_check_service.start_gate_check(lot_id, "roofing_to_trades", test_actor_id)
        gate_check_service.start_gate_check(uuid4(), F2R, test_actor_id)

        listed = gate_check_selector.list_gate_checks_by_lot(lot_id)

        assert [g.id for g in listed] == [second.gate_check.id, first.gate_check.id]

    def test_phase_flow_status(
        self, gate_check_service, gate_check_selector, started_gate_check, lot_id,
    ):
        _complete(gate_check_service, started_gate_check, "fail")

        status = gate_check_selector.get_lot_phase_flow_status(lot_id)

        assert status.gate_check_status == {"framing_to_roofing": "failed"}
        assert status.blocking_by_phase == {"walls_2": 1}


class TestCanAdvancePhase:

    def test_ungated_phase_with_nothing_open(self, gate_check_selector, session, lot_id):
        check = gate_check_selector.can_advance_phase(lot_id, PhaseId.FLOOR_1)
        assert check.can_advance is True
        assert check.blockers == ()

    def test_unknown_phase_rejected(self, gate_check_selector, deficiency_selector, session, lot_id):
        with pytest.raises(InvalidPhaseError):
            gate_check_selector.can_advance_phase(lot_id, "plumbing")
        with pytest.raises(InvalidPhaseError):
            deficiency_selector.count_open_blocking(lot_id, "plumbing")

    def test_gating_phase_without_gate_check(self, gate_check_selector, session, lot_id):
        check = gate_check_selector.can_advance_phase(lot_id, "walls_2")
        assert check.can_advance is False
        assert check.blockers == ('Gate check "framing_to_roofing" not passed',)

    def test_in_progress_does_not_count(self, gate_check_selector, started_gate_check, lot_id):
        assert gate_check_selector.can_advance_phase(lot_id, PhaseId.WALLS_2).can_advance is False

    def test_passed_gate_allows_advance(
        self, gate_check_service, gate_check_selector, started_gate_check, lot_id,
    ):
        _complete(gate_check_service, started_gate_check, "pass")
        assert gate_check_selector.can_advance_phase(lot_id, PhaseId.WALLS_2).can_advance is True

    def test_open_deficiency_blocks_even_after_pass(
        self, gate_check_service, deficiency_service, gate_check_selector,
        started_gate_check, lot_id, test_actor_id,
    ):
        f1 = started_gate_check.item_by_code("F1")
        failed = gate_check_service.update_gate_check_item(f1.id, "fail")
        gate_check_service.update_gate_check_item(f1.id, "pass")
        gate_check_service.update_gate_check_item(started_gate_check.item_by_code("F2").id, "pass")
        gate_check_service.complete_gate_check(started_gate_check.gate_check.id)

        blocked = gate_check_selector.can_advance_phase(lot_id, PhaseId.WALLS_2)
        assert blocked.can_advance is False
        assert blocked.blockers == ("1 blocking item(s) unresolved on phase walls_2",)

        deficiency_service.resolve_deficiency(failed.deficiency_id, test_actor_id, "https://photos/ok.jpg")
        assert gate_check_selector.can_advance_phase(lot_id, PhaseId.WALLS_2).can_advance is True

    def test_cancelled_round_never_counts_as_passed(
        self, gate_check_service, gate_check_selector, started_gate_check, lot_id, test_actor_id,
    ):
        gate_check_service.cancel_gate_check(started_gate_check.gate_check.id, test_actor_id, "abandoned")
        assert gate_check_selector.can_advance_phase(lot_id, PhaseId.WALLS_2).can_advance is False
