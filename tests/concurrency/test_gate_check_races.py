"""
Two devices working on the same gate check.

The foreman console and the inspector app each hold their own session.
These tests cover the races the engine must settle: duplicate starts,
a start that loses the unique-index race, stale writers, a completion
racing an item update, and the expiry sweep racing an item update.
"""

from sqlalchemy import select
from sqlalchemy.orm.attributes import flag_modified

import pytest

from gatecheck_kernel.domain.gate_check import GateCheckStatus, GateCheckTransition
from gatecheck_kernel.exceptions import (
    AlreadyInProgressError,
    GateCheckClosedError,
    OptimisticLockError,
)
from gatecheck_kernel.models.gate_check import GateCheckModel
from gatecheck_kernel.services.gate_check_service import GateCheckService
from gatecheck_services import GateCheckOrchestrator

F2R = GateCheckTransition.FRAMING_TO_ROOFING


@pytest.fixture
def devices(session_factory, simple_templates, deterministic_clock):
    foreman = GateCheckOrchestrator(session_factory(), clock=deterministic_clock)
    inspector = GateCheckOrchestrator(session_factory(), clock=deterministic_clock)
    return foreman, inspector


class TestTwoDevices:

    def test_duplicate_start_from_second_device(self, devices, lot_id, test_actor_id):
        foreman, inspector = devices
        started = foreman.start_gate_check(lot_id, F2R, test_actor_id)

        with pytest.raises(AlreadyInProgressError) as exc_info:
            inspector.start_gate_check(lot_id, F2R, test_actor_id)

        assert exc_info.value.gate_check_id == str(started.gate_check.id)

    def test_update_after_other_device_completed(self, devices, lot_id, test_actor_id):
        foreman, inspector = devices
        started = foreman.start_gate_check(lot_id, F2R, test_actor_id)
        # Inspector loads the checklist before the foreman finishes it
        inspector_view = inspector.get_gate_check(started.gate_check.id)
        for item in started.items:
            foreman.update_gate_check_item(item.id, "pass")
        foreman.complete_gate_check(started.gate_check.id)

        with pytest.raises(GateCheckClosedError):
            inspector.update_gate_check_item(inspector_view.items[0].id, "fail")

        final = inspector.get_gate_check(started.gate_check.id)
        assert final.gate_check.status == GateCheckStatus.PASSED

    def test_interleaved_item_updates_both_land(self, devices, lot_id, test_actor_id):
        foreman, inspector = devices
        started = foreman.start_gate_check(lot_id, F2R, test_actor_id)

        inspector.update_gate_check_item(started.item_by_code("F1").id, "pass")
        foreman.update_gate_check_item(started.item_by_code("F2").id, "fail")

        final = inspector.get_gate_check(started.gate_check.id)
        assert final.item_by_code("F1").result.value == "pass"
        assert final.item_by_code("F2").result.value == "fail"
        assert final.gate_check.version == started.gate_check.version + 2


class TestStaleWriter:

    def test_stale_version_raises_optimistic_lock(
        self, session_factory, simple_templates, deterministic_clock, lot_id, test_actor_id,
    ):
        writer = GateCheckOrchestrator(session_factory(), clock=deterministic_clock)
        started = writer.start_gate_check(lot_id, F2R, test_actor_id)

        stale_session = session_factory()
        stale = stale_session.execute(
            select(GateCheckModel).where(GateCheckModel.id == started.gate_check.id)
        ).scalar_one()

        writer.update_gate_check_item(started.items[0].id, "pass")

        stale.updated_at = deterministic_clock.tick()
        flag_modified(stale, "updated_at")
        with pytest.raises(OptimisticLockError) as exc_info:
            GateCheckService(stale_session, deterministic_clock)._flush("GateCheck", stale.id)

        assert exc_info.value.entity_id == str(started.gate_check.id)

    def test_expiry_racing_an_item_update(
        self, session_factory, simple_templates, deterministic_clock, lot_id, test_actor_id,
        monkeypatch,
    ):
        foreman = GateCheckOrchestrator(session_factory(), clock=deterministic_clock)
        started = foreman.start_gate_check(lot_id, F2R, test_actor_id)
        deterministic_clock.advance(100 * 3600)

        sweeper = GateCheckService(session_factory(), deterministic_clock)
        cancel = sweeper._cancel

        def _cancel_while_foreman_writes(model, actor_id, reason, when):
            cancel(model, actor_id, reason, when)
            foreman.update_gate_check_item(started.items[0].id, "pass")

        monkeypatch.setattr(sweeper, "_cancel", _cancel_while_foreman_writes)

        with pytest.raises(OptimisticLockError) as exc_info:
            sweeper.expire_stale_gate_checks(deterministic_clock.now(), 72)

        assert exc_info.value.entity_type == "GateCheck"
        assert exc_info.value.entity_id == str(started.gate_check.id)


class TestLostStartRace:

    def test_loser_rolls_back_and_reports_winner(
        self, session_factory, simple_templates, deterministic_clock, lot_id, test_actor_id,
        monkeypatch, captured_logs,
    ):
        winner = GateCheckOrchestrator(session_factory(), clock=deterministic_clock)
        won = winner.start_gate_check(lot_id, F2R, test_actor_id)

        loser = GateCheckService(session_factory(), deterministic_clock)
        lookup = loser._selector.get_in_progress
        calls = []

        # The loser's pre-check ran before the winner's row was visible
        def _missed_then_seen(*args):
            calls.append(args)
            return None if len(calls) == 1 else lookup(*args)

        monkeypatch.setattr(loser._selector, "get_in_progress", _missed_then_seen)

        with pytest.raises(AlreadyInProgressError) as exc_info:
            loser.start_gate_check(lot_id, F2R, test_actor_id)

        assert exc_info.value.gate_check_id == str(won.gate_check.id)
        assert "concurrent_gate_check_start_conflict" in [r["message"] for r in captured_logs()]
        # Session was rolled back and stays usable
        latest = loser._selector.get_latest_gate_check(lot_id, F2R)
        assert latest.gate_check.id == won.gate_check.id
        assert latest.gate_check.round_number == 1
