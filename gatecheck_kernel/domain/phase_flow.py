"""
Phase flow -- which gate guards which construction phase.

Framing phases:   capping → floor_1 → walls_1 → floor_2 → walls_2 → [gate: framing_to_roofing]
Roofing phase:    roof → [gate: roofing_to_trades]
Trades pause:     (external) → [gate: trades_to_backframe]
Backframe phases: backframe_basement → backframe_strapping → backframe_backing → [gate: backframe_to_final]

The trades_to_backframe gate is checked when a lot moves INTO
backframe_basement, so that phase is its gating phase.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from gatecheck_kernel.domain.gate_check import GateCheckTransition
from gatecheck_kernel.exceptions import InvalidPhaseError


class PhaseId(str, Enum):
    CAPPING = "capping"
    FLOOR_1 = "floor_1"
    WALLS_1 = "walls_1"
    FLOOR_2 = "floor_2"
    WALLS_2 = "walls_2"
    ROOF = "roof"
    BACKFRAME_BASEMENT = "backframe_basement"
    BACKFRAME_STRAPPING = "backframe_strapping"
    BACKFRAME_BACKING = "backframe_backing"


TRANSITION_GATING_PHASE: dict[GateCheckTransition, PhaseId] = {
    GateCheckTransition.FRAMING_TO_ROOFING: PhaseId.WALLS_2,
    GateCheckTransition.ROOFING_TO_TRADES: PhaseId.ROOF,
    GateCheckTransition.TRADES_TO_BACKFRAME: PhaseId.BACKFRAME_BASEMENT,
    GateCheckTransition.BACKFRAME_TO_FINAL: PhaseId.BACKFRAME_BACKING,
}


def parse_phase(value: PhaseId | str) -> PhaseId:
    """Coerce a phase id, raising InvalidPhaseError for unknown values."""
    try:
        return PhaseId(value)
    except ValueError:
        raise InvalidPhaseError(str(value)) from None


_REQUIRED_TRANSITION: dict[PhaseId, GateCheckTransition] = {
    phase: transition for transition, phase in TRANSITION_GATING_PHASE.items()
}


def required_transition(phase_id: PhaseId | str) -> GateCheckTransition | None:
    """Gate that must be passed before a lot can advance beyond ``phase_id``.

    Returns None for phases with no gate.  Raises InvalidPhaseError for an
    unknown phase.
    """
    return _REQUIRED_TRANSITION.get(parse_phase(phase_id))


@dataclass(frozen=True)
class PhaseAdvanceCheck:
    """Whether a lot may leave its current phase, and what stops it."""

    lot_id: str
    phase_id: PhaseId
    can_advance: bool
    blockers: tuple[str, ...] = ()


@dataclass(frozen=True)
class LotPhaseFlowStatus:
    """Latest gate status per transition and open blocking deficiencies per phase."""

    lot_id: str
    gate_check_status: dict[str, str]
    blocking_by_phase: dict[str, int]
