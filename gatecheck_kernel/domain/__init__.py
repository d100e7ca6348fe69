"""Pure domain layer: value objects and rules, zero I/O."""

from gatecheck_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from gatecheck_kernel.domain.gate_check import (
    NOT_STARTED,
    SETTABLE_RESULTS,
    STATUS_TRANSITIONS,
    TERMINAL_GATE_CHECK_STATUSES,
    TRANSITION_LABELS,
    Deficiency,
    DeficiencySeverity,
    DeficiencyStatus,
    GateCheck,
    GateCheckAggregate,
    GateCheckItem,
    GateCheckResult,
    GateCheckStatus,
    GateCheckSummary,
    GateCheckTemplateItem,
    GateCheckTransition,
    derive_outcome,
    display_status,
    parse_result,
    parse_transition,
    pending_item_codes,
    summarize_gate_check,
)
from gatecheck_kernel.domain.phase_flow import (
    TRANSITION_GATING_PHASE,
    LotPhaseFlowStatus,
    PhaseAdvanceCheck,
    PhaseId,
    parse_phase,
    required_transition,
)

__all__ = [
    "Clock",
    "Deficiency",
    "DeficiencySeverity",
    "DeficiencyStatus",
    "DeterministicClock",
    "GateCheck",
    "GateCheckAggregate",
    "GateCheckItem",
    "GateCheckResult",
    "GateCheckStatus",
    "GateCheckSummary",
    "GateCheckTemplateItem",
    "GateCheckTransition",
    "LotPhaseFlowStatus",
    "NOT_STARTED",
    "PhaseAdvanceCheck",
    "PhaseId",
    "SETTABLE_RESULTS",
    "STATUS_TRANSITIONS",
    "SystemClock",
    "TERMINAL_GATE_CHECK_STATUSES",
    "TRANSITION_GATING_PHASE",
    "TRANSITION_LABELS",
    "derive_outcome",
    "display_status",
    "parse_phase",
    "parse_result",
    "parse_transition",
    "pending_item_codes",
    "required_transition",
    "summarize_gate_check",
]
