"""
gatecheck_services -- orchestration surface for the field-inspector app and
the foreman console.
"""

from gatecheck_services.errors import ErrorPayload, error_payload
from gatecheck_services.gate_check_orchestrator import (
    GateCheckOrchestrator,
    TransitionOverview,
)
from gatecheck_services.bootstrap import init_gatecheck

__all__ = [
    "ErrorPayload",
    "GateCheckOrchestrator",
    "TransitionOverview",
    "error_payload",
    "init_gatecheck",
]
