"""Read-only selectors over gate checks, templates and deficiencies."""

from gatecheck_kernel.selectors.base import BaseSelector
from gatecheck_kernel.selectors.deficiency_selector import DeficiencySelector
from gatecheck_kernel.selectors.gate_check_selector import GateCheckSelector

__all__ = [
    "BaseSelector",
    "DeficiencySelector",
    "GateCheckSelector",
]
