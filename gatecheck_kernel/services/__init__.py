"""Write-side services of the gate check kernel."""

from gatecheck_kernel.services.base import BaseService
from gatecheck_kernel.services.deficiency_service import (
    DeficiencyLinker,
    DeficiencyService,
)
from gatecheck_kernel.services.gate_check_service import GateCheckService
from gatecheck_kernel.services.template_service import TemplateService

__all__ = [
    "BaseService",
    "DeficiencyLinker",
    "DeficiencyService",
    "GateCheckService",
    "TemplateService",
]
