"""ORM models. Importing this package registers every table on Base.metadata."""

from gatecheck_kernel.models.deficiency import DeficiencyModel
from gatecheck_kernel.models.gate_check import (
    GateCheckItemModel,
    GateCheckModel,
    GateCheckTemplateModel,
)

__all__ = [
    "DeficiencyModel",
    "GateCheckItemModel",
    "GateCheckModel",
    "GateCheckTemplateModel",
]
