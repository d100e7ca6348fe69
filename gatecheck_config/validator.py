"""
Catalog Validator (``gatecheck_config.validator``).

Responsibility
--------------
Structural checks on a ``GateCheckCatalog`` before it is exposed to the
engine: every transition known and defined once, item codes unique within
a transition, no empty checklists, sort orders unique within a transition.

Failure modes
-------------
* Validation errors -> the catalog MUST NOT be seeded.
* Warnings -> the catalog may be used but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from gatecheck_config.schema import GateCheckCatalog
from gatecheck_kernel.domain.gate_check import GateCheckTransition

_KNOWN_TRANSITIONS = frozenset(t.value for t in GateCheckTransition)


@dataclass
class CatalogValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_catalog(catalog: GateCheckCatalog) -> CatalogValidationResult:
    result = CatalogValidationResult()

    seen: set[str] = set()
    for template in catalog.transitions:
        if template.transition not in _KNOWN_TRANSITIONS:
            result.add_error(f"Unknown transition {template.transition!r}")
            continue
        if template.transition in seen:
            result.add_error(f"Transition {template.transition!r} defined more than once")
        seen.add(template.transition)
        _validate_items(template, result)

    for missing in sorted(_KNOWN_TRANSITIONS - seen):
        result.add_warning(f"No checklist defined for transition {missing!r}")

    return result


def _validate_items(template, result: CatalogValidationResult) -> None:
    if not template.items:
        result.add_error(f"Transition {template.transition!r} has no checklist items")
        return

    codes: set[str] = set()
    orders: set[int] = set()
    for item in template.items:
        if not item.code or not item.label:
            result.add_error(
                f"{template.transition}: item code and label must be non-empty"
            )
        if item.code in codes:
            result.add_error(f"{template.transition}: duplicate item code {item.code!r}")
        if item.sort_order in orders:
            result.add_error(
                f"{template.transition}: duplicate sort_order {item.sort_order} "
                f"({item.code!r})"
            )
        codes.add(item.code)
        orders.add(item.sort_order)

    if not any(item.blocking for item in template.items):
        result.add_warning(
            f"{template.transition}: no blocking items, every round will pass"
        )
