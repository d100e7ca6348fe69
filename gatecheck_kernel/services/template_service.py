"""
TemplateService -- seeds the read-only checklist template table.

Responsibility:
    Writes ``GateCheckTemplateItem`` definitions (usually from the YAML
    catalog returned by ``gatecheck_config.get_active_catalog()``) into
    ``gate_check_templates``.

Invariants enforced:
    - Idempotent: rows are keyed by (transition, item_code).  Existing rows
      are left untouched, so re-seeding never alters a template that
      in-flight gate checks were materialized from.
    - Flush-only: never commits.
"""

from typing import Iterable

from sqlalchemy import select

from gatecheck_kernel.domain.gate_check import GateCheckTemplateItem
from gatecheck_kernel.logging_config import get_logger
from gatecheck_kernel.models.gate_check import GateCheckTemplateModel
from gatecheck_kernel.services.base import BaseService

logger = get_logger("services.template")


class TemplateService(BaseService[GateCheckTemplateModel]):
    """Loads checklist templates into the database."""

    def seed_from_catalog(self, items: Iterable[GateCheckTemplateItem]) -> int:
        """
        Insert template items that are not yet present.

        Returns:
            Number of rows inserted.
        """
        existing = {
            (row.transition, row.item_code)
            for row in self.session.execute(
                select(
                    GateCheckTemplateModel.transition,
                    GateCheckTemplateModel.item_code,
                )
            ).all()
        }

        inserted = 0
        for item in items:
            key = (item.transition.value, item.item_code)
            if key in existing:
                continue
            self.session.add(
                GateCheckTemplateModel(
                    transition=item.transition.value,
                    item_code=item.item_code,
                    item_label=item.item_label,
                    is_blocking=item.is_blocking,
                    sort_order=item.sort_order,
                )
            )
            existing.add(key)
            inserted += 1

        self.session.flush()

        logger.info(
            "gate_check_templates_seeded",
            extra={"inserted": inserted, "existing": len(existing) - inserted},
        )
        return inserted
