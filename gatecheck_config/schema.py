"""
Configuration Schema (``gatecheck_config.schema``).

Responsibility
--------------
Frozen dataclasses for the checklist template catalog and the runtime
settings.  The YAML source is parsed into these types by ``loader.py``.

Architecture position
---------------------
**Config layer** -- pure data definitions.  May import kernel domain value
types (``GateCheckTemplateItem``) so the catalog can be handed straight to
``TemplateService``; the kernel never imports from here.
"""

from __future__ import annotations

from dataclasses import dataclass

from gatecheck_kernel.domain.gate_check import GateCheckTemplateItem, GateCheckTransition


@dataclass(frozen=True)
class TemplateItemDef:
    """One checklist line as authored in YAML."""

    code: str
    label: str
    blocking: bool = False
    sort_order: int = 0


@dataclass(frozen=True)
class TransitionTemplateDef:
    """The checklist for one phase transition."""

    transition: str
    items: tuple[TemplateItemDef, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class GateCheckCatalog:
    """The complete template catalog.

    ``checksum`` is the SHA-256 of the canonical JSON of the source YAML and
    identifies the catalog version in GATECHECK_CONFIG_TRACE entries.
    """

    catalog_id: str
    version: int
    transitions: tuple[TransitionTemplateDef, ...]
    checksum: str = ""

    def for_transition(self, transition: str) -> TransitionTemplateDef | None:
        for t in self.transitions:
            if t.transition == transition:
                return t
        return None

    @property
    def item_count(self) -> int:
        return sum(len(t.items) for t in self.transitions)

    def to_template_items(self) -> list[GateCheckTemplateItem]:
        """Kernel template records, in catalog order."""
        return [
            GateCheckTemplateItem(
                transition=GateCheckTransition(t.transition),
                item_code=item.code,
                item_label=item.label,
                is_blocking=item.blocking,
                sort_order=item.sort_order,
            )
            for t in self.transitions
            for item in t.items
        ]


@dataclass(frozen=True)
class Settings:
    """Runtime settings read from the environment by ``get_settings()``."""

    database_url: str = "sqlite:///gatecheck.db"
    log_level: str = "INFO"
    stale_after_hours: float = 72.0
