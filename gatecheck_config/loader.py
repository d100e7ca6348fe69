"""
Configuration Loader (``gatecheck_config.loader``).

Responsibility
--------------
Loads the template catalog YAML and parses it into typed
``gatecheck_config.schema`` dataclasses.  Runtime callers go through
``gatecheck_config.get_active_catalog()`` instead.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the source.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from gatecheck_config.schema import (
    GateCheckCatalog,
    TemplateItemDef,
    TransitionTemplateDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_template_item(data: dict[str, Any], position: int) -> TemplateItemDef:
    """Parse one checklist line; ``sort_order`` defaults to its position."""
    blocking = data.get("blocking", False)
    if not isinstance(blocking, bool):
        raise ValueError(
            f"Template item {data.get('code')!r}: blocking must be true or false"
        )
    return TemplateItemDef(
        code=str(data["code"]),
        label=str(data["label"]),
        blocking=blocking,
        sort_order=int(data.get("sort_order", position)),
    )


def parse_transition_template(data: dict[str, Any]) -> TransitionTemplateDef:
    items_raw = data.get("items") or []
    return TransitionTemplateDef(
        transition=str(data["transition"]),
        items=tuple(
            parse_template_item(item, (i + 1) * 10)
            for i, item in enumerate(items_raw)
        ),
        description=data.get("description", ""),
    )


def parse_catalog(data: dict[str, Any]) -> GateCheckCatalog:
    """
    Parse a ``GateCheckCatalog`` from the top-level YAML mapping.

    Raises:
        KeyError: if ``catalog_id`` or ``transitions`` is missing.
    """
    return GateCheckCatalog(
        catalog_id=data["catalog_id"],
        version=int(data.get("version", 1)),
        transitions=tuple(
            parse_transition_template(t) for t in data["transitions"]
        ),
        checksum=compute_checksum(data),
    )


def load_catalog(path: Path) -> GateCheckCatalog:
    return parse_catalog(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
