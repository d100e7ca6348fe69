"""
gatecheck_config -- single public entrypoint for gate check configuration.

Responsibility:
    ``get_active_catalog()`` is the only way to obtain the checklist
    template catalog at runtime, and ``get_settings()`` is the only place
    environment variables are read.  YAML loading is internal tooling.

Architecture position:
    Configuration -- sits above ``gatecheck_kernel`` and below
    ``gatecheck_services``.  The kernel MUST NEVER import from here.

Failure modes:
    - ``FileNotFoundError`` -- no catalog file in the configuration dir.
    - ``ValueError`` -- catalog validation failed, or a malformed
      environment value.

Audit relevance:
    Every successful ``get_active_catalog()`` call emits a
    ``GATECHECK_CONFIG_TRACE`` log entry with the catalog id, version and
    checksum, tying each seeded template back to its source.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from gatecheck_config.loader import load_catalog
from gatecheck_config.schema import GateCheckCatalog, Settings
from gatecheck_config.validator import validate_catalog

_logger = logging.getLogger("gatecheck_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_CATALOG_FILE = "gate_check_templates.yaml"


def get_active_catalog(config_dir: Path | None = None) -> GateCheckCatalog:
    """The ONLY public catalog entrypoint.

    Args:
        config_dir: Override path to the configuration directory.
            Defaults to gatecheck_config/sets/.

    Returns:
        A validated, frozen ``GateCheckCatalog``.

    Raises:
        FileNotFoundError: If the catalog file does not exist.
        ValueError: If catalog validation fails.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    path = sets_dir / _CATALOG_FILE
    if not path.is_file():
        raise FileNotFoundError(f"Gate check catalog not found: {path}")

    catalog = load_catalog(path)

    validation = validate_catalog(catalog)
    if not validation.is_valid:
        raise ValueError(
            "Gate check catalog validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("gate_check_catalog_warning", extra={"warning": warning})

    _logger.info(
        "GATECHECK_CONFIG_TRACE",
        extra={
            "trace_type": "GATECHECK_CONFIG_TRACE",
            "catalog_id": catalog.catalog_id,
            "catalog_version": catalog.version,
            "checksum": catalog.checksum,
            "transition_count": len(catalog.transitions),
            "item_count": catalog.item_count,
        },
    )
    return catalog


def get_settings() -> Settings:
    """Runtime settings from ``GATECHECK_*`` environment variables.

    Raises:
        ValueError: If GATECHECK_STALE_HOURS is not a positive number.
    """
    defaults = Settings()
    stale_raw = os.environ.get("GATECHECK_STALE_HOURS")
    stale_hours = defaults.stale_after_hours
    if stale_raw:
        stale_hours = float(stale_raw)
        if stale_hours <= 0:
            raise ValueError(f"GATECHECK_STALE_HOURS must be positive, got {stale_raw!r}")

    return Settings(
        database_url=os.environ.get("GATECHECK_DATABASE_URL", defaults.database_url),
        log_level=os.environ.get("GATECHECK_LOG_LEVEL", defaults.log_level).upper(),
        stale_after_hours=stale_hours,
    )


__all__ = [
    "GateCheckCatalog",
    "Settings",
    "get_active_catalog",
    "get_settings",
]
