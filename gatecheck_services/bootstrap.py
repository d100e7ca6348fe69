"""
Process setup for the gate check engine.

``init_gatecheck()`` is the one call an entry point (the inspector API,
the foreman console, the expiry cron job) makes before constructing a
``GateCheckOrchestrator``.  It wires the runtime settings into the
kernel: the database engine, JSON logging and the immutability
listeners that protect completed gate checks.
"""

from __future__ import annotations

from gatecheck_config import get_settings
from gatecheck_config.schema import Settings
from gatecheck_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from gatecheck_kernel.db.immutability import register_immutability_listeners
from gatecheck_kernel.logging_config import configure_logging, get_logger
from gatecheck_services.gate_check_orchestrator import GateCheckOrchestrator

logger = get_logger("services.bootstrap")


def init_gatecheck(
    settings: Settings | None = None,
    *,
    create_schema: bool = False,
    seed_catalog: bool = False,
) -> Settings:
    """
    Initialize the engine, logging and ORM listeners from settings.

    Args:
        settings: Runtime settings. Defaults to ``get_settings()``.
        create_schema: Create missing tables (local sqlite, first run).
        seed_catalog: Load the active template catalog into the
            template table.

    Returns:
        The settings that were applied.  Pass them to
        ``GateCheckOrchestrator`` so the expiry sweep uses
        ``stale_after_hours``.
    """
    settings = settings or get_settings()

    configure_logging(level=settings.log_level)
    engine = init_engine_from_url(settings.database_url)
    register_immutability_listeners()

    if create_schema:
        create_tables(engine)

    seeded = 0
    if seed_catalog:
        with session_scope() as session:
            seeded = GateCheckOrchestrator(
                session, settings=settings, auto_commit=False,
            ).seed_templates()

    logger.info(
        "gatecheck_initialized",
        extra={
            "dialect": engine.dialect.name,
            "stale_after_hours": settings.stale_after_hours,
            "templates_seeded": seeded,
        },
    )
    return settings
